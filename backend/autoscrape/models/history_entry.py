"""History entry model: one row per finished automation session."""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Index

from autoscrape.models.base import Base, UUIDMixin


class HistoryEntry(UUIDMixin, Base):
    __tablename__ = "history_entries"

    scene_id = Column(String(64), nullable=False, index=True)
    scene_name = Column(String(255))
    url = Column(String(500))

    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="completed")  # completed, cancelled, failed
    success = Column(Boolean, nullable=False, default=False)
    duration_ms = Column(Integer)

    sources_used = Column(JSON, default=list)
    skipped_sources = Column(JSON, default=list)
    errors = Column(JSON, default=list)

    # Lightweight summary counts
    actions_count = Column(Integer, default=0)
    fields_updated_count = Column(Integer, default=0)
    warnings_count = Column(Integer, default=0)
    linked_entities_created = Column(Integer, default=0)
    organized = Column(Boolean, default=False)

    # Presence flags per provider, never full payloads
    extra_data = Column(JSON, default=dict)
    version = Column(String(32))

    __table_args__ = (
        Index("idx_history_scene_timestamp", "scene_id", "timestamp"),
    )

"""Rescrape queue model: scenes scheduled for a later re-attempt."""

from sqlalchemy import Column, String, Integer, DateTime

from autoscrape.models.base import Base, TimestampMixin


class QueueEntry(TimestampMixin, Base):
    __tablename__ = "rescrape_queue"

    scene_id = Column(String(64), primary_key=True)
    reason = Column(String(500), nullable=False, default="Low confidence")
    next_attempt_at = Column(DateTime(timezone=True), nullable=False, index=True)
    attempt_count = Column(Integer, nullable=False, default=0)

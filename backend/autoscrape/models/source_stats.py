"""Per-provider scrape outcome counters used for adaptive routing."""

from sqlalchemy import Column, String, Integer, DateTime

from autoscrape.models.base import Base


class SourceStats(Base):
    __tablename__ = "source_stats"

    provider = Column(String(50), primary_key=True)
    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime(timezone=True))

"""Persisted per-provider success/failure counters."""

import logging
from typing import Callable
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from autoscrape.models.source_stats import SourceStats
from autoscrape.schemas.source_stats import SourceStatsRead
from autoscrape.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class SourceStatsStore:
    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def record(self, provider: str, ok: bool) -> SourceStatsRead:
        """Count one scrape attempt for a provider."""
        db = self.session_factory()
        try:
            row = db.get(SourceStats, provider)
            if row is None:
                row = SourceStats(provider=provider, success_count=0, fail_count=0)
                db.add(row)
            if ok:
                row.success_count = (row.success_count or 0) + 1
            else:
                row.fail_count = (row.fail_count or 0) + 1
            row.last_attempt_at = self.clock()
            db.commit()
            return self._read(row)
        finally:
            db.close()

    def get(self, provider: str) -> SourceStatsRead | None:
        db = self.session_factory()
        try:
            row = db.get(SourceStats, provider)
            return self._read(row) if row else None
        finally:
            db.close()

    def load_all(self) -> dict[str, SourceStatsRead]:
        db = self.session_factory()
        try:
            return {row.provider: self._read(row) for row in db.query(SourceStats).all()}
        finally:
            db.close()

    def reset(self, provider: str | None = None) -> int:
        db = self.session_factory()
        try:
            query = db.query(SourceStats)
            if provider:
                query = query.filter(SourceStats.provider == provider)
            removed = query.delete(synchronize_session=False)
            db.commit()
            logger.info(f"Reset source stats for {provider or 'all providers'}")
            return removed
        finally:
            db.close()

    @staticmethod
    def _read(row: SourceStats) -> SourceStatsRead:
        stats = SourceStatsRead.model_validate(row)
        stats.last_attempt_at = ensure_utc(stats.last_attempt_at)
        return stats

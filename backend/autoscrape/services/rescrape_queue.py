"""Persisted schedule of scenes to re-scrape after a retry interval."""

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import sessionmaker

from autoscrape.models.rescrape_queue import QueueEntry
from autoscrape.schemas.queue import QueueEntryRead
from autoscrape.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class RescrapeQueue:
    """
    One entry per scene. Entries are only removed by ``remove``/``clear``.

    Backoff after an attempt is ``min(max_backoff_minutes, retry_interval_minutes)``:
    capped and flat, never exponential.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        retry_interval_minutes: int = 30,
        max_backoff_minutes: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.retry_interval_minutes = retry_interval_minutes
        self.max_backoff_minutes = max_backoff_minutes
        self.clock = clock

    def configure(self, retry_interval_minutes: int, max_backoff_minutes: int) -> None:
        self.retry_interval_minutes = retry_interval_minutes
        self.max_backoff_minutes = max_backoff_minutes

    def enqueue(self, scene_id: str, reason: str = "Low confidence") -> QueueEntryRead:
        """Insert, or update reason and reset the schedule of an existing entry."""
        next_attempt = self.clock() + timedelta(minutes=self.retry_interval_minutes)
        db = self.session_factory()
        try:
            entry = db.get(QueueEntry, scene_id)
            if entry is None:
                entry = QueueEntry(scene_id=scene_id, reason=reason, next_attempt_at=next_attempt, attempt_count=0)
                db.add(entry)
                logger.info(f"[{scene_id}] Queued for re-scrape: {reason}")
            else:
                entry.reason = reason
                entry.next_attempt_at = next_attempt
                logger.info(f"[{scene_id}] Re-scrape rescheduled: {reason}")
            db.commit()
            return self._read(entry)
        finally:
            db.close()

    def get(self, scene_id: str) -> QueueEntryRead | None:
        db = self.session_factory()
        try:
            entry = db.get(QueueEntry, scene_id)
            return self._read(entry) if entry else None
        finally:
            db.close()

    def due_entry(self, scene_id: str) -> QueueEntryRead | None:
        """The scene's entry if its next attempt time has passed, else None."""
        entry = self.get(scene_id)
        if entry is None or entry.next_attempt_at > self.clock():
            return None
        return entry

    def due_entries(self) -> list[QueueEntryRead]:
        now = self.clock()
        return [e for e in self.entries() if e.next_attempt_at <= now]

    def mark_attempted(self, entry: QueueEntryRead | str) -> QueueEntryRead | None:
        """Count an attempt and push the next one out by the capped interval."""
        scene_id = entry if isinstance(entry, str) else entry.scene_id
        backoff = min(self.max_backoff_minutes, self.retry_interval_minutes)
        db = self.session_factory()
        try:
            row = db.get(QueueEntry, scene_id)
            if row is None:
                return None
            row.attempt_count = (row.attempt_count or 0) + 1
            row.next_attempt_at = self.clock() + timedelta(minutes=backoff)
            db.commit()
            logger.info(f"[{scene_id}] Re-scrape attempt {row.attempt_count}, next in {backoff}m")
            return self._read(row)
        finally:
            db.close()

    def entries(self) -> list[QueueEntryRead]:
        """All entries, soonest first."""
        db = self.session_factory()
        try:
            rows = db.query(QueueEntry).order_by(QueueEntry.next_attempt_at.asc()).all()
            return [self._read(row) for row in rows]
        finally:
            db.close()

    def remove(self, scene_id: str) -> bool:
        db = self.session_factory()
        try:
            removed = db.query(QueueEntry).filter(QueueEntry.scene_id == scene_id).delete(synchronize_session=False)
            db.commit()
            return bool(removed)
        finally:
            db.close()

    def clear(self) -> int:
        db = self.session_factory()
        try:
            removed = db.query(QueueEntry).delete(synchronize_session=False)
            db.commit()
            logger.info(f"Cleared {removed} queued re-scrapes")
            return removed
        finally:
            db.close()

    def __len__(self) -> int:
        db = self.session_factory()
        try:
            return db.query(QueueEntry).count()
        finally:
            db.close()

    @staticmethod
    def _read(row: QueueEntry) -> QueueEntryRead:
        entry = QueueEntryRead.model_validate(row)
        entry.next_attempt_at = ensure_utc(entry.next_attempt_at)
        return entry

"""Size-bounded, persisted log of finished automation sessions."""

import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from autoscrape.exceptions import HistoryImportError
from autoscrape.models.history_entry import HistoryEntry
from autoscrape.schemas.automation import SessionState, SessionSummary
from autoscrape.schemas.history import (
    HistoryEntryRead,
    HistoryExport,
    HistoryStatistics,
    StorageInfo,
)
from autoscrape.utils import ensure_utc, truncate, utcnow

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 200


class HistoryStore:
    """
    Newest entries first. Entries are never mutated after they are written;
    once ``max_entries`` is exceeded the oldest are evicted.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        max_entries: int = 1000,
        version: str = "1.0.0",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.max_entries = max_entries
        self.version = version
        self.clock = clock

    def record(
        self,
        summary: SessionSummary,
        url: str | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> HistoryEntryRead:
        """Write one entry for a finished session."""
        status = summary.state.value if summary.state.is_terminal else SessionState.FAILED.value
        entry = HistoryEntry(
            scene_id=summary.scene_id,
            scene_name=summary.scene_name,
            url=url,
            timestamp=summary.end_time or self.clock(),
            status=status,
            success=summary.success,
            duration_ms=summary.duration_ms,
            sources_used=list(summary.sources_used),
            skipped_sources=list(summary.skipped_sources),
            errors=[truncate(e, MAX_ERROR_LENGTH) for e in summary.errors],
            actions_count=len(summary.actions),
            fields_updated_count=len(summary.fields_updated),
            warnings_count=len(summary.warnings),
            linked_entities_created=sum(1 for a in summary.actions if a.name == "create_linked_entities" and a.status == "success"),
            organized=summary.organized,
            extra_data=extra_data or {},
            version=self.version,
        )
        db = self.session_factory()
        try:
            db.add(entry)
            db.commit()
            self._evict(db)
            logger.info(f"[{summary.scene_id}] History recorded: {status}, success={summary.success}")
            return self._read(entry)
        finally:
            db.close()

    def _evict(self, db) -> int:
        total = db.query(HistoryEntry).count()
        if total <= self.max_entries:
            return 0
        stale = (
            db.query(HistoryEntry.id)
            .order_by(HistoryEntry.timestamp.desc())
            .offset(self.max_entries)
            .all()
        )
        ids = [row.id for row in stale]
        db.query(HistoryEntry).filter(HistoryEntry.id.in_(ids)).delete(synchronize_session=False)
        db.commit()
        logger.debug(f"Evicted {len(ids)} history entries over the {self.max_entries} cap")
        return len(ids)

    def all(self) -> list[HistoryEntryRead]:
        db = self.session_factory()
        try:
            rows = db.query(HistoryEntry).order_by(HistoryEntry.timestamp.desc()).all()
            return [self._read(row) for row in rows]
        finally:
            db.close()

    def for_scene(self, scene_id: str) -> list[HistoryEntryRead]:
        db = self.session_factory()
        try:
            rows = (
                db.query(HistoryEntry)
                .filter(HistoryEntry.scene_id == scene_id)
                .order_by(HistoryEntry.timestamp.desc())
                .all()
            )
            return [self._read(row) for row in rows]
        finally:
            db.close()

    def last_for_scene(self, scene_id: str) -> HistoryEntryRead | None:
        entries = self.for_scene(scene_id)
        return entries[0] if entries else None

    def statistics(self, entries: list[HistoryEntryRead] | None = None) -> HistoryStatistics:
        history = entries if entries is not None else self.all()
        if not history:
            return HistoryStatistics()

        total = len(history)
        successful = sum(1 for h in history if h.success)
        usage = Counter()
        for h in history:
            usage.update(set(h.sources_used))
        durations = [h.duration_ms for h in history if h.duration_ms and h.duration_ms > 0]
        timestamps = sorted(h.timestamp for h in history)

        return HistoryStatistics(
            total_automations=total,
            successful_automations=successful,
            failed_automations=total - successful,
            cancelled_automations=sum(1 for h in history if h.status == SessionState.CANCELLED.value),
            unique_scenes=len({h.record_id for h in history}),
            sources_used=dict(usage),
            average_duration=round(sum(durations) / len(durations)) if durations else 0,
            total_duration=sum(durations),
            success_rate=round(100 * successful / total),
            errors_count=sum(len(h.errors) for h in history),
            oldest_entry=timestamps[0],
            newest_entry=timestamps[-1],
        )

    def clear(self) -> int:
        db = self.session_factory()
        try:
            removed = db.query(HistoryEntry).delete(synchronize_session=False)
            db.commit()
            logger.info(f"Cleared {removed} history entries")
            return removed
        finally:
            db.close()

    def clear_older_than(self, days: int = 30) -> int:
        """Drop entries older than ``days``. Returns how many were removed."""
        cutoff = self.clock() - timedelta(days=days)
        db = self.session_factory()
        try:
            removed = (
                db.query(HistoryEntry)
                .filter(HistoryEntry.timestamp < cutoff)
                .delete(synchronize_session=False)
            )
            db.commit()
            logger.info(f"Removed {removed} history entries older than {days} days")
            return removed
        finally:
            db.close()

    def export_data(self) -> HistoryExport:
        history = self.all()
        return HistoryExport(
            export_date=self.clock(),
            version=self.version,
            statistics=self.statistics(history),
            history=history,
        )

    def export_json(self) -> str:
        return self.export_data().model_dump_json(by_alias=True, indent=2)

    def import_json(self, payload: str | bytes | dict) -> int:
        """
        Merge exported history into the store.

        Each entry needs a record id, a timestamp and a boolean ``success``;
        entries that don't validate are dropped. The import is rejected only
        when nothing validates. An imported entry replaces an existing one
        with the same scene and timestamp. Returns the number imported.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise HistoryImportError(f"Invalid import data: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("history"), list):
            raise HistoryImportError("Invalid import data: missing history array")

        valid: list[HistoryEntryRead] = []
        for raw in payload["history"]:
            if not isinstance(raw, dict) or not isinstance(raw.get("success"), bool):
                continue
            try:
                valid.append(HistoryEntryRead.model_validate(raw))
            except ValidationError:
                continue

        if not valid:
            raise HistoryImportError("No valid history entries found in import data")

        db = self.session_factory()
        try:
            for item in valid:
                timestamp = ensure_utc(item.timestamp)
                existing = (
                    db.query(HistoryEntry)
                    .filter(HistoryEntry.scene_id == item.record_id)
                    .all()
                )
                for row in existing:
                    if ensure_utc(row.timestamp) == timestamp:
                        db.delete(row)
                db.add(HistoryEntry(
                    scene_id=item.record_id,
                    scene_name=item.scene_name,
                    url=item.url,
                    timestamp=timestamp,
                    status=item.status,
                    success=item.success,
                    duration_ms=item.duration_ms,
                    sources_used=item.sources_used,
                    skipped_sources=item.skipped_sources,
                    errors=[truncate(e, MAX_ERROR_LENGTH) for e in item.errors],
                    actions_count=item.actions_count,
                    fields_updated_count=item.fields_updated_count,
                    warnings_count=item.warnings_count,
                    linked_entities_created=item.linked_entities_created,
                    organized=item.organized,
                    extra_data=item.extra_data,
                    version=item.version,
                ))
            db.commit()
            self._evict(db)
        finally:
            db.close()

        logger.info(f"Imported {len(valid)} of {len(payload['history'])} history entries")
        return len(valid)

    def storage_info(self) -> StorageInfo:
        history = self.all()
        size = len(json.dumps([h.model_dump(mode="json", by_alias=True) for h in history]))
        return StorageInfo(entries=len(history), max_entries=self.max_entries, size_bytes=size)

    @staticmethod
    def _read(row: HistoryEntry) -> HistoryEntryRead:
        entry = HistoryEntryRead.model_validate(row)
        entry.timestamp = ensure_utc(entry.timestamp)
        return entry

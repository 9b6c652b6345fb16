"""Periodic maintenance of the persisted stores."""

import logging

from autoscrape.config import get_settings
from autoscrape.models.base import get_session_factory
from autoscrape.services.history_store import HistoryStore
from autoscrape.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="autoscrape.tasks.maintenance_tasks.prune_history")
def prune_history(days: int | None = None):
    """Drop history entries older than the retention window."""
    settings = get_settings()
    history = HistoryStore(
        get_session_factory(settings.database_url),
        max_entries=settings.history_max_entries,
        version=settings.app_version,
    )
    retention = days if days is not None else settings.history_retention_days
    removed = history.clear_older_than(retention)
    logger.info(f"Pruned {removed} history entries older than {retention} days")
    return {"removed": removed}

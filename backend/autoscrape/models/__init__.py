"""SQLAlchemy models for the persisted stores."""

from autoscrape.models.base import Base, build_engine, build_session_factory, init_db
from autoscrape.models.config_entry import ConfigEntry
from autoscrape.models.history_entry import HistoryEntry
from autoscrape.models.rescrape_queue import QueueEntry
from autoscrape.models.source_stats import SourceStats

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "init_db",
    "ConfigEntry",
    "HistoryEntry",
    "QueueEntry",
    "SourceStats",
]

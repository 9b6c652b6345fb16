"""Pydantic schemas package."""

from autoscrape.schemas.automation import (
    ActionLogEntry,
    AutomationConfig,
    Decision,
    DecisionRequest,
    OrganizePolicy,
    RunOptions,
    ScoringWeights,
    SessionState,
    SessionSummary,
)
from autoscrape.schemas.history import (
    HistoryEntryRead,
    HistoryExport,
    HistoryStatistics,
    StorageInfo,
)
from autoscrape.schemas.queue import QueueEntryRead
from autoscrape.schemas.scene import NamedRef, Scene, StashId
from autoscrape.schemas.scraped import ScrapedData, ScrapeOutcome
from autoscrape.schemas.source_stats import NEUTRAL_RATIO, SourceStatsRead
from autoscrape.schemas.status import Completion, CompletionSnapshot, SourceStatus

__all__ = [
    # Automation
    "ActionLogEntry",
    "AutomationConfig",
    "Decision",
    "DecisionRequest",
    "OrganizePolicy",
    "RunOptions",
    "ScoringWeights",
    "SessionState",
    "SessionSummary",
    # History
    "HistoryEntryRead",
    "HistoryExport",
    "HistoryStatistics",
    "StorageInfo",
    # Queue / stats
    "QueueEntryRead",
    "NEUTRAL_RATIO",
    "SourceStatsRead",
    # Scene
    "NamedRef",
    "Scene",
    "StashId",
    # Scraping
    "ScrapedData",
    "ScrapeOutcome",
    # Status
    "Completion",
    "CompletionSnapshot",
    "SourceStatus",
]

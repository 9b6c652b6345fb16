"""Schemas for automation configuration, run options and session views."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScoringWeights(BaseModel):
    """Per-field weights for scraped data confidence scoring."""

    title: int = 20
    date: int = 10
    studio: int = 15
    performer_each: int = 5
    performers_cap: int = 25
    tag_each: int = 2
    tags_cap: int = 10
    details: int = 10
    details_min_length: int = 40
    url: int = 5
    thumbnail: int = 5


class OrganizePolicy(str, Enum):
    ALL = "all"
    ANY = "any"


class AutomationConfig(BaseModel):
    """Persisted feature toggles. Every field has a documented default."""

    model_config = ConfigDict(extra="forbid")

    auto_scrape_stashdb: bool = True
    auto_scrape_theporndb: bool = True
    auto_organize: bool = True
    auto_create_performers: bool = True
    show_notifications: bool = True
    auto_apply_changes: bool = False
    skip_already_scraped: bool = True
    adaptive_routing: bool = True
    min_auto_apply_score: int = 60
    rescrape_retry_minutes: int = 30
    max_backoff_minutes: int = 120
    organize_policy: OrganizePolicy = OrganizePolicy.ALL
    scraper_outcome_timeout_ms: int = 8000
    visible_wait_timeout_ms: int = 4000
    score_weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @field_validator("min_auto_apply_score")
    @classmethod
    def _clamp_score(cls, value: int) -> int:
        return max(0, min(100, value))

    @field_validator("rescrape_retry_minutes", "max_backoff_minutes")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)

    def provider_enabled(self, provider: str) -> bool:
        """Per-provider auto-scrape toggle; providers without a toggle are off."""
        return bool(getattr(self, f"auto_scrape_{provider}", False))


class SessionState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    SCRAPING = "scraping"
    CREATING_LINKED_ENTITIES = "creating_linked_entities"
    APPLYING = "applying"
    SAVING = "saving"
    ORGANIZING = "organizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED)


class Decision(str, Enum):
    """Operator decision when auto-apply is not allowed."""

    APPLY = "apply"
    SKIP = "skip"
    CANCEL = "cancel"


class RunOptions(BaseModel):
    """Per-run overrides.

    ``force_providers`` bypasses detection and scrapes exactly the listed
    providers, even when they are already present on the scene.
    """

    force_providers: list[str] | None = None

    @property
    def force_rescrape(self) -> bool:
        return bool(self.force_providers)


class ActionLogEntry(BaseModel):
    name: str
    status: str  # success, skip, warning, error, cancelled
    detail: str | None = None
    timestamp: datetime


class SessionSummary(BaseModel):
    """Serializable view of an automation session."""

    scene_id: str
    scene_name: str | None = None
    state: SessionState
    current_source: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration_ms: int | None = None
    actions: list[ActionLogEntry] = Field(default_factory=list)
    sources_used: list[str] = Field(default_factory=list)
    skipped_sources: list[str] = Field(default_factory=list)
    fields_updated: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cancelled: bool = False
    success: bool = False
    organized: bool = False
    awaiting_decision: bool = False


class DecisionRequest(BaseModel):
    decision: Decision

"""Schemas for detection results and completion snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autoscrape.schemas.scene import Scene
from autoscrape.utils import utcnow


class SourceStatus(BaseModel):
    """Outcome of one detection pass for one provider on one scene."""

    model_config = ConfigDict(frozen=True)

    provider: str
    found: bool = False
    confidence: int = 0
    strategy_name: str | None = None
    data: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def not_found(cls, provider: str) -> "SourceStatus":
        return cls(provider=provider, found=False, confidence=0)


class Completion(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: int
    completed_items: int
    total_items: int
    recommendations: list[str] = Field(default_factory=list)

    @property
    def status(self) -> str:
        if self.percentage == 100:
            return "Complete"
        return f"{self.completed_items}/{self.total_items} completed"


class CompletionSnapshot(BaseModel):
    """Derived view of a scene's enrichment state. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    scene_id: str
    scene: Scene | None = None
    sources: list[SourceStatus] = Field(default_factory=list)
    organized: bool = False
    percentage: int = 0
    recommendations: list[str] = Field(default_factory=list)
    refreshed_at: datetime = Field(default_factory=utcnow)

    def status_for(self, provider: str) -> SourceStatus:
        for status in self.sources:
            if status.provider == provider:
                return status
        return SourceStatus.not_found(provider)

    def is_scraped(self, provider: str) -> bool:
        return self.status_for(provider).found

"""Pydantic schemas for scenes as returned by the Stash query API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StashId(BaseModel):
    """Identifier a provider assigned to a scene."""

    endpoint: str
    stash_id: str


class NamedRef(BaseModel):
    id: str
    name: str | None = None


class Scene(BaseModel):
    """Read-only view of a Stash scene."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str | None = None
    details: str | None = None
    organized: bool = False
    stash_ids: list[StashId] = Field(default_factory=list)
    performers: list[NamedRef] = Field(default_factory=list)
    studio: NamedRef | None = None
    tags: list[NamedRef] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def identifiers_matching(self, endpoint_patterns: tuple[str, ...] | list[str]) -> list[StashId]:
        """Return the stash ids whose endpoint contains any of the given substrings."""
        patterns = [p.lower() for p in endpoint_patterns]
        return [
            sid for sid in self.stash_ids
            if sid.endpoint and any(p in sid.endpoint.lower() for p in patterns)
        ]

    @property
    def display_name(self) -> str:
        return self.title or f"Scene {self.id}"

"""Pydantic schemas for automation history and its export format."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class HistoryEntryRead(BaseModel):
    """One finished session. Serialized with camelCase keys for export."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID | None = None
    record_id: str = Field(validation_alias="scene_id", serialization_alias="recordId")
    scene_name: str | None = None
    url: str | None = None
    timestamp: datetime
    status: str = "completed"
    success: bool
    duration_ms: int | None = None
    sources_used: list[str] = Field(default_factory=list)
    skipped_sources: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    actions_count: int = 0
    fields_updated_count: int = 0
    warnings_count: int = 0
    linked_entities_created: int = 0
    organized: bool = False
    extra_data: dict[str, Any] = Field(default_factory=dict)
    version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_export_keys(cls, data: Any) -> Any:
        # Exports use recordId; older exports wrote sceneId
        if isinstance(data, dict):
            data = dict(data)
            for key in ("recordId", "record_id", "sceneId"):
                if key in data and "scene_id" not in data:
                    data["scene_id"] = data.pop(key)
            if "duration" in data and "duration_ms" not in data and "durationMs" not in data:
                data["duration_ms"] = data.pop("duration")
        return data


class HistoryStatistics(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_automations: int = 0
    successful_automations: int = 0
    failed_automations: int = 0
    cancelled_automations: int = 0
    unique_scenes: int = 0
    sources_used: dict[str, int] = Field(default_factory=dict)
    average_duration: int = 0
    total_duration: int = 0
    success_rate: int = 0
    errors_count: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


class HistoryExport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    export_date: datetime
    version: str
    statistics: HistoryStatistics
    history: list[HistoryEntryRead]


class StorageInfo(BaseModel):
    entries: int
    max_entries: int
    size_bytes: int

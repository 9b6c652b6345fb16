"""Pydantic schemas for per-provider scrape statistics."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

NEUTRAL_RATIO = 0.5


class SourceStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider: str
    success_count: int = 0
    fail_count: int = 0
    last_attempt_at: datetime | None = None

    @property
    def success_ratio(self) -> float:
        total = self.success_count + self.fail_count
        if not total:
            return NEUTRAL_RATIO
        return self.success_count / total

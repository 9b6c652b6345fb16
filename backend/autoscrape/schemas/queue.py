"""Pydantic schemas for the rescrape queue."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class QueueEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    scene_id: str
    reason: str
    next_attempt_at: datetime
    attempt_count: int = 0

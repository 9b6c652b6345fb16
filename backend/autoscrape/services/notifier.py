"""Operator-facing notifications for finished sessions."""

import logging
from collections import deque
from datetime import datetime

from pydantic import BaseModel

from autoscrape.utils import utcnow

logger = logging.getLogger(__name__)

LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notification(BaseModel):
    level: str
    message: str
    scene_id: str | None = None
    timestamp: datetime


class Notifier:
    """Logs notifications and keeps the most recent ones for the API."""

    def __init__(self, enabled: bool = True, max_recent: int = 50):
        self.enabled = enabled
        self._recent: deque[Notification] = deque(maxlen=max_recent)

    def notify(self, message: str, level: str = "info", scene_id: str | None = None) -> Notification | None:
        prefix = f"[{scene_id}] " if scene_id else ""
        if not self.enabled:
            logger.debug(f"{prefix}Notification suppressed: {message}")
            return None
        notification = Notification(level=level, message=message, scene_id=scene_id, timestamp=utcnow())
        self._recent.append(notification)
        logger.log(LEVELS.get(level, logging.INFO), f"{prefix}{message}")
        return notification

    def recent(self, limit: int | None = None) -> list[Notification]:
        """Newest first."""
        items = list(reversed(self._recent))
        return items[:limit] if limit else items

    def clear(self) -> None:
        self._recent.clear()

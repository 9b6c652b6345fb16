"""Small shared helpers."""

import json
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate(value: Any, max_length: int = 200) -> str:
    """Render an error/message as a bounded string, marking the cut with an ellipsis."""
    if isinstance(value, str):
        text = value
    elif isinstance(value, BaseException):
        text = str(value) or value.__class__.__name__
    else:
        try:
            text = json.dumps(value, default=str)
        except (TypeError, ValueError):
            text = str(value)
    if len(text) > max_length:
        return text[:max_length] + "…"
    return text


def unique(items) -> list:
    """Order-preserving de-duplication."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result

"""Persisted automation toggles backed by a flat key/value table."""

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from autoscrape.exceptions import ConfigError
from autoscrape.models.config_entry import ConfigEntry
from autoscrape.schemas.automation import AutomationConfig

logger = logging.getLogger(__name__)


class ConfigStore:
    """
    Each AutomationConfig field is one row. Absent keys fall back to the
    field's default; unknown keys and invalid values raise ConfigError.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def keys() -> list[str]:
        return list(AutomationConfig.model_fields)

    def _stored(self) -> dict[str, Any]:
        db = self.session_factory()
        try:
            return {row.key: row.value for row in db.query(ConfigEntry).all()}
        finally:
            db.close()

    def load(self) -> AutomationConfig:
        stored = {k: v for k, v in self._stored().items() if k in AutomationConfig.model_fields}
        try:
            return AutomationConfig.model_validate(stored)
        except ValidationError as e:
            # A bad stored value shouldn't brick automation
            logger.warning(f"Stored automation config is invalid, using defaults: {e}")
            return AutomationConfig()

    def get(self, key: str) -> Any:
        self._check_key(key)
        return getattr(self.load(), key)

    def set(self, key: str, value: Any) -> AutomationConfig:
        return self.update({key: value})

    def update(self, values: dict[str, Any]) -> AutomationConfig:
        """Validate the merged config, then persist the given keys."""
        for key in values:
            self._check_key(key)

        current = self.load().model_dump(mode="json")
        current.update(values)
        try:
            config = AutomationConfig.model_validate(current)
        except ValidationError as e:
            raise ConfigError(f"Invalid automation config: {e}") from e

        normalized = config.model_dump(mode="json")
        db = self.session_factory()
        try:
            for key in values:
                row = db.get(ConfigEntry, key)
                if row is None:
                    db.add(ConfigEntry(key=key, value=normalized[key]))
                else:
                    row.value = normalized[key]
            db.commit()
        finally:
            db.close()

        logger.info(f"Automation config updated: {', '.join(sorted(values))}")
        return config

    def reset(self) -> AutomationConfig:
        db = self.session_factory()
        try:
            db.query(ConfigEntry).delete(synchronize_session=False)
            db.commit()
        finally:
            db.close()
        logger.info("Automation config reset to defaults")
        return AutomationConfig()

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in AutomationConfig.model_fields:
            raise ConfigError(f"Unknown config key: {key}")

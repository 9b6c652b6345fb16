"""Flat key/value store for persisted automation toggles."""

from sqlalchemy import Column, String, JSON

from autoscrape.models.base import Base, TimestampMixin


class ConfigEntry(TimestampMixin, Base):
    __tablename__ = "config_entries"

    key = Column(String(100), primary_key=True)
    value = Column(JSON)

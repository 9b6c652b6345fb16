"""Base database configuration and mixins."""

import uuid
from functools import lru_cache

from sqlalchemy import Column, DateTime, Uuid, create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the engine for the persisted stores.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    # Import models so they register on the metadata
    from autoscrape.models import config_entry, history_entry, rescrape_queue, source_stats  # noqa: F401

    Base.metadata.create_all(engine)


@lru_cache
def get_session_factory(database_url: str) -> sessionmaker:
    """Process-wide session factory for workers and scripts."""
    engine = build_engine(database_url)
    init_db(engine)
    return build_session_factory(engine)


class Base(DeclarativeBase):
    """Declarative base for the four store tables; each names its own table."""


class TimestampMixin:
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDMixin:
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

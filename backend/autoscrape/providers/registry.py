"""Provider registry: maps provider names to provider classes."""

import logging
from typing import Type

from autoscrape.providers.base import BaseProvider

logger = logging.getLogger(__name__)

# Provider name -> provider class mapping, in registration order
_REGISTRY: dict[str, Type[BaseProvider]] = {}


def register_provider(name: str):
    """Decorator to register a provider class under a name."""
    def decorator(cls: Type[BaseProvider]):
        cls.name = name
        _REGISTRY[name] = cls
        logger.debug(f"Registered provider: {name}")
        return cls
    return decorator


def get_provider_class(name: str) -> Type[BaseProvider] | None:
    """Look up the provider class for a given name."""
    return _REGISTRY.get(name)


def get_provider(name: str) -> BaseProvider | None:
    cls = _REGISTRY.get(name)
    return cls() if cls else None


def list_providers() -> list[str]:
    """List all registered providers in registration order."""
    return list(_REGISTRY.keys())

"""Provider package: import all providers to trigger @register_provider decorators."""

from autoscrape.providers.stashdb import StashDBProvider  # noqa: F401
from autoscrape.providers.theporndb import ThePornDBProvider  # noqa: F401

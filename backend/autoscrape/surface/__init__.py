"""Interactive surface: the commands the engine issues against the Stash UI."""

from autoscrape.surface.base import SceneSurface

__all__ = ["SceneSurface"]

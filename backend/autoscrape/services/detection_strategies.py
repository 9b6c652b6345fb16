"""Detection strategies: ranked ways to tell whether a scene carries a source.

Each strategy has a fixed ``name`` and ``confidence`` and implements
``try_detect(context)``, returning a data dict when it finds the source and
``None`` when it does not. Strategies may raise; the detector treats that as
not found and moves on to the next one.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Pattern

from bs4 import BeautifulSoup
from bs4.element import Tag

from autoscrape.exceptions import DetectionError
from autoscrape.schemas.scene import Scene

logger = logging.getLogger(__name__)

AUTOMATION_PANEL_SELECTOR = "#stash-automation-panel"


class DetectionContext:
    """Inputs shared by every strategy within one detection pass.

    The scene snapshot and the interface HTML are each fetched at most once
    per context, so a pass over several providers costs one API call and one
    page read.
    """

    def __init__(
        self,
        scene_id: str,
        scene: Scene | None = None,
        query_client=None,
        surface=None,
        scene_ttl: float = 5.0,
    ):
        self.scene_id = scene_id
        self.scene = scene
        self.query_client = query_client
        self.surface = surface
        self.scene_ttl = scene_ttl
        self._soup: BeautifulSoup | None = None

    async def get_scene(self) -> Scene | None:
        if self.scene is None and self.query_client is not None:
            self.scene = await self.query_client.find_scene_cached(self.scene_id, ttl=self.scene_ttl)
        return self.scene

    async def get_soup(self) -> BeautifulSoup | None:
        if self._soup is None and self.surface is not None:
            html = await self.surface.page_html()
            self._soup = BeautifulSoup(html or "", "lxml")
        return self._soup


class DetectionStrategy(ABC):
    def __init__(self, name: str, confidence: int):
        self.name = name
        self.confidence = confidence

    @abstractmethod
    async def try_detect(self, context: DetectionContext) -> dict[str, Any] | None:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} ({self.confidence})>"


# --- API-backed ---------------------------------------------------------------

class ApiIdentifierStrategy(DetectionStrategy):
    """Checks the scene's stash ids for an endpoint owned by the provider."""

    def __init__(self, name: str, endpoint_patterns: tuple[str, ...], confidence: int = 100):
        super().__init__(name, confidence)
        self.endpoint_patterns = endpoint_patterns

    async def try_detect(self, context):
        scene = await context.get_scene()
        if scene is None:
            raise DetectionError(f"Scene {context.scene_id} not found")
        ids = scene.identifiers_matching(self.endpoint_patterns)
        if not ids:
            return None
        return {
            "stash_ids": [sid.model_dump() for sid in ids],
            "scene_id": scene.id,
            "scene_title": scene.title,
            "last_updated": scene.updated_at.isoformat() if scene.updated_at else None,
        }


class ApiOrganizedStrategy(DetectionStrategy):
    def __init__(self, name: str = "organized_graphql", confidence: int = 100):
        super().__init__(name, confidence)

    async def try_detect(self, context):
        scene = await context.get_scene()
        if scene is None:
            raise DetectionError(f"Scene {context.scene_id} not found")
        if not scene.organized:
            return None
        return {"scene_id": scene.id, "scene_title": scene.title, "organized": True}


# --- Interface structure ----------------------------------------------------------

def element_data(element: Tag) -> dict[str, Any]:
    """Pull identifying attributes and text off a matched element."""
    data = {
        key: value for key, value in element.attrs.items()
        if key.startswith("data-") or key in ("href", "value", "title")
    }
    text = element.get_text(" ", strip=True)
    if text:
        data["text"] = text[:200]
    return data


def is_element_organized(element: Tag) -> bool:
    if element.name == "input":
        return element.has_attr("checked")
    classes = element.get("class") or []
    return (
        "organized" in classes
        or "active" in classes
        or element.get("aria-pressed") == "true"
        or element.get("data-organized") == "true"
    )


class SelectorStrategy(DetectionStrategy):
    """Found when a CSS selector matches anything on the page."""

    def __init__(self, name: str, selector: str, confidence: int):
        super().__init__(name, confidence)
        self.selector = selector

    async def try_detect(self, context):
        soup = await context.get_soup()
        if soup is None:
            return None
        element = soup.select_one(self.selector)
        if element is None:
            return None
        return element_data(element)


class OrganizedControlStrategy(DetectionStrategy):
    """Found when the first matching organized control is in its on state."""

    def __init__(self, name: str, selectors: str | list[str], confidence: int):
        super().__init__(name, confidence)
        self.selectors = [selectors] if isinstance(selectors, str) else list(selectors)

    async def try_detect(self, context):
        soup = await context.get_soup()
        if soup is None:
            return None
        for selector in self.selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            if is_element_organized(element):
                return {"organized": True, "selector": selector}
            return None
        return None


# --- Content patterns -------------------------------------------------------------

def _matches(pattern: str | Pattern, text: str) -> bool:
    if isinstance(pattern, str):
        return pattern in text
    return bool(pattern.search(text))


def _describe(pattern: str | Pattern) -> str:
    return pattern if isinstance(pattern, str) else pattern.pattern


class PageTextStrategy(DetectionStrategy):
    """Searches the page's visible text for provider-specific markers."""

    def __init__(self, name: str, patterns: list[str | Pattern], confidence: int):
        super().__init__(name, confidence)
        self.patterns = patterns

    async def try_detect(self, context):
        soup = await context.get_soup()
        if soup is None:
            return None
        panel = soup.select_one(AUTOMATION_PANEL_SELECTOR)
        if panel is not None:
            panel.decompose()
        text = soup.get_text(" ")
        found = [_describe(p) for p in self.patterns if _matches(p, text)]
        if not found:
            return None
        return {"detected_patterns": found}


class InputValueStrategy(DetectionStrategy):
    """Searches text inputs and textareas of the edit form for markers."""

    INPUT_SELECTOR = 'input[type="text"], input[type="url"], textarea'

    def __init__(self, name: str, patterns: list[str | Pattern], confidence: int):
        super().__init__(name, confidence)
        self.patterns = patterns

    async def try_detect(self, context):
        soup = await context.get_soup()
        if soup is None:
            return None
        for field in soup.select(self.INPUT_SELECTOR):
            if field.find_parent(id=AUTOMATION_PANEL_SELECTOR.lstrip("#")) is not None:
                continue
            value = field.get("value") if field.name == "input" else field.get_text()
            value = (value or "").strip()
            if not value:
                continue
            if any(_matches(p, value) for p in self.patterns):
                return {"source": "metadata_input", "value": value[:200]}
        return None


def processed_flag_strategies() -> list[DetectionStrategy]:
    """Ordered chain for the organized/processed flag."""
    return [
        ApiOrganizedStrategy("organized_graphql", 100),
        OrganizedControlStrategy("organized_button_primary", 'button[title="Organized"].organized-button', 100),
        OrganizedControlStrategy("organized_button_title", 'button[title="Organized"]', 95),
        OrganizedControlStrategy("organized_button_minimal", "button.minimal.organized-button", 95),
        OrganizedControlStrategy("organized_button_class", "button.organized-button", 90),
        OrganizedControlStrategy("organized_checkbox", 'input[type="checkbox"][name*="organized" i]', 85),
        OrganizedControlStrategy(
            "organized_indicator",
            [
                'button[title*="organized" i]',
                '[data-organized]',
            ],
            75,
        ),
    ]


def compile_patterns(*patterns: str) -> list[str | Pattern]:
    """Plain strings stay substring matches; ``re:`` prefixed ones become regexes."""
    compiled: list[str | Pattern] = []
    for pattern in patterns:
        if pattern.startswith("re:"):
            compiled.append(re.compile(pattern[3:], re.IGNORECASE))
        else:
            compiled.append(pattern)
    return compiled

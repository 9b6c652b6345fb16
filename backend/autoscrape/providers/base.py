"""Base provider abstract class."""

import logging
from abc import ABC, abstractmethod

from autoscrape.services.detection_strategies import DetectionStrategy

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """A metadata source that can be scraped for a scene.

    Subclasses set the class attributes below and implement:
        detection_strategies() -> list[DetectionStrategy]: ordered chain used
        to decide whether a scene already carries this provider's data
    """

    name: str = ""
    label: str = ""
    # Substrings of the stash_ids endpoint that belong to this provider
    endpoint_patterns: tuple[str, ...] = ()
    # Substrings of the scrape menu entry that selects this provider
    menu_keywords: tuple[str, ...] = ()
    recommendation: str = ""

    @abstractmethod
    def detection_strategies(self) -> list[DetectionStrategy]:
        ...

    def owns_endpoint(self, endpoint: str | None) -> bool:
        if not endpoint:
            return False
        endpoint = endpoint.lower()
        return any(pattern in endpoint for pattern in self.endpoint_patterns)

    def matches_menu_entry(self, text: str | None) -> bool:
        if not text:
            return False
        text = text.lower()
        return any(keyword in text for keyword in self.menu_keywords)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

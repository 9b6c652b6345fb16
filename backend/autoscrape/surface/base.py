"""Abstract command contract for driving the Stash scene page."""

from abc import ABC, abstractmethod

from autoscrape.schemas.scraped import ScrapedData, ScrapeOutcome


class SceneSurface(ABC):
    """
    Commands the engine issues against the live scene page.

    Implementations raise SurfaceError when a command cannot be carried
    out and StepTimeoutError when an awaited condition never holds. A scrape
    that simply finds nothing returns ``ScrapeOutcome(found=False)``.
    """

    @abstractmethod
    async def current_scene_id(self) -> str | None:
        """Scene id the interface is currently showing."""

    @abstractmethod
    async def current_url(self) -> str | None:
        ...

    @abstractmethod
    async def page_html(self) -> str:
        """Rendered HTML of the page, for detection strategies."""

    @abstractmethod
    async def open_edit_panel(self) -> None:
        ...

    @abstractmethod
    async def invoke_scrape(self, provider: str, timeout: float) -> ScrapeOutcome:
        """Run the provider's scraper and wait up to ``timeout`` seconds for an outcome."""

    @abstractmethod
    async def create_linked_entities(self) -> int:
        """Create missing performers/studios/tags offered by the scrape. Returns how many."""

    @abstractmethod
    async def apply_scraped_data(self, data: ScrapedData | None) -> list[str]:
        """Accept the scraped values into the edit form. Returns updated field names."""

    @abstractmethod
    async def save(self) -> None:
        ...

    @abstractmethod
    async def is_organized(self) -> bool | None:
        """Organized state as shown by the interface, None when no control is visible."""

    @abstractmethod
    async def mark_organized(self) -> bool:
        """Toggle the organized flag on. Returns the state afterwards."""

"""SceneSurface implementation that drives the Stash scene page with Patchright.

Stash renders the scene page with React-Bootstrap. The selectors below
match the scene edit panel, the scrape dropdown, the scrape comparison
dialog (current values on the left, scraped values on the right) and the
organized toggle button.
"""

import asyncio
import logging
import re
import time

from bs4 import BeautifulSoup
from patchright.async_api import Error as PlaywrightError
from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from autoscrape.exceptions import SurfaceError
from autoscrape.providers.registry import get_provider
from autoscrape.schemas.scraped import ScrapedData, ScrapeOutcome
from autoscrape.surface.base import SceneSurface

logger = logging.getLogger(__name__)

SCENE_ID_PATTERN = re.compile(r"/scenes/(\d+)")

EDIT_PANEL_SELECTORS = [
    ".entity-edit-panel",
    ".scene-edit-details",
    ".edit-panel",
    ".scene-edit-panel",
]
EDIT_TAB_SELECTORS = [
    'a[data-rb-event-key="scene-edit-panel"]',
    'a[role="tab"][href*="edit" i]',
    'a[href*="/scenes/" i][href$="/edit" i]',
]
SCRAPE_MENU_ITEM_SELECTOR = ".dropdown-menu .dropdown-item, a.dropdown-item"
SCRAPE_DIALOG_SELECTOR = ".modal.show .modal-dialog"
NEGATIVE_OUTCOME_SELECTORS = [
    ".toast.show, .Toastify__toast, .alert, .notification",
    ".modal.show .modal-body",
    ".empty, .no-results, .text-warning",
]
NEGATIVE_OUTCOME_TEXTS = (
    "no results", "no matches", "not found", "nothing found",
    "failed", "error", "could not", "unable to",
)
LINKED_ENTITY_SELECTORS = [
    'button.minimal.ml-2.btn.btn-primary svg[data-icon="plus"]',
    '.scraper-result button svg[data-icon="plus"]',
    "button.btn-primary svg.fa-plus",
]
ORGANIZED_BUTTON_SELECTORS = [
    'button[title="Organized"]',
    'button[title*="organized" i]',
]

IS_ORGANIZED_JS = """el => el.classList.contains('organized')
    || el.classList.contains('active')
    || el.getAttribute('aria-pressed') === 'true'
    || el.dataset.organized === 'true'"""

CLICK_CLOSEST_BUTTON_JS = """el => {
    const button = el.closest('button');
    if (!button || button.disabled) return false;
    button.click();
    return true;
}"""

# Scrape dialog row label -> ScrapedData field
DIALOG_FIELDS = {
    "title": "title",
    "date": "date",
    "studio": "studio",
    "performers": "performers",
    "tags": "tags",
    "details": "details",
    "url": "url",
    "urls": "url",
    "studio code": "code",
    "code": "code",
    "cover image": "thumbnail",
}


def classify_outcome_text(text: str | None) -> str | None:
    """Return a not-found reason when the text reads like a scraper failure."""
    if not text:
        return None
    lowered = text.strip().lower()
    if any(marker in lowered for marker in NEGATIVE_OUTCOME_TEXTS):
        return lowered[:200]
    return None


def _column_values(column) -> list[str]:
    labels = column.select(".react-select__multi-value__label, .tag-item, .performer-tag")
    if labels:
        return [label.get_text(strip=True) for label in labels if label.get_text(strip=True)]
    image = column.find("img")
    if image is not None and image.get("src"):
        return [image["src"]]
    field = column.find(["input", "textarea"])
    if field is not None:
        value = field.get("value") if field.name == "input" else field.get_text()
        return [value.strip()] if value and value.strip() else []
    text = column.get_text(" ", strip=True)
    return [text] if text else []


def parse_scrape_dialog(html: str) -> ScrapedData:
    """Read the scraped (right-hand) column of the scrape comparison dialog."""
    soup = BeautifulSoup(html or "", "lxml")
    values: dict = {}
    for row in soup.select(".modal-body .row"):
        label = row.find("label")
        container = row.select_one(".col-lg-9")
        if label is None or container is None:
            continue
        field = DIALOG_FIELDS.get(label.get_text(strip=True).lower())
        if field is None:
            continue
        columns = container.select(".row > .col-6") or container.select(".col-6")
        if len(columns) < 2:
            continue
        found = _column_values(columns[1])
        if not found:
            continue
        if field in ("performers", "tags"):
            values[field] = found
        else:
            values[field] = found[0]
    return ScrapedData(**values)


class StashScenePage(SceneSurface):
    def __init__(
        self,
        page,
        base_url: str,
        poll_interval: float = 0.15,
        edit_panel_timeout: float = 6.0,
        settle_delay: float = 1.0,
    ):
        self.page = page
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.edit_panel_timeout = edit_panel_timeout
        self.settle_delay = settle_delay

    async def goto_scene(self, scene_id: str) -> None:
        url = f"{self.base_url}/scenes/{scene_id}"
        logger.info(f"Navigating to {url}")
        try:
            await self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise SurfaceError(f"Navigation to {url} failed: {e}") from e

    async def current_url(self) -> str | None:
        return self.page.url

    async def current_scene_id(self) -> str | None:
        match = SCENE_ID_PATTERN.search(self.page.url or "")
        return match.group(1) if match else None

    async def page_html(self) -> str:
        return await self.page.content()

    async def _first(self, selectors: list[str]):
        for selector in selectors:
            element = await self.page.query_selector(selector)
            if element is not None:
                return element
        return None

    async def _button_with_text(self, text: str):
        pattern = re.compile(text, re.IGNORECASE)
        for button in await self.page.query_selector_all("button, .btn, input[type='button'], input[type='submit']"):
            label = (await button.inner_text()) or (await button.get_attribute("value")) or ""
            if pattern.search(label) and await button.is_enabled():
                return button
        return None

    async def open_edit_panel(self) -> None:
        if await self._first(EDIT_PANEL_SELECTORS):
            return
        tab = await self._first(EDIT_TAB_SELECTORS)
        if tab is None:
            raise SurfaceError("Edit tab not found")
        await tab.click()
        try:
            await self.page.wait_for_selector(
                ", ".join(EDIT_PANEL_SELECTORS),
                timeout=int(self.edit_panel_timeout * 1000),
            )
        except PlaywrightTimeoutError as e:
            raise SurfaceError(f"Edit panel did not appear: {e}") from e

    async def invoke_scrape(self, provider: str, timeout: float) -> ScrapeOutcome:
        definition = get_provider(provider)
        if definition is None:
            raise SurfaceError(f"Unknown provider {provider}")

        scrape_button = await self._button_with_text(r"scrape")
        if scrape_button is None:
            raise SurfaceError("Scrape button not found")
        await scrape_button.click()
        await asyncio.sleep(self.settle_delay)

        for option in await self.page.query_selector_all(SCRAPE_MENU_ITEM_SELECTOR):
            if definition.matches_menu_entry(await option.inner_text()):
                await option.click()
                logger.info(f"[{provider}] Scrape started")
                return await self.detect_outcome(timeout)

        await self.page.keyboard.press("Escape")
        raise SurfaceError(f"No {definition.label} entry in scrape menu")

    async def detect_outcome(self, timeout: float) -> ScrapeOutcome:
        """Watch for the scrape dialog or a failure message until ``timeout``."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            dialog = await self.page.query_selector(SCRAPE_DIALOG_SELECTOR)
            if dialog is not None:
                html = await dialog.evaluate("el => el.outerHTML")
                reason = classify_outcome_text(await dialog.inner_text())
                data = parse_scrape_dialog(html)
                if data.present_fields() or reason is None:
                    return ScrapeOutcome(found=True, data=data)
                return ScrapeOutcome(found=False, reason=reason)

            for selector in NEGATIVE_OUTCOME_SELECTORS:
                for node in await self.page.query_selector_all(selector):
                    reason = classify_outcome_text(await node.inner_text())
                    if reason:
                        return ScrapeOutcome(found=False, reason=reason)

            await asyncio.sleep(self.poll_interval)
        return ScrapeOutcome(found=False, reason="timeout waiting for scraper outcome")

    async def create_linked_entities(self) -> int:
        created = 0
        for selector in LINKED_ENTITY_SELECTORS:
            icons = await self.page.query_selector_all(selector)
            if not icons:
                continue
            for icon in icons:
                if await icon.evaluate(CLICK_CLOSEST_BUTTON_JS):
                    created += 1
                    await asyncio.sleep(self.settle_delay)
            break
        if created:
            logger.info(f"Created {created} linked entities")
        return created

    async def apply_scraped_data(self, data: ScrapedData | None) -> list[str]:
        button = await self._button_with_text(r"\bapply\b")
        if button is None:
            raise SurfaceError("Apply button not found")
        await button.click()
        await asyncio.sleep(self.settle_delay)
        return data.present_fields() if data else []

    async def save(self) -> None:
        button = await self._button_with_text(r"\bsave\b")
        if button is None:
            raise SurfaceError("Save button not found")
        await button.click()
        await asyncio.sleep(self.settle_delay)

    async def is_organized(self) -> bool | None:
        button = await self._first(ORGANIZED_BUTTON_SELECTORS)
        if button is None:
            return None
        return bool(await button.evaluate(IS_ORGANIZED_JS))

    async def mark_organized(self) -> bool:
        button = await self._first(ORGANIZED_BUTTON_SELECTORS)
        if button is None:
            raise SurfaceError("Organize button not found")
        if await button.evaluate(IS_ORGANIZED_JS):
            return True
        await button.click()
        await asyncio.sleep(self.settle_delay)
        return bool(await self.is_organized())

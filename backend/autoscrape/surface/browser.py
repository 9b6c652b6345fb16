"""Patchright browser session pointed at the Stash web UI.

Stash is a local application, so no stealth patches are applied. Requests
from the browser context carry the Stash API key so the UI and its GraphQL
calls are authenticated.
"""

import logging
from contextlib import asynccontextmanager

from autoscrape.exceptions import SurfaceError

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--no-first-run",
    # Keep React timers running while the window is hidden
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
]

# Stash collapses the scene edit panel below this width
STASH_VIEWPORT = {"width": 1600, "height": 1000}


class StashBrowser:
    """One Chromium instance with one authenticated context."""

    def __init__(self, headless: bool = True, timeout: int = 30000, api_key: str = "", channel: str | None = None):
        self.headless = headless
        self.timeout = timeout
        self.api_key = api_key
        self.channel = channel
        self._playwright = None
        self._browser = None
        self._context = None

    @property
    def launched(self) -> bool:
        return self._context is not None

    async def launch(self) -> None:
        from patchright.async_api import Error as PlaywrightError
        from patchright.async_api import async_playwright

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=CHROMIUM_ARGS,
                **({"channel": self.channel} if self.channel else {}),
            )
            headers = {"ApiKey": self.api_key} if self.api_key else {}
            self._context = await self._browser.new_context(
                viewport=STASH_VIEWPORT,
                accept_downloads=False,
                extra_http_headers=headers,
            )
        except PlaywrightError as e:
            await self.close()
            raise SurfaceError(f"Could not launch browser: {e}") from e
        logger.info(f"Browser ready ({self.channel or 'chromium'}, headless={self.headless})")

    async def new_page(self):
        if not self.launched:
            raise SurfaceError("Browser not launched")
        page = await self._context.new_page()
        page.set_default_timeout(self.timeout)
        return page

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


@asynccontextmanager
async def get_browser(headless: bool = True, timeout: int = 30000, api_key: str = "", channel: str | None = None):
    """Launch a StashBrowser for the duration of the block.

    Args:
        channel: "chrome" to use an installed Google Chrome, None for the
                 bundled Chromium.
    """
    browser = StashBrowser(headless=headless, timeout=timeout, api_key=api_key, channel=channel)
    await browser.launch()
    try:
        yield browser
    finally:
        await browser.close()

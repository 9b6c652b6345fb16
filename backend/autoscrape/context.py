"""Explicitly constructed service graph shared by the API, worker and CLI."""

import logging
from contextlib import AsyncExitStack

import httpx
from sqlalchemy.engine import Engine

from autoscrape.config import Settings
from autoscrape.engine.automation import AutomationEngine, DecisionHandler
from autoscrape.models.base import build_engine, build_session_factory, init_db
from autoscrape.schemas.automation import RunOptions, SessionSummary
from autoscrape.services.adaptive_router import AdaptiveRouter
from autoscrape.services.config_store import ConfigStore
from autoscrape.services.history_store import HistoryStore
from autoscrape.services.notifier import Notifier
from autoscrape.services.query_client import QueryClient
from autoscrape.services.rescrape_queue import RescrapeQueue
from autoscrape.services.source_detector import SourceDetector
from autoscrape.services.source_stats import SourceStatsStore
from autoscrape.services.status_tracker import StatusTracker
from autoscrape.surface.base import SceneSurface
from autoscrape.utils import utcnow

logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns every service instance. Nothing in the package reaches for a
    module-level client or tracker; callers pass this context (or the pieces
    they need) explicitly.

    Use as an async context manager. On entry a Patchright browser page is
    opened as the scene surface when ``settings.browser_enabled`` is set and
    no surface was injected.
    """

    def __init__(
        self,
        settings: Settings,
        surface: SceneSurface | None = None,
        http_client: httpx.AsyncClient | None = None,
        db_engine: Engine | None = None,
        clock=utcnow,
    ):
        self.settings = settings
        self._owns_db = db_engine is None
        self.db_engine = db_engine or build_engine(settings.database_url, echo=settings.debug)
        init_db(self.db_engine)
        self.session_factory = build_session_factory(self.db_engine)

        self.query_client = QueryClient(
            settings.graphql_endpoint,
            api_key=settings.stash_api_key,
            timeout=settings.request_timeout,
            cache_max_size=settings.cache_max_size,
            http_client=http_client,
        )

        self.config_store = ConfigStore(self.session_factory)
        config = self.config_store.load()
        self.history = HistoryStore(
            self.session_factory,
            max_entries=settings.history_max_entries,
            version=settings.app_version,
            clock=clock,
        )
        self.queue = RescrapeQueue(
            self.session_factory,
            retry_interval_minutes=config.rescrape_retry_minutes,
            max_backoff_minutes=config.max_backoff_minutes,
            clock=clock,
        )
        self.stats = SourceStatsStore(self.session_factory, clock=clock)
        self.router = AdaptiveRouter(enabled=config.adaptive_routing)
        self.notifier = Notifier(enabled=config.show_notifications)

        self.detector = SourceDetector(self.query_client, surface, scene_ttl=settings.scene_cache_ttl)
        self.tracker = StatusTracker(self.detector, self.query_client, scene_ttl=settings.scene_cache_ttl)
        self.automation = AutomationEngine(
            surface,
            self.tracker,
            self.router,
            self.queue,
            self.history,
            self.stats,
            self.config_store,
            self.notifier,
            edit_panel_timeout=settings.edit_panel_timeout,
            poll_interval=settings.cancel_poll_interval,
            clock=clock,
        )
        self.surface = surface
        self._stack = AsyncExitStack()

    def attach_surface(self, surface: SceneSurface) -> None:
        self.surface = surface
        self.detector.surface = surface
        self.automation.surface = surface

    async def start_browser(self) -> None:
        from autoscrape.surface.browser import get_browser
        from autoscrape.surface.stash_page import StashScenePage

        browser = await self._stack.enter_async_context(get_browser(
            headless=self.settings.browser_headless,
            timeout=self.settings.browser_timeout_ms,
            api_key=self.settings.stash_api_key,
        ))
        page = await browser.new_page()
        self.attach_surface(StashScenePage(
            page,
            self.settings.stash_address,
            edit_panel_timeout=self.settings.edit_panel_timeout,
        ))

    async def run_scene(
        self,
        scene_id: str,
        options: RunOptions | None = None,
        decide: DecisionHandler | None = None,
        session=None,
    ) -> SessionSummary:
        """Bring the surface to the scene and run one automation session."""
        if self.surface is None:
            raise RuntimeError("No scene surface available (browser disabled?)")
        return await self.automation.run(
            scene_id, options=options, decide=decide, session=session, navigate=True,
        )

    async def __aenter__(self) -> "AppContext":
        if self.surface is None and self.settings.browser_enabled:
            await self.start_browser()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._stack.aclose()
        await self.query_client.aclose()
        if self._owns_db:
            self.db_engine.dispose()

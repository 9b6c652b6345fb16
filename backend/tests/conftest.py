"""Shared fixtures: in-memory stores, a mocked Stash API and a scripted scene surface."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from autoscrape.config import Settings
from autoscrape.context import AppContext
from autoscrape.exceptions import SurfaceError
from autoscrape.models.base import build_engine, build_session_factory, init_db
from autoscrape.schemas.scraped import ScrapedData, ScrapeOutcome
from autoscrape.surface.base import SceneSurface

STASHDB_ENDPOINT = "https://stashdb.org/graphql"
TPDB_ENDPOINT = "https://api.metadataapi.net/graphql"

FULL_DATA = ScrapedData(
    title="Scene Title",
    date="2024-01-31",
    studio="Studio",
    performers=["Performer A", "Performer B"],
    tags=["tag1", "tag2", "tag3"],
    details="A description that is comfortably longer than forty characters.",
    url="https://example.com/scene",
    thumbnail="https://example.com/thumb.jpg",
)


class FakeClock:
    """Settable UTC clock for the persisted stores."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSurface(SceneSurface):
    """
    Scripted scene page. ``outcomes`` maps provider -> ScrapeOutcome, an
    exception to raise, or "hang" to never answer. Unlisted providers
    return a full match.
    """

    def __init__(self, scene_id: str = "1", outcomes: dict | None = None, html: str = "", organized: bool = False):
        self.scene_id = scene_id
        self.outcomes = outcomes or {}
        self.html = html
        self.organized = organized
        self.fail_edit_panel = False
        self.fail_save = False
        self.fail_goto = False
        self.calls: list = []
        self.on_scrape = None
        self.on_apply = None

    async def current_scene_id(self):
        return self.scene_id

    async def current_url(self):
        return f"http://stash.local/scenes/{self.scene_id}"

    async def goto_scene(self, scene_id):
        self.calls.append(("goto", scene_id))
        if self.fail_goto:
            raise SurfaceError("Timeout 30000ms exceeded")
        self.scene_id = scene_id

    async def page_html(self):
        self.calls.append("page_html")
        return self.html

    async def open_edit_panel(self):
        self.calls.append("open_edit_panel")
        if self.fail_edit_panel:
            raise SurfaceError("Edit tab not found")

    async def invoke_scrape(self, provider, timeout):
        self.calls.append(("scrape", provider))
        if self.on_scrape:
            self.on_scrape(provider)
        outcome = self.outcomes.get(provider, ScrapeOutcome(found=True, data=FULL_DATA))
        if outcome == "hang":
            await asyncio.sleep(3600)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def create_linked_entities(self):
        self.calls.append("create_linked_entities")
        return 0

    async def apply_scraped_data(self, data):
        self.calls.append("apply")
        if self.on_apply:
            self.on_apply()
        return data.present_fields() if data else []

    async def save(self):
        self.calls.append("save")
        if self.fail_save:
            raise SurfaceError("Save button not found")

    async def is_organized(self):
        return self.organized

    async def mark_organized(self):
        self.calls.append("organize")
        self.organized = True
        return True

    def scraped(self) -> list[str]:
        return [call[1] for call in self.calls if isinstance(call, tuple) and call[0] == "scrape"]


def scene_payload(scene_id: str = "1", stash_ids=(), organized: bool = False, title: str = "Test Scene") -> dict:
    return {
        "id": scene_id,
        "title": title,
        "details": None,
        "organized": organized,
        "stash_ids": [{"endpoint": e, "stash_id": f"id-{i}"} for i, e in enumerate(stash_ids)],
        "performers": [],
        "studio": None,
        "tags": [],
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-06-01T00:00:00Z",
    }


class StashApi:
    """Handler for httpx.MockTransport serving findScene from a dict of scenes."""

    def __init__(self, scenes: dict | None = None):
        self.scenes = scenes or {}
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        scene_id = body.get("variables", {}).get("id")
        return httpx.Response(200, json={"data": {"findScene": self.scenes.get(scene_id)}})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def stash_api():
    return StashApi({"1": scene_payload("1")})


@pytest.fixture
def surface():
    return FakeSurface("1")


@pytest.fixture
def settings():
    return Settings(
        stash_address="http://stash.local",
        database_url="sqlite://",
        browser_enabled=False,
        cancel_poll_interval=0.01,
        edit_panel_timeout=0.5,
        scene_cache_ttl=5.0,
    )


@pytest.fixture
async def ctx(settings, surface, stash_api, db_engine, clock):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stash_api))
    context = AppContext(settings, surface=surface, http_client=http_client, db_engine=db_engine, clock=clock)
    context.config_store.update({
        "adaptive_routing": False,
        "auto_apply_changes": True,
        "scraper_outcome_timeout_ms": 200,
        "visible_wait_timeout_ms": 200,
    })
    async with context:
        yield context
    await http_client.aclose()

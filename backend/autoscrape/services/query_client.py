"""Typed client for the Stash GraphQL API with TTL caching and request coalescing."""

import asyncio
import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from autoscrape.exceptions import ApiError, NetworkError, QueryTimeoutError
from autoscrape.schemas.scene import Scene

logger = logging.getLogger(__name__)

SCENE_FIELDS = """
    id
    title
    details
    organized
    stash_ids {
        endpoint
        stash_id
    }
    performers {
        id
        name
    }
    studio {
        id
        name
    }
    tags {
        id
        name
    }
    created_at
    updated_at
"""

FIND_SCENE_QUERY = f"""
query GetScene($id: ID!) {{
    findScene(id: $id) {{{SCENE_FIELDS}}}
}}
"""

FIND_SCENES_BY_STASH_ID_QUERY = f"""
query FindSceneByStashId($id: String!) {{
    findScenes(scene_filter: {{stash_id: {{value: $id, modifier: EQUALS}}}}) {{
        count
        scenes {{{SCENE_FIELDS}}}
    }}
}}
"""

_OPERATION_NAME = re.compile(r"(?:query|mutation)\s+(\w+)")


@dataclass
class _CacheEntry:
    value: Any
    stored_at: float


class QueryClient:
    """
    Request layer for the Stash query API.

    - ``query`` posts one GraphQL document and maps failures onto
      NetworkError / QueryTimeoutError / ApiError.
    - ``get_cached`` fronts any fetcher with a bounded TTL cache and
      collapses concurrent requests for the same key into one call.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        cache_max_size: int = 256,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            endpoint: Full GraphQL URL, e.g. http://localhost:9998/graphql
            api_key: Sent as the ApiKey header when non-empty
            timeout: Seconds before a request is abandoned
            cache_max_size: Entries kept before the least recently used is evicted
            http_client: Pre-built client (tests pass one with a mock transport)
            clock: Monotonic time source used for cache ages
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.cache_max_size = cache_max_size
        self._clock = clock
        self._client = http_client
        self._owns_client = http_client is None
        self._cache: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Future] = {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    # -- raw queries ---------------------------------------------------------------

    async def query(self, query: str, variables: dict | None = None) -> dict:
        """Execute a GraphQL document and return its ``data`` payload."""
        operation = self._operation_name(query)
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["ApiKey"] = self.api_key

        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._get_client().post(
                    self.endpoint,
                    json={"query": query, "variables": variables or {}},
                    headers=headers,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise QueryTimeoutError(f"{operation} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{operation} request failed: {e}") from e
        finally:
            logger.debug(f"GraphQL {operation} took {(time.perf_counter() - started) * 1000:.1f}ms")

        if response.status_code >= 400:
            raise NetworkError(f"GraphQL request failed: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise NetworkError(f"{operation} returned invalid JSON") from e

        errors = payload.get("errors")
        if errors:
            messages = [str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors]
            raise ApiError(messages)

        return payload.get("data") or {}

    @staticmethod
    def _operation_name(query: str) -> str:
        match = _OPERATION_NAME.search(query)
        return match.group(1) if match else "Unknown"

    # -- cache + coalescing ------------------------------------------------------

    async def get_cached(self, key: str, ttl: float, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return a fresh cached value, join an in-flight fetch, or start one.

        At most one fetcher call per key is in flight at any time. Failures
        are not cached and are raised to every waiting caller.
        """
        entry = self._cache.get(key)
        if entry is not None:
            if self._clock() - entry.stored_at < ttl:
                self._cache.move_to_end(key)
                return entry.value
            del self._cache[key]

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_and_store(key, fetcher))
            # Retrieve the exception even if every caller went away
            pending.add_done_callback(lambda f: f.cancelled() or f.exception())
            self._inflight[key] = pending
        else:
            logger.debug(f"Coalescing request for {key}")

        return await asyncio.shield(pending)

    async def _fetch_and_store(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await fetcher()
            self._store(key, value)
            return value
        finally:
            self._inflight.pop(key, None)

    def _store(self, key: str, value: Any) -> None:
        self._cache[key] = _CacheEntry(value=value, stored_at=self._clock())
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_max_size:
            self._cache.popitem(last=False)

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Drop every cached value. In-flight fetches are left to finish."""
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # -- typed helpers -------------------------------------------------------------

    @staticmethod
    def scene_key(scene_id: str) -> str:
        return f"scene:{scene_id}"

    async def find_scene(self, scene_id: str) -> Scene | None:
        data = await self.query(FIND_SCENE_QUERY, {"id": scene_id})
        scene = data.get("findScene")
        return Scene.model_validate(scene) if scene else None

    async def find_scene_cached(self, scene_id: str, ttl: float = 5.0) -> Scene | None:
        if not scene_id:
            return None
        return await self.get_cached(self.scene_key(scene_id), ttl, lambda: self.find_scene(scene_id))

    async def find_scenes_by_stash_id(self, stash_id: str) -> list[Scene]:
        data = await self.query(FIND_SCENES_BY_STASH_ID_QUERY, {"id": stash_id})
        result = data.get("findScenes") or {}
        return [Scene.model_validate(s) for s in result.get("scenes") or []]

"""Aggregates per-provider detection into a completion snapshot."""

import logging
from typing import Callable

from autoscrape.exceptions import QueryError
from autoscrape.providers.registry import get_provider
from autoscrape.schemas.status import Completion, CompletionSnapshot, SourceStatus
from autoscrape.services.source_detector import PROCESSED, SourceDetector

logger = logging.getLogger(__name__)

ORGANIZE_RECOMMENDATION = "Mark scene as organized"

StatusCallback = Callable[[CompletionSnapshot], None]


def compute_completion(sources: list[SourceStatus], organized: bool) -> Completion:
    """Percentage and recommendations for a set of statuses plus the processed flag.

    Recommendations follow provider order, then the processed flag.
    """
    total = len(sources) + 1
    completed = sum(1 for s in sources if s.found) + (1 if organized else 0)
    recommendations = []
    for status in sources:
        if not status.found:
            provider = get_provider(status.provider)
            text = provider.recommendation if provider and provider.recommendation else f"Scrape {status.provider}"
            recommendations.append(text)
    if not organized:
        recommendations.append(ORGANIZE_RECOMMENDATION)
    return Completion(
        percentage=round(100 * completed / total),
        completed_items=completed,
        total_items=total,
        recommendations=recommendations,
    )


class StatusTracker:
    """
    Keeps the current CompletionSnapshot for the scene being worked on.

    ``refresh`` fetches the scene once through the query cache, runs every
    tracked provider's detection chain against that one snapshot, then the
    processed flag, and notifies all subscribers with the new snapshot.
    """

    def __init__(self, detector: SourceDetector, query_client=None, scene_ttl: float = 5.0):
        self.detector = detector
        self.query_client = query_client if query_client is not None else detector.query_client
        self.scene_ttl = scene_ttl
        self._subscribers: list[StatusCallback] = []
        self._snapshot: CompletionSnapshot | None = None
        self.last_automation: dict | None = None

    @property
    def providers(self) -> list[str]:
        return self.detector.providers

    @property
    def snapshot(self) -> CompletionSnapshot | None:
        return self._snapshot

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register for snapshot updates. Returns a function that unsubscribes."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: StatusCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def refresh(self, scene_id: str, fresh: bool = False) -> CompletionSnapshot:
        """Recompute the snapshot. ``fresh`` drops the cached scene first."""
        scene = None
        if self.query_client is not None:
            if fresh:
                self.query_client.invalidate(self.query_client.scene_key(scene_id))
            try:
                scene = await self.query_client.find_scene_cached(scene_id, ttl=self.scene_ttl)
            except QueryError as e:
                # Interface-based strategies still get their chance
                logger.warning(f"[{scene_id}] Scene fetch failed, detecting from interface only: {e}")

        context = self.detector.new_context(scene_id, scene)
        if scene is None:
            # Do not let API strategies retry the fetch that just failed
            context.query_client = None
        sources = [
            await self.detector.detect(provider, scene_id, context=context)
            for provider in self.detector.providers
        ]
        organized_status = await self.detector.detect(PROCESSED, scene_id, context=context)
        completion = compute_completion(sources, organized_status.found)

        self._snapshot = CompletionSnapshot(
            scene_id=scene_id,
            scene=scene,
            sources=sources,
            organized=organized_status.found,
            percentage=completion.percentage,
            recommendations=completion.recommendations,
        )
        self._notify()
        return self._snapshot

    def completion(self) -> Completion:
        if self._snapshot is None:
            return compute_completion(
                [SourceStatus.not_found(p) for p in self.detector.providers], organized=False
            )
        return compute_completion(self._snapshot.sources, self._snapshot.organized)

    def record_automation(self, summary: dict) -> None:
        self.last_automation = summary

    def reset(self) -> None:
        self._snapshot = None
        self.last_automation = None

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self._snapshot)
            except Exception as e:
                logger.warning(f"Status subscriber {callback!r} raised: {e}")

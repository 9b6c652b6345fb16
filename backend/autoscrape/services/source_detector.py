"""Source detection with ranked, confidence-scored strategy chains."""

import logging

from autoscrape.providers.registry import get_provider, list_providers
from autoscrape.schemas.scene import Scene
from autoscrape.schemas.status import SourceStatus
from autoscrape.services.detection_strategies import (
    DetectionContext,
    DetectionStrategy,
    processed_flag_strategies,
)

logger = logging.getLogger(__name__)

PROCESSED = "organized"


class SourceDetector:
    """
    Decides per provider whether a scene already carries that provider's data.

    Strategies run in descending confidence. The first one that finds the
    source wins and its confidence becomes the result's; lower tiers are only
    consulted when every higher tier came back empty or raised.
    """

    def __init__(self, query_client=None, surface=None, scene_ttl: float = 5.0, providers: list[str] | None = None):
        self.query_client = query_client
        self.surface = surface
        self.scene_ttl = scene_ttl
        self._chains: dict[str, list[DetectionStrategy]] = {}
        for name in providers if providers is not None else list_providers():
            provider = get_provider(name)
            if provider is None:
                raise ValueError(f"Unknown provider: {name}")
            self._chains[name] = self._ranked(provider.detection_strategies())
        self._chains[PROCESSED] = self._ranked(processed_flag_strategies())

    @staticmethod
    def _ranked(strategies: list[DetectionStrategy]) -> list[DetectionStrategy]:
        # sorted() is stable, so equal confidences keep their declared order
        return sorted(strategies, key=lambda s: s.confidence, reverse=True)

    @property
    def providers(self) -> list[str]:
        return [name for name in self._chains if name != PROCESSED]

    def strategies_for(self, provider: str) -> list[DetectionStrategy]:
        return list(self._chains[provider])

    def set_strategies(self, provider: str, strategies: list[DetectionStrategy]) -> None:
        self._chains[provider] = self._ranked(strategies)

    def new_context(self, scene_id: str, scene: Scene | None = None) -> DetectionContext:
        return DetectionContext(
            scene_id,
            scene=scene,
            query_client=self.query_client,
            surface=self.surface,
            scene_ttl=self.scene_ttl,
        )

    async def detect(
        self,
        provider: str,
        scene_id: str,
        scene: Scene | None = None,
        context: DetectionContext | None = None,
    ) -> SourceStatus:
        """Run the provider's chain for a scene.

        Pass ``scene`` (or a shared ``context``) when the caller already holds
        a fetched snapshot so the chain derives from it instead of querying.
        """
        if provider not in self._chains:
            raise ValueError(f"Unknown provider: {provider}")
        if context is None:
            context = self.new_context(scene_id, scene)

        for strategy in self._chains[provider]:
            try:
                data = await strategy.try_detect(context)
            except Exception as e:
                logger.debug(f"[{scene_id}/{provider}] Strategy {strategy.name} failed: {e}")
                continue
            if data is not None:
                logger.debug(f"[{scene_id}/{provider}] Detected by {strategy.name} ({strategy.confidence})")
                return SourceStatus(
                    provider=provider,
                    found=True,
                    confidence=strategy.confidence,
                    strategy_name=strategy.name,
                    data=data,
                )

        return SourceStatus.not_found(provider)

    async def detect_organized(self, scene_id: str, scene: Scene | None = None, context=None) -> SourceStatus:
        return await self.detect(PROCESSED, scene_id, scene=scene, context=context)

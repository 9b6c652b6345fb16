"""Orders pending providers by their historical success ratio."""

import logging
from typing import Mapping

from autoscrape.schemas.source_stats import NEUTRAL_RATIO, SourceStatsRead

logger = logging.getLogger(__name__)


def success_ratio(stats: SourceStatsRead | None) -> float:
    """success / (success + fail); providers with no attempts score 0.5."""
    if stats is None:
        return NEUTRAL_RATIO
    return stats.success_ratio


class AdaptiveRouter:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def order(self, pending: list[str], stats: Mapping[str, SourceStatsRead]) -> list[str]:
        """Best track record first. Ties keep their input order."""
        if not self.enabled or len(pending) <= 1:
            return list(pending)
        ordered = sorted(pending, key=lambda p: success_ratio(stats.get(p)), reverse=True)
        logger.debug(
            "Adaptive order: "
            + ", ".join(f"{p}={success_ratio(stats.get(p)):.2f}" for p in ordered)
        )
        return ordered

"""Additive confidence score for a scraped field set."""

from autoscrape.schemas.automation import ScoringWeights
from autoscrape.schemas.scraped import ScrapedData

MAX_SCORE = 100


def score_scraped_data(data: ScrapedData | None, weights: ScoringWeights | None = None) -> int:
    """Sum fixed per-field weights over the fields present, clamped to 0-100."""
    if data is None:
        return 0
    w = weights or ScoringWeights()

    score = 0
    if data.title:
        score += w.title
    if data.date:
        score += w.date
    if data.studio:
        score += w.studio
    if data.performers:
        score += min(w.performers_cap, w.performer_each * len(data.performers))
    if data.tags:
        score += min(w.tags_cap, w.tag_each * len(data.tags))
    if data.details and len(data.details) > w.details_min_length:
        score += w.details
    if data.url:
        score += w.url
    if data.thumbnail:
        score += w.thumbnail

    return max(0, min(MAX_SCORE, score))

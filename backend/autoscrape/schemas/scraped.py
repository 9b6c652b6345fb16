"""Schemas for data produced by a provider scrape."""

from pydantic import BaseModel, Field


class ScrapedData(BaseModel):
    """Field set a scraper proposes for the scene."""

    title: str | None = None
    date: str | None = None
    studio: str | None = None
    performers: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    details: str | None = None
    url: str | None = None
    thumbnail: str | None = None
    code: str | None = None

    def present_fields(self) -> list[str]:
        """Names of the fields carrying a value, in declaration order."""
        present = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value:
                present.append(name)
        return present


class ScrapeOutcome(BaseModel):
    """Result of invoking a provider's scraper on the interface."""

    found: bool
    reason: str | None = None
    data: ScrapedData | None = None

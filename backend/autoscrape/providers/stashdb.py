"""StashDB provider.

Scenes matched on StashDB carry a stash_id whose endpoint is
https://stashdb.org/graphql. The scrape menu lists it as "stashdb.org" or
as a generic "Stash-Box" entry.
"""

from autoscrape.providers.base import BaseProvider
from autoscrape.providers.registry import register_provider
from autoscrape.services.detection_strategies import (
    ApiIdentifierStrategy,
    PageTextStrategy,
    SelectorStrategy,
    compile_patterns,
)


@register_provider("stashdb")
class StashDBProvider(BaseProvider):
    label = "StashDB"
    endpoint_patterns = ("stashdb.org",)
    menu_keywords = ("stashdb", "stash-box")
    recommendation = "Scrape StashDB for metadata"

    def detection_strategies(self):
        return [
            ApiIdentifierStrategy("stashdb_graphql", self.endpoint_patterns, 100),
            SelectorStrategy("stashdb_url", '[data-source="stashdb"]', 95),
            SelectorStrategy("stashdb_id", "[data-stashdb-id]", 90),
            SelectorStrategy("stashdb_reference", '.scraper-result[data-scraper*="stashdb"]', 85),
            PageTextStrategy(
                "stashdb_metadata",
                compile_patterns("stashdb.org", "StashDB ID", "stash-db", r"re:stashdb[_-]?id"),
                75,
            ),
        ]

"""ThePornDB provider.

ThePornDB identifiers live under the metadataapi.net endpoint (older
installs show theporndb/tpdb in the endpoint instead).
"""

from autoscrape.providers.base import BaseProvider
from autoscrape.providers.registry import register_provider
from autoscrape.services.detection_strategies import (
    ApiIdentifierStrategy,
    InputValueStrategy,
    SelectorStrategy,
    compile_patterns,
)


@register_provider("theporndb")
class ThePornDBProvider(BaseProvider):
    label = "ThePornDB"
    endpoint_patterns = ("metadataapi.net", "theporndb", "tpdb")
    menu_keywords = ("theporndb", "tpdb")
    recommendation = "Scrape ThePornDB for additional metadata"

    def detection_strategies(self):
        return [
            ApiIdentifierStrategy("theporndb_graphql", self.endpoint_patterns, 100),
            SelectorStrategy("theporndb_url", '[data-source="theporndb"]', 95),
            SelectorStrategy("theporndb_id", "[data-theporndb-id]", 90),
            SelectorStrategy("theporndb_reference", '.scraper-result[data-scraper*="theporndb"]', 85),
            InputValueStrategy(
                "theporndb_metadata",
                compile_patterns(
                    "theporndb.net",
                    "metadataapi.net",
                    r"re:theporndb[_-]?id[:=]\s*\d+",
                    r"re:tpdb[_-]?id[:=]\s*\d+",
                ),
                75,
            ),
        ]

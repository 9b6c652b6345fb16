"""Application configuration from environment variables."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "Stash AutoScrape"
    app_version: str = "1.0.0"
    debug: bool = False

    # Stash query API
    stash_address: str = "http://localhost:9998"
    stash_api_key: str = ""
    graphql_path: str = "/graphql"
    request_timeout: float = 10.0

    # Query cache
    scene_cache_ttl: float = 5.0
    cache_max_size: int = 256

    # Persisted state
    database_url: str = "sqlite:///./autoscrape.db"
    history_max_entries: int = 1000
    history_retention_days: int = 30

    # Redis / Celery
    redis_url: str = "redis://localhost:6379/0"

    # Automation timing
    cancel_poll_interval: float = 0.1
    edit_panel_timeout: float = 6.0

    # Browser surface
    browser_enabled: bool = True
    browser_headless: bool = True
    browser_timeout_ms: int = 30000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "AUTOSCRAPE_"}

    @property
    def graphql_endpoint(self) -> str:
        return f"{self.stash_address.rstrip('/')}{self.graphql_path}"


@lru_cache
def get_settings() -> Settings:
    return Settings()

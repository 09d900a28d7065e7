from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "Manabase"
    debug: bool = False

    scryfall_api_url: str = "https://api.scryfall.com"
    user_agent: str = "Manabase/1.0"

    # Bulk snapshot and price map live in data_dir, per-card caches in cache_dir
    data_dir: Path = Path("data")
    cache_dir: Path = Path("cache")

    # Scryfall asks for 50-100ms between requests; ~8 req/s
    rate_limit_delay: float = 0.125
    max_retries: int = 3
    default_retry_after: float = 2.0
    request_timeout: float = 30.0
    download_timeout: float = 300.0

    bulk_refresh_interval: timedelta = timedelta(days=7)
    # How often the scheduler checks; the download only happens once stale
    bulk_check_interval: timedelta = timedelta(days=1)
    price_stale_after: timedelta = timedelta(days=7)
    price_refresh_batch_size: int = 200
    price_refresh_interval: timedelta = timedelta(hours=6)

    prints_cache_ttl: timedelta = timedelta(hours=24)
    search_cache_ttl: timedelta = timedelta(hours=6)

    search_result_limit: int = 20
    fuzzy_score_cutoff: float = 80.0
    fuzzy_min_query_length: int = 3

    scheduler_enabled: bool = True

    @property
    def bulk_data_path(self) -> Path:
        return self.data_dir / "scryfall-default-cards.json"

    @property
    def price_map_path(self) -> Path:
        return self.data_dir / "cardPrices.json"

    @property
    def card_cache_dir(self) -> Path:
        return self.cache_dir / "cards"

    @property
    def prints_cache_dir(self) -> Path:
        return self.cache_dir / "prints"

    @property
    def search_cache_path(self) -> Path:
        return self.cache_dir / "scryfall_search.json"


settings = Settings()

from collections.abc import AsyncGenerator, Iterator
from datetime import timedelta
from pathlib import Path

import pytest
import respx

from manabase.config import Settings
from manabase.services.cache import Cache, DirectoryBackend, JsonFileBackend
from manabase.services.card_resolver import CardResolver
from manabase.services.scryfall_client import RateLimiter, ScryfallClient
from tests.factories import SCRYFALL, RawCardFactory, make_basic_land, make_raw_card


@pytest.fixture
def raw_card() -> RawCardFactory:
    """Factory for raw Scryfall card objects."""
    return make_raw_card


@pytest.fixture
def basic_land() -> RawCardFactory:
    """Factory for raw basic land objects."""
    return make_basic_land


@pytest.fixture
def scryfall_mock() -> Iterator[respx.MockRouter]:
    """Mocked Scryfall API; every outbound request must match a route."""
    with respx.mock(base_url=SCRYFALL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def client() -> AsyncGenerator[ScryfallClient, None]:
    """Scryfall client without pacing delays or retry waits."""
    scryfall = ScryfallClient(
        base_url=SCRYFALL,
        rate_limiter=RateLimiter(0.0),
        default_retry_after=0.0,
    )
    yield scryfall
    await scryfall.aclose()


@pytest.fixture
def card_cache(tmp_path: Path) -> Cache:
    return Cache(DirectoryBackend(tmp_path / "cache" / "cards"), name="cards")


@pytest.fixture
def prints_cache(tmp_path: Path) -> Cache:
    return Cache(DirectoryBackend(tmp_path / "cache" / "prints"), name="prints")


@pytest.fixture
def price_cache(tmp_path: Path) -> Cache:
    return Cache(JsonFileBackend(tmp_path / "data" / "cardPrices.json"), name="prices")


@pytest.fixture
def resolver(
    client: ScryfallClient,
    card_cache: Cache,
    prints_cache: Cache,
    price_cache: Cache,
) -> CardResolver:
    return CardResolver(
        client,
        card_cache=card_cache,
        prints_cache=prints_cache,
        price_cache=price_cache,
        prints_ttl=timedelta(hours=24),
    )


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every file at tmp_path, with no pacing delays."""
    return Settings(
        data_dir=tmp_path / "data",
        cache_dir=tmp_path / "cache",
        rate_limit_delay=0.0,
        default_retry_after=0.0,
        scheduler_enabled=False,
    )

"""Tests for the CardService facade."""

import asyncio
import json
import os
import time
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from manabase.config import Settings
from manabase.models.failure import IndexNotReadyError, UpstreamError
from manabase.services.card_service import CardService
from manabase.services.scryfall_client import ScryfallClient
from manabase.services.search_index import CardSearchIndex
from tests.factories import SCRYFALL, make_basic_land, make_raw_card

MANIFEST_URL = f"{SCRYFALL}/bulk-data/default-cards"
DOWNLOAD_URI = "https://data.scryfall.io/default-cards/default-cards.json"

CATALOG = [
    make_raw_card("Sol Ring", type_line="Artifact", color_identity=[]),
    make_raw_card("Llanowar Elves"),
    make_basic_land("Forest"),
]


@pytest.fixture
async def service(
    test_settings: Settings, client: ScryfallClient
) -> AsyncGenerator[CardService, None]:
    card_service = CardService.from_settings(test_settings, client=client)
    yield card_service
    await card_service.aclose()


def _write_snapshot(path: Path, cards: list[dict[str, Any]], age_days: float = 0) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cards), encoding="utf-8")
    mtime = time.time() - age_days * 24 * 3600
    os.utime(path, (mtime, mtime))


class TestInit:
    @respx.mock
    async def test_fresh_snapshot_builds_index_without_download(
        self, service: CardService, test_settings: Settings
    ) -> None:
        manifest = respx.get(MANIFEST_URL)
        _write_snapshot(test_settings.bulk_data_path, CATALOG)

        await service.init()

        assert service.index_ready
        assert not manifest.called
        assert [c.name for c in service.search_cards("sol ring")] == ["Sol Ring"]

    @respx.mock
    async def test_missing_snapshot_is_downloaded(
        self, service: CardService, test_settings: Settings
    ) -> None:
        respx.get(MANIFEST_URL).mock(
            return_value=httpx.Response(200, json={"download_uri": DOWNLOAD_URI})
        )
        respx.get(DOWNLOAD_URI).mock(return_value=httpx.Response(200, json=CATALOG))

        await service.init()

        assert test_settings.bulk_data_path.exists()
        assert service.index_ready

    @respx.mock
    async def test_failed_download_uses_old_snapshot(
        self, service: CardService, test_settings: Settings
    ) -> None:
        """A stale snapshot still serves search when the refresh fails."""
        _write_snapshot(test_settings.bulk_data_path, CATALOG, age_days=30)
        respx.get(MANIFEST_URL).mock(return_value=httpx.Response(503))

        await service.init()

        assert service.index_ready
        assert service.lookup_exact_card("Forest").name == "Forest"

    @respx.mock
    async def test_no_snapshot_leaves_search_unavailable(self, service: CardService) -> None:
        respx.get(MANIFEST_URL).mock(return_value=httpx.Response(503))

        await service.init()

        assert not service.index_ready
        with pytest.raises(IndexNotReadyError):
            service.search_cards("sol ring")
        with pytest.raises(IndexNotReadyError):
            service.lookup_exact_card("Sol Ring")

    async def test_corrupt_snapshot_is_not_indexed(
        self, service: CardService, test_settings: Settings
    ) -> None:
        test_settings.bulk_data_path.parent.mkdir(parents=True)
        test_settings.bulk_data_path.write_text("{oops", encoding="utf-8")

        assert await service.rebuild_index() is False
        assert not service.index_ready


class TestBulkRefresh:
    @respx.mock
    async def test_forced_refresh_rebuilds_index(
        self, service: CardService, test_settings: Settings
    ) -> None:
        _write_snapshot(test_settings.bulk_data_path, CATALOG[:1])
        await service.init()
        respx.get(MANIFEST_URL).mock(
            return_value=httpx.Response(200, json={"download_uri": DOWNLOAD_URI})
        )
        respx.get(DOWNLOAD_URI).mock(return_value=httpx.Response(200, json=CATALOG))

        downloaded = await service.ensure_bulk_data_fresh(force=True)

        assert downloaded is True
        assert service.lookup_exact_card("Llanowar Elves").name == "Llanowar Elves"

    async def test_rebuild_keeps_event_loop_responsive(
        self, service: CardService, test_settings: Settings
    ) -> None:
        """Requests keep being served while a new snapshot is indexed."""
        _write_snapshot(test_settings.bulk_data_path, CATALOG)
        real_build = CardSearchIndex.build

        def slow_build(*args: Any, **kwargs: Any) -> CardSearchIndex:
            time.sleep(0.3)
            return real_build(*args, **kwargs)

        gaps: list[float] = []

        async def ticker() -> None:
            last = time.monotonic()
            while True:
                await asyncio.sleep(0.01)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        task = asyncio.create_task(ticker())
        with (
            patch.object(service.snapshot, "ensure_fresh", AsyncMock(return_value=True)),
            patch.object(CardSearchIndex, "build", slow_build),
        ):
            downloaded = await service.ensure_bulk_data_fresh()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert downloaded is True
        assert service.index_ready
        assert len(gaps) >= 10
        assert max(gaps) < 0.2

    @respx.mock
    async def test_failed_refresh_returns_false(self, service: CardService) -> None:
        respx.get(MANIFEST_URL).mock(return_value=httpx.Response(500))

        assert await service.ensure_bulk_data_fresh(force=True) is False


class TestResolution:
    @respx.mock
    async def test_resolve_works_without_index(self, service: CardService) -> None:
        respx.get(f"{SCRYFALL}/cards/named").mock(
            return_value=httpx.Response(200, json=make_basic_land("Forest"))
        )

        card = await service.resolve_card("forest")

        assert card.name == "Forest"
        assert service.is_fetchable(card)

    @respx.mock
    async def test_batch(self, service: CardService) -> None:
        respx.get(f"{SCRYFALL}/cards/named").mock(
            return_value=httpx.Response(200, json=make_basic_land("Island"))
        )

        cards = await service.resolve_cards_batch(["Island", ""])

        assert [c.missing for c in cards] == [False, True]


class TestUpstreamSearch:
    @respx.mock
    async def test_results_cached_per_query(self, service: CardService) -> None:
        route = respx.get(f"{SCRYFALL}/cards/search").mock(
            return_value=httpx.Response(200, json={"data": [{"name": "Forest"}], "has_more": False})
        )

        first = await service.search_upstream("t:forest")
        second = await service.search_upstream("T:Forest ")

        assert first == second
        assert route.call_count == 1

    @respx.mock
    async def test_expired_results_refetched(self, service: CardService) -> None:
        route = respx.get(f"{SCRYFALL}/cards/search").mock(
            return_value=httpx.Response(200, json={"data": [], "has_more": False})
        )
        service.search_cache.set("t:forest", {"data": ["old"]}, timestamp=time.time() - 7 * 3600)

        result = await service.search_upstream("t:forest")

        assert result["data"] == []
        assert route.call_count == 1

    @respx.mock
    async def test_no_matches_cached_as_empty_list(self, service: CardService) -> None:
        route = respx.get(f"{SCRYFALL}/cards/search").mock(return_value=httpx.Response(404))

        first = await service.search_upstream("zzzznotacard")
        second = await service.search_upstream("zzzznotacard")

        assert first == {"object": "list", "total_cards": 0, "has_more": False, "data": []}
        assert second == first
        assert route.call_count == 1

    @respx.mock
    async def test_other_failures_raise(self, service: CardService) -> None:
        respx.get(f"{SCRYFALL}/cards/search").mock(return_value=httpx.Response(400))

        with pytest.raises(UpstreamError) as exc_info:
            await service.search_upstream("o:(")

        assert exc_info.value.upstream_status == 400


class TestPriceRefresh:
    @respx.mock
    async def test_uses_configured_batch_size(
        self, client: ScryfallClient, test_settings: Settings
    ) -> None:
        settings = test_settings.model_copy(update={"price_refresh_batch_size": 1})
        service = CardService.from_settings(settings, client=client)
        for age_days, card_id in ((30, "a"), (20, "b")):
            service.price_cache.set(
                card_id,
                {"name": "Forest", "card_key": "forest", "price": 0.1},
                timestamp=time.time() - age_days * 24 * 3600,
            )
        respx.get(f"{SCRYFALL}/cards/a").mock(
            return_value=httpx.Response(200, json=make_basic_land("Forest", id="a"))
        )

        result = await service.refresh_stale_prices()

        assert (result.checked, result.remaining) == (1, 1)

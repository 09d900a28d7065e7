"""
Card service.

One explicitly constructed object owns all process-wide card-data state:
the rate limiter, the Scryfall client, the caches, the bulk snapshot and
the search index. Build it once at startup, call init(), and hand it to
route handlers; call aclose() on shutdown.
"""

import asyncio
import logging
from typing import Any

from manabase.config import Settings
from manabase.models.card import CanonicalCard
from manabase.models.failure import IndexNotReadyError, UpstreamError
from manabase.services.bulk_data import BulkSnapshotStore
from manabase.services.cache import (
    Cache,
    DirectoryBackend,
    JsonFileBackend,
    normalize_key,
)
from manabase.services.card_resolver import CardResolver
from manabase.services.card_rules import is_fetchable
from manabase.services.price_refresh import PriceRefreshResult
from manabase.services.price_refresh import refresh_stale_prices as run_price_refresh
from manabase.services.scryfall_client import RateLimiter, ScryfallClient
from manabase.services.search_index import CardSearchIndex

logger = logging.getLogger(__name__)

EMPTY_SEARCH_RESULT: dict[str, Any] = {
    "object": "list",
    "total_cards": 0,
    "has_more": False,
    "data": [],
}


class CardService:
    """Facade over resolution, search and refresh of card data."""

    def __init__(
        self,
        settings: Settings,
        client: ScryfallClient,
        resolver: CardResolver,
        snapshot: BulkSnapshotStore,
        price_cache: Cache,
        search_cache: Cache,
    ) -> None:
        self.settings = settings
        self.client = client
        self.resolver = resolver
        self.snapshot = snapshot
        self.price_cache = price_cache
        self.search_cache = search_cache
        self._index: CardSearchIndex | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: ScryfallClient | None = None,
    ) -> "CardService":
        """Wire up caches, client and stores from configuration."""
        if client is None:
            client = ScryfallClient(
                base_url=settings.scryfall_api_url,
                rate_limiter=RateLimiter(settings.rate_limit_delay),
                max_retries=settings.max_retries,
                default_retry_after=settings.default_retry_after,
                timeout=settings.request_timeout,
                download_timeout=settings.download_timeout,
                user_agent=settings.user_agent,
            )

        price_cache = Cache(JsonFileBackend(settings.price_map_path), name="prices")
        resolver = CardResolver(
            client,
            card_cache=Cache(DirectoryBackend(settings.card_cache_dir), name="cards"),
            prints_cache=Cache(DirectoryBackend(settings.prints_cache_dir), name="prints"),
            price_cache=price_cache,
            prints_ttl=settings.prints_cache_ttl,
        )
        snapshot = BulkSnapshotStore(
            settings.bulk_data_path,
            client,
            refresh_interval=settings.bulk_refresh_interval,
        )
        return cls(
            settings,
            client,
            resolver,
            snapshot,
            price_cache=price_cache,
            search_cache=Cache(JsonFileBackend(settings.search_cache_path), name="search"),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        """
        Bring bulk data up to date and build the search index.

        A failed download with an older snapshot on disk still builds the
        index from that snapshot. With no snapshot at all, search stays
        unavailable until a later refresh succeeds.
        """
        await self.ensure_bulk_data_fresh(rebuild_index=False)
        await self.rebuild_index()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def rebuild_index(self) -> bool:
        """
        Rebuild the search index from the snapshot on disk.

        Parsing and indexing run in a worker thread; the previous index keeps
        serving until the new one is swapped in.
        """
        try:
            printings = await asyncio.to_thread(self.snapshot.load)
        except (FileNotFoundError, ValueError) as e:
            logger.error("Cannot build search index: %s", e)
            return False

        self._index = await asyncio.to_thread(
            CardSearchIndex.build,
            printings,
            result_limit=self.settings.search_result_limit,
            score_cutoff=self.settings.fuzzy_score_cutoff,
            min_query_length=self.settings.fuzzy_min_query_length,
        )
        return True

    @property
    def index_ready(self) -> bool:
        return self._index is not None

    def _require_index(self) -> CardSearchIndex:
        if self._index is None:
            raise IndexNotReadyError()
        return self._index

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def resolve_card(self, name: str) -> CanonicalCard:
        return await self.resolver.resolve(name)

    async def resolve_cards_batch(self, names: list[str]) -> list[CanonicalCard]:
        return await self.resolver.resolve_batch(names)

    async def resolve_card_details(self, name: str) -> CanonicalCard:
        """Resolve with cheapest price and print list across all printings."""
        return await self.resolver.resolve_with_prints(name)

    def is_fetchable(self, card: CanonicalCard) -> bool:
        return is_fetchable(card)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search_cards(self, query: str) -> list[CanonicalCard]:
        return self._require_index().search(query)

    def lookup_exact_card(self, name: str) -> CanonicalCard:
        return self._require_index().lookup_exact(name)

    async def search_upstream(self, query: str) -> dict[str, Any]:
        """
        Proxy a Scryfall search, cached per query for search_cache_ttl.

        Scryfall answers a query with no hits with 404; that comes back as an
        empty list rather than an error.

        Raises:
            UpstreamError: Scryfall rejected or failed the query
        """
        key = normalize_key(query)
        entry = self.search_cache.get_fresh(key, self.settings.search_cache_ttl)
        if entry is not None:
            data: dict[str, Any] = entry.data
            return data

        try:
            result = await self.client.search(query)
        except UpstreamError as e:
            if e.upstream_status != 404:
                raise
            logger.debug("No upstream results for %r", query)
            result = {**EMPTY_SEARCH_RESULT, "data": []}
        self.search_cache.set(key, result)
        return result

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def ensure_bulk_data_fresh(
        self,
        force: bool = False,
        rebuild_index: bool = True,
    ) -> bool:
        """
        Refresh the bulk snapshot if stale and rebuild the index on change.

        Failures are logged; serving continues from the existing snapshot.

        Returns:
            True if a new snapshot was downloaded
        """
        try:
            downloaded = await self.snapshot.ensure_fresh(force=force)
        except UpstreamError as e:
            logger.error("Failed to update Scryfall bulk data: %s", e.detail)
            return False

        if downloaded and rebuild_index:
            await self.rebuild_index()
        return downloaded

    async def refresh_stale_prices(self) -> PriceRefreshResult:
        return await run_price_refresh(
            self.resolver,
            self.price_cache,
            stale_after=self.settings.price_stale_after,
            batch_size=self.settings.price_refresh_batch_size,
        )

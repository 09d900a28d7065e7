"""
Manabase services.

Card-data resolution, caching, deduplication and search.
"""

from manabase.services.bulk_data import BulkSnapshotStore
from manabase.services.cache import (
    Cache,
    CacheEntry,
    DirectoryBackend,
    JsonFileBackend,
    MemoryBackend,
    normalize_key,
    sanitize_key,
)
from manabase.services.card_resolver import CardResolver, normalize_card
from manabase.services.card_rules import is_fetchable, passes_color_filter, split_lands
from manabase.services.card_service import CardService
from manabase.services.dedup import DedupGroup, DedupResult, deduplicate, select_representative
from manabase.services.price_refresh import PriceRefreshResult, refresh_stale_prices
from manabase.services.scryfall_client import RateLimiter, ScryfallClient
from manabase.services.search_index import CardSearchIndex

__all__ = [
    "BulkSnapshotStore",
    "Cache",
    "CacheEntry",
    "CardResolver",
    "CardSearchIndex",
    "CardService",
    "DedupGroup",
    "DedupResult",
    "DirectoryBackend",
    "JsonFileBackend",
    "MemoryBackend",
    "PriceRefreshResult",
    "RateLimiter",
    "ScryfallClient",
    "deduplicate",
    "is_fetchable",
    "normalize_card",
    "normalize_key",
    "passes_color_filter",
    "refresh_stale_prices",
    "sanitize_key",
    "select_representative",
    "split_lands",
]

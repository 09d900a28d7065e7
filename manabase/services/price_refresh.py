"""
Incremental price refresh.

The price map (one JSON file, keyed by Scryfall printing ID) records when
each resolved card's price was last fetched. A refresh cycle re-resolves
at most batch_size of the stalest entries so a large backlog never
floods the upstream rate limit in one burst.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta

from manabase.models.failure import UpstreamError
from manabase.services.cache import Cache
from manabase.services.card_resolver import CardResolver

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(days=7)
DEFAULT_BATCH_SIZE = 200


@dataclass
class PriceRefreshResult:
    """Outcome of one refresh cycle."""

    checked: int = 0
    updated: int = 0
    failed: int = 0
    remaining: int = 0


def stale_price_ids(
    price_cache: Cache,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
    now: float | None = None,
) -> list[str]:
    """Printing IDs whose price entry is older than stale_after, oldest first."""
    now = time.time() if now is None else now
    threshold = stale_after.total_seconds()
    stale = [entry for entry in price_cache.entries() if entry.age(now) > threshold]
    stale.sort(key=lambda entry: entry.timestamp)
    return [entry.key for entry in stale]


async def refresh_stale_prices(
    resolver: CardResolver,
    price_cache: Cache,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PriceRefreshResult:
    """
    Re-resolve up to batch_size cards with stale prices.

    Cards are refreshed sequentially through the resolver (and therefore
    the shared rate limiter). A failure is logged and counted; it never
    stops the cycle.
    """
    stale = stale_price_ids(price_cache, stale_after)
    if not stale:
        logger.info("All prices up to date")
        return PriceRefreshResult()

    batch = stale[:batch_size]
    result = PriceRefreshResult(checked=len(batch), remaining=len(stale) - len(batch))
    logger.info("Updating prices for %d of %d stale cards", len(batch), len(stale))

    for card_id in batch:
        entry = price_cache.get(card_id)
        data = entry.data if entry is not None and isinstance(entry.data, dict) else {}
        card_key = str(data.get("card_key") or data.get("name") or card_id).lower()

        try:
            card = await resolver.refresh(card_key, card_id)
        except UpstreamError as e:
            logger.warning("Failed to update price for %s: %s", card_id, e.detail)
            result.failed += 1
            continue

        if card.id != card_id:
            # Scryfall merged or replaced the printing; retire the old entry's clock
            price_cache.set(card_id, {**data, "price": card.price})
        logger.debug("%s: $%s", card.name, card.price)
        result.updated += 1

    logger.info(
        "Price refresh complete: %d updated, %d failed, %d still stale",
        result.updated,
        result.failed,
        result.remaining,
    )
    return result

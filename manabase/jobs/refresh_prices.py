"""
Refresh stale card prices.

Runs one price refresh cycle. Can be run as a standalone script or called
from a scheduler.
"""

import asyncio
import logging

from manabase.config import settings
from manabase.services.card_service import CardService
from manabase.services.price_refresh import PriceRefreshResult

logger = logging.getLogger(__name__)


async def run_price_refresh() -> PriceRefreshResult:
    """Run a single refresh cycle against the configured price map."""
    service = CardService.from_settings(settings)
    try:
        return await service.refresh_stale_prices()
    finally:
        await service.aclose()


def main() -> None:
    """CLI entry point for running a price refresh."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    result = asyncio.run(run_price_refresh())
    logger.info(
        "Checked %d, updated %d, failed %d, %d still stale",
        result.checked,
        result.updated,
        result.failed,
        result.remaining,
    )


if __name__ == "__main__":
    main()

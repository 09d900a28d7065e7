"""
Download Scryfall bulk card data.

Run this job to fetch the latest snapshot used for deduplication and
search, e.g. before the first server start.
"""

import argparse
import asyncio
import logging

from manabase.config import settings
from manabase.services.card_service import CardService

logger = logging.getLogger(__name__)


async def run_download(force: bool = True) -> bool:
    """Download the bulk snapshot; returns whether a new file was written."""
    service = CardService.from_settings(settings)
    try:
        logger.info("Downloading Scryfall bulk card data...")
        downloaded = await service.snapshot.ensure_fresh(force=force)
        if downloaded:
            logger.info("Downloaded bulk card data to %s", service.snapshot.path)
        return downloaded
    except Exception as e:
        logger.error("Failed to download bulk card data: %s", e)
        raise
    finally:
        await service.aclose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Download Scryfall bulk card data")
    parser.add_argument(
        "--if-stale",
        action="store_true",
        help="Only download when the local snapshot is missing or stale",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_download(force=not args.if_stale))


if __name__ == "__main__":
    main()

"""
Bulk snapshot store.

Keeps a local copy of Scryfall's default-cards bulk file (every printing,
~500MB) and refreshes it when older than the refresh interval.

Bulk data: https://scryfall.com/docs/api/bulk-data
"""

import json
import logging
import time
from datetime import timedelta
from pathlib import Path

from manabase.models.card import CardPrinting, parse_printing
from manabase.models.failure import UpstreamError
from manabase.services.scryfall_client import ScryfallClient

logger = logging.getLogger(__name__)

BULK_KIND = "default-cards"
DEFAULT_REFRESH_INTERVAL = timedelta(days=7)


class BulkSnapshotStore:
    """
    Local bulk snapshot with a refresh policy.

    Args:
        path: Where the snapshot JSON lives
        client: Scryfall client used for the manifest and download
        refresh_interval: Max snapshot age before re-download
    """

    def __init__(
        self,
        path: Path,
        client: ScryfallClient,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
    ) -> None:
        self.path = path
        self.client = client
        self.refresh_interval = refresh_interval

    def exists(self) -> bool:
        return self.path.exists()

    def age(self, now: float | None = None) -> float | None:
        """Snapshot age in seconds, None when there is no snapshot."""
        if not self.path.exists():
            return None
        return (time.time() if now is None else now) - self.path.stat().st_mtime

    def is_stale(self, now: float | None = None) -> bool:
        """True when the snapshot is missing or older than refresh_interval."""
        age = self.age(now)
        return age is None or age >= self.refresh_interval.total_seconds()

    async def ensure_fresh(self, force: bool = False) -> bool:
        """
        Download a new snapshot if the current one is missing or stale.

        Two steps: fetch the bulk-data manifest, then stream the file at
        its download_uri.

        Returns:
            True if a new snapshot was downloaded

        Raises:
            UpstreamError: Manifest or download failed (old snapshot kept)
        """
        if not force and not self.is_stale():
            logger.info("Bulk data already up to date: %s", self.path)
            return False

        logger.info("Downloading Scryfall bulk data manifest (%s)...", BULK_KIND)
        manifest = await self.client.get_bulk_manifest(BULK_KIND)
        download_url = manifest.get("download_uri") if isinstance(manifest, dict) else None
        if not download_url:
            raise UpstreamError(
                f"{self.client.base_url}/bulk-data/{BULK_KIND}",
                "Manifest has no download_uri",
            )

        logger.info("Downloading cards from %s", download_url)
        await self.client.download(str(download_url), self.path)
        logger.info("Scryfall bulk data updated: %s", self.path)
        return True

    def load(self) -> list[CardPrinting]:
        """
        Parse every printing in the snapshot.

        Raises:
            FileNotFoundError: No snapshot on disk
            ValueError: Snapshot is not a JSON array of cards
        """
        if not self.path.exists():
            raise FileNotFoundError(
                f"Bulk card data not found at {self.path}. "
                "Run `python -m manabase.jobs.download_cards` first."
            )

        try:
            with open(self.path, encoding="utf-8-sig") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Bulk card data at {self.path} is corrupted: {e}") from e

        if not isinstance(raw, list):
            raise ValueError(f"Bulk card data at {self.path} is corrupted: expected a list")

        printings = [parse_printing(card) for card in raw if isinstance(card, dict)]
        logger.info("Loaded %d printings from bulk data", len(printings))
        return printings

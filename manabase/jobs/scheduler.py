"""
Background refresh scheduler.

Re-arms the bulk snapshot check (daily, downloading only once the snapshot
is stale) and the stale price refresh (every 6 hours) for the lifetime of
the process. The startup refresh is done by CardService.init() before the
search index is built; this only handles the periodic runs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from manabase.services.card_service import CardService

logger = logging.getLogger(__name__)


async def run_periodically(
    name: str,
    interval: timedelta,
    job: Callable[[], Awaitable[Any]],
) -> None:
    """
    Run job every interval until cancelled.

    A failing run is logged and the loop keeps going.
    """
    seconds = interval.total_seconds()
    while True:
        await asyncio.sleep(seconds)
        logger.info("Running scheduled %s", name)
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled %s failed", name)


class RefreshScheduler:
    """Owns the periodic refresh tasks for one CardService."""

    def __init__(
        self,
        service: CardService,
        bulk_interval: timedelta = timedelta(days=1),
        price_interval: timedelta = timedelta(hours=6),
    ) -> None:
        self.service = service
        self.bulk_interval = bulk_interval
        self.price_interval = price_interval
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(
                run_periodically("bulk data refresh", self.bulk_interval, self._refresh_bulk),
                name="bulk-data-refresh",
            ),
            asyncio.create_task(
                run_periodically(
                    "price refresh",
                    self.price_interval,
                    self.service.refresh_stale_prices,
                ),
                name="price-refresh",
            ),
        ]
        logger.info(
            "Refresh scheduler started (bulk check every %s, prices every %s)",
            self.bulk_interval,
            self.price_interval,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _refresh_bulk(self) -> None:
        await self.service.ensure_bulk_data_fresh()

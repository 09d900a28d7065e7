"""
Rate-limited Scryfall API client.

All outbound calls to the card-data API go through one ScryfallClient so
that a single RateLimiter paces every request in the process.

Retry policy:
- HTTP 429: sleep for Retry-After seconds (default 2s) and retry the same
  request, up to max_retries times.
- Any other non-2xx status, transport error or timeout: fail immediately.

API docs: https://scryfall.com/docs/api
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

import httpx

from manabase.models.failure import UpstreamError

logger = logging.getLogger(__name__)

SCRYFALL_API = "https://api.scryfall.com"

# Scryfall asks for 50-100ms between requests; stay comfortably under 10 req/s
DEFAULT_RATE_LIMIT_DELAY = 0.125
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_AFTER = 2.0


class RateLimiter:
    """
    Process-wide minimum spacing between outbound requests.

    The marker is stamped on every attempt, successful or not, so
    concurrent callers queue behind the same gate.
    """

    def __init__(self, min_interval: float = DEFAULT_RATE_LIMIT_DELAY) -> None:
        self.min_interval = min_interval
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    @property
    def last_request(self) -> float:
        return self._last_request

    async def wait(self) -> None:
        """Suspend until min_interval has passed since the previous request."""
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
            self._last_request = time.monotonic()


def _retry_after_seconds(response: httpx.Response, default: float) -> float:
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default


class ScryfallClient:
    """
    Async Scryfall client with global pacing and bounded 429 retries.

    Args:
        base_url: API root (no trailing slash)
        rate_limiter: Shared limiter; a private one is created if omitted
        max_retries: Retries after the first 429 before giving up
        default_retry_after: Delay used when a 429 has no Retry-After header
        timeout: Per-request timeout in seconds
        http_client: Optional pre-built httpx.AsyncClient (tests, reuse)
    """

    def __init__(
        self,
        base_url: str = SCRYFALL_API,
        rate_limiter: RateLimiter | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        default_retry_after: float = DEFAULT_RETRY_AFTER,
        timeout: float = 30.0,
        download_timeout: float = 300.0,
        user_agent: str = "Manabase/1.0",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self.default_retry_after = default_retry_after
        self.download_timeout = download_timeout
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def fetch_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a JSON document, pacing and retrying per the client policy.

        Args:
            url: Absolute URL or path relative to base_url
            params: Optional query parameters

        Returns:
            Decoded JSON body

        Raises:
            UpstreamError: Non-retryable status, retries exhausted,
                transport failure or timeout
        """
        url = self._url(url)

        for attempt in range(self.max_retries + 1):
            await self.rate_limiter.wait()
            try:
                response = await self._client.get(url, params=params)
            except httpx.TimeoutException as e:
                raise UpstreamError(url, f"Timed out: {e}") from e
            except httpx.RequestError as e:
                raise UpstreamError(url, f"Request failed: {e}") from e

            if response.status_code == 429:
                if attempt == self.max_retries:
                    raise UpstreamError(
                        url,
                        f"Rate limited, gave up after {attempt + 1} attempts",
                        upstream_status=429,
                    )
                delay = _retry_after_seconds(response, self.default_retry_after)
                logger.warning("Rate limited by Scryfall, retrying in %.2fs: %s", delay, url)
                await asyncio.sleep(delay)
                continue

            if response.is_error:
                raise UpstreamError(
                    url,
                    f"HTTP {response.status_code}",
                    upstream_status=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamError(url, "Response was not valid JSON") from e

        # range() always ends in return/raise above
        raise UpstreamError(url, "Retry budget exhausted")

    async def get_named(self, name: str, fuzzy: bool = True) -> dict[str, Any]:
        """Look up a single card by (fuzzy or exact) name."""
        mode = "fuzzy" if fuzzy else "exact"
        data: dict[str, Any] = await self.fetch_json("/cards/named", params={mode: name})
        return data

    async def get_card(self, card_id: str) -> dict[str, Any]:
        """Fetch a single printing by Scryfall ID."""
        data: dict[str, Any] = await self.fetch_json(f"/cards/{card_id}")
        return data

    async def search(self, query: str, follow_pages: bool = False) -> dict[str, Any]:
        """
        Run a Scryfall search query.

        With follow_pages, every page is fetched and the "data" arrays are
        concatenated into the first page's envelope.
        """
        first: dict[str, Any] = await self.fetch_json("/cards/search", params={"q": query})
        if follow_pages:
            first = await self._collect_pages(first)
        return first

    async def get_prints(self, prints_search_uri: str) -> list[dict[str, Any]]:
        """Fetch every printing listed by a card's prints_search_uri."""
        first: dict[str, Any] = await self.fetch_json(prints_search_uri)
        collected = await self._collect_pages(first)
        return list(collected.get("data", []))

    async def _collect_pages(self, page: dict[str, Any]) -> dict[str, Any]:
        cards = list(page.get("data", []))
        current = page
        while current.get("has_more") and current.get("next_page"):
            current = await self.fetch_json(str(current["next_page"]))
            cards.extend(current.get("data", []))
        return {**page, "data": cards, "has_more": False, "next_page": None}

    async def get_bulk_manifest(self, kind: str = "default-cards") -> dict[str, Any]:
        """Fetch the bulk-data manifest entry (holds download_uri)."""
        data: dict[str, Any] = await self.fetch_json(f"/bulk-data/{kind}")
        return data

    async def download(self, url: str, destination: Path) -> Path:
        """
        Stream a large file to disk.

        Writes to a temporary file beside destination and renames it on
        success, so a failed download never replaces a good snapshot.

        Raises:
            UpstreamError: Non-2xx status or transport failure
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        await self.rate_limiter.wait()

        fd, tmp_name = tempfile.mkstemp(dir=destination.parent, suffix=".part")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                async with self._client.stream(
                    "GET", url, timeout=self.download_timeout
                ) as response:
                    if response.is_error:
                        raise UpstreamError(
                            url,
                            f"HTTP {response.status_code}",
                            upstream_status=response.status_code,
                        )
                    async for chunk in response.aiter_bytes(8192):
                        f.write(chunk)
            tmp_path.replace(destination)
        except httpx.HTTPError as e:
            tmp_path.unlink(missing_ok=True)
            raise UpstreamError(url, f"Download failed: {e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        return destination

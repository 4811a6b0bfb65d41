"""
BTC/USD exchange rate fetching and caching.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger

from panopticon.constants import (
    DEFAULT_PRICE_TIMEOUT,
    DEFAULT_PRICE_URL,
    DEFAULT_RATE_TTL_SECONDS,
)
from panopticon.models import RateEntry


def _now_ms() -> int:
    return int(time.time() * 1000)


class PriceSource:
    """
    Public price endpoint returning {"bitcoin": {"usd": <float>}}.
    """

    def __init__(
        self,
        url: str = DEFAULT_PRICE_URL,
        timeout: float = DEFAULT_PRICE_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self) -> float | None:
        """Fetch the current rate, or None on HTTP error or malformed body."""
        try:
            response = await self.client.get(self.url)
            response.raise_for_status()
            data: Any = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Error fetching BTC-USD rate: {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid BTC-USD rate response: {e}")
            return None

        logger.debug(f"BTC-USD rate response: {data}")

        try:
            rate = data["bitcoin"]["usd"]
        except (KeyError, TypeError):
            logger.error("BTC-USD rate missing from response")
            return None

        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            logger.error(f"BTC-USD rate is not a number: {rate!r}")
            return None

        return float(rate)

    async def close(self) -> None:
        await self.client.aclose()


class RateCache:
    """
    Single-slot, time-boxed exchange rate cache.

    A failed refresh yields None even if an older value is cached.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[float | None]],
        ttl_seconds: int = DEFAULT_RATE_TTL_SECONDS,
        clock: Callable[[], int] = _now_ms,
    ):
        self._fetch = fetch
        self.ttl_ms = ttl_seconds * 1000
        self._clock = clock
        self.entry: RateEntry | None = None

    async def get_rate(self, force_refresh: bool = False) -> float | None:
        now = self._clock()
        if (
            not force_refresh
            and self.entry is not None
            and now - self.entry.fetched_at_ms < self.ttl_ms
        ):
            logger.debug(f"Using cached BTC-USD rate: {self.entry.value}")
            return self.entry.value

        rate = await self._fetch()
        if rate is None:
            return None

        self.entry = RateEntry(value=rate, fetched_at_ms=now)
        logger.debug(f"Updated BTC-USD rate: {rate}")
        return rate

    async def convert(self, amount: float, force_refresh: bool = False) -> float | None:
        rate = await self.get_rate(force_refresh)
        if rate is None:
            return None
        return amount * rate

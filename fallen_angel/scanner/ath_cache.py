"""ATH cache: 30-day high/low per token, refreshed only on a new high.

Live prices move faster than the range endpoint updates, so a refetch is
triggered only when the price clears the cached high by ``refresh_margin``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from fallen_angel.config import settings
from fallen_angel.market.base import RangeProvider
from fallen_angel.market.models import PriceRange
from fallen_angel.scanner.models import AthRecord
from fallen_angel.storage.stores import AthStore
from fallen_angel.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def record_from_range(token_id: str, rng: PriceRange, now: datetime, window_days: int) -> AthRecord:
    lowest = rng.lowest
    return AthRecord(
        token_id=token_id,
        ath_price=rng.highest.price,
        ath_market_cap=rng.highest.market_cap,
        ath_time=rng.highest.time,
        atl_price=lowest.price if lowest else None,
        atl_market_cap=lowest.market_cap if lowest else None,
        atl_time=lowest.time if lowest else None,
        last_updated=now,
        window_days=window_days,
    )


class AthCache:
    def __init__(
        self,
        store: AthStore,
        ranges: RangeProvider,
        *,
        window_days: int | None = None,
        refresh_margin: float | None = None,
        retry: RetryPolicy | None = None,
        post_fetch_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ranges = ranges
        self._window_days = window_days or settings.ath_window_days
        self._refresh_margin = refresh_margin or settings.ath_refresh_margin
        self._retry = retry or RetryPolicy(
            attempts=settings.ath_retry_attempts,
            delay_seconds=settings.ath_retry_delay_seconds,
        )
        self._post_fetch_delay = (
            settings.ath_post_fetch_delay_seconds if post_fetch_delay is None else post_fetch_delay
        )
        self._sleep = sleep
        self._clock = clock

    async def cached(self, token_id: str) -> AthRecord | None:
        """Cached record only; never touches the range provider."""
        return await self._store.get(token_id)

    async def get(self, token_id: str, current_price: float | None) -> AthRecord | None:
        stored = await self._store.get(token_id)

        if stored is None:
            logger.info("Fetching ATH data for new token %s...", token_id[:8])
            fresh = await self._refresh(token_id)
            return fresh

        if current_price is not None and current_price > stored.ath_price * self._refresh_margin:
            logger.info(
                "New ATH detected for %s (%.8g > %.8g), re-baselining...",
                token_id[:8], current_price, stored.ath_price,
            )
            fresh = await self._refresh(token_id)
            if fresh is None:
                logger.warning("ATH refresh failed for %s, keeping cached high", token_id[:8])
                return stored
            return fresh

        return stored

    async def _refresh(self, token_id: str) -> AthRecord | None:
        now = self._clock()
        time_from = now - timedelta(days=self._window_days)

        rng = await call_with_retry(
            lambda: self._ranges.price_range(token_id, time_from, now),
            self._retry,
            what=f"ATH range for {token_id[:8]}",
            sleep=self._sleep,
        )

        record = None
        if rng is not None:
            record = record_from_range(token_id, rng, now, self._window_days)
            await self._store.put(record)

        # Range endpoint is rate limited; pause after every fetch sequence
        await self._sleep(self._post_fetch_delay)
        return record

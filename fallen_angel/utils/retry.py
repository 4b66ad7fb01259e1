"""Fixed-delay retry shared by the quote and price-range clients."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """A data provider answered, but with an error payload."""


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    delay_seconds: float = 3.0


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    what: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T | None:
    """Await *fn* up to ``policy.attempts`` times.

    Retries on transport errors and ``ProviderError``; anything else
    propagates. Returns None once the budget is exhausted.
    """
    attempts = max(policy.attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except (httpx.HTTPError, ProviderError) as exc:
            logger.warning("%s failed (attempt %d/%d): %s", what, attempt, attempts, exc)
            if attempt < attempts:
                logger.info("Waiting %.0fs before retry...", policy.delay_seconds)
                await sleep(policy.delay_seconds)
    return None

"""Fixed-interval scan scheduler.

Cycles never overlap: each one is awaited, then the next start is advanced
by whole intervals, skipping any ticks the cycle overran. The countdown log
reads from the same ``next_run_at`` the loop waits on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class ScanScheduler:
    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[object]],
        interval_seconds: float,
        *,
        countdown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._run_cycle = run_cycle
        self._interval = interval_seconds
        self._countdown = countdown_seconds
        self._clock = clock
        self._stop = asyncio.Event()
        self.next_run_at: float | None = None
        self.cycles_run = 0
        self.ticks_skipped = 0

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def seconds_until_next(self) -> float:
        if self.next_run_at is None:
            return 0.0
        return max(self.next_run_at - self._clock(), 0.0)

    async def run(self, max_cycles: int | None = None) -> None:
        """Run the first cycle now, then one per interval until stopped."""
        self.next_run_at = self._clock()

        while not self._stop.is_set():
            try:
                await self._run_cycle()
            except Exception:
                logger.exception("Scan cycle failed")
            self.cycles_run += 1

            if max_cycles is not None and self.cycles_run >= max_cycles:
                break

            self._advance()
            await self._wait_for_next()

        logger.info("Scheduler stopped after %d cycle(s)", self.cycles_run)

    def _advance(self) -> None:
        next_run = self.next_run_at + self._interval
        now = self._clock()
        if now >= next_run:
            missed = int((now - next_run) // self._interval) + 1
            next_run += missed * self._interval
            self.ticks_skipped += missed
            logger.warning(
                "Scan cycle overran the %.0fs interval; skipping %d tick(s)",
                self._interval, missed,
            )
        self.next_run_at = next_run

    async def _wait_for_next(self) -> None:
        while not self._stop.is_set():
            remaining = self.seconds_until_next()
            if remaining <= 0:
                return
            minutes, seconds = divmod(int(round(remaining)), 60)
            logger.info("Next scan in %d:%02d", minutes, seconds)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=min(remaining, self._countdown))
            except asyncio.TimeoutError:
                continue

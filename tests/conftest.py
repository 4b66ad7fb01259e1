from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fallen_angel.market.base import QuoteProvider, RangeProvider
from fallen_angel.market.models import PricePoint, PriceRange, TokenQuote, WindowStats
from fallen_angel.market.solana_tracker import RangeFetchError
from fallen_angel.scanner.ath_cache import AthCache
from fallen_angel.scanner.classifier import Thresholds
from fallen_angel.scanner.models import AthRecord, TokenSnapshot
from fallen_angel.scanner.orchestrator import ScanOrchestrator
from fallen_angel.storage.database import init_db, make_session_factory
from fallen_angel.storage.stores import (
    MemoryAlertLog,
    MemoryAthStore,
    MemoryCooldownStore,
    MemoryMonitoringStore,
    MemorySnapshotStore,
)
from fallen_angel.utils.retry import RetryPolicy

# 10:12 UTC, so the next cooldown milestone is 10:30
NOW = datetime(2026, 3, 14, 10, 12, 0, tzinfo=timezone.utc)


class FakeQuotes(QuoteProvider):
    def __init__(self) -> None:
        self.quotes: dict[str, TokenQuote] = {}
        self.broken: set[str] = set()
        self.quote_calls: list[str] = []
        self.price_calls: list[str] = []

    async def quote(self, token_id: str) -> TokenQuote | None:
        self.quote_calls.append(token_id)
        if token_id in self.broken:
            raise RuntimeError("provider exploded")
        return self.quotes.get(token_id)

    async def quick_price(self, token_id: str) -> float | None:
        self.price_calls.append(token_id)
        quote = self.quotes.get(token_id)
        return quote.price if quote else None


class FakeRanges(RangeProvider):
    def __init__(self) -> None:
        self.highs: dict[str, float] = {}
        self.failures: dict[str, int] = {}  # failures left before success
        self.calls: list[str] = []

    async def price_range(self, token_id, time_from, time_to) -> PriceRange:
        self.calls.append(token_id)
        if self.failures.get(token_id, 0) > 0:
            self.failures[token_id] -= 1
            raise RangeFetchError("rate limited")
        if token_id not in self.highs:
            raise RangeFetchError("token not found")
        high = self.highs[token_id]
        return PriceRange(
            highest=PricePoint(price=high, market_cap=high * 1_000_000, time=NOW),
            lowest=PricePoint(price=high / 100, market_cap=high * 10_000, time=NOW),
        )


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _stats(volume_change, buy, sell) -> WindowStats:
    return WindowStats(
        volume_change_pct=volume_change,
        price_change_pct=12.5,
        buy_volume=buy,
        sell_volume=sell,
        num_buys=40,
        num_sells=20,
        num_traders=35,
        num_net_buyers=9,
    )


@pytest.fixture
def make_quote():
    def _make(
        token_id: str,
        price: float,
        *,
        mcap: float | None = 500_000,
        volume_change: float | None = 20.0,
        buy: float | None = 1_000.0,
        sell: float | None = 400.0,
    ) -> TokenQuote:
        return TokenQuote(
            id=token_id,
            symbol=token_id[:4].upper(),
            name=f"{token_id} token",
            price=price,
            market_cap=mcap,
            holder_count=1234,
            organic_score=55.0,
            stats_1h=_stats(volume_change, buy, sell),
        )

    return _make


@pytest.fixture
def make_snapshot():
    def _make(
        drawdown: float | None,
        *,
        token_id: str = "TokenAAAA1111",
        mcap: float | None = 500_000,
        volume_change: float | None = 20.0,
        buy: float | None = 1_000.0,
        sell: float | None = 400.0,
    ) -> TokenSnapshot:
        price = 1.0 - drawdown / 100 if drawdown is not None else 0.5
        return TokenSnapshot(
            id=token_id,
            symbol="AAAA",
            name="Token A",
            market_cap=mcap,
            current_price=price,
            ath_price=1.0 if drawdown is not None else None,
            drawdown_pct=drawdown,
            stats_1h=_stats(volume_change, buy, sell),
            fetched_at=NOW,
        )

    return _make


@pytest.fixture
def ath_record():
    def _make(token_id: str, ath_price: float = 1.0) -> AthRecord:
        return AthRecord(token_id=token_id, ath_price=ath_price, last_updated=NOW)

    return _make


@pytest.fixture
def quotes() -> FakeQuotes:
    return FakeQuotes()


@pytest.fixture
def ranges() -> FakeRanges:
    return FakeRanges()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def stores() -> SimpleNamespace:
    return SimpleNamespace(
        ath=MemoryAthStore(),
        monitoring=MemoryMonitoringStore(),
        cooldowns=MemoryCooldownStore(),
        alerts=MemoryAlertLog(),
        snapshots=MemorySnapshotStore(),
    )


@pytest.fixture
def watchlist() -> list[str]:
    return []


@pytest.fixture
def make_orchestrator(quotes, ranges, stores, sleeper, watchlist):
    def _make(channels=()) -> ScanOrchestrator:
        cache = AthCache(
            stores.ath,
            ranges,
            window_days=30,
            refresh_margin=1.05,
            retry=RetryPolicy(attempts=3, delay_seconds=3.0),
            post_fetch_delay=2.0,
            sleep=sleeper,
            clock=lambda: NOW,
        )
        return ScanOrchestrator(
            watchlist=lambda: list(watchlist),
            quotes=quotes,
            ath_cache=cache,
            monitoring=stores.monitoring,
            cooldowns=stores.cooldowns,
            alert_log=stores.alerts,
            snapshots=stores.snapshots,
            channels=channels,
            thresholds=Thresholds(),
            prefilter_delay=1.0,
            fetch_delay=2.0,
            sleep=sleeper,
            clock=lambda: NOW,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> ScanOrchestrator:
    return make_orchestrator()


@pytest.fixture
async def session_factory(tmp_path):
    engine, factory = make_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'scanner.db'}")
    await init_db(engine)
    yield factory
    await engine.dispose()

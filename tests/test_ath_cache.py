from datetime import datetime, timedelta, timezone

import httpx
import pytest

from fallen_angel.market.solana_tracker import SolanaTrackerClient
from fallen_angel.scanner.ath_cache import AthCache
from fallen_angel.storage.stores import MemoryAthStore
from fallen_angel.utils.retry import RetryPolicy

NOW = datetime(2026, 3, 14, 10, 12, tzinfo=timezone.utc)


def _cache(ranges, sleeper, store=None) -> AthCache:
    return AthCache(
        store or MemoryAthStore(),
        ranges,
        window_days=30,
        refresh_margin=1.05,
        retry=RetryPolicy(attempts=3, delay_seconds=3.0),
        post_fetch_delay=2.0,
        sleep=sleeper,
        clock=lambda: NOW,
    )


async def test_first_observation_fetches_and_persists(ranges, sleeper):
    ranges.highs["MINT1"] = 2.0
    store = MemoryAthStore()
    cache = _cache(ranges, sleeper, store)

    record = await cache.get("MINT1", 0.5)

    assert record.ath_price == 2.0
    assert record.atl_price == pytest.approx(0.02)
    assert record.window_days == 30
    assert record.last_updated == NOW
    assert store.records["MINT1"] == record
    assert ranges.calls == ["MINT1"]
    assert sleeper.calls == [2.0]


async def test_cached_record_returned_without_fetch(ranges, sleeper, ath_record):
    store = MemoryAthStore()
    await store.put(ath_record("MINT1", 1.0))
    cache = _cache(ranges, sleeper, store)

    record = await cache.get("MINT1", 1.05)  # exactly at the margin

    assert record.ath_price == 1.0
    assert ranges.calls == []
    assert sleeper.calls == []


async def test_new_high_refetches_and_replaces(ranges, sleeper, ath_record):
    store = MemoryAthStore()
    await store.put(ath_record("MINT1", 1.0))
    ranges.highs["MINT1"] = 1.3
    cache = _cache(ranges, sleeper, store)

    record = await cache.get("MINT1", 1.2)

    assert record.ath_price == 1.3
    assert store.records["MINT1"].ath_price == 1.3
    assert ranges.calls == ["MINT1"]


async def test_refetch_failure_keeps_stale_record(ranges, sleeper, ath_record):
    store = MemoryAthStore()
    stale = ath_record("MINT1", 1.0)
    await store.put(stale)
    ranges.failures["MINT1"] = 10
    cache = _cache(ranges, sleeper, store)

    record = await cache.get("MINT1", 2.0)

    assert record == stale
    assert store.records["MINT1"] == stale
    assert len(ranges.calls) == 3


async def test_first_fetch_failure_returns_none_after_retry_budget(ranges, sleeper):
    ranges.failures["MINT1"] = 10
    store = MemoryAthStore()
    cache = _cache(ranges, sleeper, store)

    assert await cache.get("MINT1", 0.5) is None
    assert len(ranges.calls) == 3
    # two 3s back-offs between attempts, then the post-fetch pause
    assert sleeper.calls == [3.0, 3.0, 2.0]
    assert "MINT1" not in store.records


async def test_transient_failure_recovers_within_budget(ranges, sleeper):
    ranges.highs["MINT1"] = 4.0
    ranges.failures["MINT1"] = 2
    cache = _cache(ranges, sleeper)

    record = await cache.get("MINT1", 1.0)

    assert record.ath_price == 4.0
    assert len(ranges.calls) == 3


async def test_window_passed_to_provider(sleeper):
    seen = {}

    class RecordingRanges:
        async def price_range(self, token_id, time_from, time_to):
            seen["window"] = time_to - time_from
            raise RuntimeError("stop here")

    cache = _cache(RecordingRanges(), sleeper)
    try:
        await cache.get("MINT1", 1.0)
    except RuntimeError:
        pass
    assert seen["window"] == timedelta(days=30)


async def test_cached_never_fetches(ranges, sleeper):
    cache = _cache(ranges, sleeper)
    assert await cache.cached("MINT1") is None
    assert ranges.calls == []


async def test_malformed_refetch_keeps_stale_record(sleeper, ath_record):
    def handler(request):
        return httpx.Response(200, json={"price": {"highest": {"price": "n/a", "time": 1}}})

    store = MemoryAthStore()
    stale = ath_record("MINT1", 1.0)
    await store.put(stale)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        ranges = SolanaTrackerClient(http, api_key="k", base_url="https://st.test")
        record = await _cache(ranges, sleeper, store).get("MINT1", 2.0)

    assert record == stale
    assert sleeper.calls == [3.0, 3.0, 2.0]

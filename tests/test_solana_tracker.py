from datetime import datetime, timedelta, timezone

import httpx
import pytest

from fallen_angel.market.solana_tracker import RangeFetchError, SolanaTrackerClient, parse_range

MINT = "So1anaFa11enAnge1Mint1111111111111111111111"
NOW = datetime(2026, 3, 14, 10, 12, tzinfo=timezone.utc)

RANGE = {
    "price": {
        "highest": {"price": 0.021, "marketcap": 2_100_000, "time": 1_771_200_000},
        "lowest": {"price": 0.0009, "marketcap": 90_000, "time": 1_772_900_000},
    }
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_range():
    rng = parse_range(RANGE)

    assert rng.highest.price == 0.021
    assert rng.highest.market_cap == 2_100_000
    assert rng.highest.time == datetime.fromtimestamp(1_771_200_000, tz=timezone.utc)
    assert rng.lowest.price == 0.0009


def test_parse_range_without_lowest():
    rng = parse_range({"price": {"highest": {"price": 1.5}}})

    assert rng.highest.time is None
    assert rng.lowest is None


@pytest.mark.parametrize(
    "payload",
    [
        {"error": "Token not found"},
        {"price": {}},
        {"price": {"highest": {"price": 0}}},
        {"price": {"highest": {"price": "n/a", "time": 1}}},
        {"price": {"highest": {"price": 1.0, "time": "yesterday"}}},
        {"price": {"highest": {"price": 1.0, "marketcap": "lots"}}},
        {"price": "unavailable"},
    ],
)
def test_parse_range_rejects_unusable_payloads(payload):
    with pytest.raises(RangeFetchError):
        parse_range(payload)


async def test_price_range_sends_window_as_unix_seconds():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["key"] = request.headers["x-api-key"]
        return httpx.Response(200, json=RANGE)

    async with _client(handler) as http:
        tracker = SolanaTrackerClient(http, api_key="secret", base_url="https://st.test")
        rng = await tracker.price_range(MINT, NOW - timedelta(days=30), NOW)

    assert seen["path"] == "/price/history/range"
    assert seen["params"] == {
        "token": MINT,
        "time_from": str(int((NOW - timedelta(days=30)).timestamp())),
        "time_to": str(int(NOW.timestamp())),
    }
    assert seen["key"] == "secret"
    assert rng.highest.price == 0.021


async def test_error_body_with_http_error_status_is_provider_error():
    def handler(request):
        return httpx.Response(429, json={"error": "Rate limit exceeded"})

    async with _client(handler) as http:
        tracker = SolanaTrackerClient(http, api_key="k", base_url="https://st.test")
        with pytest.raises(RangeFetchError, match="Rate limit"):
            await tracker.price_range(MINT, NOW - timedelta(days=30), NOW)


async def test_non_json_failure_raises_http_error():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    async with _client(handler) as http:
        tracker = SolanaTrackerClient(http, api_key="k", base_url="https://st.test")
        with pytest.raises(httpx.HTTPStatusError):
            await tracker.price_range(MINT, NOW - timedelta(days=30), NOW)

"""Solana Tracker client for historical high/low over a time range."""

import logging
from datetime import datetime, timezone

import httpx

from fallen_angel.config import settings
from fallen_angel.market.base import RangeProvider
from fallen_angel.market.models import PricePoint, PriceRange
from fallen_angel.utils.retry import ProviderError

logger = logging.getLogger(__name__)

RANGE_PATH = "/price/history/range"


class RangeFetchError(ProviderError):
    pass


def _point(raw: dict | None) -> PricePoint | None:
    if not raw or raw.get("price") is None:
        return None
    ts = raw.get("time")
    return PricePoint(
        price=float(raw["price"]),
        market_cap=raw.get("marketcap"),
        time=datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None,
    )


def parse_range(data: dict) -> PriceRange:
    if data.get("error"):
        raise RangeFetchError(str(data["error"]))

    price = data.get("price") or {}
    try:
        highest = _point(price.get("highest"))
        lowest = _point(price.get("lowest"))
    except (AttributeError, TypeError, ValueError, OverflowError, OSError) as exc:
        # ValueError also covers pydantic ValidationError
        raise RangeFetchError(f"malformed price range: {exc}") from exc
    if highest is None or highest.price <= 0:
        raise RangeFetchError("response has no positive highest price")

    return PriceRange(highest=highest, lowest=lowest)


class SolanaTrackerClient(RangeProvider):
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key if api_key is not None else settings.solana_tracker_api_key
        self._base_url = (base_url or settings.solana_tracker_base_url).rstrip("/")

    async def price_range(
        self, token_id: str, time_from: datetime, time_to: datetime
    ) -> PriceRange:
        resp = await self._client.get(
            f"{self._base_url}{RANGE_PATH}",
            params={
                "token": token_id,
                "time_from": int(time_from.timestamp()),
                "time_to": int(time_to.timestamp()),
            },
            headers={"x-api-key": self._api_key},
        )
        # The API reports failures as {"error": ...}, sometimes with a 4xx
        try:
            data = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise RangeFetchError(f"non-JSON response ({resp.status_code})")
        if not isinstance(data, dict):
            raise RangeFetchError("unexpected response shape")
        if not data.get("error"):
            resp.raise_for_status()
        return parse_range(data)

"""Jupiter tokens API client: current price, market cap and windowed stats."""

import logging

import httpx

from fallen_angel.config import settings
from fallen_angel.market.base import QuoteProvider
from fallen_angel.market.models import TokenQuote, WindowStats
from fallen_angel.utils.retry import ProviderError, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

SEARCH_PATH = "/tokens/v2/search"


class QuoteFetchError(ProviderError):
    pass


def extract_stats(raw: dict | None) -> WindowStats | None:
    """Map a Jupiter ``statsXh`` block onto WindowStats."""
    if not raw:
        return None
    return WindowStats(
        price_change_pct=raw.get("priceChange"),
        volume_change_pct=raw.get("volumeChange"),
        holder_change_pct=raw.get("holderChange"),
        buy_volume=raw.get("buyVolume"),
        sell_volume=raw.get("sellVolume"),
        num_buys=raw.get("numBuys"),
        num_sells=raw.get("numSells"),
        num_traders=raw.get("numTraders"),
        num_net_buyers=raw.get("numNetBuyers"),
        num_organic_buyers=raw.get("numOrganicBuyers"),
    )


def parse_token(token_id: str, data: list | None) -> TokenQuote | None:
    """Pick the matching token from a search response.

    Returns None when the token is unknown or has no usable price.
    """
    if not data:
        return None
    token = next((t for t in data if t.get("id") == token_id), data[0])

    try:
        price = float(token.get("usdPrice") or 0)
    except (TypeError, ValueError):
        price = 0.0
    if price <= 0:
        return None

    return TokenQuote(
        id=token.get("id") or token_id,
        symbol=token.get("symbol") or "",
        name=token.get("name") or "",
        price=price,
        market_cap=token.get("mcap"),
        holder_count=token.get("holderCount"),
        organic_score=token.get("organicScore"),
        stats_1h=extract_stats(token.get("stats1h")),
        stats_6h=extract_stats(token.get("stats6h")),
        stats_24h=extract_stats(token.get("stats24h")),
    )


class JupiterClient(QuoteProvider):
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        base_url: str | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key if api_key is not None else settings.jupiter_api_key
        self._base_url = (base_url or settings.jupiter_base_url).rstrip("/")
        self._retry = retry or RetryPolicy(
            attempts=settings.quote_retry_attempts,
            delay_seconds=settings.quote_retry_delay_seconds,
        )

    async def _search(self, token_id: str) -> list:
        resp = await self._client.get(
            f"{self._base_url}{SEARCH_PATH}",
            params={"query": token_id},
            headers={"x-api-key": self._api_key},
        )
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, dict) and data.get("error"):
            raise QuoteFetchError(str(data["error"]))
        return data if isinstance(data, list) else []

    async def quote(self, token_id: str) -> TokenQuote | None:
        data = await call_with_retry(
            lambda: self._search(token_id),
            self._retry,
            what=f"Jupiter quote for {token_id[:8]}",
        )
        quote = parse_token(token_id, data)
        if quote is None:
            logger.info("No quote data found for %s", token_id[:8])
        return quote

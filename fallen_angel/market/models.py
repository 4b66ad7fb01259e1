"""Pydantic models for data-provider payloads."""

from datetime import datetime

from pydantic import BaseModel


class WindowStats(BaseModel):
    """Trading statistics over one window (1h / 6h / 24h).

    Providers omit fields freely, so every field is optional.
    """

    price_change_pct: float | None = None
    volume_change_pct: float | None = None
    holder_change_pct: float | None = None
    buy_volume: float | None = None
    sell_volume: float | None = None
    num_buys: int | None = None
    num_sells: int | None = None
    num_traders: int | None = None
    num_net_buyers: int | None = None
    num_organic_buyers: int | None = None


class TokenQuote(BaseModel):
    id: str
    symbol: str = ""
    name: str = ""
    price: float
    market_cap: float | None = None
    holder_count: int | None = None
    organic_score: float | None = None
    stats_1h: WindowStats | None = None
    stats_6h: WindowStats | None = None
    stats_24h: WindowStats | None = None


class PricePoint(BaseModel):
    price: float
    market_cap: float | None = None
    time: datetime | None = None


class PriceRange(BaseModel):
    highest: PricePoint
    lowest: PricePoint | None = None

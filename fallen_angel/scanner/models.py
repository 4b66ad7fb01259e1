"""Domain models for the fallen-angel scanner."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from fallen_angel.market.models import WindowStats


class TokenSnapshot(BaseModel):
    """One token as seen by one scan. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str = ""
    name: str = ""
    market_cap: float | None = None
    current_price: float
    holder_count: int | None = None
    organic_score: float | None = None
    ath_price: float | None = None
    ath_market_cap: float | None = None
    drawdown_pct: float | None = None
    stats_1h: WindowStats | None = None
    stats_6h: WindowStats | None = None
    stats_24h: WindowStats | None = None
    fetched_at: datetime


class AthRecord(BaseModel):
    token_id: str
    ath_price: float
    ath_market_cap: float | None = None
    ath_time: datetime | None = None
    atl_price: float | None = None
    atl_market_cap: float | None = None
    atl_time: datetime | None = None
    last_updated: datetime
    window_days: int = 30


class MonitoringEntry(BaseModel):
    token_id: str
    symbol: str = ""
    last_drawdown_pct: float
    last_seen_at: datetime


class CooldownEntry(BaseModel):
    token_id: str
    symbol: str = ""
    last_alert_at: datetime
    cooldown_until: datetime
    drawdown_at_alert: float | None = None


@dataclass(frozen=True)
class CooldownStatus:
    active: bool
    until: datetime | None = None
    drawdown_at_alert: float | None = None


COOLDOWN_INACTIVE = CooldownStatus(active=False)


class AlertToken(BaseModel):
    id: str
    symbol: str = ""
    name: str = ""
    market_cap: float | None = None
    current_price: float
    drawdown_pct: float | None = None
    ath_price: float | None = None
    holder_count: int | None = None
    organic_score: float | None = None


class AlertStats(BaseModel):
    volume_change_pct: float | None = None
    price_change_pct: float | None = None
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    num_buys: int | None = None
    num_sells: int | None = None
    num_traders: int | None = None
    num_net_buyers: int | None = None


class BreakoutInfo(BaseModel):
    previous_drawdown_pct: float | None = None
    current_drawdown_pct: float


class Alert(BaseModel):
    timestamp: datetime
    is_breakout: bool
    is_micro_cap: bool
    token: AlertToken
    stats: AlertStats
    breakout: BreakoutInfo | None = None

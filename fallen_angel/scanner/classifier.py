"""Spike classification.

Given one token snapshot plus its cooldown and monitoring state, decide
between NoSpike, Spike and Breakout. First matching rule wins:

1. Breakout: drawdown back under the fallen-angel line while the token was in
   cooldown, or was monitored last cycle at/above the line.
2. Not a fallen angel (drawdown missing or under the line).
3. Cooldown active.
4. No 1h volume-change data.
5. Volume change under the tier threshold (micro-cap tokens need more).
6. Sell pressure (buy volume <= sell volume).
7. Spike.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from fallen_angel.config import Settings, settings
from fallen_angel.market.models import WindowStats
from fallen_angel.scanner.models import CooldownStatus, MonitoringEntry, TokenSnapshot


@dataclass(frozen=True)
class Thresholds:
    min_drawdown_pct: float = 60.0
    min_volume_change_pct: float = 15.0
    min_volume_change_pct_microcap: float = 50.0
    microcap_mcap: float = 100_000.0

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "Thresholds":
        return cls(
            min_drawdown_pct=cfg.min_drawdown_pct,
            min_volume_change_pct=cfg.min_volume_change_pct,
            min_volume_change_pct_microcap=cfg.min_volume_change_pct_microcap,
            microcap_mcap=cfg.microcap_mcap_threshold,
        )

    def is_micro_cap(self, market_cap: float | None) -> bool:
        # Unknown market cap gets the regular threshold
        return market_cap is not None and market_cap < self.microcap_mcap

    def required_volume_change(self, micro_cap: bool) -> float:
        return self.min_volume_change_pct_microcap if micro_cap else self.min_volume_change_pct


@dataclass(frozen=True)
class NoSpike:
    reason: str


@dataclass(frozen=True)
class Spike:
    stats: WindowStats
    is_micro_cap: bool


@dataclass(frozen=True)
class Breakout:
    previous_drawdown: float | None
    current_drawdown: float
    is_micro_cap: bool
    stats: WindowStats = field(default_factory=WindowStats)


Outcome = Union[NoSpike, Spike, Breakout]


def _fmt_pct(value: float | None) -> str:
    return f"{value:.2f}%" if value is not None else "N/A"


def classify(
    snapshot: TokenSnapshot,
    cooldown: CooldownStatus,
    monitored: MonitoringEntry | None,
    thresholds: Thresholds | None = None,
) -> Outcome:
    t = thresholds or Thresholds()
    drawdown = snapshot.drawdown_pct
    stats = snapshot.stats_1h or WindowStats()
    micro = t.is_micro_cap(snapshot.market_cap)

    if drawdown is not None and drawdown < t.min_drawdown_pct:
        was_fallen = monitored is not None and monitored.last_drawdown_pct >= t.min_drawdown_pct
        if cooldown.active or was_fallen:
            previous = cooldown.drawdown_at_alert if cooldown.active else monitored.last_drawdown_pct
            return Breakout(
                previous_drawdown=previous,
                current_drawdown=drawdown,
                is_micro_cap=micro,
                stats=stats,
            )

    if drawdown is None or drawdown < t.min_drawdown_pct:
        return NoSpike(
            f"Not a fallen angel ({_fmt_pct(drawdown)} down < {t.min_drawdown_pct:g}%)"
        )

    if cooldown.active:
        until = cooldown.until.astimezone().strftime("%H:%M") if cooldown.until else "?"
        return NoSpike(f"In cooldown until {until}")

    volume_change = stats.volume_change_pct
    if volume_change is None:
        return NoSpike("No volume change data")

    required = t.required_volume_change(micro)
    if volume_change < required:
        tier = "Micro-cap volume" if micro else "Volume"
        return NoSpike(f"{tier} change {volume_change:.2f}% < {required:g}% threshold")

    buy_volume = stats.buy_volume or 0.0
    sell_volume = stats.sell_volume or 0.0
    if buy_volume <= sell_volume:
        return NoSpike(f"Sell pressure (Buy: ${buy_volume:,.0f} <= Sell: ${sell_volume:,.0f})")

    return Spike(stats=stats, is_micro_cap=micro)

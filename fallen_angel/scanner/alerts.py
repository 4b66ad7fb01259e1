"""Alert record construction and formatting for console / Telegram."""

from __future__ import annotations

import html
from datetime import datetime

from fallen_angel.config import settings
from fallen_angel.scanner.classifier import Breakout, Spike
from fallen_angel.scanner.models import (
    Alert,
    AlertStats,
    AlertToken,
    BreakoutInfo,
    TokenSnapshot,
)


def build_alert(snapshot: TokenSnapshot, outcome: Spike | Breakout, now: datetime) -> Alert:
    stats = outcome.stats
    breakout = None
    if isinstance(outcome, Breakout):
        breakout = BreakoutInfo(
            previous_drawdown_pct=outcome.previous_drawdown,
            current_drawdown_pct=outcome.current_drawdown,
        )

    return Alert(
        timestamp=now,
        is_breakout=breakout is not None,
        is_micro_cap=outcome.is_micro_cap,
        token=AlertToken(
            id=snapshot.id,
            symbol=snapshot.symbol,
            name=snapshot.name,
            market_cap=snapshot.market_cap,
            current_price=snapshot.current_price,
            drawdown_pct=snapshot.drawdown_pct,
            ath_price=snapshot.ath_price,
            holder_count=snapshot.holder_count,
            organic_score=snapshot.organic_score,
        ),
        stats=AlertStats(
            volume_change_pct=stats.volume_change_pct,
            price_change_pct=stats.price_change_pct,
            buy_volume=stats.buy_volume or 0.0,
            sell_volume=stats.sell_volume or 0.0,
            num_buys=stats.num_buys,
            num_sells=stats.num_sells,
            num_traders=stats.num_traders,
            num_net_buyers=stats.num_net_buyers,
        ),
        breakout=breakout,
    )


def _fmt_mcap(n: float | None) -> str:
    if n is None:
        return "N/A"
    if n >= 1_000_000:
        return f"${n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"${n / 1_000:.1f}K"
    return f"${n:.0f}"


def _fmt_change(value: float | None) -> str:
    return f"{value:+.2f}%" if value is not None else "N/A"


def _fmt_count(value: int | float | None) -> str:
    return f"{value:,}" if value is not None else "N/A"


def format_alert_lines(alert: Alert, microcap_mcap: float | None = None) -> list[str]:
    """Plain-text alert block for the console log."""
    if microcap_mcap is None:
        microcap_mcap = settings.microcap_mcap_threshold
    t, s = alert.token, alert.stats
    lines = [
        "🚀🤯🚀 BREAKOUT DETECTED! 🚀🤯🚀" if alert.is_breakout else "🔥🔥🔥 VOLUME SPIKE DETECTED! 🔥🔥🔥",
    ]
    if alert.is_micro_cap:
        lines.append(f"⚠️  MICRO-CAP (<{_fmt_mcap(microcap_mcap)})")
    lines += [
        f"Token: ${t.symbol} ({t.name})",
        f"Contract: {t.id}",
        f"Price: ${t.current_price:.8f}",
        f"Market Cap: {_fmt_mcap(t.market_cap)}",
        f"Drawdown from ATH: {_fmt_change(t.drawdown_pct).lstrip('+')}",
    ]
    if alert.breakout:
        lines.append(
            f"Breakout: {_fmt_change(alert.breakout.previous_drawdown_pct).lstrip('+')} "
            f"-> {alert.breakout.current_drawdown_pct:.2f}% down"
        )
    lines += [
        f"Holder Count: {_fmt_count(t.holder_count)}",
        f"Organic Score: {t.organic_score if t.organic_score is not None else 'N/A'}",
        "1H Stats:",
        f"  Volume Change: {_fmt_change(s.volume_change_pct)}",
        f"  Price Change: {_fmt_change(s.price_change_pct)}",
        f"  Buy Volume: ${s.buy_volume:,.0f}",
        f"  Sell Volume: ${s.sell_volume:,.0f}",
        f"  Net Buyers: {_fmt_count(s.num_net_buyers)}",
        f"  Traders: {_fmt_count(s.num_traders)}",
    ]
    return lines


def format_alert_html(alert: Alert) -> str:
    """Telegram (HTML parse mode) alert message."""
    t, s = alert.token, alert.stats
    title = "🚀 <b>BREAKOUT" if alert.is_breakout else "🔥 <b>VOLUME SPIKE"
    micro = " (micro-cap)" if alert.is_micro_cap else ""

    text = (
        f"{title}: ${html.escape(t.symbol)}</b>{micro}\n\n"
        f"Price: ${t.current_price:.8f} | MCap: {_fmt_mcap(t.market_cap)}\n"
        f"Drawdown from ATH: {_fmt_change(t.drawdown_pct).lstrip('+')}\n"
    )
    if alert.breakout:
        text += (
            f"Was {_fmt_change(alert.breakout.previous_drawdown_pct).lstrip('+')} down, "
            f"now {alert.breakout.current_drawdown_pct:.2f}%\n"
        )
    text += (
        f"1h Vol: {_fmt_change(s.volume_change_pct)} | Price: {_fmt_change(s.price_change_pct)}\n"
        f"Buy ${s.buy_volume:,.0f} / Sell ${s.sell_volume:,.0f} | "
        f"Net buyers: {_fmt_count(s.num_net_buyers)}\n\n"
        f"<code>{t.id}</code>"
    )
    return text

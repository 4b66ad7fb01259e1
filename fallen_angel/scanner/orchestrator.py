"""One scan cycle: prune -> pre-filter -> fetch -> classify -> persist.

Pre-filtering uses only the cached ATH and a cheap price lookup, so full
quotes (and ATH range fetches) are spent only on tokens that are fallen
angels, already tracked, or seen for the first time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Sequence

from fallen_angel.config import settings
from fallen_angel.delivery.base import AlertChannel
from fallen_angel.market.base import QuoteProvider
from fallen_angel.scanner.alerts import build_alert
from fallen_angel.scanner.ath_cache import AthCache
from fallen_angel.scanner.classifier import (
    Breakout,
    NoSpike,
    Outcome,
    Spike,
    Thresholds,
    classify,
)
from fallen_angel.scanner.cooldown import next_cooldown_milestone
from fallen_angel.scanner.drawdown import compute_drawdown, is_fallen_angel
from fallen_angel.scanner.models import (
    Alert,
    CooldownEntry,
    MonitoringEntry,
    TokenSnapshot,
)
from fallen_angel.scanner.watchlist import WatchlistError
from fallen_angel.storage.stores import (
    AlertLog,
    CooldownStore,
    MonitoringStore,
    SnapshotStore,
)

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Timezone-aware local time; cooldown milestones follow the wall clock."""
    return datetime.now().astimezone()


@dataclass
class SkippedToken:
    token_id: str
    reason: str
    drawdown_pct: float | None = None


@dataclass
class PrefilterResult:
    confirmed: list[str] = field(default_factory=list)
    new: list[str] = field(default_factory=list)
    skipped: list[SkippedToken] = field(default_factory=list)


@dataclass
class ScanReport:
    started_at: datetime
    watchlist_size: int = 0
    pruned: list[str] = field(default_factory=list)
    prefilter: PrefilterResult | None = None
    fetch_set: list[str] = field(default_factory=list)
    snapshots: list[TokenSnapshot] = field(default_factory=list)
    outcomes: dict[str, Outcome] = field(default_factory=dict)
    alerts: list[Alert] = field(default_factory=list)


class ScanOrchestrator:
    def __init__(
        self,
        *,
        watchlist: Callable[[], list[str]],
        quotes: QuoteProvider,
        ath_cache: AthCache,
        monitoring: MonitoringStore,
        cooldowns: CooldownStore,
        alert_log: AlertLog,
        snapshots: SnapshotStore,
        channels: Sequence[AlertChannel] = (),
        thresholds: Thresholds | None = None,
        prefilter_delay: float | None = None,
        fetch_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._watchlist = watchlist
        self._quotes = quotes
        self._ath = ath_cache
        self._monitoring = monitoring
        self._cooldowns = cooldowns
        self._alert_log = alert_log
        self._snapshots = snapshots
        self._channels = list(channels)
        self._thresholds = thresholds or Thresholds.from_settings()
        self._prefilter_delay = (
            settings.prefilter_delay_seconds if prefilter_delay is None else prefilter_delay
        )
        self._fetch_delay = settings.fetch_delay_seconds if fetch_delay is None else fetch_delay
        self._sleep = sleep
        self._clock = clock

    async def run_cycle(self) -> ScanReport:
        report = ScanReport(started_at=self._clock())
        logger.info("═" * 60)
        logger.info("Fallen angel scan started at %s", report.started_at.strftime("%Y-%m-%d %H:%M:%S"))

        try:
            watchlist = self._watchlist()
        except WatchlistError as exc:
            logger.error("%s, skipping scan", exc)
            return report

        report.watchlist_size = len(watchlist)
        if not watchlist:
            logger.info("No tokens in watchlist. Skipping scan.")
            return report

        report.pruned = await self.prune(watchlist, report.started_at)

        report.prefilter = await self.prefilter(watchlist)
        report.fetch_set, new_ids = await self.build_fetch_set(watchlist, report.prefilter)
        if not report.fetch_set:
            logger.info("No tokens meet monitoring criteria.")
            return report

        report.snapshots = await self.fetch_all(report.fetch_set, new_ids)
        if not report.snapshots:
            logger.info("No qualifying tokens after filtering.")
            return report

        report.alerts = await self.classify_all(report.snapshots, report.outcomes)
        await self.persist(report.snapshots, report.alerts)

        logger.info("Scan completed: %d tokens checked, %d alert(s)", len(report.snapshots), len(report.alerts))
        logger.info("═" * 60)
        return report

    async def prune(self, watchlist: list[str], now: datetime) -> list[str]:
        """Drop state for tokens that left the watchlist, and expired cooldowns."""
        removed_monitoring = await self._monitoring.prune_except(watchlist)
        removed_cooldowns = await self._cooldowns.prune_except(watchlist)
        expired = await self._cooldowns.prune_expired(now)

        if removed_monitoring or removed_cooldowns:
            logger.info(
                "Cleaning up %d token(s) removed from watchlist...",
                len({e.token_id for e in [*removed_monitoring, *removed_cooldowns]}),
            )
        for entry in removed_monitoring:
            logger.info("  - Removed %s from monitoring", entry.symbol or entry.token_id[:8])
        for entry in removed_cooldowns:
            logger.info("  - Removed %s from cooldown", entry.symbol or entry.token_id[:8])
        if expired:
            logger.debug("Dropped %d expired cooldown(s)", len(expired))

        return sorted({e.token_id for e in [*removed_monitoring, *removed_cooldowns]})

    async def prefilter(self, watchlist: list[str]) -> PrefilterResult:
        """Split the watchlist into confirmed fallen angels, new tokens and skips."""
        logger.info("Pre-flight check: filtering watchlist for fallen angels...")
        result = PrefilterResult()
        total = len(watchlist)

        for i, token_id in enumerate(watchlist, 1):
            ath = await self._ath.cached(token_id)
            if ath is None:
                logger.info("[%d/%d] %s... - NEW TOKEN -> need to fetch ATH", i, total, token_id[:8])
                result.new.append(token_id)
                continue

            try:
                price = await self._quotes.quick_price(token_id)
            except Exception as exc:
                logger.warning("  Error getting price for %s: %s", token_id[:8], exc)
                price = None

            if price is None:
                logger.info("[%d/%d] %s... - could not fetch price, skipping", i, total, token_id[:8])
                result.skipped.append(SkippedToken(token_id, "Could not fetch price"))
            else:
                drawdown = compute_drawdown(price, ath)
                if is_fallen_angel(drawdown, self._thresholds.min_drawdown_pct):
                    logger.info("[%d/%d] %s... - %.2f%% down from ATH -> MONITOR", i, total, token_id[:8], drawdown)
                    result.confirmed.append(token_id)
                else:
                    logger.info(
                        "[%d/%d] %s... - %s down from ATH -> SKIP (< %g%%)",
                        i, total, token_id[:8],
                        f"{drawdown:.2f}%" if drawdown is not None else "N/A",
                        self._thresholds.min_drawdown_pct,
                    )
                    result.skipped.append(SkippedToken(token_id, "Insufficient drawdown", drawdown))

            if i < total:
                await self._sleep(self._prefilter_delay)

        logger.info(
            "Filter results: %d monitoring, %d new (checked after ATH fetch), %d skipped",
            len(result.confirmed), len(result.new), len(result.skipped),
        )
        return result

    async def build_fetch_set(
        self, watchlist: list[str], prefilter: PrefilterResult
    ) -> tuple[list[str], set[str]]:
        """Confirmed + monitored + cooling-down tokens, then new ones.

        A tracked token is never treated as new, so it always reaches the
        classifier and can break out.
        """
        monitored = await self._monitoring.load()
        cooling = await self._cooldowns.load()

        tracked = [
            *prefilter.confirmed,
            *(t for t in watchlist if t in monitored),
            *(t for t in watchlist if t in cooling),
        ]
        fetch_set = list(dict.fromkeys(tracked))
        new_ids = [t for t in dict.fromkeys(prefilter.new) if t not in set(fetch_set)]
        return fetch_set + new_ids, set(new_ids)

    async def fetch_token(self, token_id: str) -> TokenSnapshot | None:
        quote = await self._quotes.quote(token_id)
        if quote is None:
            return None

        ath = await self._ath.get(token_id, quote.price)
        return TokenSnapshot(
            id=token_id,
            symbol=quote.symbol,
            name=quote.name,
            market_cap=quote.market_cap,
            current_price=quote.price,
            holder_count=quote.holder_count,
            organic_score=quote.organic_score,
            ath_price=ath.ath_price if ath else None,
            ath_market_cap=ath.ath_market_cap if ath else None,
            drawdown_pct=compute_drawdown(quote.price, ath),
            stats_1h=quote.stats_1h,
            stats_6h=quote.stats_6h,
            stats_24h=quote.stats_24h,
            fetched_at=self._clock(),
        )

    async def fetch_all(self, fetch_set: list[str], new_ids: set[str]) -> list[TokenSnapshot]:
        logger.info("Fetching detailed data for %d tokens...", len(fetch_set))
        kept: list[TokenSnapshot] = []
        total = len(fetch_set)
        threshold = self._thresholds.min_drawdown_pct

        for i, token_id in enumerate(fetch_set, 1):
            is_new = token_id in new_ids
            logger.info("[%d/%d] Fetching %s...%s", i, total, token_id[:8], " (NEW - checking drawdown)" if is_new else "")

            try:
                snap = await self.fetch_token(token_id)
            except Exception as exc:
                logger.warning("Error fetching token data for %s: %s", token_id[:8], exc)
                snap = None

            if snap is not None:
                dd = f"{snap.drawdown_pct:.2f}% from ATH" if snap.drawdown_pct is not None else "ATH data pending"
                micro = ", MICRO-CAP" if self._thresholds.is_micro_cap(snap.market_cap) else ""
                if is_new and not is_fallen_angel(snap.drawdown_pct, threshold):
                    logger.info("%s fetched (%s) -> DOES NOT QUALIFY (< %g%%)", snap.symbol, dd, threshold)
                else:
                    kept.append(snap)
                    logger.info("%s fetched (%s%s)%s", snap.symbol, dd, micro, " -> QUALIFIES" if is_new else "")

            if i < total:
                await self._sleep(self._fetch_delay)

        logger.info("Completed! Monitoring %d/%d tokens", len(kept), total)
        return kept

    async def evaluate(self, snap: TokenSnapshot, now: datetime) -> Outcome:
        """Classify one token and apply the resulting state changes."""
        cooldown = await self._cooldowns.status(snap.id, now)
        monitored = await self._monitoring.get(snap.id)
        outcome = classify(snap, cooldown, monitored, self._thresholds)
        label = snap.symbol or snap.id[:8]

        if isinstance(outcome, Breakout):
            await self._cooldowns.remove(snap.id)
            await self._monitoring.remove(snap.id)
            logger.info(
                "%s BREAKOUT - removed from monitoring (broke through %g%% threshold)",
                label, self._thresholds.min_drawdown_pct,
            )
        elif isinstance(outcome, Spike):
            until = next_cooldown_milestone(now)
            await self._cooldowns.upsert(
                CooldownEntry(
                    token_id=snap.id,
                    symbol=snap.symbol,
                    last_alert_at=now,
                    cooldown_until=until,
                    drawdown_at_alert=snap.drawdown_pct,
                )
            )
            logger.info("%s added to cooldown until %s", label, until.strftime("%H:%M"))
        else:
            logger.info("✓ %s: No spike (%s)", label, outcome.reason)
            if is_fallen_angel(snap.drawdown_pct, self._thresholds.min_drawdown_pct):
                await self._monitoring.upsert(
                    MonitoringEntry(
                        token_id=snap.id,
                        symbol=snap.symbol,
                        last_drawdown_pct=snap.drawdown_pct,
                        last_seen_at=now,
                    )
                )
            elif monitored is not None:
                await self._monitoring.remove(snap.id)

        return outcome

    async def classify_all(
        self, snapshots: list[TokenSnapshot], outcomes: dict[str, Outcome] | None = None
    ) -> list[Alert]:
        logger.info("Checking for volume spikes...")
        alerts: list[Alert] = []
        now = self._clock()

        for snap in snapshots:
            try:
                outcome = await self.evaluate(snap, now)
            except Exception:
                logger.exception("Classification failed for %s", snap.id[:8])
                continue

            if outcomes is not None:
                outcomes[snap.id] = outcome
            if isinstance(outcome, NoSpike):
                continue

            alert = build_alert(snap, outcome, now)
            alerts.append(alert)
            await self._notify(alert)

        if alerts:
            logger.info("Total alerts: %d", len(alerts))
        else:
            logger.info("No volume spikes detected in this cycle.")
        return alerts

    async def persist(self, snapshots: list[TokenSnapshot], alerts: list[Alert]) -> None:
        timestamp = self._clock()
        await self._alert_log.append(alerts)
        await self._snapshots.append_history(timestamp, snapshots)
        await self._snapshots.save_latest(timestamp, snapshots)

    async def _notify(self, alert: Alert) -> None:
        for channel in self._channels:
            try:
                await channel.send_alert(alert)
            except Exception as exc:
                logger.warning("Alert delivery via %s failed: %s", type(channel).__name__, exc)

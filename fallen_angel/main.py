"""Entry point: wire providers, stores and delivery, then run the scheduler.

Usage:
    fallen-angel            # scan every SCAN_INTERVAL_SECONDS until Ctrl+C
    fallen-angel --once     # single scan, then exit
"""

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial

import httpx

from fallen_angel.config import ConfigError, require_credentials, settings
from fallen_angel.delivery.base import AlertChannel
from fallen_angel.delivery.console import ConsoleDelivery
from fallen_angel.delivery.telegram_bot import TelegramDelivery, is_telegram_configured
from fallen_angel.market.jupiter import JupiterClient
from fallen_angel.market.solana_tracker import SolanaTrackerClient
from fallen_angel.scanner.ath_cache import AthCache
from fallen_angel.scanner.orchestrator import ScanOrchestrator
from fallen_angel.scanner.scheduler import ScanScheduler
from fallen_angel.scanner.watchlist import WatchlistError, load_watchlist
from fallen_angel.storage.database import engine, init_db
from fallen_angel.storage.repository import (
    SqlAlertLog,
    SqlAthStore,
    SqlCooldownStore,
    SqlMonitoringStore,
    SqlSnapshotStore,
)
from fallen_angel.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _log_banner() -> None:
    logger.info("═" * 60)
    logger.info("FALLEN ANGEL SCANNER: live monitoring")
    logger.info("Scan interval: every %ds", settings.scan_interval_seconds)
    logger.info(
        "Volume spike: regular (>= $%s mcap) %g%% | micro-cap %g%%",
        f"{settings.microcap_mcap_threshold:,.0f}",
        settings.min_volume_change_pct,
        settings.min_volume_change_pct_microcap,
    )
    logger.info("Targeting tokens down >= %g%% from %d-day ATH", settings.min_drawdown_pct, settings.ath_window_days)
    logger.info("Requires: buy volume > sell volume")
    logger.info("Cooldown: until next :00 or :30 milestone")
    logger.info("Breakout: drawdown back under %g%% while monitored or in cooldown", settings.min_drawdown_pct)
    logger.info("Press Ctrl+C to stop")
    logger.info("═" * 60)


def _build_channels() -> list[AlertChannel]:
    channels: list[AlertChannel] = [ConsoleDelivery()]
    if is_telegram_configured():
        channels.append(TelegramDelivery())
        logger.info("Telegram delivery enabled")
    else:
        logger.info("Telegram not configured, alerts go to the console only")
    return channels


def _install_signal_handlers(scheduler: ScanScheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops lack add_signal_handler
            pass


async def main(once: bool = False) -> None:
    require_credentials(settings)
    # Unreadable watchlist at startup is fatal; later cycles just skip
    load_watchlist(settings.watchlist_path)

    await init_db()
    logger.info("Database initialized")

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        orchestrator = ScanOrchestrator(
            watchlist=partial(load_watchlist, settings.watchlist_path),
            quotes=JupiterClient(http),
            ath_cache=AthCache(SqlAthStore(), SolanaTrackerClient(http)),
            monitoring=SqlMonitoringStore(),
            cooldowns=SqlCooldownStore(),
            alert_log=SqlAlertLog(),
            snapshots=SqlSnapshotStore(),
            channels=_build_channels(),
        )

        if once:
            await orchestrator.run_cycle()
        else:
            _log_banner()
            scheduler = ScanScheduler(
                orchestrator.run_cycle,
                settings.scan_interval_seconds,
                countdown_seconds=settings.countdown_log_seconds,
            )
            _install_signal_handlers(scheduler)
            await scheduler.run()

    await engine.dispose()


def run() -> None:
    parser = argparse.ArgumentParser(description="Fallen angel token spike scanner")
    parser.add_argument("--once", action="store_true", help="run a single scan and exit")
    args = parser.parse_args()

    setup_logging(settings.log_level)
    try:
        asyncio.run(main(once=args.once))
    except (ConfigError, WatchlistError) as exc:
        logger.critical("Startup failed: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()

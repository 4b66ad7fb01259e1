"""SQLAlchemy-backed stores.

Every write is its own committed transaction. Write failures are logged and
swallowed so a cycle can finish on its in-memory results; reads propagate.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fallen_angel.scanner.models import (
    Alert,
    AthRecord,
    CooldownEntry,
    MonitoringEntry,
    TokenSnapshot,
)
from fallen_angel.storage.database import async_session
from fallen_angel.storage.models import (
    AlertRow,
    AthRecordRow,
    CooldownRow,
    LatestSnapshotRow,
    MonitoredTokenRow,
    ScanHistoryRow,
)
from fallen_angel.storage.stores import (
    AlertLog,
    AthStore,
    CooldownStore,
    MonitoringStore,
    SnapshotStore,
)

logger = logging.getLogger(__name__)

_LATEST_ID = 1


def _to_db(dt: datetime | None) -> datetime | None:
    """Aware datetime -> naive UTC for storage."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc)


def _snapshots_json(snapshots: list[TokenSnapshot]) -> str:
    return json.dumps([s.model_dump(mode="json") for s in snapshots])


def _snapshots_from_json(raw: str) -> list[TokenSnapshot]:
    return [TokenSnapshot.model_validate(item) for item in json.loads(raw or "[]")]


class _SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session = session_factory or async_session


# --- ATH ---


def _ath_from_row(row: AthRecordRow) -> AthRecord:
    return AthRecord(
        token_id=row.token_id,
        ath_price=row.ath_price,
        ath_market_cap=row.ath_market_cap,
        ath_time=_from_db(row.ath_time),
        atl_price=row.atl_price,
        atl_market_cap=row.atl_market_cap,
        atl_time=_from_db(row.atl_time),
        last_updated=_from_db(row.last_updated),
        window_days=row.window_days,
    )


class SqlAthStore(_SqlStore, AthStore):
    async def get(self, token_id: str) -> AthRecord | None:
        async with self._session() as session:
            row = await session.get(AthRecordRow, token_id)
            return _ath_from_row(row) if row else None

    async def put(self, record: AthRecord) -> None:
        try:
            async with self._session() as session:
                await session.merge(
                    AthRecordRow(
                        token_id=record.token_id,
                        ath_price=record.ath_price,
                        ath_market_cap=record.ath_market_cap,
                        ath_time=_to_db(record.ath_time),
                        atl_price=record.atl_price,
                        atl_market_cap=record.atl_market_cap,
                        atl_time=_to_db(record.atl_time),
                        last_updated=_to_db(record.last_updated),
                        window_days=record.window_days,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error saving ATH data for %s: %s", record.token_id[:8], exc)


# --- Monitoring ---


def _monitoring_from_row(row: MonitoredTokenRow) -> MonitoringEntry:
    return MonitoringEntry(
        token_id=row.token_id,
        symbol=row.symbol,
        last_drawdown_pct=row.last_drawdown_pct,
        last_seen_at=_from_db(row.last_seen_at),
    )


class SqlMonitoringStore(_SqlStore, MonitoringStore):
    async def get(self, token_id: str) -> MonitoringEntry | None:
        async with self._session() as session:
            row = await session.get(MonitoredTokenRow, token_id)
            return _monitoring_from_row(row) if row else None

    async def upsert(self, entry: MonitoringEntry) -> None:
        try:
            async with self._session() as session:
                await session.merge(
                    MonitoredTokenRow(
                        token_id=entry.token_id,
                        symbol=entry.symbol,
                        last_drawdown_pct=entry.last_drawdown_pct,
                        last_seen_at=_to_db(entry.last_seen_at),
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error saving monitoring state for %s: %s", entry.token_id[:8], exc)

    async def remove(self, token_id: str) -> None:
        try:
            async with self._session() as session:
                await session.execute(
                    delete(MonitoredTokenRow).where(MonitoredTokenRow.token_id == token_id)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error removing monitoring state for %s: %s", token_id[:8], exc)

    async def prune_except(self, keep_ids: Iterable[str]) -> list[MonitoringEntry]:
        keep = list(keep_ids)
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(MonitoredTokenRow).where(MonitoredTokenRow.token_id.not_in(keep))
                )
                rows = list(result.scalars().all())
                if not rows:
                    return []
                removed = [_monitoring_from_row(r) for r in rows]
                await session.execute(
                    delete(MonitoredTokenRow).where(
                        MonitoredTokenRow.token_id.in_([r.token_id for r in rows])
                    )
                )
                await session.commit()
                return removed
        except SQLAlchemyError as exc:
            logger.error("Error pruning monitoring state: %s", exc)
            return []

    async def load(self) -> dict[str, MonitoringEntry]:
        async with self._session() as session:
            result = await session.execute(select(MonitoredTokenRow))
            return {row.token_id: _monitoring_from_row(row) for row in result.scalars().all()}


# --- Cooldowns ---


def _cooldown_from_row(row: CooldownRow) -> CooldownEntry:
    return CooldownEntry(
        token_id=row.token_id,
        symbol=row.symbol,
        last_alert_at=_from_db(row.last_alert_at),
        cooldown_until=_from_db(row.cooldown_until),
        drawdown_at_alert=row.drawdown_at_alert,
    )


class SqlCooldownStore(_SqlStore, CooldownStore):
    async def get(self, token_id: str) -> CooldownEntry | None:
        async with self._session() as session:
            row = await session.get(CooldownRow, token_id)
            return _cooldown_from_row(row) if row else None

    async def upsert(self, entry: CooldownEntry) -> None:
        try:
            async with self._session() as session:
                await session.merge(
                    CooldownRow(
                        token_id=entry.token_id,
                        symbol=entry.symbol,
                        last_alert_at=_to_db(entry.last_alert_at),
                        cooldown_until=_to_db(entry.cooldown_until),
                        drawdown_at_alert=entry.drawdown_at_alert,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error saving cooldown for %s: %s", entry.token_id[:8], exc)

    async def remove(self, token_id: str) -> None:
        try:
            async with self._session() as session:
                await session.execute(delete(CooldownRow).where(CooldownRow.token_id == token_id))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error removing cooldown for %s: %s", token_id[:8], exc)

    async def _prune(self, condition, label: str) -> list[CooldownEntry]:
        try:
            async with self._session() as session:
                result = await session.execute(select(CooldownRow).where(condition))
                rows = list(result.scalars().all())
                if not rows:
                    return []
                removed = [_cooldown_from_row(r) for r in rows]
                await session.execute(
                    delete(CooldownRow).where(CooldownRow.token_id.in_([r.token_id for r in rows]))
                )
                await session.commit()
                return removed
        except SQLAlchemyError as exc:
            logger.error("Error pruning %s cooldowns: %s", label, exc)
            return []

    async def prune_except(self, keep_ids: Iterable[str]) -> list[CooldownEntry]:
        return await self._prune(CooldownRow.token_id.not_in(list(keep_ids)), "unwatched")

    async def prune_expired(self, now: datetime) -> list[CooldownEntry]:
        return await self._prune(CooldownRow.cooldown_until <= _to_db(now), "expired")

    async def load(self) -> dict[str, CooldownEntry]:
        async with self._session() as session:
            result = await session.execute(select(CooldownRow))
            return {row.token_id: _cooldown_from_row(row) for row in result.scalars().all()}


# --- Alerts ---


class SqlAlertLog(_SqlStore, AlertLog):
    async def append(self, alerts: list[Alert]) -> None:
        if not alerts:
            return
        try:
            async with self._session() as session:
                session.add_all(
                    [
                        AlertRow(
                            token_id=a.token.id,
                            symbol=a.token.symbol,
                            is_breakout=a.is_breakout,
                            is_micro_cap=a.is_micro_cap,
                            alerted_at=_to_db(a.timestamp),
                            payload_json=a.model_dump_json(),
                        )
                        for a in alerts
                    ]
                )
                await session.commit()
            logger.info("Saved %d alert(s)", len(alerts))
        except SQLAlchemyError as exc:
            logger.error("Error saving alerts: %s", exc)

    async def recent(self, limit: int = 50) -> list[Alert]:
        async with self._session() as session:
            result = await session.execute(
                select(AlertRow).order_by(AlertRow.id.desc()).limit(limit)
            )
            return [Alert.model_validate_json(r.payload_json) for r in result.scalars().all()]


# --- Scan history / latest snapshot ---


class SqlSnapshotStore(_SqlStore, SnapshotStore):
    async def append_history(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None:
        key = timestamp.isoformat()
        try:
            async with self._session() as session:
                session.add(
                    ScanHistoryRow(
                        scanned_at=key,
                        token_count=len(snapshots),
                        tokens_json=_snapshots_json(snapshots),
                    )
                )
                await session.commit()
            logger.info("Scan data saved to history at %s", key)
        except SQLAlchemyError as exc:
            logger.error("Error saving scan history: %s", exc)

    async def save_latest(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None:
        try:
            async with self._session() as session:
                await session.merge(
                    LatestSnapshotRow(
                        id=_LATEST_ID,
                        scanned_at=timestamp.isoformat(),
                        tokens_json=_snapshots_json(snapshots),
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error saving latest snapshot: %s", exc)

    async def latest(self) -> tuple[datetime, list[TokenSnapshot]] | None:
        async with self._session() as session:
            row = await session.get(LatestSnapshotRow, _LATEST_ID)
            if row is None:
                return None
            return datetime.fromisoformat(row.scanned_at), _snapshots_from_json(row.tokens_json)

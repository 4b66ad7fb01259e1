"""Store interfaces for scanner state, plus in-memory implementations.

The SQL-backed implementations live in ``fallen_angel.storage.repository``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable

from fallen_angel.scanner.cooldown import cooldown_status
from fallen_angel.scanner.models import (
    Alert,
    AthRecord,
    CooldownEntry,
    CooldownStatus,
    MonitoringEntry,
    TokenSnapshot,
)


class AthStore(ABC):
    @abstractmethod
    async def get(self, token_id: str) -> AthRecord | None: ...

    @abstractmethod
    async def put(self, record: AthRecord) -> None: ...


class MonitoringStore(ABC):
    @abstractmethod
    async def get(self, token_id: str) -> MonitoringEntry | None: ...

    @abstractmethod
    async def upsert(self, entry: MonitoringEntry) -> None: ...

    @abstractmethod
    async def remove(self, token_id: str) -> None: ...

    @abstractmethod
    async def prune_except(self, keep_ids: Iterable[str]) -> list[MonitoringEntry]:
        """Delete every entry not in *keep_ids*; return the deleted entries."""
        ...

    @abstractmethod
    async def load(self) -> dict[str, MonitoringEntry]: ...


class CooldownStore(ABC):
    @abstractmethod
    async def get(self, token_id: str) -> CooldownEntry | None: ...

    @abstractmethod
    async def upsert(self, entry: CooldownEntry) -> None: ...

    @abstractmethod
    async def remove(self, token_id: str) -> None: ...

    @abstractmethod
    async def prune_except(self, keep_ids: Iterable[str]) -> list[CooldownEntry]: ...

    @abstractmethod
    async def prune_expired(self, now: datetime) -> list[CooldownEntry]: ...

    @abstractmethod
    async def load(self) -> dict[str, CooldownEntry]: ...

    async def status(self, token_id: str, now: datetime) -> CooldownStatus:
        """Active until ``cooldown_until``; expired rows read as inactive."""
        return cooldown_status(await self.get(token_id), now)


class AlertLog(ABC):
    @abstractmethod
    async def append(self, alerts: list[Alert]) -> None: ...

    @abstractmethod
    async def recent(self, limit: int = 50) -> list[Alert]: ...


class SnapshotStore(ABC):
    @abstractmethod
    async def append_history(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None: ...

    @abstractmethod
    async def save_latest(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None: ...

    @abstractmethod
    async def latest(self) -> tuple[datetime, list[TokenSnapshot]] | None: ...


# --- In-memory implementations ---


class MemoryAthStore(AthStore):
    def __init__(self) -> None:
        self.records: dict[str, AthRecord] = {}

    async def get(self, token_id: str) -> AthRecord | None:
        return self.records.get(token_id)

    async def put(self, record: AthRecord) -> None:
        self.records[record.token_id] = record


class MemoryMonitoringStore(MonitoringStore):
    def __init__(self) -> None:
        self.entries: dict[str, MonitoringEntry] = {}

    async def get(self, token_id: str) -> MonitoringEntry | None:
        return self.entries.get(token_id)

    async def upsert(self, entry: MonitoringEntry) -> None:
        self.entries[entry.token_id] = entry

    async def remove(self, token_id: str) -> None:
        self.entries.pop(token_id, None)

    async def prune_except(self, keep_ids: Iterable[str]) -> list[MonitoringEntry]:
        keep = set(keep_ids)
        removed = [e for tid, e in self.entries.items() if tid not in keep]
        for entry in removed:
            del self.entries[entry.token_id]
        return removed

    async def load(self) -> dict[str, MonitoringEntry]:
        return dict(self.entries)


class MemoryCooldownStore(CooldownStore):
    def __init__(self) -> None:
        self.entries: dict[str, CooldownEntry] = {}

    async def get(self, token_id: str) -> CooldownEntry | None:
        return self.entries.get(token_id)

    async def upsert(self, entry: CooldownEntry) -> None:
        self.entries[entry.token_id] = entry

    async def remove(self, token_id: str) -> None:
        self.entries.pop(token_id, None)

    async def prune_except(self, keep_ids: Iterable[str]) -> list[CooldownEntry]:
        keep = set(keep_ids)
        removed = [e for tid, e in self.entries.items() if tid not in keep]
        for entry in removed:
            del self.entries[entry.token_id]
        return removed

    async def prune_expired(self, now: datetime) -> list[CooldownEntry]:
        removed = [e for e in self.entries.values() if e.cooldown_until <= now]
        for entry in removed:
            del self.entries[entry.token_id]
        return removed

    async def load(self) -> dict[str, CooldownEntry]:
        return dict(self.entries)


class MemoryAlertLog(AlertLog):
    def __init__(self) -> None:
        self.alerts: list[Alert] = []

    async def append(self, alerts: list[Alert]) -> None:
        self.alerts.extend(alerts)

    async def recent(self, limit: int = 50) -> list[Alert]:
        return list(reversed(self.alerts))[:limit]


class MemorySnapshotStore(SnapshotStore):
    def __init__(self) -> None:
        self.history: dict[str, list[TokenSnapshot]] = {}
        self._latest: tuple[datetime, list[TokenSnapshot]] | None = None

    async def append_history(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None:
        self.history[timestamp.isoformat()] = list(snapshots)

    async def save_latest(self, timestamp: datetime, snapshots: list[TokenSnapshot]) -> None:
        self._latest = (timestamp, list(snapshots))

    async def latest(self) -> tuple[datetime, list[TokenSnapshot]] | None:
        return self._latest

"""ORM tables for every durable piece of scanner state."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AthRecordRow(Base):
    __tablename__ = "ath_records"

    token_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    ath_price: Mapped[float] = mapped_column(Float, nullable=False)
    ath_market_cap: Mapped[float | None] = mapped_column(Float, nullable=True)
    ath_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    atl_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    atl_market_cap: Mapped[float | None] = mapped_column(Float, nullable=True)
    atl_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    window_days: Mapped[int] = mapped_column(Integer, default=30)


class MonitoredTokenRow(Base):
    __tablename__ = "monitored_tokens"

    token_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), default="")
    last_drawdown_pct: Mapped[float] = mapped_column(Float, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CooldownRow(Base):
    __tablename__ = "cooldowns"

    token_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), default="")
    last_alert_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    cooldown_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    drawdown_at_alert: Mapped[float | None] = mapped_column(Float, nullable=True)


class AlertRow(Base):
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(32), default="")
    is_breakout: Mapped[bool] = mapped_column(Boolean, default=False)
    is_micro_cap: Mapped[bool] = mapped_column(Boolean, default=False)
    alerted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, default="{}")

    __table_args__ = (
        Index("ix_alerts_token", "token_id"),
        Index("ix_alerts_alerted_at", "alerted_at"),
    )


class ScanHistoryRow(Base):
    __tablename__ = "scan_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scanned_at: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)  # ISO
    token_count: Mapped[int] = mapped_column(Integer, default=0)
    tokens_json: Mapped[str] = mapped_column(Text, default="[]")


class LatestSnapshotRow(Base):
    """Single row (id=1), overwritten after every scan."""

    __tablename__ = "latest_snapshot"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scanned_at: Mapped[str] = mapped_column(String(40), nullable=False)
    tokens_json: Mapped[str] = mapped_column(Text, default="[]")

"""Cooldown expiry aligned to half-hour wall-clock milestones."""

from datetime import datetime, timedelta

from fallen_angel.scanner.models import COOLDOWN_INACTIVE, CooldownEntry, CooldownStatus


def next_cooldown_milestone(now: datetime) -> datetime:
    """:30 of the current hour before half past, else :00 of the next hour."""
    top_of_hour = now.replace(minute=0, second=0, microsecond=0)
    if now.minute < 30:
        return top_of_hour + timedelta(minutes=30)
    return top_of_hour + timedelta(hours=1)


def cooldown_status(entry: CooldownEntry | None, now: datetime) -> CooldownStatus:
    if entry is None or now >= entry.cooldown_until:
        return COOLDOWN_INACTIVE
    return CooldownStatus(
        active=True,
        until=entry.cooldown_until,
        drawdown_at_alert=entry.drawdown_at_alert,
    )

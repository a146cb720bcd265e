"""UTC day/month window boundaries used for lazy quota resets."""
from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Naive datetimes (as read back from SQLite) are taken to be UTC already."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def daily_window_start(t: datetime) -> datetime:
    t = as_utc(t)
    return datetime(t.year, t.month, t.day, tzinfo=timezone.utc)


def monthly_window_start(t: datetime) -> datetime:
    t = as_utc(t)
    return datetime(t.year, t.month, 1, tzinfo=timezone.utc)


def window_start_for(kind: str, t: datetime) -> datetime:
    if kind == "chat":
        return daily_window_start(t)
    if kind == "mcq":
        return monthly_window_start(t)
    raise ValueError(f"Unknown resource kind: {kind}")


def window_key(kind: str, t: datetime) -> date:
    """Storage form of the window: the calendar date the window starts on."""
    return window_start_for(kind, t).date()

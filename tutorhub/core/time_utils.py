"""Helpers for naive/aware datetime handling and wall-clock arithmetic."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    database are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_minutes(start: time, minutes: int) -> time:
    """Add minutes to a wall-clock time on an arbitrary reference date."""
    return (datetime.combine(date.min, start) + timedelta(minutes=minutes)).time()


def end_of_day_overflow(start: time, minutes: int) -> bool:
    """True when ``start + minutes`` runs past midnight."""
    start_dt = datetime.combine(date.min, start)
    return (start_dt + timedelta(minutes=minutes)).date() != start_dt.date()

"""
Date/time helpers for usage and analytics bucketing — framework-agnostic.

All buckets are computed in UTC so every process agrees on which month or
day a counter belongs to.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def year_month(value: datetime) -> str:
    """Usage-counter bucket key, e.g. ``"2026-03"``."""
    value = as_utc(value)
    return f"{value.year:04d}-{value.month:02d}"


def day_start(value: datetime) -> datetime:
    """UTC midnight of the day containing *value*."""
    value = as_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def days_ago(value: datetime, days: int) -> datetime:
    return as_utc(value) - timedelta(days=days)

"""
Rule schedule evaluation.

A scheduled rule is live only on its configured weekdays and inside its
local time-of-day window. Windows are inclusive at both ends; a window whose
start is after its end wraps past midnight (22:00-06:00).

Configuration mistakes never hide a rule: an unknown timezone makes the
schedule pass, an unparseable bound is ignored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from schemas.models.rule import RuleDoc
from shared.logging import get_logger

log = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: Optional[str]) -> Optional[int]:
    """Convert ``"HH:mm"`` to minutes since midnight, or None if invalid."""
    if not value:
        return None
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        return None
    h, m = int(hours), int(minutes)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        return None
    return h * 60 + m


def load_timezone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Return the ZoneInfo for *name* (UTC when blank), or None if unknown."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def weekday_index(local: datetime) -> int:
    """Weekday with Sunday as 0 (datetime.weekday() has Monday as 0)."""
    return (local.weekday() + 1) % 7


def minutes_in_window(now_minutes: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= now_minutes <= end
    return now_minutes >= start or now_minutes <= end


def is_in_window(rule: RuleDoc, now: datetime) -> bool:
    """Return True if *rule* is live at instant *now*.

    Args:
        rule: The rule whose schedule fields are evaluated.
        now: Current instant; naive datetimes are taken as UTC.
    """
    if not rule.schedule_enabled:
        return True

    tz = load_timezone(rule.timezone)
    if tz is None:
        log.warning(
            "schedule_timezone_invalid",
            rule_id=rule.rule_id,
            shop=rule.shop,
            timezone=rule.timezone,
        )
        return True

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)

    if rule.days_of_week and weekday_index(local) not in rule.days_of_week:
        return False

    if rule.start_time is None or rule.end_time is None:
        return True

    start = parse_hhmm(rule.start_time)
    end = parse_hhmm(rule.end_time)
    if start is None or end is None:
        log.warning(
            "schedule_time_invalid",
            rule_id=rule.rule_id,
            shop=rule.shop,
            start_time=rule.start_time,
            end_time=rule.end_time,
        )
        return True

    return minutes_in_window(local.hour * 60 + local.minute, start, end)

# terminal/utils/clock.py
"""
Time helpers. Timestamps are stored as naive UTC; calendar decisions
(daily queue reset, dashboard "today", expiry sweep) use the terminal's
local timezone.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from terminal.config import settings


def utcnow() -> datetime:
    return datetime.utcnow()


def terminal_tz() -> ZoneInfo:
    return ZoneInfo(settings.TERMINAL_TIMEZONE)


def local_today(now: datetime = None) -> date:
    """Calendar date at the terminal for a naive-UTC instant."""
    now = now or utcnow()
    return now.replace(tzinfo=timezone.utc).astimezone(terminal_tz()).date()


def start_of_local_day(now: datetime = None) -> datetime:
    """Local midnight of `now`'s terminal date, as naive UTC."""
    local_midnight = datetime.combine(local_today(now), time.min, tzinfo=terminal_tz())
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def hours_since(then: datetime, now: datetime = None) -> float:
    now = now or utcnow()
    return (now - then) / timedelta(hours=1)

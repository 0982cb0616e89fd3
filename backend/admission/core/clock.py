"""
Time source for jobs and the scoring engine.

Everything that reads "now" (seasonal month, cache TTL, TO cooldown, lookback windows)
takes a Clock so tests can pin the date.
"""
from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


SYSTEM_CLOCK = SystemClock()


def as_utc(dt: datetime) -> datetime:
    """DB drivers may hand back naive datetimes; stored values are always UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def shift_months(dt: datetime, months: int) -> datetime:
    """Move dt by whole calendar months, clamping the day to the target month's length."""
    total = dt.year * 12 + (dt.month - 1) + months
    year, month0 = divmod(total, 12)
    month = month0 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def to_local(dt: datetime, tz_name: str) -> datetime:
    return as_utc(dt).astimezone(ZoneInfo(tz_name))


def local_month(dt: datetime, tz_name: str) -> int:
    """Calendar month (1-12) of dt in the given IANA timezone."""
    return to_local(dt, tz_name).month

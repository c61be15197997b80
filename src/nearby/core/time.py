"""
Clock and timezone helpers.

Time-frame filters ("today", "this weekend", ...) depend on the current time, so
the filter layer never reads the system clock directly: it asks an injected
`Clock`. Production code uses `SystemClock`; tests pin time with `FixedClock`.

All datetimes handled here are timezone-aware. Naive inputs get the configured
timezone attached (never converted).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in a fixed IANA timezone."""

    def __init__(self, timezone: str) -> None:
        self._tz = ZoneInfo(timezone)

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock:
    """A clock that always returns the same instant (for tests and replays)."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._at = at

    def now(self) -> datetime:
        return self._at


def ensure_tz(dt: datetime, timezone: str) -> datetime:
    """Ensure `dt` has tzinfo; attach `timezone` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(timezone))
    return dt


def local_day(dt: datetime, now: datetime) -> date:
    """Calendar day of `dt` as seen in `now`'s timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=now.tzinfo)
    return dt.astimezone(now.tzinfo).date()


def week_start(day: date) -> date:
    """Most recent Sunday on or before `day`."""
    # date.weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)

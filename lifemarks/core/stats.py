"""Derived statistics: elapsed-time breakdowns and "cosmic" metrics.

Both calculators take the absolute difference between the two instants first,
so argument order never matters and every count is a non-negative integer.
Callers are responsible for rejecting malformed timestamps; instants passed in
must be comparable (both naive or both aware).

``years`` (calendar) and ``solar_years`` (tropical-year approximation) are
intentionally different figures.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import StatPayload

TROPICAL_YEAR_DAYS = 365.2422

_MS_SECOND = 1000
_MS_MINUTE = 60 * _MS_SECOND
_MS_HOUR = 60 * _MS_MINUTE
_MS_DAY = 24 * _MS_HOUR
_MS_WEEK = 7 * _MS_DAY


@dataclass(frozen=True)
class Elapsed:
    years: int
    months: int
    weeks: int
    days: int
    hours: int
    minutes: int
    seconds: int


@dataclass(frozen=True)
class Cosmic:
    day_count: int  # "Earth rotations"
    solar_years: str  # "Sun orbits", two decimals
    hour_hand_cycles: int
    minute_hand_cycles: int
    second_hand_cycles: int


def _ordered(a: datetime, b: datetime) -> tuple[datetime, datetime]:
    return (a, b) if a <= b else (b, a)


def _abs_ms(a: datetime, b: datetime) -> int:
    earlier, later = _ordered(a, b)
    return (later - earlier) // timedelta(milliseconds=1)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    y, m = divmod(moment.month - 1 + months, 12)
    year = moment.year + y
    month = m + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def calendar_months_between(a: datetime, b: datetime) -> int:
    """Whole calendar months between two instants (order-insensitive)."""
    earlier, later = _ordered(a, b)
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    # Not a full month yet if the in-month anniversary hasn't been reached.
    if months > 0 and add_months(earlier, months) > later:
        months -= 1
    return months


def compute_elapsed(birth: datetime, target: datetime) -> Elapsed:
    ms = _abs_ms(birth, target)
    months = calendar_months_between(birth, target)
    return Elapsed(
        years=months // 12,
        months=months,
        weeks=ms // _MS_WEEK,
        days=ms // _MS_DAY,
        hours=ms // _MS_HOUR,
        minutes=ms // _MS_MINUTE,
        seconds=ms // _MS_SECOND,
    )


def solar_years_for(day_count: int) -> str:
    return f"{day_count / TROPICAL_YEAR_DAYS:.2f}"


def compute_cosmic(birth: datetime, target: datetime) -> Cosmic:
    ms = _abs_ms(birth, target)
    day_count = ms // _MS_DAY
    # Analog clock: hour hand turns every 12h, minute hand hourly, second hand each minute.
    return Cosmic(
        day_count=day_count,
        solar_years=solar_years_for(day_count),
        hour_hand_cycles=ms // (12 * _MS_HOUR),
        minute_hand_cycles=ms // _MS_HOUR,
        second_hand_cycles=ms // _MS_MINUTE,
    )


def compute_stat_payload(birth: datetime, now: datetime) -> StatPayload:
    """Build a "total existence" payload; every unit shares one ``now``."""
    return StatPayload.from_elapsed(compute_elapsed(birth, now))


__all__ = [
    "Elapsed",
    "Cosmic",
    "TROPICAL_YEAR_DAYS",
    "add_months",
    "calendar_months_between",
    "compute_elapsed",
    "compute_cosmic",
    "compute_stat_payload",
    "solar_years_for",
]

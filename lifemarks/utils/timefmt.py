"""Time and date formatting utilities.

``format_time`` formats seconds as mm:ss.mmm for progress labels.
``format_date`` understands the small pattern vocabulary the card templates use
(``MMMM do, yyyy``, ``dd.MM.yyyy``, ...). ``day_offset`` / ``describe_offset``
produce the signed "days left / days ago" figure shared by card badges and
artifact filenames.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

__all__ = [
    "format_time",
    "format_date",
    "format_count",
    "ordinal",
    "day_offset",
    "describe_offset",
]


def format_time(seconds: float) -> str:
    """Return a human-friendly timestamp mm:ss.mmm for UI labels.

    Uses ROUND_HALF_UP semantics for milliseconds to avoid Python's bankers rounding
    edge cases (e.g., 1.2345 -> 1.235). Accepts negative (clamps display to 0).
    """
    if seconds < 0:
        seconds = 0.0
    from decimal import Decimal, ROUND_HALF_UP

    ms_total = int(
        (Decimal(str(seconds)) * Decimal(1000)).to_integral_value(
            rounding=ROUND_HALF_UP
        )
    )
    m, rem = divmod(ms_total, 60000)
    s, ms = divmod(rem, 1000)
    return f"{m:02d}:{s:02d}.{ms:03d}"  # mm:ss.mmm


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


# Longest tokens first so "MMMM" wins over "MM".
_TOKEN_RE = re.compile(r"EEEE|MMMM|MMM|MM|yyyy|do|dd|d")


def format_date(value: date | datetime, pattern: str) -> str:
    """Format with date-fns style tokens (English month/day names)."""

    def _sub(match: re.Match[str]) -> str:
        tok = match.group(0)
        if tok == "EEEE":
            return calendar.day_name[value.weekday()]
        if tok == "MMMM":
            return calendar.month_name[value.month]
        if tok == "MMM":
            return calendar.month_abbr[value.month]
        if tok == "MM":
            return f"{value.month:02d}"
        if tok == "yyyy":
            return f"{value.year:04d}"
        if tok == "do":
            return ordinal(value.day)
        if tok == "dd":
            return f"{value.day:02d}"
        return str(value.day)

    return _TOKEN_RE.sub(_sub, pattern)


def format_count(n: int) -> str:
    return f"{n:,}"


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def day_offset(target: date | datetime, now: date | datetime) -> int:
    """Signed calendar-day distance; positive means ``target`` is in the future."""
    return (_as_date(target) - _as_date(now)).days


def describe_offset(days: int) -> str:
    if days == 0:
        return "today"
    unit = "day" if abs(days) == 1 else "days"
    if days > 0:
        return f"in {days:,} {unit}"
    return f"{-days:,} {unit} ago"

"""Deterministic artifact filenames.

``<name>_<title>_<offset>.<ext>`` where offset is ``12days_left``,
``3days_ago`` or ``today`` relative to ``now``. User-supplied components are
lowercased and stripped of every non-alphanumeric character.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from .timefmt import day_offset

_STRIP_RE = re.compile(r"[^a-z0-9]+")


def sanitize_component(text: str, fallback: str) -> str:
    cleaned = _STRIP_RE.sub("", text.lower())
    return cleaned or fallback


def offset_token(target: date | datetime, now: date | datetime) -> str:
    days = day_offset(target, now)
    if days == 0:
        return "today"
    if days > 0:
        return f"{days}days_left"
    return f"{-days}days_ago"


def artifact_filename(
    name: str,
    title: str,
    target: date | datetime,
    now: date | datetime,
    ext: str,
) -> str:
    parts = [
        sanitize_component(name, "user"),
        sanitize_component(title, "milestone"),
        offset_token(target, now),
    ]
    return "_".join(parts) + "." + ext.lstrip(".").lower()


__all__ = ["artifact_filename", "sanitize_component", "offset_token"]

"""Structured JSON logging for the export engine.

Events are emitted as single-line JSON objects through the standard ``logging``
machinery so hosts can route them like any other log record.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..config import settings

SERVICE_NAME = "lifemarks"

logger = logging.getLogger(SERVICE_NAME)


def configure_logging(level: str | None = None) -> None:
    """Install a message-only handler at ``LOG_LEVEL`` (or ``level``)."""
    name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format="%(message)s")


def _log(level: int, event: str, **fields: object) -> None:
    data: dict[str, Any] = {"service": SERVICE_NAME, "event": event}
    data.update(fields)
    logger.log(level, json.dumps(data, default=str))


def log_info(event: str, **fields: object) -> None:
    """Emit an informational JSON log line."""
    _log(logging.INFO, event, **fields)


def log_error(event: str, **fields: object) -> None:
    """Emit an error JSON log line."""
    _log(logging.ERROR, event, **fields)


def log_debug(event: str, **fields: object) -> None:
    """Emit a debug-level JSON log line."""
    _log(logging.DEBUG, event, **fields)


__all__ = ["configure_logging", "log_info", "log_error", "log_debug", "SERVICE_NAME"]

"""Exception types raised by the export engine.

Unknown theme or template ids are programmer errors and surface as plain
``KeyError``; invalid configuration values raise ``ValueError``. Everything
below is a runtime condition the orchestrator turns into a retryable notice.
"""

from __future__ import annotations


class ExportError(RuntimeError):
    """Base class for recoverable export failures."""


class CaptureError(ExportError):
    """Rasterising or serialising a scene failed; no output was produced."""


class AssetDecodeError(CaptureError):
    """An embedded image could not be read or decoded."""


class EncoderUnsupportedError(ExportError):
    """No video encoder from the preference list is available on this host."""


class ExportBusyError(ExportError):
    """The off-screen surface is owned by another export."""


class ShareCancelledError(Exception):
    """Raised by a share handler when the user dismisses the share sheet."""


__all__ = [
    "ExportError",
    "CaptureError",
    "AssetDecodeError",
    "EncoderUnsupportedError",
    "ExportBusyError",
    "ShareCancelledError",
]

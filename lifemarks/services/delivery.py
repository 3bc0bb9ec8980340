"""Delivery side effects for finished artifacts.

Only the export orchestrator calls these. Clipboard and share are best effort:
when the host offers no clipboard or share handler, or the user dismisses the
share sheet, they return ``False`` without raising.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QByteArray, QMimeData
from PySide6.QtGui import QGuiApplication, QImage

from ..config import settings
from ..core.models import RenderedArtifact
from ..errors import ShareCancelledError
from ..utils.log import log_debug, log_error, log_info

ShareHandler = Callable[[RenderedArtifact], bool]


def save_artifact(artifact: RenderedArtifact, directory: Optional[Path] = None) -> Path:
    """Write ``artifact`` into ``directory`` (default ``OUTPUT_DIR``).

    Writes to ``<dir>/.tmp`` first, fsyncs, then atomically renames so a
    reader never sees a half-written file.
    """
    out_dir = Path(directory or settings.OUTPUT_DIR)
    tmp_dir = out_dir / ".tmp"
    tmp_dir.mkdir(parents=True, exist_ok=True)
    tmp_path = tmp_dir / artifact.filename
    out_path = out_dir / artifact.filename
    try:
        with open(tmp_path, "wb") as fh:
            fh.write(artifact.data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, out_path)
    except OSError as exc:
        log_error("artifact_save_failed", path=out_path, error=str(exc))
        tmp_path.unlink(missing_ok=True)
        raise
    log_info("artifact_saved", path=out_path, bytes=len(artifact.data))
    return out_path


def copy_to_clipboard(artifact: RenderedArtifact) -> bool:
    if not artifact.is_image:
        return False
    app = QGuiApplication.instance()
    clipboard = app.clipboard() if app is not None else None
    if clipboard is None:
        log_debug("clipboard_unavailable", filename=artifact.filename)
        return False
    if artifact.mime_type == "image/png":
        image = QImage.fromData(artifact.data, "PNG")
        if image.isNull():
            return False
        clipboard.setImage(image)
    else:
        mime = QMimeData()
        mime.setData(artifact.mime_type, QByteArray(artifact.data))
        clipboard.setMimeData(mime)
    log_debug("clipboard_copied", filename=artifact.filename)
    return True


def share_artifact(artifact: RenderedArtifact, handler: Optional[ShareHandler] = None) -> bool:
    if handler is None:
        return False
    try:
        shared = bool(handler(artifact))
    except ShareCancelledError:
        log_debug("share_cancelled", filename=artifact.filename)
        return False
    if shared:
        log_info("artifact_shared", filename=artifact.filename)
    return shared


__all__ = ["save_artifact", "copy_to_clipboard", "share_artifact", "ShareHandler"]

"""Decoded image assets shared by the preview and the capture targets.

``ImageAsset`` owns a QMutex around decode so a background preload and a
capture that needs the pixels *now* never decode twice or read a half-built
image: whichever caller takes the lock first decodes, the other one waits and
then sees the finished result.

Decoding goes through Pillow (EXIF orientation applied) and is handed to Qt as
PNG bytes, the same bridge the thumbnail workers used for video frames.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Dict, Mapping, Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from PySide6.QtCore import QMutex, QObject, QThread, Signal
from PySide6.QtGui import QImage

from ..errors import AssetDecodeError
from ..utils.log import log_error

PENDING = "pending"
READY = "ready"
FAILED = "failed"


def decode_image(path: str | Path) -> QImage:
    """Decode ``path`` into an ARGB QImage or raise ``AssetDecodeError``."""
    try:
        with Image.open(path) as raw:
            image = ImageOps.exif_transpose(raw).convert("RGBA")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise AssetDecodeError(f"cannot decode {path}: {e}") from e
    buf = BytesIO()
    image.save(buf, format="PNG")
    qimg = QImage.fromData(buf.getvalue(), "PNG")
    if qimg.isNull():
        raise AssetDecodeError(f"Qt rejected decoded image {path}")
    return qimg


class ImageAsset:
    def __init__(self, key: str, path: str | Path):
        self.key = key
        self.path = str(path)
        self._mutex = QMutex()
        self._state = PENDING
        self._image: Optional[QImage] = None
        self._error: Optional[str] = None

    @property
    def state(self) -> str:
        self._mutex.lock()
        try:
            return self._state
        finally:
            self._mutex.unlock()

    @property
    def error(self) -> Optional[str]:
        return self._error

    def load(self) -> str:
        """Decode once; later calls return the cached state."""
        self._mutex.lock()
        try:
            if self._state == PENDING:
                try:
                    self._image = decode_image(self.path)
                    self._state = READY
                except AssetDecodeError as e:
                    self._error = str(e)
                    self._state = FAILED
                    log_error("asset_decode_failed", key=self.key, path=self.path, error=str(e))
            return self._state
        finally:
            self._mutex.unlock()

    def image(self) -> QImage:
        """Block until decoded and return the image; raises on failure."""
        if self.load() == FAILED:
            raise AssetDecodeError(self._error or f"cannot decode {self.path}")
        return self._image  # type: ignore[return-value]

    def try_image(self) -> Optional[QImage]:
        """Decoded image, or None while pending/decoding/failed. Never waits."""
        if not self._mutex.tryLock():
            return None
        try:
            return self._image if self._state == READY else None
        finally:
            self._mutex.unlock()


class AssetPreloadWorker(QObject):
    progress = Signal(str, str)  # key, state
    finished = Signal(int)  # generation id

    def __init__(self, assets: list[ImageAsset], generation_id: int = 0):
        super().__init__()
        self._assets = assets
        self._gen = generation_id

    def run(self):  # executed in thread
        thread = QThread.currentThread()
        try:
            for asset in self._assets:
                if thread.isInterruptionRequested():
                    return
                self.progress.emit(asset.key, asset.load())
            self.finished.emit(self._gen)
        finally:
            # quit from inside the worker thread
            thread.quit()


class AssetBundle:
    """The set of assets one scene references, keyed like ``ImageNode.asset``."""

    def __init__(self, paths: Mapping[str, str] | None = None):
        self._assets: Dict[str, ImageAsset] = {
            key: ImageAsset(key, path) for key, path in (paths or {}).items()
        }
        self._thread: Optional[QThread] = None
        self._worker: Optional[AssetPreloadWorker] = None

    @classmethod
    def from_scene(cls, scene) -> "AssetBundle":
        return cls(scene.asset_paths())

    def keys(self) -> list[str]:
        return list(self._assets)

    def __contains__(self, key: str) -> bool:
        return key in self._assets

    def is_ready(self) -> bool:
        return all(a.state != PENDING for a in self._assets.values())

    def start_preload(self, generation_id: int = 0, on_progress=None) -> None:
        """Decode on a background QThread; ``on_progress(key, state)`` per asset."""
        if not self._assets or self._thread is not None:
            return
        thread = QThread()
        worker = AssetPreloadWorker(list(self._assets.values()), generation_id)
        worker.moveToThread(thread)
        if on_progress is not None:
            worker.progress.connect(on_progress)
        thread.started.connect(worker.run)
        self._thread = thread
        self._worker = worker
        thread.start()

    def shutdown(self) -> None:
        if self._thread is None:
            return
        self._thread.requestInterruption()
        self._thread.quit()
        self._thread.wait()
        self._thread = None
        self._worker = None

    def wait_until_ready(self) -> None:
        """Decode whatever is still pending; raise if any asset is unusable."""
        for asset in self._assets.values():
            if asset.load() == FAILED:
                raise AssetDecodeError(asset.error or f"cannot decode {asset.path}")

    def peek(self, key: str) -> Optional[QImage]:
        """Decoded image if already available; never blocks on decode."""
        asset = self._assets.get(key)
        return asset.try_image() if asset is not None else None

    def image(self, key: str) -> Optional[QImage]:
        """Decoded image for ``key`` or None when the asset is unknown/failed."""
        asset = self._assets.get(key)
        if asset is None or asset.load() == FAILED:
            return None
        return asset.image()


__all__ = ["ImageAsset", "AssetBundle", "AssetPreloadWorker", "decode_image"]

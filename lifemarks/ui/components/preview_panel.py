"""Scaled scene preview.

``ScenePreviewWidget`` paints the canonical ``SceneDescription`` through the
same ``SceneRenderer`` the capture targets use, only with a uniform scale on
its own painter:

    scale = min(avail_w / canvas_w, avail_h / canvas_h, 0.95)

where the available size is the widget size minus padding. The scale is
recomputed on every paint, so resizes and scene changes are both covered. In
animated mode the widget shows a poster frame from the frame engine instead.

Public API:
    setScene(scene, assets)
    setPoster(QImage | None)
    scale() -> float
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QRectF, QSize
from PySide6.QtGui import QColor, QImage, QPainter
from PySide6.QtWidgets import QLabel, QSizePolicy, QVBoxLayout, QWidget

from ...config import settings
from ...core.scene import SceneDescription
from ...media.assets import AssetBundle
from ...media.render import SceneRenderer


def compute_preview_scale(
    avail_w: float,
    avail_h: float,
    canvas_w: float,
    canvas_h: float,
    max_scale: Optional[float] = None,
) -> float:
    if avail_w <= 0 or avail_h <= 0 or canvas_w <= 0 or canvas_h <= 0:
        return 0.0
    cap = settings.PREVIEW_MAX_SCALE if max_scale is None else max_scale
    return min(avail_w / canvas_w, avail_h / canvas_h, cap)


class ScenePreviewWidget(QWidget):
    def __init__(self, parent=None, *, renderer: Optional[SceneRenderer] = None):
        super().__init__(parent)
        self._renderer = renderer or SceneRenderer()
        self._scene: Optional[SceneDescription] = None
        self._assets: Optional[AssetBundle] = None
        self._poster: Optional[QImage] = None
        self._padding = settings.PREVIEW_PADDING
        # Ignored policy lets layouts shrink the preview below the canvas size.
        self.setSizePolicy(QSizePolicy.Policy.Ignored, QSizePolicy.Policy.Ignored)

    def sizeHint(self):  # type: ignore[override]
        return QSize(270, 480)

    def setScene(self, scene: SceneDescription, assets: Optional[AssetBundle] = None):
        self._scene = scene
        self._assets = assets
        self.update()

    def setPoster(self, poster: Optional[QImage]):
        self._poster = poster
        self.update()

    def scene(self) -> Optional[SceneDescription]:
        return self._scene

    def canvasSize(self) -> tuple[int, int]:
        if self._poster is not None:
            return self._poster.width(), self._poster.height()
        if self._scene is not None:
            return self._scene.width, self._scene.height
        return 0, 0

    def scale(self) -> float:
        cw, ch = self.canvasSize()
        return compute_preview_scale(
            self.width() - 2 * self._padding, self.height() - 2 * self._padding, cw, ch
        )

    def paintEvent(self, event):  # noqa: D401 - Qt override
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor("#222"))
            cw, ch = self.canvasSize()
            s = self.scale()
            if s <= 0:
                return
            painter.translate((self.width() - cw * s) / 2, (self.height() - ch * s) / 2)
            painter.scale(s, s)
            if self._poster is not None:
                painter.drawImage(QRectF(0, 0, cw, ch), self._poster)
            elif self._scene is not None:
                self._renderer.paint(painter, self._scene, self._assets)
        finally:
            painter.end()


class PreviewPanel(QWidget):
    """Caption label + scene preview."""

    def __init__(self, parent=None, label: str | None = "Preview"):
        super().__init__(parent)
        self.preview = ScenePreviewWidget(self)
        self.caption = QLabel(label or "")
        self.caption.setStyleSheet("color:#bbb;font-size:11px;padding:2px 4px;")
        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.caption)
        layout.addWidget(self.preview, stretch=1)
        self.setLayout(layout)

    def showScene(self, scene: SceneDescription, assets: Optional[AssetBundle] = None):
        self.preview.setPoster(None)
        self.preview.setScene(scene, assets)
        self.caption.setText(f"{scene.template.title()} · {scene.aspect_ratio} · {scene.width}×{scene.height}")

    def showPoster(self, poster: QImage, style: str):
        self.preview.setPoster(poster)
        self.caption.setText(f"Video · {style} · {poster.width()}×{poster.height()}")


__all__ = ["ScenePreviewWidget", "PreviewPanel", "compute_preview_scale"]

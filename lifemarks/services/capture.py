"""Static capture: rasterise or vectorise a scene into PNG, SVG or PDF bytes.

The capture target always paints at the true canvas size; raster output is
multiplied by the pixel density of the chosen quality tier. Nothing is written
to disk here; the orchestrator decides what happens with the bytes.
"""

from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QMarginsF, QRect, QSize, QSizeF, Qt
from PySide6.QtGui import QImage, QPageSize, QPainter, QPdfWriter
from PySide6.QtSvg import QSvgGenerator

from ..config import settings
from ..core.models import QUALITY_TIERS, StaticFormat
from ..core.scene import SceneDescription
from ..errors import CaptureError
from ..media.assets import AssetBundle
from ..media.render import SceneRenderer
from ..utils.log import log_info


MIME_TYPES = {
    StaticFormat.PNG: "image/png",
    StaticFormat.SVG: "image/svg+xml",
    StaticFormat.PDF: "application/pdf",
}


class OffscreenTarget:
    """A scene bound to its assets, ready to be painted off-screen."""

    def __init__(
        self,
        scene: SceneDescription,
        assets: Optional[AssetBundle] = None,
        *,
        renderer: Optional[SceneRenderer] = None,
        text_offset: Optional[float] = None,
    ):
        self.scene = scene
        self.assets = assets if assets is not None else AssetBundle.from_scene(scene)
        self.renderer = renderer or SceneRenderer()
        self.text_offset = settings.CAPTURE_TEXT_OFFSET_PX if text_offset is None else text_offset
        self.mounted = True

    @property
    def size(self) -> tuple[int, int]:
        return self.scene.width, self.scene.height

    def unmount(self) -> None:
        self.mounted = False

    def paint(self, painter: QPainter) -> None:
        self.renderer.paint(painter, self.scene, self.assets, self.text_offset)


def _paint_into(device, target: OffscreenTarget, prepare: Callable[[QPainter], None] | None = None) -> None:
    painter = QPainter()
    if not painter.begin(device):
        raise CaptureError("could not start painting on capture device")
    try:
        if prepare is not None:
            prepare(painter)
        target.paint(painter)
    finally:
        painter.end()


def _open_buffer() -> QBuffer:
    buf = QBuffer()
    buf.setData(QByteArray())
    buf.open(QIODevice.OpenModeFlag.WriteOnly)
    return buf


def _capture_png(target: OffscreenTarget, density: int) -> bytes:
    w, h = target.size
    image = QImage(w * density, h * density, QImage.Format.Format_ARGB32_Premultiplied)
    if image.isNull():
        raise CaptureError(f"cannot allocate {w * density}x{h * density} raster")
    image.fill(Qt.GlobalColor.transparent)
    _paint_into(image, target, lambda p: p.scale(density, density))
    buf = _open_buffer()
    if not image.save(buf, "PNG"):
        raise CaptureError("PNG encoding failed")
    buf.close()
    return bytes(buf.data())


def _capture_svg(target: OffscreenTarget, density: int) -> bytes:
    w, h = target.size
    buf = _open_buffer()
    gen = QSvgGenerator()
    gen.setOutputDevice(buf)
    gen.setSize(QSize(w, h))
    gen.setViewBox(QRect(0, 0, w, h))
    gen.setTitle(target.scene.template)
    _paint_into(gen, target)
    buf.close()
    return bytes(buf.data())


def _capture_pdf(target: OffscreenTarget, density: int) -> bytes:
    w, h = target.size
    buf = _open_buffer()
    writer = QPdfWriter(buf)
    writer.setPageSize(
        QPageSize(QSizeF(w, h), QPageSize.Unit.Point, "", QPageSize.SizeMatchPolicy.ExactMatch)
    )
    writer.setPageMargins(QMarginsF(0, 0, 0, 0))
    # One device unit per point: the page is exactly the canvas.
    writer.setResolution(72)
    writer.setTitle(target.scene.template)
    _paint_into(writer, target)
    buf.close()
    return bytes(buf.data())


CAPTURERS = {
    StaticFormat.PNG: _capture_png,
    StaticFormat.SVG: _capture_svg,
    StaticFormat.PDF: _capture_pdf,
}


def capture(target: Optional[OffscreenTarget], pixel_density: int, fmt: StaticFormat | str) -> bytes:
    """Render ``target`` into encoded bytes.

    Raises ``CaptureError`` when the target is unmounted, an asset cannot be
    decoded, the format or density is unsupported, or painting fails. No
    partial output is ever returned.
    """
    try:
        fmt = StaticFormat(fmt)
    except ValueError:
        raise CaptureError(f"unsupported capture format {fmt!r}") from None
    if pixel_density not in QUALITY_TIERS.values():
        raise CaptureError(f"unsupported pixel density {pixel_density!r}")
    if target is None or not target.mounted:
        raise CaptureError("render target is not mounted")
    # Block until background decoding is done; raises AssetDecodeError.
    target.assets.wait_until_ready()
    data = CAPTURERS[fmt](target, pixel_density)
    if not data:
        raise CaptureError(f"{fmt.value} capture produced no data")
    log_info(
        "static_captured",
        format=fmt.value,
        density=pixel_density,
        template=target.scene.template,
        bytes=len(data),
    )
    return data


__all__ = ["OffscreenTarget", "capture", "MIME_TYPES"]

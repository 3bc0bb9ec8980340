"""QPainter backend for ``SceneDescription``.

The same ``SceneRenderer.paint`` call draws the interactive preview and every
capture target; callers only differ in the transform they set on the painter
beforehand (preview scale, raster density) and in ``text_offset``.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import (
    QBrush,
    QColor,
    QFont,
    QFontMetricsF,
    QImage,
    QLinearGradient,
    QPainter,
    QPainterPath,
    QPen,
)

from ..config import settings
from ..core.scene import (
    Color,
    EllipseNode,
    ImageNode,
    LineNode,
    PlaceholderNode,
    RectNode,
    SceneDescription,
    TextNode,
)
from .assets import AssetBundle

_ALIGN = {
    "left": Qt.AlignmentFlag.AlignLeft,
    "center": Qt.AlignmentFlag.AlignHCenter,
    "right": Qt.AlignmentFlag.AlignRight,
}


def qcolor(c: Color) -> QColor:
    return QColor(c[0], c[1], c[2], c[3])


def make_font(family: str, size: float, weight: int = 400, *, mono: bool = False,
              italic: bool = False, letter_spacing: float = 0.0) -> QFont:
    font = QFont("monospace" if mono else family)
    if mono:
        font.setStyleHint(QFont.StyleHint.TypeWriter)
    font.setPixelSize(max(1, round(size)))
    font.setWeight(QFont.Weight(weight))
    font.setItalic(italic)
    if letter_spacing:
        font.setLetterSpacing(QFont.SpacingType.AbsoluteSpacing, size * letter_spacing / 100.0)
    return font


def _shape_path(rect: QRectF, shape: str, radius: float) -> QPainterPath:
    path = QPainterPath()
    if shape == "circle":
        path.addEllipse(rect)
    elif shape == "rounded" or radius > 0:
        path.addRoundedRect(rect, radius, radius)
    else:
        path.addRect(rect)
    return path


def _stroke_pen(color: Optional[Color], width: float) -> QPen:
    if color is None or width <= 0:
        return QPen(Qt.PenStyle.NoPen)
    pen = QPen(qcolor(color))
    pen.setWidthF(width)
    return pen


def cover_source_rect(img_w: int, img_h: int, box_w: float, box_h: float) -> QRectF:
    """Centre crop of the image with the box's aspect ratio (object-fit: cover)."""
    if img_w <= 0 or img_h <= 0 or box_w <= 0 or box_h <= 0:
        return QRectF(0, 0, max(img_w, 0), max(img_h, 0))
    box_ratio = box_w / box_h
    if img_w / img_h > box_ratio:
        w = img_h * box_ratio
        return QRectF((img_w - w) / 2, 0, w, img_h)
    h = img_w / box_ratio
    return QRectF(0, (img_h - h) / 2, img_w, h)


class SceneRenderer:
    def __init__(self, font_family: Optional[str] = None):
        self.font_family = font_family or settings.FONT_FAMILY

    def paint(
        self,
        painter: QPainter,
        scene: SceneDescription,
        assets: Optional[AssetBundle] = None,
        text_offset: float = 0.0,
    ) -> None:
        """Paint ``scene`` in canvas coordinates onto an already active painter.

        ``text_offset`` shifts text layers up by that many canvas pixels; only
        capture targets pass it.
        """
        painter.save()
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            painter.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
            bounds = QRectF(0, 0, scene.width, scene.height)
            painter.setClipRect(bounds)
            painter.fillRect(bounds, qcolor(scene.background))
            for node in scene.nodes:
                painter.save()
                try:
                    self._paint_node(painter, node, assets, text_offset)
                finally:
                    painter.restore()
        finally:
            painter.restore()

    def _paint_node(self, painter, node, assets, text_offset) -> None:
        if isinstance(node, RectNode):
            self._rect(painter, node)
        elif isinstance(node, EllipseNode):
            painter.setOpacity(node.opacity)
            painter.setPen(_stroke_pen(node.stroke, node.stroke_width))
            painter.setBrush(QBrush(qcolor(node.fill)) if node.fill else Qt.BrushStyle.NoBrush)
            painter.drawEllipse(QRectF(node.x, node.y, node.w, node.h))
        elif isinstance(node, LineNode):
            pen = QPen(qcolor(node.color))
            pen.setWidthF(node.width)
            if node.dashed:
                pen.setStyle(Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.drawLine(QPointF(node.x1, node.y1), QPointF(node.x2, node.y2))
        elif isinstance(node, TextNode):
            self._text(painter, node, text_offset)
        elif isinstance(node, ImageNode):
            self._image(painter, node, assets)
        elif isinstance(node, PlaceholderNode):
            self._placeholder(painter, node)
        else:  # pragma: no cover
            raise TypeError(f"unsupported scene node {type(node).__name__}")

    def _rect(self, painter: QPainter, node: RectNode) -> None:
        rect = QRectF(node.x, node.y, node.w, node.h)
        painter.setOpacity(node.opacity)
        if node.gradient is not None:
            if node.gradient_direction == "diagonal":
                grad = QLinearGradient(rect.topLeft(), rect.bottomRight())
            else:
                grad = QLinearGradient(rect.topLeft(), rect.bottomLeft())
            grad.setColorAt(0.0, qcolor(node.gradient[0]))
            grad.setColorAt(1.0, qcolor(node.gradient[1]))
            painter.setBrush(QBrush(grad))
        elif node.fill is not None:
            painter.setBrush(QBrush(qcolor(node.fill)))
        else:
            painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.setPen(_stroke_pen(node.stroke, node.stroke_width))
        if node.radius > 0:
            painter.drawRoundedRect(rect, node.radius, node.radius)
        else:
            painter.drawRect(rect)

    def _text(self, painter: QPainter, node: TextNode, text_offset: float) -> None:
        font = make_font(self.font_family, node.size, node.weight, mono=node.mono,
                         italic=node.italic, letter_spacing=node.letter_spacing)
        metrics = QFontMetricsF(font)
        painter.setFont(font)
        painter.setOpacity(node.opacity)
        painter.setPen(qcolor(node.color))
        line_h = node.size * node.line_height
        flags = _ALIGN.get(node.align, Qt.AlignmentFlag.AlignHCenter) | Qt.AlignmentFlag.AlignVCenter
        for i, line in enumerate(node.lines):
            rect = QRectF(node.x, node.y - text_offset + i * line_h, node.w, line_h)
            shown = metrics.elidedText(line, Qt.TextElideMode.ElideRight, node.w)
            painter.drawText(rect, flags, shown)

    def _image(self, painter: QPainter, node: ImageNode, assets: Optional[AssetBundle]) -> None:
        rect = QRectF(node.x, node.y, node.w, node.h)
        path = _shape_path(rect, node.shape, node.radius)
        image: Optional[QImage] = assets.peek(node.asset) if assets is not None else None
        painter.setOpacity(node.opacity)
        painter.save()
        painter.setClipPath(path, Qt.ClipOperation.IntersectClip)
        if image is None:
            # not decoded yet (preview only; capture waits for assets)
            painter.fillRect(rect, QColor(128, 128, 128, 60))
        else:
            painter.drawImage(rect, image, cover_source_rect(image.width(), image.height(), node.w, node.h))
        painter.restore()
        if node.stroke is not None and node.stroke_width > 0:
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.setPen(_stroke_pen(node.stroke, node.stroke_width))
            painter.drawPath(path)

    def _placeholder(self, painter: QPainter, node: PlaceholderNode) -> None:
        rect = QRectF(node.x, node.y, node.w, node.h)
        path = _shape_path(rect, node.shape, node.radius)
        painter.setOpacity(node.opacity)
        painter.setBrush(QBrush(qcolor(node.fill)))
        painter.setPen(_stroke_pen(node.stroke, node.stroke_width))
        painter.drawPath(path)
        size = min(node.w, node.h) * 0.38
        painter.setFont(make_font(self.font_family, size, 800))
        painter.setPen(qcolor(node.color))
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, node.mark)


__all__ = ["SceneRenderer", "qcolor", "make_font", "cover_source_rect"]

"""Animated background styles.

Each style is a row in ``STYLES`` (text colours for the foreground) plus a
background painter. Painters are pure functions of (style, size, frame,
particles): the same frame index always produces the same pixels, which is
what lets the frame engine render frames independently of wall-clock time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np
from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QLinearGradient, QPainter, QPen, QRadialGradient


@dataclass(frozen=True)
class StyleSpec:
    id: str
    label: str
    title: QColor
    value: QColor
    muted: QColor
    accent: QColor
    box_fill: QColor
    box_stroke: QColor
    glow: Optional[QColor] = None


def _c(hex_value: str, alpha: int = 255) -> QColor:
    color = QColor(hex_value)
    color.setAlpha(alpha)
    return color


STYLES: dict[str, StyleSpec] = {
    "cinematic": StyleSpec(
        "cinematic", "Cinematic",
        title=_c("#ffffff"), value=_c("#ffffff"), muted=_c("#94a3b8"),
        accent=_c("#fbbf24"), box_fill=_c("#ffffff", 20), box_stroke=_c("#ffffff", 40),
    ),
    "neon": StyleSpec(
        "neon", "Neon",
        title=_c("#ffffff"), value=_c("#ffffff"), muted=_c("#f0abfc"),
        accent=_c("#ec4899"), box_fill=_c("#ffffff", 12), box_stroke=_c("#d946ef", 110),
        glow=_c("#d946ef"),
    ),
    "minimal": StyleSpec(
        "minimal", "Minimal",
        title=_c("#0f172a"), value=_c("#0f172a"), muted=_c("#64748b"),
        accent=_c("#4f46e5"), box_fill=_c("#0f172a", 10), box_stroke=_c("#0f172a", 30),
    ),
    "cosmic": StyleSpec(
        "cosmic", "Cosmic",
        title=_c("#ffffff"), value=_c("#e0e7ff"), muted=_c("#a5b4fc"),
        accent=_c("#818cf8"), box_fill=_c("#ffffff", 16), box_stroke=_c("#a5b4fc", 60),
    ),
    "retro": StyleSpec(
        "retro", "Retro",
        title=_c("#fcd34d"), value=_c("#00f3ff"), muted=_c("#f9a8d4"),
        accent=_c("#db2777"), box_fill=_c("#000000", 60), box_stroke=_c("#00f3ff", 90),
        glow=_c("#db2777"),
    ),
}


def resolve_style(style_id: str) -> StyleSpec:
    try:
        return STYLES[style_id]
    except KeyError:
        raise KeyError(f"unknown video style {style_id!r}") from None


@dataclass(frozen=True)
class Particle:
    x: float
    y: float
    size: float
    speed: float
    offset: float
    alpha: int


def make_particles(seed: int, count: int, width: int, height: int) -> tuple[Particle, ...]:
    """Deterministic particle field for one run."""
    rng = np.random.default_rng(seed)
    xs = rng.uniform(0, width, count)
    ys = rng.uniform(0, height, count)
    sizes = rng.uniform(0.5, 3.0, count)
    speeds = rng.uniform(0.3, 0.7, count)
    offsets = rng.uniform(0, 1000, count)
    alphas = rng.integers(60, 200, count)
    return tuple(
        Particle(float(x), float(y), float(s), float(v), float(o), int(a))
        for x, y, s, v, o, a in zip(xs, ys, sizes, speeds, offsets, alphas)
    )


def _cinematic(p: QPainter, w: int, h: int, frame: int, particles: Sequence[Particle]) -> None:
    grad = QLinearGradient(0, 0, w, h)
    grad.setColorAt(0.0, QColor("#0f172a"))
    grad.setColorAt(1.0, QColor("#020617"))
    p.fillRect(QRectF(0, 0, w, h), grad)
    p.setPen(Qt.PenStyle.NoPen)
    for part in particles:
        # rise about half a pixel per frame, wrapping at the top
        y = (part.y - frame * part.speed) % h
        p.setBrush(QColor(251, 191, 36, part.alpha))
        p.drawEllipse(QPointF(part.x, y), part.size, part.size)


def _neon(p: QPainter, w: int, h: int, frame: int, particles: Sequence[Particle]) -> None:
    p.fillRect(QRectF(0, 0, w, h), QColor("#050505"))
    pulse = 0.15 + 0.05 * math.sin(frame * 0.05)
    pen = QPen(QColor(236, 72, 153, int(255 * pulse)))
    pen.setWidthF(2.0)
    p.setPen(pen)
    offset = (frame * 2) % 100
    for x in range(0, w + 100, 100):
        p.drawLine(QPointF(x, 0), QPointF(x, h))
    for y in range(-100, h + 100, 100):
        p.drawLine(QPointF(0, y + offset), QPointF(w, y + offset))


def _minimal(p: QPainter, w: int, h: int, frame: int, particles: Sequence[Particle]) -> None:
    p.fillRect(QRectF(0, 0, w, h), QColor("#ffffff"))
    grad = QRadialGradient(QPointF(w / 2, h / 2), max(w, h) * 0.7)
    grad.setColorAt(0.0, QColor(79, 70, 229, 13))
    grad.setColorAt(1.0, QColor(79, 70, 229, 0))
    p.fillRect(QRectF(0, 0, w, h), grad)


def _cosmic(p: QPainter, w: int, h: int, frame: int, particles: Sequence[Particle]) -> None:
    grad = QRadialGradient(QPointF(w / 2, h / 2), max(w, h) * 0.8)
    grad.setColorAt(0.0, QColor("#1e1b4b"))
    grad.setColorAt(1.0, QColor("#000000"))
    p.fillRect(QRectF(0, 0, w, h), grad)
    p.setPen(Qt.PenStyle.NoPen)
    for part in particles:
        radius = max(0.0, part.size * (math.sin((frame + part.offset) * 0.05) + 1.5) / 2)
        p.setBrush(QColor(255, 255, 255, part.alpha))
        p.drawEllipse(QPointF(part.x, part.y), radius, radius)


def _retro(p: QPainter, w: int, h: int, frame: int, particles: Sequence[Particle]) -> None:
    sky = QLinearGradient(0, 0, 0, h)
    sky.setColorAt(0.0, QColor("#2a0a2e"))
    sky.setColorAt(1.0, QColor("#0f041a"))
    p.fillRect(QRectF(0, 0, w, h), sky)
    cx, cy, r = w / 2, h * 0.7, 400.0
    sun = QLinearGradient(0, cy - r, 0, cy + r)
    sun.setColorAt(0.0, QColor("#fbbf24"))
    sun.setColorAt(1.0, QColor("#db2777"))
    p.setPen(Qt.PenStyle.NoPen)
    p.setBrush(sun)
    p.drawEllipse(QPointF(cx, cy), r, r)
    pen = QPen(QColor(0, 0, 0, 60))
    pen.setWidthF(2.0)
    p.setPen(pen)
    for y in range(0, h, 6):
        p.drawLine(QPointF(0, y), QPointF(w, y))


BackgroundPainter = Callable[[QPainter, int, int, int, Sequence[Particle]], None]

BACKGROUNDS: dict[str, BackgroundPainter] = {
    "cinematic": _cinematic,
    "neon": _neon,
    "minimal": _minimal,
    "cosmic": _cosmic,
    "retro": _retro,
}


def paint_background(
    painter: QPainter,
    style_id: str,
    width: int,
    height: int,
    frame: int,
    particles: Sequence[Particle] = (),
) -> None:
    painter.save()
    try:
        BACKGROUNDS[resolve_style(style_id).id](painter, width, height, frame, particles)
    finally:
        painter.restore()


__all__ = [
    "StyleSpec",
    "STYLES",
    "Particle",
    "resolve_style",
    "make_particles",
    "paint_background",
]

"""Animated frame engine.

Turns an ``AnimationScript`` (title, stats, hero number) into a fixed number of
frames, paints each frame with QPainter and streams it into a video encoder.

Design:
``AnimatedFrameEngine`` owns a precise ``QTimer``; each tick renders exactly one
frame, so the output always has ``duration × fps`` frames regardless of how
fast the machine is. With ``REALTIME_RENDER`` the timer interval is the frame
period (the export plays back live in the preview); otherwise ticks fire as
fast as the event loop allows.

Every run gets its own ``AnimationContext`` (config, timeline, particles,
surface, encoder, counters). Nothing about a run lives on the engine itself,
so a cancelled or superseded run cannot leak into the next one: starting
while a run is active cancels it first, and ticks for a context that is no
longer current are ignored.

States: ``idle`` -> ``running`` -> ``finalizing`` -> ``idle``.
Signals:
    stateChanged(str)
    frameRendered(int, int)   # frames done, total frames
    finished(object)          # EncodedVideo
    failed(str)
    cancelled()
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from time import perf_counter
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
from PySide6.QtCore import QObject, QRectF, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QFontMetricsF, QImage, QPainter, QPainterPath, QPen

from ..config import settings
from ..core.models import ExportConfig, Milestone, StatPayload, UserProfile
from ..core.stats import compute_elapsed
from ..core.templates import fit_lines
from ..core.timeline import AnimationTimeline
from ..errors import ExportError
from ..utils.easing import clamp01, ease_out_back, ease_out_expo, heartbeat_pulse
from ..utils.log import log_error, log_info
from ..utils.timefmt import format_count, format_date
from .encoder import EncodedVideo, StreamingVideoEncoder
from .render import make_font
from .styles import Particle, StyleSpec, make_particles, paint_background, resolve_style

IDLE = "idle"
RUNNING = "running"
FINALIZING = "finalizing"

# Stat labels that read better under a given style.
STYLE_LABELS: dict[str, dict[str, str]] = {
    "cosmic": {"Days": "Earth Rotations", "Years": "Sun Orbits"},
}

SCRIPT_UNITS = ("years", "months", "weeks", "days", "hours", "minutes")


@dataclass(frozen=True)
class AnimationScript:
    title: str
    subtitle: str
    stats: Tuple[Tuple[str, int], ...]
    hero: Tuple[str, int]

    @classmethod
    def from_stat_payload(cls, payload: StatPayload, profile: UserProfile) -> "AnimationScript":
        counts = payload.counts()
        return cls(
            title=payload.title,
            subtitle=f"Life Timeline of {profile.name.strip() or 'User'}",
            stats=tuple((u.capitalize(), counts[u]) for u in SCRIPT_UNITS),
            hero=("Seconds Alive", payload.seconds),
        )

    @classmethod
    def from_milestone(cls, milestone: Milestone, profile: UserProfile) -> "AnimationScript":
        elapsed = compute_elapsed(profile.birth_instant(), milestone.date)
        return cls(
            title=milestone.title,
            subtitle=format_date(milestone.date, "MMMM do, yyyy"),
            stats=tuple((u.capitalize(), getattr(elapsed, u)) for u in SCRIPT_UNITS),
            hero=("Seconds Alive", elapsed.seconds),
        )

    @classmethod
    def for_payload(cls, payload: Union[Milestone, StatPayload], profile: UserProfile) -> "AnimationScript":
        if isinstance(payload, StatPayload):
            return cls.from_stat_payload(payload, profile)
        return cls.from_milestone(payload, profile)


@dataclass
class AnimationContext:
    run_id: int
    config: ExportConfig
    script: AnimationScript
    timeline: AnimationTimeline
    particles: Tuple[Particle, ...]
    surface: QImage
    encoder: StreamingVideoEncoder
    started_at: float
    frame: int = 0
    result: Optional[EncodedVideo] = None


EncoderFactory = Callable[[int, int, int], StreamingVideoEncoder]


def _default_encoder_factory(width: int, height: int, fps: int) -> StreamingVideoEncoder:
    return StreamingVideoEncoder(width, height, fps)


def qimage_to_rgb(image: QImage) -> np.ndarray:
    """Copy a QImage into a contiguous ``(h, w, 3)`` uint8 array."""
    rgb = image.convertToFormat(QImage.Format.Format_RGB888)
    w, h = rgb.width(), rgb.height()
    stride = rgb.bytesPerLine()
    buf = np.frombuffer(rgb.constBits(), dtype=np.uint8, count=stride * h)
    return buf.reshape(h, stride)[:, : w * 3].reshape(h, w, 3).copy()


def heart_path(cx: float, cy: float, size: float) -> QPainterPath:
    s = size / 2
    path = QPainterPath()
    path.moveTo(cx, cy + s * 0.9)
    path.cubicTo(cx - s * 1.6, cy - s * 0.1, cx - s * 0.6, cy - s * 1.3, cx, cy - s * 0.45)
    path.cubicTo(cx + s * 0.6, cy - s * 1.3, cx + s * 1.6, cy - s * 0.1, cx, cy + s * 0.9)
    return path


def _draw_text(p: QPainter, rect: QRectF, text: str, font, color: QColor,
               glow: Optional[QColor] = None, opacity: float = 1.0) -> None:
    p.setFont(font)
    shown = QFontMetricsF(font).elidedText(text, Qt.TextElideMode.ElideRight, rect.width())
    if glow is not None:
        halo = QColor(glow)
        halo.setAlpha(int(90 * opacity))
        p.setPen(halo)
        for dx, dy in ((-3, 0), (3, 0), (0, -3), (0, 3)):
            p.drawText(rect.translated(dx, dy), Qt.AlignmentFlag.AlignCenter, shown)
    c = QColor(color)
    c.setAlphaF(c.alphaF() * opacity)
    p.setPen(c)
    p.drawText(rect, Qt.AlignmentFlag.AlignCenter, shown)


def _paint_title(p: QPainter, style: StyleSpec, script: AnimationScript, timeline: AnimationTimeline,
                 frame: int, w: int, h: int, family: str) -> float:
    """Paint title + subtitle; return the bottom edge of the block."""
    pad = w * 0.08
    size = w * 0.067
    cpl = max(4, int((w - 2 * pad) / (size * 0.54)))
    lines = fit_lines(script.title, cpl, 2)
    sub_size = w * 0.03
    top = h * 0.10
    bottom = top + len(lines) * size * 1.25 + 16 + sub_size * 1.3

    progress = timeline.title.progress(frame)
    if progress <= 0:
        return bottom
    eased = ease_out_back(progress)
    opacity = clamp01(progress * 2)
    shift = (1 - eased) * 60
    font = make_font(family, size, 900)
    for i, line in enumerate(lines):
        rect = QRectF(pad, top + shift + i * size * 1.25, w - 2 * pad, size * 1.25)
        _draw_text(p, rect, line, font, style.title, style.glow, opacity)
    sub_rect = QRectF(pad, top + shift + len(lines) * size * 1.25 + 16, w - 2 * pad, sub_size * 1.3)
    _draw_text(p, sub_rect, script.subtitle.upper(), make_font(family, sub_size, 700, letter_spacing=20),
               style.muted, None, opacity)
    return bottom


def _paint_stats(p: QPainter, style: StyleSpec, style_id: str, script: AnimationScript,
                 timeline: AnimationTimeline, frame: int, w: int, h: int, top: float,
                 family: str) -> None:
    n = len(script.stats)
    if n == 0:
        return
    pad = w * 0.08
    gap = 20.0
    cols = 2
    rows = math.ceil(n / cols)
    bottom = h * 0.66
    box_w = (w - 2 * pad - gap) / cols
    box_h = min(170.0, (bottom - top - gap * (rows - 1)) / rows)
    labels = STYLE_LABELS.get(style_id, {})
    value_font = make_font(family, box_h * 0.36, 800)
    label_font = make_font(family, box_h * 0.14, 700, letter_spacing=15)
    for i, (label, value) in enumerate(script.stats):
        stage = timeline.stats[i]
        if not stage.started(frame):
            continue
        progress = stage.progress(frame)
        eased = ease_out_expo(progress)
        opacity = clamp01(progress * 3)
        r, c = divmod(i, cols)
        x = pad + c * (box_w + gap)
        y = top + r * (box_h + gap) + (1 - eased) * 30
        box = QRectF(x, y, box_w, box_h)
        p.save()
        p.setOpacity(opacity)
        pen = QPen(style.box_stroke)
        pen.setWidthF(2.0)
        p.setPen(pen)
        p.setBrush(style.box_fill)
        p.drawRoundedRect(box, 24, 24)
        p.restore()
        shown = format_count(round(value * eased))
        _draw_text(p, QRectF(x, y + box_h * 0.12, box_w, box_h * 0.5), shown, value_font,
                   style.value, style.glow, opacity)
        _draw_text(p, QRectF(x, y + box_h * 0.64, box_w, box_h * 0.24),
                   labels.get(label, label).upper(), label_font, style.muted, None, opacity)


def _paint_finale(p: QPainter, style: StyleSpec, script: AnimationScript, timeline: AnimationTimeline,
                  frame: int, w: int, h: int, family: str) -> None:
    if not timeline.in_finale(frame):
        return
    progress = timeline.finale.progress(frame)
    eased = ease_out_expo(progress)
    opacity = clamp01(progress * 2)
    # overshoot entrance, then the heart keeps beating
    cx, cy = w / 2, h * 0.74 + (1 - ease_out_back(progress)) * 40
    heart = min(w, h) * 0.07 * heartbeat_pulse(frame, timeline.fps)
    p.save()
    p.setOpacity(opacity)
    p.setPen(Qt.PenStyle.NoPen)
    p.setBrush(style.accent)
    p.drawPath(heart_path(cx, cy, heart))
    p.restore()
    label_size = w * 0.026
    label_top = cy + min(w, h) * 0.05
    label, value = script.hero
    _draw_text(p, QRectF(0, label_top, w, label_size * 1.3), label.upper(),
               make_font(family, label_size, 700, letter_spacing=30), style.muted, None, opacity)
    value_size = w * 0.075
    _draw_text(p, QRectF(0, label_top + label_size * 1.6, w, value_size * 1.25),
               format_count(round(value * eased)), make_font(family, value_size, 900),
               style.value, style.glow, opacity)


def render_frame(
    surface: QImage,
    *,
    script: AnimationScript,
    timeline: AnimationTimeline,
    style_id: str,
    particles: Sequence[Particle],
    frame: int,
    font_family: Optional[str] = None,
) -> QImage:
    """Paint frame ``frame`` of the animation onto ``surface`` and return it."""
    family = font_family or settings.FONT_FAMILY
    style = resolve_style(style_id)
    w, h = surface.width(), surface.height()
    p = QPainter(surface)
    if not p.isActive():
        raise ExportError("could not begin painting animation frame")
    try:
        p.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        p.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)
        paint_background(p, style_id, w, h, frame, particles)
        bottom = _paint_title(p, style, script, timeline, frame, w, h, family)
        top = max(h * 0.30, bottom + 40)
        _paint_stats(p, style, style_id, script, timeline, frame, w, h, top, family)
        _paint_finale(p, style, script, timeline, frame, w, h, family)
    finally:
        p.end()
    return surface


class AnimatedFrameEngine(QObject):
    stateChanged = Signal(str)
    frameRendered = Signal(int, int)
    finished = Signal(object)
    failed = Signal(str)
    cancelled = Signal()

    def __init__(
        self,
        parent: Optional[QObject] = None,
        *,
        encoder_factory: Optional[EncoderFactory] = None,
        realtime: Optional[bool] = None,
        font_family: Optional[str] = None,
    ):
        super().__init__(parent)
        self._encoder_factory = encoder_factory or _default_encoder_factory
        self._realtime = settings.REALTIME_RENDER if realtime is None else realtime
        self._font_family = font_family or settings.FONT_FAMILY
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.TimerType.PreciseTimer)
        self._timer.timeout.connect(self._tick)
        self._ctx: Optional[AnimationContext] = None
        self._run_seq = 0
        self._state = IDLE

    # Public API
    @property
    def state(self) -> str:
        return self._state

    def is_running(self) -> bool:
        return self._ctx is not None

    def current_run(self) -> Optional[int]:
        return self._ctx.run_id if self._ctx is not None else None

    def start(self, config: ExportConfig, script: AnimationScript, *, drive: bool = True) -> int:
        """Begin a run; returns its id. With ``drive=False`` no timer is started."""
        if self._ctx is not None:
            self.cancel()
        w, h = config.canvas_size()
        timeline = AnimationTimeline.build(config.total_frames(), config.frame_rate, len(script.stats))
        encoder = self._encoder_factory(w, h, config.frame_rate)
        self._run_seq += 1
        surface = QImage(w, h, QImage.Format.Format_RGB32)
        self._ctx = AnimationContext(
            run_id=self._run_seq,
            config=config,
            script=script,
            timeline=timeline,
            particles=make_particles(settings.PARTICLE_SEED, settings.PARTICLE_COUNT, w, h),
            surface=surface,
            encoder=encoder,
            started_at=perf_counter(),
        )
        self._set_state(RUNNING)
        log_info(
            "video_render_started",
            run=self._run_seq,
            style=config.video_style,
            frames=timeline.total_frames,
            fps=config.frame_rate,
        )
        if drive:
            interval = int(1000 / config.frame_rate) if self._realtime else 0
            self._timer.start(interval)
        return self._run_seq

    def cancel(self) -> bool:
        ctx = self._ctx
        if ctx is None:
            return False
        self._timer.stop()
        self._ctx = None
        ctx.encoder.abort()
        self._set_state(IDLE)
        log_info("video_render_cancelled", run=ctx.run_id, frame=ctx.frame)
        self.cancelled.emit()
        return True

    def run_to_completion(self) -> Optional[EncodedVideo]:
        """Drive the current run synchronously; returns the video or None on failure."""
        ctx = self._ctx
        if ctx is None:
            return None
        self._timer.stop()
        while self._ctx is ctx:
            self._advance(ctx)
        return ctx.result

    def render_poster(
        self, config: ExportConfig, script: AnimationScript, frame: Optional[int] = None
    ) -> QImage:
        """Single frame (default: the last one) without touching any encoder."""
        w, h = config.canvas_size()
        timeline = AnimationTimeline.build(config.total_frames(), config.frame_rate, len(script.stats))
        index = timeline.total_frames - 1 if frame is None else max(0, min(frame, timeline.total_frames - 1))
        return render_frame(
            QImage(w, h, QImage.Format.Format_RGB32),
            script=script,
            timeline=timeline,
            style_id=config.video_style,
            particles=make_particles(settings.PARTICLE_SEED, settings.PARTICLE_COUNT, w, h),
            frame=index,
            font_family=self._font_family,
        )

    # Internal
    def _set_state(self, state: str) -> None:
        if state != self._state:
            self._state = state
            self.stateChanged.emit(state)

    def _tick(self):
        ctx = self._ctx
        if ctx is None:
            self._timer.stop()
            return
        self._advance(ctx)

    def _advance(self, ctx: AnimationContext) -> None:
        total = ctx.timeline.total_frames
        try:
            if ctx.frame < total:
                image = render_frame(
                    ctx.surface,
                    script=ctx.script,
                    timeline=ctx.timeline,
                    style_id=ctx.config.video_style,
                    particles=ctx.particles,
                    frame=ctx.frame,
                    font_family=self._font_family,
                )
                ctx.encoder.write_frame(qimage_to_rgb(image))
                ctx.frame += 1
                self.frameRendered.emit(ctx.frame, total)
        except (ExportError, ValueError, OSError) as e:
            self._fail(ctx, str(e))
            return
        if ctx.frame >= total and self._ctx is ctx:
            self._finish(ctx)

    def _finish(self, ctx: AnimationContext) -> None:
        self._timer.stop()
        self._set_state(FINALIZING)
        try:
            video = ctx.encoder.finalize()
        except ExportError as e:
            self._fail(ctx, str(e))
            return
        ctx.result = video
        self._ctx = None
        self._set_state(IDLE)
        log_info(
            "video_render_finished",
            run=ctx.run_id,
            frames=video.frames,
            codec=video.codec,
            bytes=len(video.data),
            seconds=round(perf_counter() - ctx.started_at, 3),
        )
        self.finished.emit(video)

    def _fail(self, ctx: AnimationContext, message: str) -> None:
        self._timer.stop()
        self._ctx = None
        ctx.encoder.abort()
        self._set_state(IDLE)
        log_error("video_render_failed", run=ctx.run_id, frame=ctx.frame, error=message)
        self.failed.emit(message)


__all__ = [
    "AnimationScript",
    "AnimationContext",
    "AnimatedFrameEngine",
    "render_frame",
    "qimage_to_rgb",
    "heart_path",
]

"""Staged reveal timeline for animated exports.

An animated export is a fixed number of frames ``T``. Content is revealed in
stages measured in frames:

- title: ``[0, 0.15·T)``, eased with overshoot
- one stage per stat: starts at ``0.15·T``, ``0.25·T``, ``0.35·T`` ... with a
  reveal window of two thirds of a second; the step is compressed when a stat
  would otherwise start at or after the finale
- finale: starts at ``ceil(0.75·T)`` and lasts one second

Every stage is clamped into ``[0, T]`` so ``progress`` is always defined.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from ..utils.easing import clamp01

TITLE_FRACTION = 0.15
STAT_START_FRACTION = 0.15
STAT_STEP_FRACTION = 0.10
FINALE_FRACTION = 0.75


@dataclass(frozen=True)
class RevealStage:
    name: str
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length

    def progress(self, frame: int) -> float:
        """Linear 0..1 progress of ``frame`` through this stage."""
        if self.length <= 0:
            return 1.0 if frame >= self.start else 0.0
        return clamp01((frame - self.start) / self.length)

    def started(self, frame: int) -> bool:
        return frame >= self.start


@dataclass(frozen=True)
class AnimationTimeline:
    total_frames: int
    fps: int
    title: RevealStage
    stats: Tuple[RevealStage, ...]
    finale: RevealStage

    @classmethod
    def build(cls, total_frames: int, fps: int, stat_count: int) -> "AnimationTimeline":
        if total_frames <= 0:
            raise ValueError("total_frames must be positive")
        if fps <= 0:
            raise ValueError("fps must be positive")
        if stat_count < 0:
            raise ValueError("stat_count must be non-negative")
        T = total_frames

        def clamp(name: str, start: int, length: int) -> RevealStage:
            start = max(0, min(start, T))
            return RevealStage(name, start, max(0, min(length, T - start)))

        title = clamp("title", 0, max(1, int(T * TITLE_FRACTION)))
        finale_start = math.ceil(T * FINALE_FRACTION)
        finale = clamp("finale", finale_start, fps)

        step = STAT_STEP_FRACTION
        if stat_count > 1:
            # Last stat must start strictly before the finale.
            room = FINALE_FRACTION - STAT_START_FRACTION
            step = min(step, room / stat_count)
        window = max(1, round(fps * 2 / 3))
        stats = tuple(
            clamp(f"stat{i}", int(T * (STAT_START_FRACTION + step * i)), window)
            for i in range(stat_count)
        )
        return cls(total_frames=T, fps=fps, title=title, stats=stats, finale=finale)

    def stages(self) -> Tuple[RevealStage, ...]:
        return (self.title, *self.stats, self.finale)

    def in_finale(self, frame: int) -> bool:
        return self.finale.started(frame)


__all__ = ["RevealStage", "AnimationTimeline", "FINALE_FRACTION"]

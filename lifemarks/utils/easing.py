"""Easing curves shared by the frame engine."""

from __future__ import annotations

import math

BACK_C1 = 1.70158
BACK_C3 = BACK_C1 + 1


def clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else x


def ease_out_expo(x: float) -> float:
    return 1.0 if x == 1 else 1 - math.pow(2, -10 * x)


def ease_out_back(x: float) -> float:
    """Ease-out with overshoot: passes 1.0 around x≈0.6 and settles back to 1."""
    return 1 + BACK_C3 * math.pow(x - 1, 3) + BACK_C1 * math.pow(x - 1, 2)


def heartbeat_pulse(frame: int, fps: int, bpm: float = 72.0, strength: float = 0.1) -> float:
    """Scale factor for a beat at ``bpm``; swells during the first fifth of each beat."""
    beat_frames = max(1.0, fps * 60.0 / bpm)
    phase = (frame % beat_frames) / beat_frames
    if phase < 0.2:
        return 1.0 + math.sin(phase * math.pi * 5) * strength
    return 1.0


__all__ = ["clamp01", "ease_out_expo", "ease_out_back", "heartbeat_pulse"]

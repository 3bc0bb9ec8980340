import pytest

from lifemarks.utils.easing import clamp01, ease_out_back, ease_out_expo, heartbeat_pulse


def test_clamp01():
    assert clamp01(-0.5) == 0.0
    assert clamp01(0.25) == 0.25
    assert clamp01(3) == 1.0


def test_ease_out_expo_endpoints():
    assert ease_out_expo(0) == 0.0
    assert ease_out_expo(1) == 1.0
    assert ease_out_expo(0.5) > 0.9


def test_ease_out_back_overshoots_then_settles():
    assert ease_out_back(0) == pytest.approx(0.0)
    assert ease_out_back(1) == pytest.approx(1.0)
    assert max(ease_out_back(x / 100) for x in range(100)) > 1.0


def test_heartbeat_pulse_swells_only_early_in_the_beat():
    fps = 60
    beat = fps * 60 / 72  # 50 frames
    assert heartbeat_pulse(0, fps) == pytest.approx(1.0)
    assert heartbeat_pulse(5, fps) > 1.0
    assert heartbeat_pulse(int(beat * 0.5), fps) == 1.0
    assert heartbeat_pulse(5, fps) == pytest.approx(heartbeat_pulse(55, fps))

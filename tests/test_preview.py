from datetime import date, datetime

import pytest
from PySide6.QtGui import QImage
from PySide6.QtWidgets import QApplication

from lifemarks.core.models import Milestone, UserProfile
from lifemarks.core.templates import SceneFlags, build_scene
from lifemarks.core.themes import resolve
from lifemarks.ui.components.preview_panel import PreviewPanel, ScenePreviewWidget, compute_preview_scale

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])


def _scene(ratio="9:16"):
    return build_scene(
        Milestone(id="m", title="Graduation", date=datetime(2024, 5, 13)),
        resolve("ocean"),
        "classic",
        ratio,
        SceneFlags(),
        profile=UserProfile(name="Ada", dob=date(1990, 3, 14)),
        now=datetime(2024, 5, 1),
    )


def test_compute_preview_scale():
    assert compute_preview_scale(540, 960, 1080, 1920) == pytest.approx(0.5)
    assert compute_preview_scale(1000, 500, 1080, 1080) == pytest.approx(500 / 1080)
    assert compute_preview_scale(5000, 5000, 1080, 1080) == pytest.approx(0.95)
    assert compute_preview_scale(5000, 5000, 1080, 1080, max_scale=1.0) == pytest.approx(1.0)
    assert compute_preview_scale(0, 500, 1080, 1080) == 0.0
    assert compute_preview_scale(-40, 500, 1080, 1080) == 0.0


def test_preview_scale_tracks_widget_size():
    """Regression: the preview must shrink again after being enlarged."""
    _ensure_app()
    w = ScenePreviewWidget()
    w.setScene(_scene())
    w.resize(1000, 1200)
    large = w.scale()
    w.resize(560, 1000)
    small = w.scale()
    assert large == pytest.approx(min(960 / 1080, 1160 / 1920, 0.95))
    assert small == pytest.approx(min(520 / 1080, 960 / 1920))
    assert small < large


def test_preview_scale_follows_scene_ratio():
    _ensure_app()
    w = ScenePreviewWidget()
    w.resize(540, 540)
    w.setScene(_scene("9:16"))
    portrait = w.scale()
    w.setScene(_scene("1:1"))
    square = w.scale()
    assert portrait == pytest.approx(500 / 1920)
    assert square == pytest.approx(500 / 1080)


def test_preview_paints_without_scene_or_space():
    _ensure_app()
    w = ScenePreviewWidget()
    w.resize(10, 10)
    assert w.scale() == 0.0
    assert not w.grab().isNull()


def test_preview_paints_scene_and_poster():
    _ensure_app()
    panel = PreviewPanel()
    panel.resize(300, 560)
    panel.showScene(_scene())
    assert "Classic" in panel.caption.text()
    assert not panel.grab().isNull()
    poster = QImage(1080, 1080, QImage.Format.Format_RGB32)
    poster.fill(0)
    panel.showPoster(poster, "neon")
    assert panel.preview.canvasSize() == (1080, 1080)
    assert "neon" in panel.caption.text()
    assert not panel.grab().isNull()

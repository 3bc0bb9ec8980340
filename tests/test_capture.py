from datetime import date, datetime
from io import BytesIO

import pytest
from PIL import Image
from PySide6.QtWidgets import QApplication

from lifemarks.core.models import Milestone, StaticFormat, UserProfile
from lifemarks.core.templates import SceneFlags, build_scene
from lifemarks.core.themes import resolve
from lifemarks.errors import AssetDecodeError, CaptureError
from lifemarks.services.capture import OffscreenTarget, capture

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])


NOW = datetime(2024, 5, 1)


def _scene(ratio="1:1", profile=None, template="classic"):
    # the avatar block only survives layout on the 9:16 canvas
    profile = profile or UserProfile(name="Ada Lovelace", dob=date(1990, 3, 14))
    m = Milestone(id="m", title="Graduation", date=datetime(2024, 5, 13))
    return build_scene(m, resolve("dark"), template, ratio, SceneFlags(), profile=profile, now=NOW)


@pytest.mark.parametrize("density", [1, 2])
def test_png_is_canvas_times_density(density):
    _ensure_app()
    data = capture(OffscreenTarget(_scene("4:5")), density, StaticFormat.PNG)
    assert data.startswith(b"\x89PNG")
    with Image.open(BytesIO(data)) as img:
        assert img.size == (1080 * density, 1350 * density)


def test_png_paints_theme_background():
    _ensure_app()
    data = capture(OffscreenTarget(_scene(template="minimal")), 1, "png")
    with Image.open(BytesIO(data)) as img:
        assert img.convert("RGB").getpixel((3, 3)) == resolve("dark").base


def test_svg_and_pdf_are_vector_documents():
    _ensure_app()
    svg = capture(OffscreenTarget(_scene()), 2, StaticFormat.SVG)
    assert b"<svg" in svg
    assert b"Graduation" in svg
    pdf = capture(OffscreenTarget(_scene()), 4, StaticFormat.PDF)
    assert pdf.startswith(b"%PDF")


def test_capture_embeds_decoded_assets(tmp_path):
    _ensure_app()
    avatar = tmp_path / "avatar.png"
    Image.new("RGB", (40, 30), (200, 30, 30)).save(avatar)
    profile = UserProfile(name="Ada", dob=date(1990, 3, 14), avatar=str(avatar))
    target = OffscreenTarget(_scene("9:16", profile=profile))
    assert "avatar" in target.assets
    data = capture(target, 1, StaticFormat.PNG)
    assert data.startswith(b"\x89PNG")
    assert target.assets.is_ready()


def test_broken_asset_aborts_capture(tmp_path):
    _ensure_app()
    broken = tmp_path / "avatar.png"
    broken.write_text("not an image")
    profile = UserProfile(name="Ada", dob=date(1990, 3, 14), avatar=str(broken))
    with pytest.raises(AssetDecodeError):
        capture(OffscreenTarget(_scene("9:16", profile=profile)), 1, StaticFormat.PNG)


def test_unmounted_target_raises():
    _ensure_app()
    target = OffscreenTarget(_scene())
    target.unmount()
    with pytest.raises(CaptureError):
        capture(target, 1, StaticFormat.PNG)
    with pytest.raises(CaptureError):
        capture(None, 1, StaticFormat.PNG)


@pytest.mark.parametrize("fmt,density", [("gif", 1), ("png", 3), ("pdf", 0)])
def test_unsupported_format_or_density(fmt, density):
    _ensure_app()
    with pytest.raises(CaptureError):
        capture(OffscreenTarget(_scene()), density, fmt)

import pytest
from PySide6.QtCore import QBuffer, QIODevice
from PySide6.QtGui import QImage
from PySide6.QtWidgets import QApplication

from lifemarks.core.models import OutputKind, RenderedArtifact
from lifemarks.errors import ShareCancelledError
from lifemarks.services.delivery import copy_to_clipboard, save_artifact, share_artifact

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])


def _png_bytes():
    img = QImage(8, 8, QImage.Format.Format_ARGB32)
    img.fill(0xFF336699)
    buf = QBuffer()
    buf.open(QIODevice.OpenModeFlag.WriteOnly)
    img.save(buf, "PNG")
    return bytes(buf.data())


def test_save_artifact_writes_atomically(tmp_path):
    art = RenderedArtifact(b"%PDF-1.4 test", "ada_x_today.pdf", "application/pdf", OutputKind.STATIC)
    path = save_artifact(art, tmp_path)
    assert path == tmp_path / "ada_x_today.pdf"
    assert path.read_bytes() == b"%PDF-1.4 test"
    assert list((tmp_path / ".tmp").iterdir()) == []


def test_save_artifact_overwrites_same_name(tmp_path):
    save_artifact(RenderedArtifact(b"one", "a.png", "image/png", OutputKind.STATIC), tmp_path)
    path = save_artifact(RenderedArtifact(b"two", "a.png", "image/png", OutputKind.STATIC), tmp_path)
    assert path.read_bytes() == b"two"


def test_save_artifact_propagates_os_errors(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    with pytest.raises(OSError):
        save_artifact(RenderedArtifact(b"x", "a.png", "image/png", OutputKind.STATIC), blocker)


def test_copy_to_clipboard():
    _ensure_app()
    png = RenderedArtifact(_png_bytes(), "a.png", "image/png", OutputKind.STATIC)
    svg = RenderedArtifact(b"<svg/>", "a.svg", "image/svg+xml", OutputKind.STATIC)
    pdf = RenderedArtifact(b"%PDF", "a.pdf", "application/pdf", OutputKind.STATIC)
    video = RenderedArtifact(b"\x1a\x45", "a.webm", "video/webm", OutputKind.ANIMATED)
    assert copy_to_clipboard(png) is True
    assert copy_to_clipboard(svg) is True
    assert copy_to_clipboard(pdf) is False
    assert copy_to_clipboard(video) is False


def test_copy_rejects_corrupt_png():
    _ensure_app()
    assert copy_to_clipboard(RenderedArtifact(b"junk", "a.png", "image/png", OutputKind.STATIC)) is False


def test_share_artifact():
    art = RenderedArtifact(b"x", "a.png", "image/png", OutputKind.STATIC)
    shared = []

    def handler(a):
        shared.append(a.filename)
        return True

    def dismissed(a):
        raise ShareCancelledError()

    assert share_artifact(art, None) is False
    assert share_artifact(art, handler) is True
    assert shared == ["a.png"]
    assert share_artifact(art, dismissed) is False
    assert share_artifact(art, lambda a: False) is False

from datetime import date, datetime

import pytest
from PySide6.QtWidgets import QApplication

from lifemarks.core.models import Milestone, OutputKind, StatPayload, StudioDocument, UserProfile
from lifemarks.media.animation import AnimatedFrameEngine
from lifemarks.ui.main_window import ExportStudioWindow

from fakes import FakeEncoder

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])


NOW = datetime(2024, 5, 1, 10, 0)


def _document():
    return StudioDocument(
        profile=UserProfile(name="Ada Lovelace", dob=date(1990, 3, 14)),
        milestones=[
            Milestone(id="m1", title="Graduation", date=datetime(2024, 5, 13)),
            Milestone(id="m2", title="First Job", date=datetime(2012, 9, 3)),
        ],
    )


@pytest.fixture
def window(tmp_path):
    _ensure_app()
    engine = AnimatedFrameEngine(encoder_factory=FakeEncoder, realtime=False)
    win = ExportStudioWindow(_document(), now=lambda: NOW, output_dir=tmp_path, engine=engine)
    yield win
    win.close()
    win.orchestrator.shutdown()


def _select(win, field, value):
    combo = win.controls.combo(field)
    combo.setCurrentIndex(combo.findData(value))


def test_payload_list_lists_total_existence_and_milestones(window):
    assert window.payload_list.count() == 3
    assert window.payload_list.item(0).text() == "Total Existence"
    assert window.payload_list.item(2).text().startswith("First Job")
    assert isinstance(window.orchestrator.payload, StatPayload)


def test_selecting_row_sets_milestone(window):
    window.payload_list.setCurrentRow(1)
    assert window.orchestrator.payload.id == "m1"
    window.payload_list.setCurrentRow(0)
    assert isinstance(window.orchestrator.payload, StatPayload)


def test_combo_change_updates_config(window):
    _select(window, "template", "modern")
    assert window.orchestrator.config.template == "modern"
    assert window.orchestrator.scene.template == "modern"


def test_animated_output_shows_poster(window):
    _select(window, "aspect_ratio", "1:1")
    _select(window, "output", OutputKind.ANIMATED.value)
    assert window.orchestrator.config.output is OutputKind.ANIMATED
    assert window.preview_panel.preview.canvasSize() == (1080, 1080)
    assert not window.controls.combo("static_format").isEnabled()


def test_static_export_reports_saved_path(window, tmp_path):
    _select(window, "quality", "standard")
    window.payload_list.setCurrentRow(1)
    window.controls.exportRequested.emit()
    assert "Saved" in window.statusBar().currentMessage()
    assert (tmp_path / "adalovelace_graduation_12days_left.png").exists()
    assert window.controls.export_btn.isEnabled()


def test_progress_message_uses_timestamps(window):
    window.orchestrator.update_config(frame_rate=6)
    window._onExportProgress(30, 60)
    assert window.statusBar().currentMessage() == "Rendering 00:05.000 / 00:10.000"


def test_load_document_resets_payloads(window):
    doc = StudioDocument(
        profile=UserProfile(name="Grace", dob=date(1985, 12, 9)),
        milestones=[Milestone(id="x", title="Launch", date=datetime(2020, 1, 1))],
    )
    window.payload_list.setCurrentRow(2)
    window.loadDocument(doc)
    assert window.payload_list.count() == 2
    assert window.payload_list.currentRow() == 0
    assert isinstance(window.orchestrator.payload, StatPayload)
    assert window.orchestrator.filename_for("png").startswith("grace_")

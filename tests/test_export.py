from datetime import date, datetime, timedelta

import pytest
from PySide6.QtWidgets import QApplication

from lifemarks.core.models import ExportConfig, Milestone, OutputKind, StatPayload, UserProfile
from lifemarks.core.stats import compute_elapsed, compute_stat_payload
from lifemarks.media.animation import AnimatedFrameEngine
from lifemarks.services.export import GENERIC_FAILURE, ExportOrchestrator, ExportState

from fakes import FakeEncoder, failing_encoder_factory

_app = None


def _ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])


NOW = datetime(2024, 5, 1, 10, 0)
PROFILE = UserProfile(name="Ada Lovelace", dob=date(1990, 3, 14), tob="06:30")
MILESTONE = Milestone(id="m1", title="Graduation", date=datetime(2024, 5, 13, 12))
BASE = ExportConfig(aspect_ratio="1:1", quality="standard", duration=5, frame_rate=6)


@pytest.fixture
def make_orch(tmp_path):
    _ensure_app()
    created = []

    def factory(payload=MILESTONE, config=BASE, profile=PROFILE, encoder_factory=FakeEncoder, now=lambda: NOW, **kw):
        engine = AnimatedFrameEngine(encoder_factory=encoder_factory, realtime=False)
        orch = ExportOrchestrator(profile, payload, config, engine=engine, now=now,
                                  output_dir=tmp_path, **kw)
        events = {"states": [], "failed": [], "finished": [], "progress": [], "scenes": []}
        orch.stateChanged.connect(events["states"].append)
        orch.exportFailed.connect(events["failed"].append)
        orch.exportFinished.connect(events["finished"].append)
        orch.exportProgress.connect(lambda d, t: events["progress"].append((d, t)))
        orch.sceneChanged.connect(events["scenes"].append)
        created.append(orch)
        return orch, events

    yield factory
    for orch in created:
        orch.shutdown()


def test_initial_state_and_preview(make_orch):
    orch, events = make_orch()
    assert orch.state is ExportState.IDLE
    assert orch.scene.width == 1080
    orch.begin_preview()
    assert orch.state is ExportState.PREVIEWING
    orch.end_preview()
    assert events["states"] == ["previewing", "idle"]


def test_update_config_rebuilds_scene(make_orch):
    orch, events = make_orch()
    cfg = orch.update_config(aspect_ratio="9:16", template="modern")
    assert cfg.template == "modern"
    assert (orch.scene.height, orch.scene.template) == (1920, "modern")
    assert events["scenes"][-1] is orch.scene


def test_invalid_config_leaves_previous_config(make_orch):
    orch, _ = make_orch()
    with pytest.raises(ValueError):
        orch.update_config(quality="8k")
    assert orch.config == BASE


def test_static_png_export(make_orch, tmp_path):
    orch, events = make_orch()
    orch.begin_preview()
    artifact = orch.export_static()
    assert artifact is not None
    assert artifact.filename == "adalovelace_graduation_12days_left.png"
    assert artifact.mime_type == "image/png"
    assert artifact.kind is OutputKind.STATIC
    assert (tmp_path / artifact.filename).read_bytes() == artifact.data
    assert orch.last_saved_path == tmp_path / artifact.filename
    assert events["states"] == ["previewing", "capturing_static", "previewing"]
    assert events["finished"] == [artifact]
    assert orch.state is ExportState.PREVIEWING


@pytest.mark.parametrize("fmt,mime,ext", [("svg", "image/svg+xml", ".svg"), ("pdf", "application/pdf", ".pdf")])
def test_static_vector_exports(make_orch, fmt, mime, ext):
    orch, _ = make_orch(config=BASE.replace(static_format=fmt))
    artifact = orch.export_static()
    assert artifact.mime_type == mime
    assert artifact.filename.endswith(ext)


def test_stat_payload_filename(make_orch):
    orch, _ = make_orch(payload=StatPayload(years=34, days=12467))
    artifact = orch.export_static()
    assert artifact.filename == "adalovelace_totalexistence_today.png"


def test_static_failure_is_generic_and_recoverable(make_orch, tmp_path):
    pics = tmp_path / "pics"
    pics.mkdir()
    broken = pics / "avatar.png"
    broken.write_text("not an image")
    profile = UserProfile(name="Ada", dob=date(1990, 3, 14), avatar=str(broken))
    # tall canvas so the avatar block is laid out
    orch, events = make_orch(profile=profile, config=BASE.replace(aspect_ratio="9:16"))
    assert orch.export_static() is None
    assert events["failed"] == [GENERIC_FAILURE]
    assert orch.state is ExportState.IDLE
    assert orch.last_artifact is None
    assert list(tmp_path.glob("*.png")) == []

    # retry after the user swaps in a usable picture
    orch.set_profile(UserProfile(name="Ada", dob=date(1990, 3, 14)), MILESTONE)
    assert orch.export_static() is not None


def test_animated_export_blocking(make_orch, tmp_path):
    orch, events = make_orch(config=BASE.replace(output="animated", video_style="neon"))
    artifact = orch.export_animated(blocking=True)
    assert artifact is not None
    assert artifact.kind is OutputKind.ANIMATED
    assert artifact.mime_type == "video/webm"
    assert artifact.filename == "adalovelace_graduation_12days_left.webm"
    assert (tmp_path / artifact.filename).exists()
    assert events["progress"][-1] == (30, 30)
    assert events["states"] == ["rendering_video", "idle"]
    assert FakeEncoder.instances[-1].shapes == {(1080, 1080, 3)}


def test_static_export_cancels_running_video(make_orch):
    FakeEncoder.instances.clear()
    orch, events = make_orch(config=BASE.replace(output="animated"))
    assert orch.export_animated() is None
    assert orch.state is ExportState.RENDERING_VIDEO
    assert orch.engine.is_running()
    artifact = orch.export_static()
    assert artifact is not None and artifact.kind is OutputKind.STATIC
    assert FakeEncoder.instances[-1].aborted
    assert not orch.engine.is_running()
    assert events["states"] == ["rendering_video", "idle", "capturing_static", "idle"]
    assert len(events["finished"]) == 1


def test_restarting_video_discards_previous_run(make_orch):
    FakeEncoder.instances.clear()
    orch, events = make_orch(config=BASE.replace(output="animated"))
    orch.export_animated()
    artifact = orch.export_animated(blocking=True)
    first, second = FakeEncoder.instances
    assert first.aborted and first.frames_written == 0
    assert second.finalized
    assert events["finished"] == [artifact]


def test_video_failure_reports_generic_message(make_orch):
    orch, events = make_orch(config=BASE.replace(output="animated"), encoder_factory=failing_encoder_factory(2))
    assert orch.export_animated(blocking=True) is None
    assert events["failed"] == [GENERIC_FAILURE]
    assert orch.state is ExportState.IDLE
    assert orch.last_artifact is None


def test_cancel_without_render(make_orch):
    orch, _ = make_orch()
    assert orch.cancel() is False


def test_clipboard_and_share(make_orch):
    shared = []
    orch, _ = make_orch(share_handler=lambda a: shared.append(a) or True)
    assert orch.copy_last_to_clipboard() is False
    assert orch.share_last() is False
    artifact = orch.export_static()
    assert orch.copy_last_to_clipboard() is True
    assert orch.share_last() is True
    assert shared == [artifact]


def test_set_payload_swaps_scene(make_orch):
    orch, _ = make_orch()
    orch.set_payload(Milestone(id="m2", title="First Job", date=datetime(2012, 9, 3)))
    assert orch.scene.text_by_role("title")[0].text == "First Job"
    assert orch.filename_for("png") == "adalovelace_firstjob_4258days_ago.png"


def test_poster_frame_uses_video_canvas(make_orch):
    orch, _ = make_orch(config=BASE.replace(aspect_ratio="4:5"))
    poster = orch.poster_frame()
    assert (poster.width(), poster.height()) == (1080, 1350)


def _stat_values(scene):
    labels = [n.text for n in scene.text_by_role("stat_label")]
    values = [n.text for n in scene.text_by_role("stat_value")]
    return dict(zip(labels, values))


def test_stat_card_figures_share_one_instant(make_orch):
    clock = [NOW]
    birth = PROFILE.birth_instant()
    orch, _ = make_orch(
        payload=compute_stat_payload(birth, NOW),
        config=BASE.replace(aspect_ratio="9:16", cosmic_overlay=True),
        now=lambda: clock[0],
    )
    clock[0] = NOW + timedelta(days=3)
    orch.update_config(theme="dark")
    values = _stat_values(orch.scene)
    assert values["DAYS"] == values["EARTH ROTATIONS"]
    assert orch.payload.days == compute_elapsed(birth, clock[0]).days

    # a later export ships the figures as of the export, not as of selection
    clock[0] = NOW + timedelta(days=10)
    assert orch.export_static() is not None
    assert orch.payload.days == compute_elapsed(birth, clock[0]).days
    values = _stat_values(orch.scene)
    assert values["DAYS"] == values["EARTH ROTATIONS"]
    assert orch.payload.title == "Total Existence"


def test_scene_and_assets_views_require_a_build(make_orch):
    orch, _ = make_orch()
    orch._scene = None
    with pytest.raises(RuntimeError):
        orch.scene
    orch._assets, assets = None, orch._assets
    with pytest.raises(RuntimeError):
        orch.assets
    orch._assets = assets

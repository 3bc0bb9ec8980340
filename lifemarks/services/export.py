"""Export orchestrator.

Owns the export configuration for one payload, keeps the canonical scene up to
date and runs exactly one export at a time through an explicit state machine:

    idle / previewing  --export_static-->    capturing_static --> idle / previewing
    idle / previewing  --export_animated-->  rendering_video  --> idle / previewing

Starting any export while a video is rendering cancels that render first.
Failures are logged with detail, surfaced to the UI as one generic retryable
message, and always return the orchestrator to rest. It is also the only place
that triggers delivery side effects (save, clipboard, share).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage

from ..core.models import ExportConfig, Milestone, OutputKind, RenderedArtifact, StatPayload, UserProfile
from ..core.scene import SceneDescription
from ..core.stats import compute_stat_payload
from ..core.templates import scene_for_config
from ..errors import ExportBusyError, ExportError
from ..media.animation import AnimatedFrameEngine, AnimationScript
from ..media.assets import AssetBundle
from ..media.encoder import EncodedVideo
from ..utils.filenames import artifact_filename
from ..utils.log import log_error, log_info
from .capture import MIME_TYPES, OffscreenTarget, capture
from .delivery import ShareHandler, copy_to_clipboard, save_artifact, share_artifact

Payload = Union[Milestone, StatPayload]

GENERIC_FAILURE = "Export failed. Please try again."


class ExportState(str, Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    CAPTURING_STATIC = "capturing_static"
    RENDERING_VIDEO = "rendering_video"


class ExportOrchestrator(QObject):
    stateChanged = Signal(str)
    sceneChanged = Signal(object)  # SceneDescription
    assetLoaded = Signal(str, str)  # key, state
    exportStarted = Signal(str)  # output kind
    exportProgress = Signal(int, int)  # frames done, total
    exportFinished = Signal(object)  # RenderedArtifact
    exportFailed = Signal(str)

    def __init__(
        self,
        profile: UserProfile,
        payload: Payload,
        config: Optional[ExportConfig] = None,
        parent: Optional[QObject] = None,
        *,
        engine: Optional[AnimatedFrameEngine] = None,
        now: Optional[Callable[[], datetime]] = None,
        output_dir: Optional[Path] = None,
        auto_save: bool = True,
        share_handler: Optional[ShareHandler] = None,
    ):
        super().__init__(parent)
        self._profile = profile
        self._payload = payload
        self._config = config or ExportConfig()
        self._now = now or datetime.now
        self._output_dir = output_dir
        self._auto_save = auto_save
        self._share_handler = share_handler
        self._engine = engine or AnimatedFrameEngine(self)
        self._engine.frameRendered.connect(self.exportProgress)
        self._engine.finished.connect(self._onVideoFinished)
        self._engine.failed.connect(self._onVideoFailed)
        self._engine.cancelled.connect(self._onVideoCancelled)
        self._state = ExportState.IDLE
        self._previewing = False
        self._scene: Optional[SceneDescription] = None
        self._assets: Optional[AssetBundle] = None
        self._video_now: Optional[datetime] = None
        self.last_artifact: Optional[RenderedArtifact] = None
        self.last_saved_path: Optional[Path] = None
        self._rebuild_scene()

    # --- Read-only views -------------------------------------------------
    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def config(self) -> ExportConfig:
        return self._config

    @property
    def scene(self) -> SceneDescription:
        if self._scene is None:
            raise RuntimeError("scene has not been built")
        return self._scene

    @property
    def assets(self) -> AssetBundle:
        if self._assets is None:
            raise RuntimeError("assets have not been bound")
        return self._assets

    @property
    def payload(self) -> Payload:
        return self._payload

    @property
    def profile(self) -> UserProfile:
        return self._profile

    @property
    def engine(self) -> AnimatedFrameEngine:
        return self._engine

    def is_busy(self) -> bool:
        return self._state in (ExportState.CAPTURING_STATIC, ExportState.RENDERING_VIDEO)

    # --- Configuration ---------------------------------------------------
    def update_config(self, **changes) -> ExportConfig:
        """Apply config changes (ValueError on invalid values) and rebuild the scene."""
        self._config = self._config.replace(**changes)
        self._rebuild_scene()
        return self._config

    def set_payload(self, payload: Payload) -> None:
        self._payload = payload
        self._rebuild_scene()

    def set_profile(self, profile: UserProfile, payload: Payload) -> None:
        """Switch to another user; any running render belongs to the old one."""
        self._engine.cancel()
        self._profile = profile
        self._payload = payload
        self._rebuild_scene()

    def begin_preview(self) -> None:
        self._previewing = True
        if not self.is_busy():
            self._set_state(ExportState.PREVIEWING)

    def end_preview(self) -> None:
        self._previewing = False
        if not self.is_busy():
            self._set_state(ExportState.IDLE)

    def script(self) -> AnimationScript:
        return AnimationScript.for_payload(self._payload, self._profile)

    def poster_frame(self) -> QImage:
        """Still frame of the animated export for the preview."""
        return self._engine.render_poster(self._config, self.script())

    def filename_for(self, ext: str, now: Optional[datetime] = None) -> str:
        now = now or self._now()
        if isinstance(self._payload, Milestone):
            return artifact_filename(self._profile.name, self._payload.title, self._payload.date, now, ext)
        return artifact_filename(self._profile.name, self._payload.kind, now, now, ext)

    # --- Exports ---------------------------------------------------------
    def export_static(self) -> Optional[RenderedArtifact]:
        if self._state == ExportState.CAPTURING_STATIC:
            raise ExportBusyError("a static capture is already in progress")
        if self._state == ExportState.RENDERING_VIDEO:
            self.cancel()
        config = self._config
        now = self._now()
        self._rebuild_scene(now)
        self._set_state(ExportState.CAPTURING_STATIC)
        self.exportStarted.emit(OutputKind.STATIC.value)
        log_info("export_started", kind="static", format=config.static_format.value,
                 template=config.template, quality=config.quality)
        target = OffscreenTarget(self.scene, self.assets)
        try:
            data = capture(target, config.pixel_density, config.static_format)
            artifact = RenderedArtifact(
                data=data,
                filename=self.filename_for(config.static_format.value, now),
                mime_type=MIME_TYPES[config.static_format],
                kind=OutputKind.STATIC,
            )
            self._deliver(artifact)
        except (ExportError, OSError) as e:
            self._fail("static", e)
            return None
        finally:
            target.unmount()
        self._complete(artifact)
        return artifact

    def export_animated(self, blocking: bool = False) -> Optional[RenderedArtifact]:
        """Start a video export; with ``blocking`` drive it to the end and return it."""
        if self._state == ExportState.CAPTURING_STATIC:
            raise ExportBusyError("a static capture is in progress")
        if self._state == ExportState.RENDERING_VIDEO:
            self.cancel()
        config = self._config
        self._video_now = self._now()
        self._rebuild_scene(self._video_now)
        self.last_artifact = None
        self._set_state(ExportState.RENDERING_VIDEO)
        self.exportStarted.emit(OutputKind.ANIMATED.value)
        log_info("export_started", kind="animated", style=config.video_style,
                 duration=config.duration, fps=config.frame_rate)
        try:
            self._engine.start(config, self.script(), drive=not blocking)
        except (ExportError, OSError) as e:
            self._fail("animated", e)
            return None
        if not blocking:
            return None
        self._engine.run_to_completion()
        return self.last_artifact

    def cancel(self) -> bool:
        """Cancel an in-flight video render; its partial output is discarded."""
        return self._engine.cancel()

    def shutdown(self) -> None:
        """Cancel any render and join the asset preload thread."""
        self._engine.cancel()
        if self._assets is not None:
            self._assets.shutdown()
        self.end_preview()

    # --- Delivery --------------------------------------------------------
    def copy_last_to_clipboard(self) -> bool:
        if self.last_artifact is None:
            return False
        return copy_to_clipboard(self.last_artifact)

    def share_last(self) -> bool:
        if self.last_artifact is None:
            return False
        return share_artifact(self.last_artifact, self._share_handler)

    # --- Internal --------------------------------------------------------
    def _rest_state(self) -> ExportState:
        return ExportState.PREVIEWING if self._previewing else ExportState.IDLE

    def _set_state(self, state: ExportState) -> None:
        if state != self._state:
            self._state = state
            self.stateChanged.emit(state.value)

    def _refresh_payload(self, now: datetime) -> None:
        # A stat payload is "as of now"; every figure on the card shares one instant.
        if isinstance(self._payload, StatPayload):
            fresh = compute_stat_payload(self._profile.birth_instant(), now)
            self._payload = replace(fresh, title=self._payload.title, kind=self._payload.kind)

    def _rebuild_scene(self, now: Optional[datetime] = None) -> None:
        now = now or self._now()
        self._refresh_payload(now)
        scene = scene_for_config(self._config, self._payload, self._profile, now)
        if self._assets is None or self._scene is None or self._scene.asset_paths() != scene.asset_paths():
            if self._assets is not None:
                self._assets.shutdown()
            self._assets = AssetBundle.from_scene(scene)
            self._assets.start_preload(on_progress=self.assetLoaded)
        self._scene = scene
        self.sceneChanged.emit(scene)

    def _deliver(self, artifact: RenderedArtifact) -> None:
        if self._auto_save:
            self.last_saved_path = save_artifact(artifact, self._output_dir)
        self.last_artifact = artifact

    def _complete(self, artifact: RenderedArtifact) -> None:
        self._set_state(self._rest_state())
        log_info("export_finished", kind=artifact.kind.value, filename=artifact.filename,
                 bytes=len(artifact.data))
        self.exportFinished.emit(artifact)

    def _fail(self, kind: str, error: Exception) -> None:
        log_error("export_failed", kind=kind, error=str(error), error_type=type(error).__name__)
        self._set_state(self._rest_state())
        self.exportFailed.emit(GENERIC_FAILURE)

    def _onVideoFinished(self, video: EncodedVideo):
        artifact = RenderedArtifact(
            data=video.data,
            filename=self.filename_for(video.container, self._video_now),
            mime_type=video.mime_type,
            kind=OutputKind.ANIMATED,
        )
        try:
            self._deliver(artifact)
        except OSError as e:
            self._fail("animated", e)
            return
        self._complete(artifact)

    def _onVideoFailed(self, message: str):
        self._fail("animated", ExportError(message))

    def _onVideoCancelled(self):
        if self._state == ExportState.RENDERING_VIDEO:
            self._set_state(self._rest_state())
            log_info("export_cancelled", kind="animated")


__all__ = ["ExportState", "ExportOrchestrator", "GENERIC_FAILURE"]

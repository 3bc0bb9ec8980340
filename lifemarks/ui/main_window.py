"""Export studio main window (UI layer).

Layout:
+----------------+------------------+-------------------------------+
| Payload picker | Export controls  | Preview (scaled scene/poster) |
+----------------+------------------+-------------------------------+
| status bar: progress mm:ss.mmm / mm:ss.mmm, last saved artifact    |
+--------------------------------------------------------------------+

The window never renders or encodes anything itself; every action goes through
the ``ExportOrchestrator``.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QGuiApplication
from PySide6.QtWidgets import (
    QFileDialog,
    QListWidget,
    QMainWindow,
    QMessageBox,
    QSplitter,
    QStatusBar,
)

from ..core.models import OutputKind, RenderedArtifact, StudioDocument
from ..core.stats import compute_stat_payload
from ..media.animation import AnimatedFrameEngine
from ..services.export import ExportOrchestrator, ExportState
from ..utils.timefmt import format_time
from .components.controls import ExportControlsWidget
from .components.preview_panel import PreviewPanel


class ExportStudioWindow(QMainWindow):
    def __init__(
        self,
        document: StudioDocument,
        parent=None,
        *,
        now: Optional[Callable[[], datetime]] = None,
        output_dir: Optional[Path] = None,
        engine: Optional[AnimatedFrameEngine] = None,
    ):
        super().__init__(parent)
        self.setWindowTitle("Lifemarks Export Studio")
        self.setGeometry(100, 100, 1100, 720)
        self._document = document
        self._now = now or datetime.now
        self.orchestrator = ExportOrchestrator(
            document.profile,
            self._payloadAt(0),
            parent=self,
            engine=engine,
            now=self._now,
            output_dir=output_dir,
        )
        self._createMenuBar()
        self._createLayout()
        self._wireOrchestrator()
        self.controls.setConfig(self.orchestrator.config)
        self.orchestrator.begin_preview()
        self._refreshPreview()

    # --- Construction ----------------------------------------------------
    def _createMenuBar(self):
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("File")
        open_action = QAction("Open Document", self)
        open_action.triggered.connect(self._openDocument)
        file_menu.addAction(open_action)
        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)
        about_menu = menu_bar.addMenu("About")
        about_action = QAction("About Lifemarks", self)
        about_action.triggered.connect(self._showAboutDialog)
        about_menu.addAction(about_action)

    def _createLayout(self):
        splitter = QSplitter()
        splitter.setOrientation(Qt.Orientation.Horizontal)

        self.payload_list = QListWidget()
        self.payload_list.setSelectionMode(QListWidget.SelectionMode.SingleSelection)
        self._fillPayloadList()
        splitter.addWidget(self.payload_list)

        self.controls = ExportControlsWidget(self)
        splitter.addWidget(self.controls)

        self.preview_panel = PreviewPanel(self)
        splitter.addWidget(self.preview_panel)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 1)
        splitter.setStretchFactor(2, 3)

        self.setCentralWidget(splitter)
        self.setStatusBar(QStatusBar())

        self.payload_list.currentRowChanged.connect(self._onPayloadSelected)
        self.controls.configChanged.connect(self._onConfigChanged)
        self.controls.exportRequested.connect(self._onExportRequested)
        self.controls.cancelRequested.connect(self.orchestrator.cancel)
        self.controls.copyRequested.connect(self._onCopyRequested)

    def _wireOrchestrator(self):
        orch = self.orchestrator
        orch.sceneChanged.connect(lambda _scene: self._refreshPreview())
        orch.assetLoaded.connect(lambda _key, _state: self.preview_panel.preview.update())
        orch.stateChanged.connect(self._onStateChanged)
        orch.exportProgress.connect(self._onExportProgress)
        orch.exportFinished.connect(self._onExportFinished)
        orch.exportFailed.connect(self._onExportFailed)

    def _fillPayloadList(self):
        self.payload_list.blockSignals(True)
        self.payload_list.clear()
        self.payload_list.addItem("Total Existence")
        for m in self._document.milestones:
            self.payload_list.addItem(f"{m.title}  ·  {m.date:%Y-%m-%d}")
        self.payload_list.setCurrentRow(0)
        self.payload_list.blockSignals(False)

    def _payloadAt(self, row: int):
        if row <= 0 or row > len(self._document.milestones):
            return compute_stat_payload(self._document.profile.birth_instant(), self._now())
        return self._document.milestones[row - 1]

    # --- Public helpers --------------------------------------------------
    def loadDocument(self, document: StudioDocument):
        self._document = document
        self._fillPayloadList()
        self.orchestrator.set_profile(document.profile, self._payloadAt(0))

    def centerOnPreferredScreen(self):
        """Center on the screen named by LIFEMARKS_SCREEN_INDEX, else the primary one."""
        screens = QGuiApplication.screens()
        if not screens:
            return
        screen = None
        idx_env = os.getenv("LIFEMARKS_SCREEN_INDEX")
        if idx_env is not None and idx_env.isdigit() and int(idx_env) < len(screens):
            screen = screens[int(idx_env)]
        screen = screen or QGuiApplication.primaryScreen() or screens[0]
        win_geo = self.frameGeometry()
        win_geo.moveCenter(screen.availableGeometry().center())
        self.move(win_geo.topLeft())

    # --- Slots -----------------------------------------------------------
    def _refreshPreview(self):
        orch = self.orchestrator
        if orch.config.output == OutputKind.ANIMATED:
            self.preview_panel.showPoster(orch.poster_frame(), orch.config.video_style)
        else:
            self.preview_panel.showScene(orch.scene, orch.assets)

    def _onPayloadSelected(self, row: int):
        if row < 0:
            return
        self.orchestrator.set_payload(self._payloadAt(row))

    def _onConfigChanged(self, changes: dict):
        try:
            config = self.orchestrator.update_config(**changes)
        except ValueError as e:
            self.statusBar().showMessage(str(e))
            return
        self.controls.setConfig(config)

    def _onExportRequested(self):
        if self.orchestrator.config.output == OutputKind.ANIMATED:
            self.orchestrator.export_animated()
        else:
            self.orchestrator.export_static()

    def _onCopyRequested(self):
        if self.orchestrator.copy_last_to_clipboard():
            self.statusBar().showMessage("Copied to clipboard")

    def _onStateChanged(self, state: str):
        busy = state in (ExportState.CAPTURING_STATIC.value, ExportState.RENDERING_VIDEO.value)
        self.controls.setBusy(busy)
        if state == ExportState.CAPTURING_STATIC.value:
            self.statusBar().showMessage("Capturing…")

    def _onExportProgress(self, done: int, total: int):
        fps = self.orchestrator.config.frame_rate
        self.statusBar().showMessage(
            f"Rendering {format_time(done / fps)} / {format_time(total / fps)}"
        )

    def _onExportFinished(self, artifact: RenderedArtifact):
        where = self.orchestrator.last_saved_path or artifact.filename
        self.statusBar().showMessage(f"Saved {where}")

    def _onExportFailed(self, message: str):
        self.statusBar().showMessage(message)
        QMessageBox.warning(self, "Export", message)

    def _openDocument(self):
        file_path, _ = QFileDialog.getOpenFileName(
            self, "Open Document", "", "Lifemarks Documents (*.json)"
        )
        if not file_path:
            return
        try:
            document = StudioDocument.load(file_path)
        except (OSError, ValueError, KeyError) as e:
            QMessageBox.critical(self, "Error", f"Failed to load document: {e}")
            return
        self.loadDocument(document)

    def closeEvent(self, event):
        self.orchestrator.shutdown()
        super().closeEvent(event)

    def _showAboutDialog(self):
        QMessageBox.about(
            self,
            "About Lifemarks",
            "Lifemarks Export Studio\nShareable cards and videos for life milestones.",
        )


__all__ = ["ExportStudioWindow"]

"""Export controls: one combo box / toggle per ``ExportConfig`` field.

Signals:
    configChanged(dict)   # {field: value} for the control the user touched
    exportRequested()
    cancelRequested()
    copyRequested()
"""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ...core.models import (
    ASPECT_RATIOS,
    QUALITY_TIERS,
    VIDEO_DURATIONS,
    ExportConfig,
    OutputKind,
    StaticFormat,
)
from ...core.templates import available_templates
from ...core.themes import available_themes
from ...media.styles import STYLES


class ExportControlsWidget(QWidget):
    configChanged = Signal(dict)
    exportRequested = Signal()
    cancelRequested = Signal()
    copyRequested = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._combos: dict[str, QComboBox] = {}
        form = QFormLayout()
        self._addCombo(form, "aspect_ratio", "Ratio", [(r, f"{r}  ({w}×{h})") for r, (w, h) in ASPECT_RATIOS.items()])
        self._addCombo(form, "template", "Template", available_templates())
        self._addCombo(form, "theme", "Theme", available_themes())
        self._addCombo(form, "output", "Output", [(OutputKind.STATIC.value, "Image"), (OutputKind.ANIMATED.value, "Video")])
        self._addCombo(form, "static_format", "Format", [(f.value, f.value.upper()) for f in StaticFormat])
        self._addCombo(form, "quality", "Quality", [(q, f"{q.title()} ({d}×)") for q, d in QUALITY_TIERS.items()])
        self._addCombo(form, "duration", "Duration", [(d, f"{d} s") for d in VIDEO_DURATIONS])
        self._addCombo(form, "video_style", "Style", [(s.id, s.label) for s in STYLES.values()])

        self.stats_toggle = QCheckBox("Show stats")
        self.stats_toggle.toggled.connect(lambda on: self.configChanged.emit({"show_stats": on}))
        self.cosmic_toggle = QCheckBox("Cosmic overlay")
        self.cosmic_toggle.toggled.connect(lambda on: self.configChanged.emit({"cosmic_overlay": on}))
        form.addRow(self.stats_toggle)
        form.addRow(self.cosmic_toggle)

        self.export_btn = QPushButton("Export")
        self.cancel_btn = QPushButton("Cancel")
        self.copy_btn = QPushButton("Copy")
        self.cancel_btn.setEnabled(False)
        self.export_btn.clicked.connect(self.exportRequested)
        self.cancel_btn.clicked.connect(self.cancelRequested)
        self.copy_btn.clicked.connect(self.copyRequested)
        buttons = QHBoxLayout()
        buttons.addWidget(self.export_btn)
        buttons.addWidget(self.cancel_btn)
        buttons.addWidget(self.copy_btn)

        layout = QVBoxLayout()
        layout.addLayout(form)
        layout.addLayout(buttons)
        layout.addStretch(1)
        self.setLayout(layout)

    def _addCombo(self, form: QFormLayout, field: str, label: str, items) -> None:
        combo = QComboBox()
        for value, text in items:
            combo.addItem(text, value)
        combo.currentIndexChanged.connect(
            lambda _i, f=field, c=combo: self.configChanged.emit({f: c.currentData()})
        )
        self._combos[field] = combo
        form.addRow(label, combo)

    def combo(self, field: str) -> QComboBox:
        return self._combos[field]

    def setConfig(self, config: ExportConfig):
        """Reflect ``config`` without emitting configChanged."""
        values = {
            "aspect_ratio": config.aspect_ratio,
            "template": config.template,
            "theme": config.theme,
            "output": config.output.value,
            "static_format": config.static_format.value,
            "quality": config.quality,
            "duration": config.duration,
            "video_style": config.video_style,
        }
        for field, value in values.items():
            combo = self._combos[field]
            combo.blockSignals(True)
            idx = combo.findData(value)
            if idx >= 0:
                combo.setCurrentIndex(idx)
            combo.blockSignals(False)
        for box, on in ((self.stats_toggle, config.show_stats), (self.cosmic_toggle, config.cosmic_overlay)):
            box.blockSignals(True)
            box.setChecked(on)
            box.blockSignals(False)
        self._syncOutputKind(config.output)

    def _syncOutputKind(self, output: OutputKind):
        animated = output == OutputKind.ANIMATED
        self._combos["static_format"].setEnabled(not animated)
        self._combos["quality"].setEnabled(not animated)
        self._combos["duration"].setEnabled(animated)
        self._combos["video_style"].setEnabled(animated)

    def setBusy(self, busy: bool):
        self.export_btn.setEnabled(not busy)
        self.cancel_btn.setEnabled(busy)


__all__ = ["ExportControlsWidget"]

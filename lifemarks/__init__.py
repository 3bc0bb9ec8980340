"""Top-level package exports.

Public API surface (keep minimal):
 - ExportOrchestrator (export state machine, the engine's entry point)
 - ExportConfig, UserProfile, Milestone, StatPayload (inputs)
 - RenderedArtifact (output)
 - ExportStudioWindow (UI entry point)

Import ``lifemarks.core`` / ``lifemarks.media`` modules directly for the
individual stages (scene building, capture, frame engine).
"""

from .core.models import (  # noqa: F401
    ExportConfig,
    Milestone,
    RenderedArtifact,
    StatPayload,
    UserProfile,
)
from .services.export import ExportOrchestrator  # noqa: F401
from .ui.main_window import ExportStudioWindow  # noqa: F401

__all__ = [
    "ExportConfig",
    "Milestone",
    "RenderedArtifact",
    "StatPayload",
    "UserProfile",
    "ExportOrchestrator",
    "ExportStudioWindow",
]

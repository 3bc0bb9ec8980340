import sys
from datetime import date
from typing import Optional

from PySide6.QtWidgets import QApplication

from .core.models import StudioDocument, UserProfile
from .ui.main_window import ExportStudioWindow
from .utils.log import configure_logging, log_error, log_info


def _blank_document() -> StudioDocument:
    return StudioDocument(profile=UserProfile(name="You", dob=date(1995, 6, 15)))


def run(path: Optional[str] = None):
    """Launch the export studio, optionally on a saved ``StudioDocument``."""
    configure_logging()
    if path is None and len(sys.argv) > 1:
        path = sys.argv[1]
    document = _blank_document()
    if path:
        try:
            document = StudioDocument.load(path)
        except (OSError, ValueError, KeyError) as e:
            log_error("document_load_failed", path=path, error=str(e))
    app = QApplication.instance() or QApplication(sys.argv)
    window = ExportStudioWindow(document)
    window.show()
    window.centerOnPreferredScreen()
    log_info("studio_started", milestones=len(document.milestones))
    sys.exit(app.exec())


if __name__ == "__main__":
    run()

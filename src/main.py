"""Application entry point for SeqLink."""

import logging
import sys

from PyQt6.QtWidgets import QApplication

from src.config.settings import APP_NAME, APP_VERSION
from src.ui.main_window import MainWindow


def configure_logging(debug: bool = False) -> None:
    """Configure logging for the application.

    Args:
        debug: If True, enable DEBUG level logging for troubleshooting.
    """
    level = logging.DEBUG if debug else logging.WARNING
    format_str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if debug:
        logging.info("Debug logging enabled")


def main():
    """Run the SeqLink application."""
    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    configure_logging(debug=debug_mode)

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)
    app.setOrganizationName(APP_NAME)

    window = MainWindow()
    window.show()

    # Optional structure id or path on the command line
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    if args:
        window.load_structure(args[0])

    sys.exit(app.exec())


if __name__ == "__main__":
    main()

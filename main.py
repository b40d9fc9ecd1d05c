# main.py
# Logging should be set up BEFORE utils.config is loaded so its messages are visible.
from utils.helpers import setup_logging
setup_logging()

import logging
import sys
import traceback

from PySide6.QtWidgets import QApplication, QMessageBox

from utils.config import initialize_user_config, get_initial_config_loading_errors
from ui.theme_manager import apply_app_theme_and_custom_styles
from ui.main_window import MainWindow
from cli import process_cli_arguments

logger = logging.getLogger(__name__)

APP_VERSION = "0.1"

# --- Global Exception Handler ---
def handle_global_exception(exc_type, exc_value, exc_traceback):
    """
    Handles unhandled exceptions, logs them, and shows an error dialog.
    """
    tb_lines = traceback.format_exception(exc_type, exc_value, exc_traceback)
    error_message_long = "".join(tb_lines)

    logger.critical(f"Unhandled exception caught by global handler:\n{error_message_long}")

    # the original excepthook outputs the traceback in color
    sys.__excepthook__(exc_type, exc_value, exc_traceback)

    if QApplication.instance():
        error_dialog = QMessageBox(None)
        error_dialog.setIcon(QMessageBox.Critical)
        error_dialog.setWindowTitle("Unhandled Application Error")
        error_dialog.setText(
            f"An unexpected error occurred: {exc_value}\n\n"
            "Please report this issue if it persists.\n"
            "Details have been logged."
        )
        error_dialog.setDetailedText(error_message_long)
        error_dialog.setStandardButtons(QMessageBox.Ok)
        error_dialog.exec()


def _ensure_app() -> QApplication:
    app = QApplication.instance()
    if not app:
        app = QApplication(sys.argv)
    return app


def main():
    logger.debug("Application starting...")

    is_console_mode = bool(sys.stdout and sys.stdout.isatty())
    logger.info(f"{'Console' if is_console_mode else 'GUI'} mode detected.")

    user_config = initialize_user_config()
    initial_ui_config, cli_error_message, help_text = process_cli_arguments(user_config, is_console_mode)

    # In console mode, errors and help were already printed by the parser, which exited.
    if cli_error_message:
        _ensure_app()
        QMessageBox.critical(None, "Argument Error", cli_error_message)
        sys.exit(1)
    if help_text:
        _ensure_app()
        QMessageBox.information(None, "Usage", help_text)
        sys.exit(0)

    sys.excepthook = handle_global_exception
    logger.info("Global exception handler set.")

    app = _ensure_app()
    app.setApplicationName("Picsum Rows")
    app.setApplicationVersion(APP_VERSION)

    initial_config_errors = get_initial_config_loading_errors()
    if initial_config_errors:
        error_str = "\n\n".join(initial_config_errors)
        QMessageBox.warning(None, "Configuration Load Warning",
                            f"There were issues loading the configuration file:\n\n{error_str}\n\n"
                            "The application will use default settings where necessary.")

    apply_app_theme_and_custom_styles(initial_ui_config["theme"])

    logger.info("Showing main window")
    main_window = MainWindow(session_config=initial_ui_config)
    main_window.center_on_screen()
    main_window.show()

    logger.info("Starting PySide6 event loop...")
    exit_code = app.exec()

    logger.info(f"Application finished with exit code {exit_code}.")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

# ui/theme_manager.py
import logging
from PySide6.QtWidgets import QApplication

logger = logging.getLogger(__name__)

# Blue rounded buttons with white titles, as on the rows and the aggregate button
BASE_CUSTOM_QSS_OVERRIDES = """
        QPushButton#RowActionButton, QPushButton#LoadAllButton {
            background-color: rgb(0, 122, 255);
            color: white;
            border: none;
            border-radius: 9px;
            padding: 6px 12px;
        }
        QPushButton#RowActionButton:pressed, QPushButton#LoadAllButton:pressed {
            background-color: rgb(0, 94, 196);
        }
        QLabel#SlotImage {
            background: transparent;
        }
    """

DARK_MODE_ADDITIONAL_QSS = """
        QToolTip {
            background-color: rgb(53, 53, 53);
            color: rgb(221, 221, 221);
            border: 1px solid rgb(85, 85, 85);
        }
    """


def resolve_theme(theme_name: str) -> str:
    if theme_name == "auto":
        import darkdetect
        theme_name = "dark" if darkdetect.isDark() else "light"
    return theme_name


def build_custom_qss(resolved_theme_name: str) -> str:
    custom_css = BASE_CUSTOM_QSS_OVERRIDES
    if resolved_theme_name == "dark":
        custom_css += DARK_MODE_ADDITIONAL_QSS
    return custom_css


def apply_app_theme_and_custom_styles(theme_name: str) -> str:
    """
    Applies the specified theme and the custom QSS overrides to the application.
    Returns the resolved theme name ("light" or "dark").
    """
    resolved_theme_name = resolve_theme(theme_name)
    app = QApplication.instance()
    if app is None:
        logger.error("QApplication instance not found during theme application. Cannot set theme.")
        return resolved_theme_name

    logger.info(f"Applying theme: {resolved_theme_name}")
    custom_css = build_custom_qss(resolved_theme_name)

    try:
        import qdarktheme # Heavy import, only needed here
    except ImportError:
        logger.error("qdarktheme module not found. Applying custom styles on top of the platform style.")
        app.setStyleSheet(custom_css)
        return resolved_theme_name

    qss = qdarktheme.load_stylesheet(resolved_theme_name)
    if qss:
        app.setStyleSheet(qss + custom_css)
        logger.info(f"Theme '{resolved_theme_name}' applied.")
    else:
        logger.warning(f"Stylesheet was empty after qdarktheme.load_stylesheet for '{resolved_theme_name}'.")
        app.setStyleSheet(custom_css)
    return resolved_theme_name

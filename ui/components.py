# ui/components.py
import logging
from typing import Optional

from PySide6.QtWidgets import (
    QWidget, QLabel, QPushButton, QHBoxLayout, QProgressBar, QSizePolicy, QStyle
)
from PySide6.QtGui import QPixmap, QImage, QPainter, QColor, QFont
from PySide6.QtCore import Qt, QSize, Signal

ROW_SPACING = 10
ACTION_BUTTON_SIZE = QSize(80, 40)

DEFAULT_FONT_FAMILY = "Arial"
FONT_SIZE_NORMAL = 9

LOAD_TEXT = "Load"
CLEAR_TEXT = "Clear"

logger = logging.getLogger(__name__)

def get_font(size=FONT_SIZE_NORMAL, weight: QFont.Weight = QFont.Weight.Normal, italic=False):
    font = QFont(DEFAULT_FONT_FAMILY, size)
    font.setWeight(weight)
    font.setItalic(italic)
    return font


def decode_pixmap(image_data: bytes) -> Optional[QPixmap]:
    """Decodes image bytes into a QPixmap. Returns None if the data is not a valid image. GUI thread only."""
    if not image_data:
        return None
    image = QImage.fromData(image_data)
    if image.isNull():
        return None
    return QPixmap.fromImage(image)


def create_placeholder_pixmap(size: QSize, style: QStyle) -> QPixmap:
    """The "photo" placeholder: a standard image icon centered on a light background."""
    pixmap = QPixmap(size)
    pixmap.fill(QColor(230, 230, 230))

    icon_side = min(size.width(), size.height()) // 2
    icon = style.standardIcon(QStyle.StandardPixmap.SP_FileDialogContentsView)
    icon_pixmap = icon.pixmap(QSize(icon_side, icon_side))

    painter = QPainter(pixmap)
    painter.drawPixmap((size.width() - icon_pixmap.width()) // 2,
                       (size.height() - icon_pixmap.height()) // 2,
                       icon_pixmap)
    painter.end()
    return pixmap


class ImageRow(QWidget):
    """One row: image slot, status bar, and the load/clear button for a single tag."""

    toggleRequested = Signal(int)  # tag

    def __init__(self, tag: int, image_size: QSize, placeholder: QPixmap, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.tag = tag
        self.image_size = image_size
        self.placeholder = placeholder
        self.showing_placeholder = True
        self.setObjectName(f"ImageRow_{tag}")

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(ROW_SPACING)
        layout.setAlignment(Qt.AlignVCenter)

        self.image_label = QLabel(self)
        self.image_label.setObjectName("SlotImage")
        self.image_label.setFixedSize(image_size)
        self.image_label.setAlignment(Qt.AlignCenter)
        self.image_label.setPixmap(placeholder)
        layout.addWidget(self.image_label)

        self.status_bar = QProgressBar(self)
        self.status_bar.setRange(0, 1)
        self.status_bar.setValue(0)
        self.status_bar.setTextVisible(False)
        self.status_bar.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        layout.addWidget(self.status_bar)

        self.action_button = QPushButton(LOAD_TEXT, self)
        self.action_button.setObjectName("RowActionButton")
        self.action_button.setFixedSize(ACTION_BUTTON_SIZE)
        self.action_button.setFont(get_font())
        self.action_button.setCursor(Qt.PointingHandCursor)
        self.action_button.clicked.connect(lambda: self.toggleRequested.emit(self.tag))
        layout.addWidget(self.action_button)

    def set_state(self, pixmap: Optional[QPixmap], loaded: bool, pending: bool):
        """
        Renders the slot. pixmap None shows the placeholder. The status bar is busy
        while a fetch is pending, full when the tag is loaded and empty otherwise.
        """
        if pixmap is None:
            self.image_label.setPixmap(self.placeholder)
            self.showing_placeholder = True
        else:
            self.image_label.setPixmap(
                pixmap.scaled(self.image_size, Qt.KeepAspectRatio, Qt.SmoothTransformation))
            self.showing_placeholder = False

        if pending:
            self.status_bar.setRange(0, 0)
        else:
            self.status_bar.setRange(0, 1)
            self.status_bar.setValue(1 if loaded else 0)

        self.action_button.setText(CLEAR_TEXT if loaded else LOAD_TEXT)

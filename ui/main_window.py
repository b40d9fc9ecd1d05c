# ui/main_window.py
import logging
from typing import Any, Dict, FrozenSet, Optional

import shiboken6
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QPushButton
)
from PySide6.QtCore import Qt, Slot, QUrl, QByteArray, QObject, QThread, QMetaObject, Q_ARG, QSize

from utils.config import DEFAULT_CONFIG
from services.image_fetcher import ImageFetcher
from services.image_board import ImageBoard
from services.models import IMAGE_TAGS, Slot as BoardSlot
from .components import ImageRow, create_placeholder_pixmap, decode_pixmap, get_font

logger = logging.getLogger(__name__)

WINDOW_WIDTH = 390
STACK_SPACING = 16
STACK_MARGIN = 16
LOAD_ALL_TEXT = "Load All Images"
CLEAR_ALL_TEXT = "Clear All Images"
FETCHER_QUIT_WAIT_MS = 2000


class MainWindow(QMainWindow):
    def __init__(self, session_config: Optional[Dict[str, Any]] = None,
                 image_fetcher: Optional[QObject] = None,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.session_config = DEFAULT_CONFIG.copy()
        self.session_config.update(session_config or {})

        self.setWindowTitle("Picsum Rows")
        self.setObjectName("MainWindow")

        self.image_size = QSize(self.session_config["image_width"], self.session_config["image_height"])
        self.transfer_timeout_sec: int = self.session_config["transfer_timeout_sec"]

        self.board = ImageBoard(
            decode_image=decode_pixmap,
            tags=IMAGE_TAGS,
            optimistic_load_all=self.session_config["optimistic_load_all"],
            image_width=self.image_size.width(),
            image_height=self.image_size.height(),
        )
        self.board.set_callbacks(
            fetch_cb=self._request_fetch,
            slot_changed_cb=self._render_slot,
            loaded_set_changed_cb=self._on_loaded_set_changed,
        )

        # Image fetcher setup. An injected fetcher is owned by the caller.
        self.image_fetcher_thread: Optional[QThread] = None
        if image_fetcher is None:
            self.image_fetcher_thread = QThread(self) # Parent QThread to MainWindow for lifetime management
            self.image_fetcher_thread.setObjectName("ImageFetcherThread")
            self.image_fetcher = ImageFetcher() # Create without parent, will be moved
            self.image_fetcher.moveToThread(self.image_fetcher_thread)
            self.image_fetcher_thread.started.connect(self.image_fetcher.initialize_manager)
            self.image_fetcher_thread.finished.connect(self.image_fetcher.deleteLater)
            self.image_fetcher_thread.start()
            logger.info("[GUI] ImageFetcher thread started.")
        else:
            self.image_fetcher = image_fetcher

        self.rows: Dict[int, ImageRow] = {}
        self._setup_ui()

    def _setup_ui(self):
        central = QWidget(self)
        stack = QVBoxLayout(central)
        stack.setSpacing(STACK_SPACING)
        stack.setContentsMargins(STACK_MARGIN, STACK_MARGIN, STACK_MARGIN, STACK_MARGIN)

        placeholder = create_placeholder_pixmap(self.image_size, self.style())
        for tag in self.board.tags:
            row = ImageRow(tag, self.image_size, placeholder, central)
            row.toggleRequested.connect(self.on_row_toggle_requested)
            self.rows[tag] = row
            stack.addWidget(row)

        self.load_all_button = QPushButton(LOAD_ALL_TEXT, central)
        self.load_all_button.setObjectName("LoadAllButton")
        self.load_all_button.setFont(get_font())
        self.load_all_button.setCursor(Qt.PointingHandCursor)
        self.load_all_button.clicked.connect(self.on_load_all_clicked)
        stack.addWidget(self.load_all_button)
        stack.addStretch(1)

        self.setCentralWidget(central)
        self.setFixedWidth(WINDOW_WIDTH)

    # --- User actions ---

    @Slot(int)
    def on_row_toggle_requested(self, tag: int):
        logger.debug(f"[GUI] Row button clicked for image {tag}.")
        self.board.toggle(tag)

    @Slot()
    def on_load_all_clicked(self):
        logger.debug("[GUI] Load/clear all clicked.")
        self.board.toggle_all()

    # --- Board callbacks (UI thread) ---

    def _request_fetch(self, request_id: int, url: str):
        if self.image_fetcher is None or not shiboken6.isValid(self.image_fetcher):
            logger.error(f"[GUI] ImageFetcher unavailable. Request {request_id} for {url} fails.")
            self.board.complete_fetch(request_id, None)
            return
        QMetaObject.invokeMethod(
            self.image_fetcher,
            "request_image_data",
            Qt.QueuedConnection,
            Q_ARG(str, url),
            Q_ARG(QObject, self),
            Q_ARG(str, "on_image_loaded"),
            Q_ARG(str, "on_image_error"),
            Q_ARG(int, request_id),
            Q_ARG(int, self.transfer_timeout_sec),
        )

    def _render_slot(self, slot: BoardSlot):
        row = self.rows[slot.tag]
        row.set_state(slot.image, self.board.is_loaded(slot.tag), slot.is_pending)

    def _on_loaded_set_changed(self, loaded: FrozenSet[int]):
        logger.debug(f"[GUI] Loaded images: {sorted(loaded)}")
        self.load_all_button.setText(CLEAR_ALL_TEXT if self.board.all_loaded else LOAD_ALL_TEXT)
        # Loaded status of every row may have changed (load all / clear all)
        for tag, row in self.rows.items():
            slot = self.board.slot(tag)
            row.set_state(slot.image, tag in loaded, slot.is_pending)

    # --- ImageFetcher callbacks, invoked queued so they run on the UI thread ---

    @Slot(int, QUrl, QByteArray)
    def on_image_loaded(self, request_id: int, q_url: QUrl, image_data_qba: QByteArray):
        logger.debug(f"[GUI] Image data for request {request_id} ({q_url.toString()}) received.")
        self.board.complete_fetch(request_id, image_data_qba.data())

    @Slot(int, QUrl, str)
    def on_image_error(self, request_id: int, q_url: QUrl, error_message: str):
        logger.warning(f"[GUI] Request {request_id} for {q_url.toString()} failed: {error_message}")
        self.board.complete_fetch(request_id, None)

    def closeEvent(self, event):
        if self.image_fetcher_thread and self.image_fetcher_thread.isRunning():
            logger.info("[GUI] closeEvent: Aborting active requests and stopping ImageFetcher thread.")
            QMetaObject.invokeMethod(self.image_fetcher, "quit_manager", Qt.BlockingQueuedConnection)
            self.image_fetcher_thread.quit()
            if not self.image_fetcher_thread.wait(FETCHER_QUIT_WAIT_MS):
                logger.warning("[GUI] closeEvent: ImageFetcher thread did not finish in time.")
            else:
                logger.info("[GUI] ImageFetcher thread finished.")
        super().closeEvent(event)

    def center_on_screen(self):
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        self.adjustSize()
        self.move(screen.availableGeometry().center() - self.rect().center())

# services/image_fetcher.py
from typing import Dict, Optional, Tuple
import logging
from utils.config import DEFAULT_REQUESTS_HEADERS
from PySide6.QtCore import (
    QObject, QUrl, Slot, QMetaObject, Q_ARG, QByteArray, Qt
)
import shiboken6
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkRequest, QNetworkReply

logger = logging.getLogger(__name__)

# Define a type for the callback information bundle
# Stores: (receiver_QObject, success_slot_name_str, error_slot_name_str, request_id, original_QUrl_of_request)
CallbackInfo = Tuple[QObject, str, str, int, QUrl]

class ImageFetcher(QObject):
    """
    Fetches image bytes with a QNetworkAccessManager living in the fetcher's own thread.

    Requests are queued in with QMetaObject.invokeMethod. Results are delivered by
    invoking the receiver's slots with Qt.QueuedConnection, so they run in the
    receiver's thread:
        success slot: your_slot_name(int request_id, QUrl original_url, QByteArray image_data)
        error slot:   your_slot_name(int request_id, QUrl original_url, str error_message)
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        # Maps an active QNetworkReply to the information needed for its callback
        self._reply_to_callback_map: Dict[QNetworkReply, CallbackInfo] = {}
        self.nam: Optional[QNetworkAccessManager] = None
        # The QNetworkAccessManager will be created in the `initialize_manager` slot,
        # which should be called after this object is moved to its QThread.

    @Slot()
    def initialize_manager(self):
        """
        Initializes the QNetworkAccessManager. This should be called after
        the ImageFetcher has been moved to its designated QThread,
        so that NAM is created in the correct thread.
        """
        if self.nam is None:
            self.nam = QNetworkAccessManager(self)
            logger.info("[ImageFetcher] QNetworkAccessManager initialized in its thread.")
        else:
            logger.warning("[ImageFetcher] QNetworkAccessManager already initialized.")

    @property
    def active_request_count(self) -> int:
        return len(self._reply_to_callback_map)

    def _invoke_error(self, receiver: QObject, error_slot_name: str, request_id: int, q_url: QUrl, msg: str):
        if shiboken6.isValid(receiver):
            QMetaObject.invokeMethod(receiver, error_slot_name, Qt.QueuedConnection,
                                     Q_ARG(int, request_id), Q_ARG(QUrl, q_url), Q_ARG(str, msg))
        else:
            logger.warning(f"[ImageFetcher] Receiver for request {request_id} is no longer valid. Error dropped: {msg}")

    @Slot(str, QObject, str, str, int, int)
    def request_image_data(self, url_str: str,
                           receiver: QObject,
                           success_slot_name: str,
                           error_slot_name: str,
                           request_id: int,
                           timeout_sec: int = 0):
        """
        Asynchronously requests image data for url_str.
        request_id is passed back untouched so the receiver can tell which request finished.
        A timeout_sec of 0 disables the transfer timeout.
        """
        if self.nam is None:
            msg = "ImageFetcher QNetworkAccessManager not initialized."
            logger.error(f"[ImageFetcher] {msg} Cannot process request {request_id} for {url_str}.")
            self._invoke_error(receiver, error_slot_name, request_id, QUrl(url_str), msg)
            return

        if not url_str:
            msg = "No URL provided for image request."
            logger.warning(f"[ImageFetcher] {msg} (request {request_id})")
            self._invoke_error(receiver, error_slot_name, request_id, QUrl(), msg)
            return

        q_url = QUrl(url_str)
        if not q_url.isValid() or q_url.isRelative():
            msg = f"Invalid URL for image request: {url_str}"
            logger.error(f"[ImageFetcher] {msg}")
            self._invoke_error(receiver, error_slot_name, request_id, q_url, msg)
            return

        logger.info(f"[ImageFetcher] Fetching image data from URL: {url_str} (request {request_id}) for receiver {receiver.objectName() if receiver.objectName() else receiver}")
        request = QNetworkRequest(q_url)
        for key, value in DEFAULT_REQUESTS_HEADERS.items():
            request.setRawHeader(key.encode('utf-8'), value.encode('utf-8'))
        # picsum answers /id/{tag}/w/h with a redirect to the actual file
        request.setAttribute(QNetworkRequest.Attribute.RedirectPolicyAttribute,
                             QNetworkRequest.RedirectPolicy.NoLessSafeRedirectPolicy)
        if timeout_sec > 0:
            request.setTransferTimeout(timeout_sec * 1000)

        reply: QNetworkReply = self.nam.get(request)

        # Store callback information mapped to this reply
        callback_info: CallbackInfo = (receiver, success_slot_name, error_slot_name, request_id, q_url)
        self._reply_to_callback_map[reply] = callback_info

        reply.finished.connect(self._handle_reply_finished_targeted)

    def _handle_reply_finished_targeted(self):
        reply = self.sender()
        if not isinstance(reply, QNetworkReply):
            logger.error("[ImageFetcher] _handle_reply_finished_targeted called by non-QNetworkReply sender.")
            return

        # Retrieve and remove callback information for this reply
        callback_info = self._reply_to_callback_map.pop(reply, None)

        if not callback_info:
            # This can happen if quit_manager aborted and cleaned up the reply already
            logger.debug(f"[ImageFetcher] Reply finished for {reply.url().toString()}, but no callback info (possibly aborted/cleaned).")
            reply.deleteLater()
            return

        receiver, success_slot_str, error_slot_str, request_id, original_qurl = callback_info

        if not shiboken6.isValid(receiver):
            logger.warning(f"[ImageFetcher] Receiver for {original_qurl.toString()} is no longer valid. Discarding reply.")
            reply.deleteLater()
            return

        if reply.error() == QNetworkReply.NetworkError.NoError:
            image_qbytearray = reply.readAll()
            if not image_qbytearray.isEmpty():
                logger.debug(f"[ImageFetcher] Successfully fetched {image_qbytearray.size()} bytes for request {request_id} ({original_qurl.toString()})")
                QMetaObject.invokeMethod(receiver, success_slot_str, Qt.QueuedConnection,
                                         Q_ARG(int, request_id),
                                         Q_ARG(QUrl, original_qurl),
                                         Q_ARG(QByteArray, image_qbytearray))
            else:
                msg = f"No data received from {original_qurl.toString()} despite NoError status."
                logger.warning(f"[ImageFetcher] {msg}")
                self._invoke_error(receiver, error_slot_str, request_id, original_qurl, msg)
        elif reply.error() == QNetworkReply.NetworkError.OperationCanceledError:
            msg = f"Operation timed out or aborted for URL: {original_qurl.toString()}"
            logger.info(f"[ImageFetcher] {msg}")
            self._invoke_error(receiver, error_slot_str, request_id, original_qurl, msg)
        else:
            error_string = reply.errorString()
            msg = f"Network error fetching image from {original_qurl.toString()}: {error_string} (Error code: {reply.error()})"
            logger.error(f"[ImageFetcher] {msg}")
            self._invoke_error(receiver, error_slot_str, request_id, original_qurl, error_string)

        reply.deleteLater()

    @Slot()
    def quit_manager(self):
        """Prepares the ImageFetcher for shutdown by aborting active replies."""
        replies_to_process = list(self._reply_to_callback_map.keys())

        if not replies_to_process:
            logger.info("[ImageFetcher] No active replies to abort during quit.")
        else:
            logger.info(f"[ImageFetcher] Aborting {len(replies_to_process)} active replies during quit.")

        for reply in replies_to_process:
            self._reply_to_callback_map.pop(reply, None)
            if not shiboken6.isValid(reply):
                continue
            try:
                reply.finished.disconnect(self._handle_reply_finished_targeted)
            except (RuntimeError, TypeError):
                pass
            if reply.isRunning():
                logger.debug(f"[ImageFetcher] Aborting reply for URL: {reply.url().toString()} during quit.")
                reply.abort()
            reply.deleteLater()

        self._reply_to_callback_map.clear()
        logger.info("[ImageFetcher] Manager quit preparation complete.")

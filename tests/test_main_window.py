from __future__ import annotations

import pathlib
from typing import List, Tuple

import pytest
from PySide6.QtCore import Q_ARG, QByteArray, QMetaObject, QObject, QUrl, Qt, Slot

from services.models import IMAGE_TAGS, image_url_for
from ui.components import CLEAR_TEXT, LOAD_TEXT
from ui.main_window import CLEAR_ALL_TEXT, LOAD_ALL_TEXT, MainWindow


class FakeFetcher(QObject):
    """Records requests instead of touching the network."""

    def __init__(self) -> None:
        super().__init__()
        self.requests: List[Tuple[str, int, int]] = []

    @Slot(str, QObject, str, str, int, int)
    def request_image_data(self, url_str, receiver, success_slot_name, error_slot_name, request_id, timeout_sec):
        self.requests.append((url_str, request_id, timeout_sec))

    def request_id_for(self, tag: int) -> int:
        url = image_url_for(tag)
        return [rid for u, rid, _ in self.requests if u == url][-1]


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def window(qtbot, fetcher: FakeFetcher) -> MainWindow:
    win = MainWindow(session_config={"transfer_timeout_sec": 7}, image_fetcher=fetcher)
    qtbot.addWidget(win)
    return win


def _deliver(window: MainWindow, fetcher: FakeFetcher, tag: int, data: bytes) -> None:
    window.on_image_loaded(fetcher.request_id_for(tag), QUrl(image_url_for(tag)), QByteArray(data))


def test_window_builds_one_row_per_tag(window: MainWindow) -> None:
    assert list(window.rows) == list(IMAGE_TAGS)
    for row in window.rows.values():
        assert row.showing_placeholder
        assert row.action_button.text() == LOAD_TEXT
    assert window.load_all_button.text() == LOAD_ALL_TEXT


def test_row_click_loads_then_clears(qtbot, window: MainWindow, fetcher: FakeFetcher, png_bytes: bytes) -> None:
    row = window.rows[237]
    qtbot.mouseClick(row.action_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 1)
    assert fetcher.requests[0][0] == "https://picsum.photos/id/237/120/80"
    assert fetcher.requests[0][2] == 7
    assert row.status_bar.maximum() == 0  # busy while pending

    _deliver(window, fetcher, 237, png_bytes)
    assert not row.showing_placeholder
    assert row.action_button.text() == CLEAR_TEXT
    assert window.board.loaded_tags == {237}

    qtbot.mouseClick(row.action_button, Qt.LeftButton)
    assert row.showing_placeholder
    assert row.action_button.text() == LOAD_TEXT
    assert window.board.loaded_tags == frozenset()
    qtbot.wait(20)
    assert len(fetcher.requests) == 1


def test_undecodable_payload_leaves_placeholder(qtbot, window: MainWindow, fetcher: FakeFetcher) -> None:
    qtbot.mouseClick(window.rows[230].action_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 1)

    _deliver(window, fetcher, 230, b"<html>not an image</html>")

    assert window.rows[230].showing_placeholder
    assert window.board.loaded_tags == frozenset()


def test_error_callback_is_silent(qtbot, window: MainWindow, fetcher: FakeFetcher) -> None:
    qtbot.mouseClick(window.rows[222].action_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 1)

    window.on_image_error(fetcher.request_id_for(222), QUrl(image_url_for(222)), "Host not found")

    row = window.rows[222]
    assert row.showing_placeholder
    assert row.status_bar.maximum() == 1 and row.status_bar.value() == 0
    assert window.board.loaded_tags == frozenset()


def test_queued_completion_reaches_window_by_slot_name(qtbot, window: MainWindow, fetcher: FakeFetcher,
                                                       png_bytes: bytes) -> None:
    qtbot.mouseClick(window.rows[257].action_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 1)

    QMetaObject.invokeMethod(window, "on_image_loaded", Qt.QueuedConnection,
                             Q_ARG(int, fetcher.request_id_for(257)),
                             Q_ARG(QUrl, QUrl(image_url_for(257))),
                             Q_ARG(QByteArray, QByteArray(png_bytes)))

    qtbot.waitUntil(lambda: not window.rows[257].showing_placeholder)
    assert window.board.loaded_tags == {257}


def test_load_all_then_clear_all(qtbot, window: MainWindow, fetcher: FakeFetcher, png_bytes: bytes) -> None:
    qtbot.mouseClick(window.load_all_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 5)

    # Optimistic: everything counts as loaded before any image arrives.
    assert window.board.all_loaded
    assert window.load_all_button.text() == CLEAR_ALL_TEXT
    for tag in IMAGE_TAGS:
        _deliver(window, fetcher, tag, png_bytes)
    assert all(not row.showing_placeholder for row in window.rows.values())

    qtbot.mouseClick(window.load_all_button, Qt.LeftButton)
    assert window.board.loaded_tags == frozenset()
    assert all(row.showing_placeholder for row in window.rows.values())
    assert window.load_all_button.text() == LOAD_ALL_TEXT
    qtbot.wait(20)
    assert len(fetcher.requests) == 5


def test_stale_image_after_clear_all_is_ignored(qtbot, window: MainWindow, fetcher: FakeFetcher,
                                                png_bytes: bytes) -> None:
    qtbot.mouseClick(window.load_all_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 5)
    qtbot.mouseClick(window.load_all_button, Qt.LeftButton)

    _deliver(window, fetcher, 240, png_bytes)

    assert window.rows[240].showing_placeholder
    assert window.board.loaded_tags == frozenset()


def test_confirmed_mode_from_config(qtbot, fetcher: FakeFetcher, png_bytes: bytes) -> None:
    win = MainWindow(session_config={"optimistic_load_all": False}, image_fetcher=fetcher)
    qtbot.addWidget(win)

    qtbot.mouseClick(win.load_all_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: len(fetcher.requests) == 5)
    assert win.board.loaded_tags == frozenset()
    assert win.load_all_button.text() == LOAD_ALL_TEXT

    _deliver(win, fetcher, 237, png_bytes)
    assert win.board.loaded_tags == {237}


def test_real_fetcher_thread_loads_local_files_and_stops_on_close(qtbot, monkeypatch: pytest.MonkeyPatch,
                                                                   tmp_path: pathlib.Path,
                                                                   png_bytes: bytes) -> None:
    for tag in IMAGE_TAGS:
        (tmp_path / f"{tag}.png").write_bytes(png_bytes)
    monkeypatch.setattr("services.image_board.image_url_for",
                        lambda tag, width, height: QUrl.fromLocalFile(str(tmp_path / f"{tag}.png")).toString())

    win = MainWindow()
    qtbot.addWidget(win)
    assert win.image_fetcher_thread is not None
    assert win.image_fetcher_thread.isRunning()

    # The window loads everything on startup.
    qtbot.waitUntil(lambda: all(not row.showing_placeholder for row in win.rows.values()), timeout=5000)

    row = win.rows[237]
    qtbot.mouseClick(row.action_button, Qt.LeftButton)
    assert row.showing_placeholder
    qtbot.mouseClick(row.action_button, Qt.LeftButton)
    qtbot.waitUntil(lambda: 237 in win.board.loaded_tags and not row.showing_placeholder, timeout=5000)
    assert row.action_button.text() == CLEAR_TEXT

    win.close()
    assert not win.image_fetcher_thread.isRunning()

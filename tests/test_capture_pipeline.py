import threading

import pytest
from PyQt6.QtGui import QColor, QImage, QPalette
from PyQt6.QtWidgets import QDialog, QLabel, QLineEdit, QMainWindow, QVBoxLayout, QWidget

from qtshot import Snapshotter, SnapshotTestMixin
from qtshot.capture import _CAPTURE_LOCK
from qtshot.core.naming import TestContext
from qtshot.errors import RenderError, ResolutionError

from fakes import FakeBackend, FakeQuickItem


def _swatch(color: str) -> QWidget:
    w = QWidget()
    w.setAutoFillBackground(True)
    palette = w.palette()
    palette.setColor(QPalette.ColorRole.Window, QColor(color))
    w.setPalette(palette)
    return w


def _card() -> QWidget:
    card = _swatch("#fafafa")
    lay = QVBoxLayout(card)
    lay.addWidget(QLabel("Static title"))
    edit = QLineEdit("typed text")
    lay.addWidget(edit)
    edit.setFocus()
    return card


def test_default_name_comes_from_test(qtbot, snapshotter):
    w = _card()
    qtbot.addWidget(w)
    stored = snapshotter.capture_element(w, height=60, width=120)
    assert stored.path.name == "test_capture_pipeline_test_default_name_comes_from_test.png"
    assert stored.path.parent == snapshotter.store.variant_dir


class TestNamedCaptures:
    def test_class_name_prefix(self, qtbot, snapshotter):
        w = _card()
        qtbot.addWidget(w)
        stored = snapshotter.capture_element(w, height=60, width=120)
        assert stored.name == "TestNamedCaptures_test_class_name_prefix"

    def test_override_replaces_name(self, qtbot, snapshotter):
        w = _card()
        qtbot.addWidget(w)
        stored = snapshotter.capture_element(w, height=60, width=120, name="custom")
        assert stored.path.name == "custom.png"


def test_repeated_capture_is_byte_identical(qtbot, snapshotter):
    w = _card()
    qtbot.addWidget(w)
    first = snapshotter.capture_element(w, height=80, width=160, name="stable")
    first_bytes = first.path.read_bytes()
    second = snapshotter.capture_element(w, height=80, width=160, name="stable")
    assert second.path.read_bytes() == first_bytes
    assert first.sha256 == second.sha256


def test_size_override_sets_pixel_dimensions(qtbot, snapshotter):
    w = _card()
    qtbot.addWidget(w)
    stored = snapshotter.capture_element(w, height=100, width=50, name="sized")
    image = QImage(str(stored.path))
    assert (image.width(), image.height()) == (50, 100)
    assert (stored.width, stored.height) == (50, 100)


def test_two_targets_two_files(qtbot, snapshotter):
    red, blue = _swatch("#ff0000"), _swatch("#0000ff")
    qtbot.addWidget(red)
    qtbot.addWidget(blue)
    a = snapshotter.capture_element(red, height=10, width=10, name="testA")
    b = snapshotter.capture_element(blue, height=10, width=10, name="testB")
    assert a.path.name == "testA.png" and b.path.name == "testB.png"
    assert QImage(str(a.path)).pixelColor(5, 5) == QColor("#ff0000")
    assert QImage(str(b.path)).pixelColor(5, 5) == QColor("#0000ff")


def test_dialog_without_window_writes_nothing(qtbot, snapshotter):
    dlg = QDialog()
    qtbot.addWidget(dlg)
    assert snapshotter.capture_dialog(dlg, name="dialog") is None
    assert not snapshotter.store.exists("dialog")


def test_screen_capture_of_whole_window(qtbot, snapshotter):
    win = QMainWindow()
    win.setCentralWidget(QLabel("main"))
    win.resize(200, 150)
    qtbot.addWidget(win)
    stored = snapshotter.capture_screen(win, name="screen")
    assert (stored.width, stored.height) == (200, 150)


def test_screen_capture_with_size_paints_background(qtbot, snapshotter):
    win = QMainWindow()
    win.setCentralWidget(QWidget())
    qtbot.addWidget(win)
    stored = snapshotter.capture_screen(win, height=40, width=30, name="bg", background_color="#00ff00")
    image = QImage(str(stored.path))
    assert image.size().width() == 30
    assert image.pixelColor(15, 20) == QColor("#00ff00")


def test_ignored_elements_are_not_rendered(qtbot, snapshot_context, snapshot_settings):
    host = _swatch("#ffffff")
    lay = QVBoxLayout(host)
    stamp = _swatch("#000000")
    stamp.setObjectName("timestamp")
    stamp.setFixedSize(20, 20)
    lay.addWidget(stamp)
    qtbot.addWidget(host)
    settings = snapshot_settings.with_ignored({"timestamp"})
    stored = Snapshotter(snapshot_context, settings).capture_element(host, height=40, width=40)
    assert stamp.isHidden()
    image = QImage(str(stored.path))
    assert image.pixelColor(20, 20) == QColor("#ffffff")


def test_detached_fragment_propagates(qtbot, snapshotter):
    from PyQt6.QtWidgets import QDockWidget

    dock = QDockWidget()
    qtbot.addWidget(dock)
    with pytest.raises(ResolutionError):
        snapshotter.capture_fragment(dock)


def test_render_failure_is_swallowed_by_default(qapp, snapshot_context, snapshot_settings, snapshot_log):
    shot = Snapshotter(snapshot_context, snapshot_settings, backend=FakeBackend(error=RuntimeError("x")))
    w = QWidget()
    assert shot.capture_element(w, height=10, width=10, name="lost") is None
    assert not shot.store.exists("lost")
    assert snapshot_log.render_failures()


def test_strict_mode_surfaces_render_failure(qapp, snapshot_context, snapshot_settings):
    from dataclasses import replace

    settings = replace(snapshot_settings, strict_render_failures=True)
    shot = Snapshotter(snapshot_context, settings, backend=FakeBackend(error=RuntimeError("x")))
    with pytest.raises(RenderError):
        shot.capture_element(QWidget(), height=10, width=10)


def test_declarative_node_goes_through_node_backend(qapp, snapshot_settings, solid_image):
    backend = FakeBackend(image=solid_image(6, 3))
    shot = Snapshotter(TestContext("ComposeTest", "rendersNode"), snapshot_settings, backend=backend)
    item = FakeQuickItem()
    stored = shot.capture_declarative_node(item)
    assert stored.path.name == "ComposeTest_rendersNode.png"
    assert backend.calls[0][0] == "record_node"


def test_list_item_capture(qtbot, snapshotter):
    from PyQt6.QtWidgets import QListWidget, QListWidgetItem

    lw = QListWidget()
    qtbot.addWidget(lw)
    item = QListWidgetItem("row", lw)
    lw.setItemWidget(item, _swatch("#123456"))
    stored = snapshotter.capture_list_item(lw, item, height=24, width=64, name="row")
    assert (stored.width, stored.height) == (64, 24)


def test_reset_store_clears_previous_run(qtbot, snapshotter):
    w = _swatch("#abcdef")
    qtbot.addWidget(w)
    snapshotter.capture_element(w, height=5, width=5, name="old")
    snapshotter.reset_store()
    assert not snapshotter.store.exists("old")


def test_capture_from_worker_thread(qtbot, snapshotter):
    w = _card()
    qtbot.addWidget(w)
    outcome = {}

    def worker():
        outcome["stored"] = snapshotter.capture_element(w, height=30, width=60, name="threaded")

    t = threading.Thread(target=worker)
    t.start()
    qtbot.waitUntil(lambda: "stored" in outcome, timeout=5000)
    t.join(timeout=1)
    assert outcome["stored"].path.is_file()


def test_ui_thread_capture_fails_fast_while_worker_holds_the_lock(qtbot, snapshotter):
    w = _swatch("#123456")
    qtbot.addWidget(w)
    holding = threading.Event()
    release = threading.Event()

    def worker():
        with _CAPTURE_LOCK:
            holding.set()
            release.wait(5)

    t = threading.Thread(target=worker)
    t.start()
    try:
        assert holding.wait(2)
        with pytest.raises(RuntimeError, match="deadlock"):
            snapshotter.capture_element(w, height=5, width=5, name="blocked")
    finally:
        release.set()
        t.join(timeout=2)
    assert not snapshotter.store.exists("blocked")


class TestMixinCaptures(SnapshotTestMixin):
    ignored_views = ("avatar",)
    prepared = False

    def prepare_ui_for_snapshot(self):
        self.prepared = True

    def test_mixin_capture(self, qtbot):
        host = _card()
        avatar = QLabel("img")
        avatar.setObjectName("avatar")
        host.layout().addWidget(avatar)
        qtbot.addWidget(host)
        stored = self.compare_snapshot(host, height=50, width=90)
        assert self.prepared
        assert avatar.isHidden()
        assert stored.name == "TestMixinCaptures_test_mixin_capture"

    def test_mixin_dialog_without_window(self, qtbot):
        dlg = QDialog()
        qtbot.addWidget(dlg)
        assert self.compare_snapshot(dlg) is None

"""Test doubles for the render backend and declarative items."""

from __future__ import annotations

from typing import Any, List, Tuple

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtGui import QImage


class FakeBackend:
    def __init__(self, image: QImage | None = None, error: Exception | None = None) -> None:
        self.image = image
        self.error = error
        self.calls: List[Tuple[str, Any, str, bool]] = []

    def record(self, root: Any, name: str, include_accessibility_info: bool) -> QImage:
        self.calls.append(("record", root, name, include_accessibility_info))
        if self.error is not None:
            raise self.error
        return self.image if self.image is not None else QImage()

    def record_node(self, item: Any, name: str, include_accessibility_info: bool) -> QImage:
        self.calls.append(("record_node", item, name, include_accessibility_info))
        if self.error is not None:
            raise self.error
        return self.image if self.image is not None else QImage()


class FakeQuickItem:
    """Stands in for a QQuickItem attached (or not) to a window."""

    def __init__(self, window: object | None = object()) -> None:
        self._window = window

    def window(self):
        return self._window


class PendingGrab(QObject):
    """A grab result whose ``ready`` signal never fires."""

    ready = pyqtSignal()

    def image(self) -> QImage:
        return QImage()


class StalledQuickItem(FakeQuickItem):
    def __init__(self, grab: QObject | None = None) -> None:
        super().__init__()
        self.grab = grab

    def grabToImage(self, size=None):
        return self.grab

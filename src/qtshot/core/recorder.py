"""Snapshot recording: turn a normalized root into a ``QImage``.

The actual rasterization is delegated to a ``RenderBackend``. The default
``QtRenderBackend`` uses ``QWidget.grab()`` for widget trees and
``QQuickItem.grabToImage()`` for declarative (QML) items, which render
through a separate scene graph and therefore need their own entry point.

Failure policy
--------------
A backend failure is wrapped in ``RenderError``. By default it is logged
with the snapshot name and swallowed: the capture call returns normally and
no file is written. ``strict=True`` re-raises instead, so a broken render
cannot hide a regression.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from PyQt6.QtCore import QEventLoop, QSize, QTimer
from PyQt6.QtGui import QImage
from PyQt6.QtWidgets import QWidget

from ..errors import RenderError
from .naming import SnapshotMetadata
from .normalization import iter_widget_tree
from .targets import ResolvedTarget
from .ui_thread import UiThreadExecutor

__all__ = [
    "CaptureRequest",
    "RenderBackend",
    "QtRenderBackend",
    "SnapshotRecorder",
    "NAME_TEXT_KEY",
    "ACCESSIBILITY_TEXT_KEY",
]

_logger = logging.getLogger(__name__)

NAME_TEXT_KEY = "qtshot.name"
ACCESSIBILITY_TEXT_KEY = "qtshot.accessibility"
QUICK_GRAB_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class CaptureRequest:
    target: ResolvedTarget
    metadata: SnapshotMetadata


class RenderBackend(Protocol):
    def record(self, root: Any, name: str, include_accessibility_info: bool) -> QImage: ...

    def record_node(self, item: Any, name: str, include_accessibility_info: bool) -> QImage: ...


def _accessibility_dump(root: QWidget) -> str:
    nodes = []
    for w in iter_widget_tree(root):
        if not w.isVisible() and w is not root:
            continue
        nodes.append(
            {
                "class": w.metaObject().className(),
                "object_name": w.objectName(),
                "accessible_name": w.accessibleName(),
                "geometry": [w.x(), w.y(), w.width(), w.height()],
            }
        )
    return json.dumps(nodes, sort_keys=True)


class QtRenderBackend:
    """Rasterize through Qt's own grab APIs. Must run on the UI thread."""

    def __init__(self, *, quick_timeout_ms: int = QUICK_GRAB_TIMEOUT_MS) -> None:
        self.quick_timeout_ms = quick_timeout_ms

    def record(self, root: Any, name: str, include_accessibility_info: bool) -> QImage:
        if not isinstance(root, QWidget):
            raise RenderError(f"Cannot grab non-widget root {type(root).__name__}")
        image = root.grab().toImage()
        if image.isNull():
            raise RenderError("Widget grab returned an empty image", context={"name": name})
        image.setText(NAME_TEXT_KEY, name)
        if include_accessibility_info:
            image.setText(ACCESSIBILITY_TEXT_KEY, _accessibility_dump(root))
        return image

    def record_node(self, item: Any, name: str, include_accessibility_info: bool) -> QImage:
        result = item.grabToImage(QSize())
        if result is None:
            raise RenderError("Scene graph refused to grab the item", context={"name": name})
        state = {"ready": False}
        loop = QEventLoop()

        def _ready() -> None:
            state["ready"] = True
            loop.quit()

        result.ready.connect(_ready)
        QTimer.singleShot(self.quick_timeout_ms, loop.quit)
        if not state["ready"]:
            loop.exec()
        image = result.image()
        if not state["ready"] or image.isNull():
            raise RenderError(
                f"Declarative item grab did not complete within {self.quick_timeout_ms}ms",
                context={"name": name},
            )
        image.setText(NAME_TEXT_KEY, name)
        return image


class SnapshotRecorder:
    def __init__(
        self,
        executor: UiThreadExecutor,
        backend: RenderBackend | None = None,
        *,
        strict: bool = False,
        include_accessibility_info: bool = False,
    ) -> None:
        self.executor = executor
        self.backend = backend or QtRenderBackend()
        self.strict = strict
        self.include_accessibility_info = include_accessibility_info

    def record(self, request: CaptureRequest) -> Optional[QImage]:
        """Render ``request``; returns ``None`` when a failure was swallowed."""
        name = request.metadata.name
        try:
            image = self.executor.run_sync(lambda: self._render(request))
        except RenderError as exc:
            exc.context.setdefault("name", name)
            return self._handle_failure(exc, name)
        except Exception as exc:  # noqa: BLE001 - any backend failure is a render failure
            err = RenderError(f"Render backend failed: {exc}", context={"name": name})
            err.__cause__ = exc
            return self._handle_failure(err, name)
        return image

    def _render(self, request: CaptureRequest) -> QImage:
        target = request.target
        name = request.metadata.name
        if target.declarative:
            image = self.backend.record_node(target.root, name, self.include_accessibility_info)
        else:
            image = self.backend.record(target.root, name, self.include_accessibility_info)
        if image is None or image.isNull():
            raise RenderError("Render backend produced no image", context={"name": name})
        return image

    def _handle_failure(self, error: RenderError, name: str) -> None:
        _logger.error(
            "Exception captured while taking snapshot with name %s", name, exc_info=error
        )
        if self.strict:
            raise error
        return None

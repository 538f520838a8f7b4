"""Capture targets and their resolution to a canonical root.

A capture target is one of a fixed set of variants, each naming the toolkit
handle it wraps:

================  =================================  ==========================
variant           handle                             canonical root
================  =================================  ==========================
ScreenTarget      top-level window (or active one)   window, or its content root
DialogTarget      ``QDialog``                        the dialog, if it has a window
FragmentTarget    ``QDockWidget``                    ``dock.widget()``
ListItemTarget    ``QListWidget`` + item             ``itemWidget(item)``
ElementTarget     ``QWidget``                        the widget
DeclarativeNode   ``QQuickItem``                     the item
================  =================================  ==========================

Resolution either yields exactly one root, yields ``None`` (a dialog without
a live window is skipped, not an error) or raises ``ResolutionError``.

When a height or width is requested the root is laid out at that exact size
on the UI thread before normalization, since the rasterizer reads committed
geometry, not requested geometry. A missing axis falls back to the size of
the screen the widget is on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from PyQt6.QtCore import QCoreApplication, QSize
from PyQt6.QtGui import QColor, QGuiApplication, QPalette
from PyQt6.QtWidgets import (
    QApplication,
    QDialog,
    QDockWidget,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QWidget,
)

from ..config.settings import DEFAULT_BACKGROUND
from ..errors import ResolutionError
from .ui_thread import UiThreadExecutor

__all__ = [
    "ScreenTarget",
    "DialogTarget",
    "FragmentTarget",
    "ListItemTarget",
    "ElementTarget",
    "DeclarativeNodeTarget",
    "CaptureTarget",
    "ResolvedTarget",
    "TargetResolver",
]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreenTarget:
    window: Optional[QWidget] = None
    height: Optional[int] = None
    width: Optional[int] = None
    background_color: str = DEFAULT_BACKGROUND


@dataclass(frozen=True)
class DialogTarget:
    dialog: QDialog
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass(frozen=True)
class FragmentTarget:
    dock: QDockWidget
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass(frozen=True)
class ListItemTarget:
    list_widget: QListWidget
    item: QListWidgetItem
    height: int
    width: Optional[int] = None

    def __post_init__(self) -> None:
        if self.height is None:
            raise ValueError("List item captures require an explicit height")


@dataclass(frozen=True)
class ElementTarget:
    widget: QWidget
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass(frozen=True)
class DeclarativeNodeTarget:
    item: Any  # QQuickItem; typed loosely so QtQuick is only loaded when used


CaptureTarget = Union[
    ScreenTarget,
    DialogTarget,
    FragmentTarget,
    ListItemTarget,
    ElementTarget,
    DeclarativeNodeTarget,
]


@dataclass(frozen=True)
class ResolvedTarget:
    """Canonical root plus the layout the resolver committed for it."""

    kind: str
    root: Any
    size: Optional[QSize] = None
    background_color: Optional[str] = None
    full_window: bool = False
    declarative: bool = False


def _display_size(widget: QWidget) -> QSize:
    screen = widget.screen() or QGuiApplication.primaryScreen()
    if screen is None:
        raise ResolutionError("No screen available to size the capture root")
    return screen.size()


def _content_root(window: QWidget) -> QWidget:
    if isinstance(window, QMainWindow):
        central = window.centralWidget()
        if central is None:
            raise ResolutionError(
                "Main window has no central widget",
                context={"window": window.objectName()},
            )
        return central
    return window


class TargetResolver:
    def __init__(self, executor: UiThreadExecutor) -> None:
        self.executor = executor

    def resolve(self, target: CaptureTarget) -> Optional[ResolvedTarget]:
        """Map ``target`` to its canonical root, laying it out when sized."""
        resolved = self.executor.run_sync(lambda: self._resolve_on_ui(target))
        if resolved is not None and resolved.size is not None:
            self.executor.run_sync(lambda: self._layout_exact(resolved))
        return resolved

    # Per-variant resolution ------------------------------------------
    def _resolve_on_ui(self, target: CaptureTarget) -> Optional[ResolvedTarget]:
        if isinstance(target, ScreenTarget):
            return self._resolve_screen(target)
        if isinstance(target, DialogTarget):
            return self._resolve_dialog(target)
        if isinstance(target, FragmentTarget):
            view = target.dock.widget()
            if view is None:
                raise ResolutionError(
                    "Fragment has no attached view",
                    context={"dock": target.dock.objectName()},
                )
            return self._sized("fragment", view, target.height, target.width)
        if isinstance(target, ListItemTarget):
            view = target.list_widget.itemWidget(target.item)
            if view is None:
                raise ResolutionError(
                    "List item has no item widget",
                    context={"row": target.list_widget.row(target.item)},
                )
            return self._sized("list_item", view, target.height, target.width)
        if isinstance(target, ElementTarget):
            if target.widget is None:
                raise ResolutionError("Element target has no widget")
            return self._sized("element", target.widget, target.height, target.width)
        if isinstance(target, DeclarativeNodeTarget):
            item = target.item
            if item is None or item.window() is None:
                raise ResolutionError("Declarative node is not attached to a window")
            return ResolvedTarget(kind="declarative", root=item, declarative=True)
        raise ResolutionError(f"Unsupported capture target: {type(target).__name__}")

    def _resolve_screen(self, target: ScreenTarget) -> ResolvedTarget:
        window = target.window or QApplication.activeWindow()
        if window is None:
            raise ResolutionError("No active window to capture")
        if target.height is None and target.width is None:
            return ResolvedTarget(kind="screen", root=window, full_window=True)
        content = _content_root(window)
        resolved = self._sized("screen", content, target.height, target.width)
        return ResolvedTarget(
            kind=resolved.kind,
            root=resolved.root,
            size=resolved.size,
            background_color=target.background_color,
        )

    def _resolve_dialog(self, target: DialogTarget) -> Optional[ResolvedTarget]:
        if target.dialog.windowHandle() is None:
            _logger.debug("Dialog %r has no live window; skipping capture", target.dialog.objectName())
            return None
        return self._sized("dialog", target.dialog, target.height, target.width)

    def _sized(
        self, kind: str, root: QWidget, height: Optional[int], width: Optional[int]
    ) -> ResolvedTarget:
        display = _display_size(root)
        size = QSize(
            width if width is not None else display.width(),
            height if height is not None else display.height(),
        )
        return ResolvedTarget(kind=kind, root=root, size=size)

    # Layout -----------------------------------------------------------
    @staticmethod
    def _layout_exact(resolved: ResolvedTarget) -> None:
        root: QWidget = resolved.root
        if resolved.background_color is not None:
            palette = root.palette()
            palette.setColor(QPalette.ColorRole.Window, QColor(resolved.background_color))
            root.setPalette(palette)
            root.setAutoFillBackground(True)
        root.ensurePolished()
        # A fixed size survives later re-layouts by a parent layout
        root.setFixedSize(resolved.size)
        root.resize(resolved.size)
        layout = root.layout()
        if layout is not None:
            layout.activate()
        QCoreApplication.sendPostedEvents()

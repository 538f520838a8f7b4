"""Normalization of widget trees before rasterization.

Scrollbar fade-out, kinetic overshoot and caret blinking are driven by
timers the test does not control, so two captures of the same static UI can
differ by a few pixels. This module walks a resolved root (root included)
and switches those behaviours off, then hides widgets the test explicitly
asked to ignore (timestamps, avatars loaded from the network, ...).

Steps, in order, all executed on the UI thread:
 1. caller supplied pre-capture hook (no-op by default)
 2. scroll areas: scrollbars off, overshoot off
 3. text inputs: caret hidden
 4. ignored object names: hidden, layout space retained

The walk uses an explicit stack over direct children, so deep trees do not
hit the recursion limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QAbstractScrollArea,
    QLineEdit,
    QPlainTextEdit,
    QProxyStyle,
    QScroller,
    QScrollerProperties,
    QStyle,
    QStyleFactory,
    QTextEdit,
    QWidget,
)

from .ui_thread import UiThreadExecutor

__all__ = [
    "NormalizationReport",
    "NormalizationEngine",
    "iter_widget_tree",
    "is_caret_hidden",
    "scrollbars_disabled",
]

_logger = logging.getLogger(__name__)


@dataclass
class NormalizationReport:
    visited: int = 0
    scroll_areas: int = 0
    text_inputs: int = 0
    hidden: List[str] = field(default_factory=list)


class _NoCaretStyle(QProxyStyle):
    """Proxy that draws a zero width caret and defers everything else to its base."""

    def pixelMetric(self, metric, option=None, widget=None):  # type: ignore[override]
        if metric == QStyle.PixelMetric.PM_TextCursorWidth:
            return 0
        return super().pixelMetric(metric, option, widget)


def iter_widget_tree(root: QWidget) -> Iterator[QWidget]:
    """Yield ``root`` and every descendant widget, depth-first."""
    stack = [root]
    while stack:
        w = stack.pop()
        yield w
        children = w.findChildren(QWidget, options=Qt.FindChildOption.FindDirectChildrenOnly)
        stack.extend(reversed(children))


def scrollbars_disabled(area: QAbstractScrollArea) -> bool:
    off = Qt.ScrollBarPolicy.ScrollBarAlwaysOff
    return (
        area.horizontalScrollBarPolicy() == off and area.verticalScrollBarPolicy() == off
    )


def is_caret_hidden(widget: QWidget) -> bool:
    if isinstance(widget, (QTextEdit, QPlainTextEdit)):
        return widget.cursorWidth() == 0
    if isinstance(widget, QLineEdit):
        return (
            widget.style().pixelMetric(QStyle.PixelMetric.PM_TextCursorWidth, None, widget) == 0
        )
    return True


def _disable_overshoot(area: QAbstractScrollArea) -> None:
    viewport = area.viewport()
    if viewport is None or not QScroller.hasScroller(viewport):
        return
    scroller = QScroller.scroller(viewport)
    props = scroller.scrollerProperties()
    off = QScrollerProperties.OvershootPolicy.OvershootAlwaysOff.value
    props.setScrollMetric(QScrollerProperties.ScrollMetric.HorizontalOvershootPolicy, off)
    props.setScrollMetric(QScrollerProperties.ScrollMetric.VerticalOvershootPolicy, off)
    scroller.setScrollerProperties(props)


def _hide_scroll_bars(area: QAbstractScrollArea) -> None:
    area.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
    area.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
    _disable_overshoot(area)


def _no_caret_style_for(widget: QWidget) -> QStyle:
    current = widget.style()
    # A fresh copy of the widget's own style; the proxy takes ownership of it
    base = QStyleFactory.create(current.name())
    if base is None:
        _logger.debug("No factory style named %r; caret proxy uses the default style", current.name())
        style = _NoCaretStyle()
    else:
        style = _NoCaretStyle(base)
    # setStyle does not take ownership
    style.setParent(widget)
    return style


def _hide_caret(widget: QWidget) -> None:
    if isinstance(widget, (QTextEdit, QPlainTextEdit)):
        widget.setCursorWidth(0)
        return
    if is_caret_hidden(widget):
        return
    widget.setStyle(_no_caret_style_for(widget))


def _hide_keeping_space(widget: QWidget) -> None:
    policy = widget.sizePolicy()
    policy.setRetainSizeWhenHidden(True)
    widget.setSizePolicy(policy)
    widget.setVisible(False)


class NormalizationEngine:
    """Suppress non-deterministic visual state under a capture root."""

    def __init__(
        self,
        executor: UiThreadExecutor,
        *,
        ignored_element_ids: Iterable[str] = (),
        pre_capture_hook: Callable[[], None] | None = None,
    ) -> None:
        self.executor = executor
        self.ignored_element_ids = frozenset(ignored_element_ids)
        self.pre_capture_hook = pre_capture_hook

    def normalize(self, root: QWidget | None) -> NormalizationReport:
        """Run the hook and, when ``root`` is a widget, every built-in step."""
        return self.executor.run_sync(lambda: self._normalize_on_ui(root))

    def _normalize_on_ui(self, root: QWidget | None) -> NormalizationReport:
        if self.pre_capture_hook is not None:
            self.pre_capture_hook()
        report = NormalizationReport()
        if not isinstance(root, QWidget):
            return report
        widgets = list(iter_widget_tree(root))
        report.visited = len(widgets)
        for w in widgets:
            if isinstance(w, QAbstractScrollArea):
                _hide_scroll_bars(w)
                report.scroll_areas += 1
        for w in widgets:
            if isinstance(w, (QLineEdit, QTextEdit, QPlainTextEdit)):
                _hide_caret(w)
                report.text_inputs += 1
        if self.ignored_element_ids:
            for w in widgets:
                name = w.objectName()
                if name and name in self.ignored_element_ids:
                    _hide_keeping_space(w)
                    report.hidden.append(name)
        _logger.debug(
            "Normalized %s: visited=%d scroll_areas=%d text_inputs=%d hidden=%s",
            root.objectName() or root.metaObject().className(),
            report.visited,
            report.scroll_areas,
            report.text_inputs,
            report.hidden,
        )
        return report

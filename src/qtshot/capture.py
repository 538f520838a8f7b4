"""Public capture API.

``Snapshotter`` wires the pipeline together for one test:

    resolve target -> exact-size layout -> normalize -> wait for idle
    -> rasterize -> name -> store

Every step runs to completion before the call returns. Resolution and store
failures propagate; render failures are logged and the call returns
``None`` unless the settings ask for strict behaviour.

``SnapshotTestMixin`` offers the same operations to test classes that
prefer declaring ``ignored_views`` and overriding
``prepare_ui_for_snapshot`` on the class itself.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Iterable, Iterator, Optional

from PyQt6.QtWidgets import QDialog, QDockWidget, QListWidget, QListWidgetItem, QWidget

from .config.settings import DEFAULT_BACKGROUND, SnapshotSettings
from .core.idle import IdleSynchronizer, IdlingRegistry
from .core.naming import TestContext, resolve_metadata
from .core.normalization import NormalizationEngine
from .core.recorder import CaptureRequest, RenderBackend, SnapshotRecorder
from .core.store import SnapshotStore, StoredSnapshot
from .core.targets import (
    CaptureTarget,
    DeclarativeNodeTarget,
    DialogTarget,
    ElementTarget,
    FragmentTarget,
    ListItemTarget,
    ScreenTarget,
    TargetResolver,
)
from .core.ui_thread import UiThreadExecutor

__all__ = ["Snapshotter", "SnapshotTestMixin"]

_logger = logging.getLogger(__name__)

# Captures share one UI thread; never interleave two of them
_CAPTURE_LOCK = threading.RLock()


class Snapshotter:
    def __init__(
        self,
        context: TestContext,
        settings: SnapshotSettings | None = None,
        *,
        executor: UiThreadExecutor | None = None,
        backend: RenderBackend | None = None,
        idling_registry: IdlingRegistry | None = None,
        store: SnapshotStore | None = None,
    ) -> None:
        self.context = context
        self.settings = settings or SnapshotSettings.from_env()
        self.executor = executor or UiThreadExecutor()
        self.resolver = TargetResolver(self.executor)
        self.engine = NormalizationEngine(
            self.executor,
            ignored_element_ids=self.settings.ignored_element_ids,
            pre_capture_hook=self.settings.pre_capture_hook,
        )
        self.idle = IdleSynchronizer(
            self.executor,
            idling_registry,
            timeout_s=self.settings.effective_idle_timeout,
        )
        self.recorder = SnapshotRecorder(
            self.executor,
            backend,
            strict=self.settings.strict_render_failures,
            include_accessibility_info=self.settings.include_accessibility_info,
        )
        self.store = store or SnapshotStore(
            self.settings.storage_root, self.settings.package_name, self.settings.variant
        )

    # Generic entry point ---------------------------------------------
    def capture(self, target: CaptureTarget, name: Optional[str] = None) -> Optional[StoredSnapshot]:
        with self._capture_lock():
            resolved = self.resolver.resolve(target)
            if resolved is None:
                _logger.info("Capture target %s resolved to nothing; skipped", type(target).__name__)
                return None
            self.engine.normalize(resolved.root)
            self.idle.wait_for_idle()
            metadata = resolve_metadata(self.context, name)
            image = self.recorder.record(CaptureRequest(target=resolved, metadata=metadata))
            if image is None:
                return None
            return self.store.save(image, metadata.name)

    @contextmanager
    def _capture_lock(self) -> Iterator[None]:
        if self.executor.is_ui_thread():
            # A worker holding the lock may be waiting on this very thread
            if not _CAPTURE_LOCK.acquire(blocking=False):
                raise RuntimeError(
                    "Another thread is capturing and waits on the UI thread; "
                    "capturing from the UI thread now would deadlock"
                )
        else:
            _CAPTURE_LOCK.acquire()
        try:
            yield
        finally:
            _CAPTURE_LOCK.release()

    # Per-variant conveniences ----------------------------------------
    def capture_screen(
        self,
        window: QWidget | None = None,
        height: Optional[int] = None,
        width: Optional[int] = None,
        name: Optional[str] = None,
        background_color: str = DEFAULT_BACKGROUND,
    ) -> Optional[StoredSnapshot]:
        target = ScreenTarget(
            window=window, height=height, width=width, background_color=background_color
        )
        return self.capture(target, name)

    def capture_dialog(
        self,
        dialog: QDialog,
        height: Optional[int] = None,
        width: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[StoredSnapshot]:
        return self.capture(DialogTarget(dialog, height=height, width=width), name)

    def capture_fragment(
        self,
        dock: QDockWidget,
        height: Optional[int] = None,
        width: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[StoredSnapshot]:
        return self.capture(FragmentTarget(dock, height=height, width=width), name)

    def capture_list_item(
        self,
        list_widget: QListWidget,
        item: QListWidgetItem,
        height: int,
        width: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[StoredSnapshot]:
        return self.capture(ListItemTarget(list_widget, item, height=height, width=width), name)

    def capture_element(
        self,
        widget: QWidget,
        height: Optional[int] = None,
        width: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[StoredSnapshot]:
        return self.capture(ElementTarget(widget, height=height, width=width), name)

    def capture_declarative_node(self, item: Any, name: Optional[str] = None) -> Optional[StoredSnapshot]:
        return self.capture(DeclarativeNodeTarget(item), name)

    def reset_store(self) -> None:
        self.store.reset()


class SnapshotTestMixin:
    """Class-level capture surface for test classes.

    Subclasses may set ``ignored_views`` (object names) and override
    ``prepare_ui_for_snapshot``; the pytest plugin binds the test context
    automatically before each test method.
    """

    ignored_views: Iterable[str] = ()

    _snapshot_context: TestContext | None = None
    _snapshot_settings: SnapshotSettings | None = None
    _snapshot_registry: IdlingRegistry | None = None

    def prepare_ui_for_snapshot(self) -> None:
        """Hook run on the UI thread right before built-in normalization."""

    def bind_snapshot_context(
        self,
        context: TestContext,
        settings: SnapshotSettings | None = None,
        registry: IdlingRegistry | None = None,
    ) -> None:
        self._snapshot_context = context
        self._snapshot_settings = settings
        self._snapshot_registry = registry

    @property
    def snapshotter(self) -> Snapshotter:
        if self._snapshot_context is None:
            raise RuntimeError("No test context bound; is the qtshot pytest plugin active?")
        base = self._snapshot_settings or SnapshotSettings.from_env()
        settings = replace(
            base.with_ignored(self.ignored_views),
            pre_capture_hook=self._run_prepare_hooks(base.pre_capture_hook),
        )
        return Snapshotter(self._snapshot_context, settings, idling_registry=self._snapshot_registry)

    def _run_prepare_hooks(self, configured: Callable[[], None]) -> Callable[[], None]:
        def hook() -> None:
            configured()
            self.prepare_ui_for_snapshot()

        return hook

    def compare_snapshot(
        self,
        handle: Any,
        height: Optional[int] = None,
        width: Optional[int] = None,
        name: Optional[str] = None,
        background_color: str = DEFAULT_BACKGROUND,
    ) -> Optional[StoredSnapshot]:
        """Capture ``handle``, picking the target variant from its type."""
        shot = self.snapshotter
        if isinstance(handle, QDialog):
            return shot.capture_dialog(handle, height=height, width=width, name=name)
        if isinstance(handle, QDockWidget):
            return shot.capture_fragment(handle, height=height, width=width, name=name)
        if isinstance(handle, QWidget):
            if handle.isWindow():
                return shot.capture_screen(
                    handle, height=height, width=width, name=name, background_color=background_color
                )
            return shot.capture_element(handle, height=height, width=width, name=name)
        return shot.capture_declarative_node(handle, name=name)

    def compare_list_item_snapshot(
        self,
        list_widget: QListWidget,
        item: QListWidgetItem,
        height: int,
        width: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Optional[StoredSnapshot]:
        return self.snapshotter.capture_list_item(list_widget, item, height, width=width, name=name)

"""Idle synchronization for the UI thread.

The capture must not rasterize while the UI thread still has queued work
(layout requests, deferred deletes, posted updates) or while an asynchronous
resource the test registered (an animation, an image load) is in flight.

Two waits are combined:
- main thread idle: posted events are flushed until a marker posted at the
  end of the queue has been delivered;
- pending resources idle: every registered ``IdlingResource`` reports idle.

Both polls share one optional deadline; exceeding it raises
``IdleTimeoutError`` instead of rendering an unsettled UI.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from threading import RLock
from typing import Iterator, List, Optional, Protocol, runtime_checkable

from PyQt6.QtCore import QAbstractAnimation, QCoreApplication, QEventLoop, QTimer

from ..errors import IdleTimeoutError
from .ui_thread import UiThreadExecutor

__all__ = [
    "IdlingResource",
    "AnimationIdlingResource",
    "IdlingRegistry",
    "IdleSynchronizer",
]

_logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.005


@runtime_checkable
class IdlingResource(Protocol):
    name: str

    def is_idle(self) -> bool: ...  # pragma: no cover - structural


class AnimationIdlingResource:
    """Busy while any tracked ``QAbstractAnimation`` is running."""

    def __init__(self, name: str = "animations") -> None:
        self.name = name
        self._animations: List[QAbstractAnimation] = []

    def track(self, animation: QAbstractAnimation) -> QAbstractAnimation:
        self._animations.append(animation)
        return animation

    def is_idle(self) -> bool:
        return all(
            a.state() != QAbstractAnimation.State.Running for a in self._animations
        )


class IdlingRegistry:
    """Thread-safe set of idling resources consulted before each capture."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._resources: dict[str, IdlingResource] = {}

    def register(self, resource: IdlingResource) -> None:
        with self._lock:
            self._resources[resource.name] = resource

    def unregister(self, resource: IdlingResource | str) -> None:
        key = resource if isinstance(resource, str) else resource.name
        with self._lock:
            self._resources.pop(key, None)

    @contextmanager
    def registered(self, resource: IdlingResource) -> Iterator[IdlingResource]:
        self.register(resource)
        try:
            yield resource
        finally:
            self.unregister(resource)

    def busy(self) -> List[str]:
        with self._lock:
            resources = list(self._resources.values())
        return [r.name for r in resources if not r.is_idle()]

    def list_names(self) -> List[str]:
        with self._lock:
            return list(self._resources.keys())


class IdleSynchronizer:
    def __init__(
        self,
        executor: UiThreadExecutor,
        registry: IdlingRegistry | None = None,
        *,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.executor = executor
        self.registry = registry or IdlingRegistry()
        self.timeout_s = timeout_s

    # Public API -------------------------------------------------------
    def wait_for_idle(self) -> None:
        deadline = self._deadline()
        self.wait_for_main_thread_idle(deadline=deadline)
        self.wait_for_pending_resources_idle(deadline=deadline)
        # A resource settling may post more UI work (final frame, deleteLater)
        self.wait_for_main_thread_idle(deadline=deadline)

    def wait_for_main_thread_idle(self, *, deadline: Optional[float] = None) -> None:
        if deadline is None:
            deadline = self._deadline()
        if self.executor.is_ui_thread():
            self._drain_on_ui_thread(deadline)
            return
        # The hand-off is queued behind everything posted so far
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        try:
            self.executor.run_sync(lambda: self._drain_on_ui_thread(deadline), timeout_s=remaining)
        except IdleTimeoutError:
            raise
        except TimeoutError:
            raise self._timeout_error({"stage": "main_thread"}) from None

    def wait_for_pending_resources_idle(self, *, deadline: Optional[float] = None) -> None:
        if deadline is None:
            deadline = self._deadline()
        while True:
            busy = self.registry.busy()
            if not busy:
                return
            self._check_deadline(deadline, {"busy_resources": busy})
            self._pump(POLL_INTERVAL_S)

    # Internals --------------------------------------------------------
    def _deadline(self) -> Optional[float]:
        if not self.timeout_s or self.timeout_s <= 0:
            return None
        return time.monotonic() + self.timeout_s

    def _timeout_error(self, context: dict) -> IdleTimeoutError:
        _logger.error("UI did not become idle within %.2fs: %s", self.timeout_s, context)
        return IdleTimeoutError(f"UI did not become idle within {self.timeout_s}s", context=context)

    def _check_deadline(self, deadline: Optional[float], context: dict) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise self._timeout_error(context)

    def _drain_on_ui_thread(self, deadline: Optional[float]) -> None:
        app = QCoreApplication.instance()
        if app is None:  # pragma: no cover - executor already requires an app
            return
        # The hand-off may have waited behind a busy UI thread
        self._check_deadline(deadline, {"stage": "main_thread"})
        reached = {"value": False}

        def _mark() -> None:
            reached["value"] = True

        QTimer.singleShot(0, _mark)
        while not reached["value"]:
            QCoreApplication.sendPostedEvents()
            app.processEvents(QEventLoop.ProcessEventsFlag.AllEvents)
            if not reached["value"]:
                self._check_deadline(deadline, {"stage": "main_thread"})

    def _pump(self, seconds: float) -> None:
        if self.executor.is_ui_thread():
            end = time.monotonic() + seconds
            app = QCoreApplication.instance()
            while time.monotonic() < end:
                if app is not None:
                    app.processEvents(QEventLoop.ProcessEventsFlag.AllEvents, 5)
                time.sleep(0.001)
        else:
            time.sleep(seconds)

"""Synchronous hand-off of work to the Qt UI thread.

Every mutation of the widget tree must happen on the thread that owns the
``QApplication``. Callers on that thread run the task inline; callers on any
other thread post the task through a queued signal and block until the UI
thread has executed it. Exceptions raised by the task are re-raised in the
caller.

A caller may bound the wait. When it expires the caller gets ``TimeoutError``
and the still queued task is cancelled, so it never runs late.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from PyQt6.QtCore import QCoreApplication, QObject, QThread, Qt, pyqtSignal, pyqtSlot

__all__ = ["UiThreadExecutor", "UiTask"]

T = TypeVar("T")


@dataclass
class UiTask(Generic[T]):
    fn: Callable[[], T]
    result: Optional[T] = None
    error: Optional[BaseException] = None
    done: threading.Event = field(default_factory=threading.Event)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _state: str = "pending"

    def run(self) -> None:
        with self._lock:
            if self._state != "pending":
                return
            self._state = "running"
        try:
            self.result = self.fn()
        except BaseException as exc:  # noqa: BLE001 - re-raised on the submitting thread
            self.error = exc
        finally:
            self.done.set()

    def cancel(self) -> bool:
        """Cancel if the UI thread has not started the task yet."""
        with self._lock:
            if self._state != "pending":
                return False
            self._state = "cancelled"
            return True


class _Invoker(QObject):
    submit = pyqtSignal(object)

    def __init__(self) -> None:
        super().__init__()
        # The submitting thread waits on the task's event, which allows a bounded wait
        self.submit.connect(self._execute, type=Qt.ConnectionType.QueuedConnection)

    @pyqtSlot(object)
    def _execute(self, task: UiTask) -> None:
        task.run()


class UiThreadExecutor:
    """Runs callables on the UI thread and waits for them (rendezvous)."""

    def __init__(self, app: QCoreApplication | None = None) -> None:
        self._app = app
        self._invoker: _Invoker | None = None
        self._lock = threading.Lock()

    @property
    def app(self) -> QCoreApplication:
        app = self._app or QCoreApplication.instance()
        if app is None:
            raise RuntimeError("A QApplication must exist before capturing snapshots")
        return app

    def is_ui_thread(self) -> bool:
        return QThread.currentThread() is self.app.thread()

    def _ensure_invoker(self) -> _Invoker:
        with self._lock:
            if self._invoker is None:
                invoker = _Invoker()
                # The invoker must live on the UI thread so its slot runs there
                invoker.moveToThread(self.app.thread())
                self._invoker = invoker
            return self._invoker

    def run_sync(self, fn: Callable[[], T], *, timeout_s: Optional[float] = None) -> T:
        """Execute ``fn`` on the UI thread and return its result.

        ``timeout_s`` only applies off the UI thread: it bounds how long the
        caller waits for the UI thread. ``TimeoutError`` is raised when it
        expires before the UI thread picked the task up.
        """
        task: UiTask[T] = UiTask(fn)
        if self.is_ui_thread():
            task.run()
        else:
            self._ensure_invoker().submit.emit(task)
            if not task.done.wait(timeout_s) and task.cancel():
                raise TimeoutError(f"UI thread did not run the task within {timeout_s}s")
            # Returns at once unless the task started right at the deadline
            task.done.wait()
        if task.error is not None:
            raise task.error
        return task.result  # type: ignore[return-value]

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return self.run_sync(lambda: fn(*args, **kwargs))

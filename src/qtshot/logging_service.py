"""Capture log service.

Keeps the most recent records emitted under the ``qtshot`` logger in a ring
buffer. Render failures are logged rather than raised in lenient mode, so
this is how a test (or a CI summary step) finds out that a snapshot silently
went missing.

Design goals:
 - No Qt dependency
 - Filtering by level name or logger name substring
 - Capacity-bound ring buffer with O(1) append
 - JSON Lines export for CI artifacts
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from dataclasses import dataclass
from threading import RLock
from typing import Deque, List, Optional

__all__ = [
    "LogEntry",
    "CaptureLogService",
]

ROOT_LOGGER_NAME = "qtshot"


@dataclass(frozen=True)
class LogEntry:
    level: str
    name: str
    message: str
    created: float
    pathname: str
    lineno: int
    exc_text: Optional[str] = None


class _RingBufferHandler(logging.Handler):
    def __init__(self, svc: "CaptureLogService") -> None:
        super().__init__()
        self._svc = svc

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        self._svc._ingest_record(record)


class CaptureLogService:
    def __init__(self, capacity: int = 500, logger_name: str = ROOT_LOGGER_NAME) -> None:
        self._capacity = capacity
        self._logger_name = logger_name
        self._lock = RLock()
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._handler = _RingBufferHandler(self)
        self._handler.setLevel(logging.DEBUG)
        self._attached = False
        self._previous_level: int | None = None

    # Lifecycle --------------------------------------------------------
    def attach(self) -> "CaptureLogService":
        if self._attached:
            return self
        logger = logging.getLogger(self._logger_name)
        logger.addHandler(self._handler)
        # Ensure we don't miss lower-severity records
        self._previous_level = logger.level
        if logger.level == logging.NOTSET or logger.level > logging.DEBUG:
            logger.setLevel(logging.DEBUG)
        self._attached = True
        return self

    def detach(self) -> None:
        if not self._attached:
            return
        logger = logging.getLogger(self._logger_name)
        logger.removeHandler(self._handler)
        if self._previous_level is not None:
            logger.setLevel(self._previous_level)
        self._attached = False

    def __enter__(self) -> "CaptureLogService":
        return self.attach()

    def __exit__(self, *exc_info) -> None:
        self.detach()

    # Internal ingestion -----------------------------------------------
    def _ingest_record(self, record: logging.LogRecord) -> None:
        exc_text = None
        if record.exc_info:
            exc_text = logging.Formatter().formatException(record.exc_info)
        entry = LogEntry(
            level=record.levelname,
            name=record.name,
            message=record.getMessage(),
            created=record.created,
            pathname=record.pathname,
            lineno=record.lineno,
            exc_text=exc_text,
        )
        with self._lock:
            self._entries.append(entry)

    # Query ------------------------------------------------------------
    def recent(self, limit: Optional[int] = None) -> List[LogEntry]:
        with self._lock:
            data = list(self._entries)
        return data[-limit:] if limit is not None else data

    def filter(
        self, *, level: str | None = None, name_contains: str | None = None
    ) -> List[LogEntry]:
        out: List[LogEntry] = []
        for e in self.recent():
            if level and e.level != level:
                continue
            if name_contains and name_contains not in e.name:
                continue
            out.append(e)
        return out

    def render_failures(self) -> List[LogEntry]:
        return self.filter(level="ERROR", name_contains="recorder")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # Export ------------------------------------------------------------
    def export_jsonl(
        self,
        path: str | None = None,
        *,
        level: str | None = None,
        name_contains: str | None = None,
        append: bool = False,
    ) -> int:
        """Export filtered log entries as JSON Lines.

        Returns number of lines written.
        """
        entries = self.filter(level=level, name_contains=name_contains)
        mode = "a" if append else "w"
        file_path = path or os.path.join(os.getcwd(), "qtshot-log.jsonl")
        with open(file_path, mode, encoding="utf-8") as f:
            for e in entries:
                f.write(
                    json.dumps(
                        {
                            "level": e.level,
                            "name": e.name,
                            "message": e.message,
                            "created": e.created,
                            "file": e.pathname,
                            "line": e.lineno,
                            "exc_text": e.exc_text,
                        },
                        sort_keys=True,
                    )
                    + "\n"
                )
        return len(entries)

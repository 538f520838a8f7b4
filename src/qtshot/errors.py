"""Structured errors raised by the snapshot capture pipeline."""

from __future__ import annotations
from typing import Any

__all__ = [
    "SnapshotError",
    "ResolutionError",
    "RenderError",
    "IdleTimeoutError",
    "SnapshotStoreError",
]


class SnapshotError(Exception):
    """Base class for capture related issues."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ResolutionError(SnapshotError):
    """Raised when a capture target cannot be mapped to a canonical root."""


class RenderError(SnapshotError):
    """Raised when the render backend fails to produce an image."""


class IdleTimeoutError(SnapshotError, TimeoutError):
    """Raised when the UI does not settle within the configured bound."""


class SnapshotStoreError(SnapshotError, OSError):
    """Raised when a snapshot file or its directory cannot be written."""

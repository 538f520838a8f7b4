"""Global configuration and defaults for snapshot capture.

Environment variables override the defaults so CI jobs can redirect output
without touching test code:

  QTSHOT_STORAGE_ROOT   directory holding every package's snapshots
  QTSHOT_PACKAGE        package segment of the snapshot path
  QTSHOT_VARIANT        build variant segment of the snapshot path
  QTSHOT_IDLE_TIMEOUT   seconds to wait for the UI to settle (0 = no limit)
  QTSHOT_STRICT         "1"/"true" surfaces render failures as errors
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Callable, Final, FrozenSet, Iterable, Optional

__all__ = [
    "STORAGE_ROOT",
    "PACKAGE_NAME",
    "VARIANT",
    "IDLE_TIMEOUT_S",
    "STRICT_RENDER_FAILURES",
    "DEFAULT_BACKGROUND",
    "SnapshotSettings",
]


def _env_flag(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


STORAGE_ROOT: Final = os.environ.get("QTSHOT_STORAGE_ROOT", "screenshots")
PACKAGE_NAME: Final = os.environ.get("QTSHOT_PACKAGE", "qtshot")
VARIANT: Final = os.environ.get("QTSHOT_VARIANT", "screenshots-default")
IDLE_TIMEOUT_S: Final = _env_float("QTSHOT_IDLE_TIMEOUT", 10.0)
STRICT_RENDER_FAILURES: Final = _env_flag("QTSHOT_STRICT")

# Background painted behind a screen's content root when it is laid out at a fixed size
DEFAULT_BACKGROUND: Final = "#ffffff"


def _no_op() -> None:
    return None


@dataclass
class SnapshotSettings:
    """Per-run capture configuration.

    Attributes:
        storage_root: Directory under which ``{package_name}/{variant}`` lives.
        package_name: Identifies the application under test in the store path.
        variant: Build variant segment of the store path.
        ignored_element_ids: Object names forced invisible during capture.
        pre_capture_hook: Called on the UI thread before any built-in
            normalization; lets a test cancel custom animations etc.
        strict_render_failures: When True a failed render raises
            ``RenderError`` instead of being logged and skipped.
        idle_timeout_s: Upper bound for the idle wait; ``None`` or ``0``
            waits indefinitely.
        include_accessibility_info: Forwarded to the render backend.
    """

    storage_root: str = STORAGE_ROOT
    package_name: str = PACKAGE_NAME
    variant: str = VARIANT
    ignored_element_ids: FrozenSet[str] = field(default_factory=frozenset)
    pre_capture_hook: Callable[[], None] = _no_op
    strict_render_failures: bool = STRICT_RENDER_FAILURES
    idle_timeout_s: Optional[float] = IDLE_TIMEOUT_S
    include_accessibility_info: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "SnapshotSettings":
        """Build settings from the current environment (re-read at call time)."""
        base = cls(
            storage_root=os.environ.get("QTSHOT_STORAGE_ROOT", "screenshots"),
            package_name=os.environ.get("QTSHOT_PACKAGE", "qtshot"),
            variant=os.environ.get("QTSHOT_VARIANT", "screenshots-default"),
            strict_render_failures=_env_flag("QTSHOT_STRICT"),
            idle_timeout_s=_env_float("QTSHOT_IDLE_TIMEOUT", 10.0),
        )
        return replace(base, **overrides) if overrides else base

    def with_ignored(self, ids: Iterable[str]) -> "SnapshotSettings":
        return replace(self, ignored_element_ids=frozenset(self.ignored_element_ids) | frozenset(ids))

    @property
    def effective_idle_timeout(self) -> Optional[float]:
        if not self.idle_timeout_s or self.idle_timeout_s <= 0:
            return None
        return self.idle_timeout_s

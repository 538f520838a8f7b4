"""Deterministic snapshot capture of Qt widgets for visual regression tests.

Typical use inside a pytest-qt test::

    def test_login_form(qtbot, snapshotter):
        form = LoginForm()
        qtbot.addWidget(form)
        snapshotter.capture_element(form, height=240, width=320)

The PNG lands at ``{storage_root}/{package}/{variant}/{TestClass}_{test}.png``.
"""

from __future__ import annotations

__all__ = [
    "Snapshotter",
    "SnapshotTestMixin",
    "SnapshotSettings",
    "TestContext",
    "SnapshotMetadata",
    "SnapshotError",
    "ResolutionError",
    "RenderError",
    "IdleTimeoutError",
    "SnapshotStoreError",
]

from .capture import Snapshotter, SnapshotTestMixin
from .config.settings import SnapshotSettings
from .core.naming import TestContext, SnapshotMetadata
from .errors import (
    SnapshotError,
    ResolutionError,
    RenderError,
    IdleTimeoutError,
    SnapshotStoreError,
)

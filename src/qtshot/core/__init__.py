"""Capture pipeline building blocks.

Importing this package loads PyQt6; pure data types (``TestContext``,
``SnapshotMetadata``) live in ``qtshot.core.naming`` and are Qt-free.
"""

from __future__ import annotations

__all__ = [
    "UiThreadExecutor",
    "IdleSynchronizer",
    "IdlingRegistry",
    "IdlingResource",
    "AnimationIdlingResource",
    "NormalizationEngine",
    "NormalizationReport",
    "TargetResolver",
    "ResolvedTarget",
    "ScreenTarget",
    "DialogTarget",
    "FragmentTarget",
    "ListItemTarget",
    "ElementTarget",
    "DeclarativeNodeTarget",
    "CaptureTarget",
    "TestContext",
    "SnapshotMetadata",
    "resolve_metadata",
    "CaptureRequest",
    "RenderBackend",
    "QtRenderBackend",
    "SnapshotRecorder",
    "SnapshotStore",
    "StoredSnapshot",
    "encode_png",
    "hash_image_bytes",
]

from .ui_thread import UiThreadExecutor
from .idle import IdleSynchronizer, IdlingRegistry, IdlingResource, AnimationIdlingResource
from .normalization import NormalizationEngine, NormalizationReport
from .targets import (
    TargetResolver,
    ResolvedTarget,
    ScreenTarget,
    DialogTarget,
    FragmentTarget,
    ListItemTarget,
    ElementTarget,
    DeclarativeNodeTarget,
    CaptureTarget,
)
from .naming import TestContext, SnapshotMetadata, resolve_metadata
from .recorder import CaptureRequest, RenderBackend, QtRenderBackend, SnapshotRecorder
from .store import SnapshotStore, StoredSnapshot, encode_png, hash_image_bytes

"""pytest integration.

Registered through the ``pytest11`` entry point. Provides:

- ``snapshot_context``: ``TestContext`` of the running test
- ``snapshot_settings``: ``SnapshotSettings.from_env()`` (override in a
  conftest to redirect storage, e.g. under ``tmp_path``)
- ``idling_registry``: per-test ``IdlingRegistry``
- ``snapshot_log``: ``CaptureLogService`` attached for the test duration
- ``snapshotter``: ready-to-use ``Snapshotter`` (needs pytest-qt's ``qapp``)

Command line options:
  --qtshot-reset   clear ``{storage_root}/{package}/`` before the session
  --qtshot-strict  treat render failures as errors
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from .config.settings import SnapshotSettings
from .core.naming import TestContext
from .logging_service import CaptureLogService


def pytest_addoption(parser):
    group = parser.getgroup("qtshot", "deterministic widget snapshots")
    group.addoption(
        "--qtshot-reset",
        action="store_true",
        default=False,
        help="Delete previously stored snapshots for the configured package before running",
    )
    group.addoption(
        "--qtshot-strict",
        action="store_true",
        default=False,
        help="Fail captures whose render backend errors instead of logging them",
    )


def pytest_sessionstart(session):
    if not session.config.getoption("qtshot_reset", default=False):
        return
    from .core.store import SnapshotStore

    settings = SnapshotSettings.from_env()
    SnapshotStore(settings.storage_root, settings.package_name, settings.variant).reset()


@pytest.fixture
def snapshot_context(request) -> TestContext:
    return TestContext.from_pytest_request(request)


@pytest.fixture
def snapshot_settings(request) -> SnapshotSettings:
    settings = SnapshotSettings.from_env()
    if request.config.getoption("qtshot_strict", default=False):
        settings = replace(settings, strict_render_failures=True)
    return settings


@pytest.fixture
def idling_registry():
    from .core.idle import IdlingRegistry

    return IdlingRegistry()


@pytest.fixture
def snapshot_log():
    svc = CaptureLogService()
    svc.attach()
    yield svc
    svc.detach()


@pytest.fixture
def snapshotter(qapp, snapshot_context, snapshot_settings, idling_registry):
    from .capture import Snapshotter

    return Snapshotter(snapshot_context, snapshot_settings, idling_registry=idling_registry)


@pytest.fixture(autouse=True)
def _qtshot_bind_test_instance(request):
    instance = getattr(request, "instance", None)
    if instance is None or not hasattr(instance, "bind_snapshot_context"):
        yield
        return
    request.getfixturevalue("qapp")
    instance.bind_snapshot_context(
        TestContext.from_pytest_request(request),
        request.getfixturevalue("snapshot_settings"),
        request.getfixturevalue("idling_registry"),
    )
    yield

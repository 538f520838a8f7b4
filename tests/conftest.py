# Headless Qt (widgets and the software Quick scene graph) for the whole suite;
# must be set before pytest-qt creates the QApplication.
# Snapshot storage is redirected under tmp_path so runs never touch the working tree.

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("QT_QUICK_BACKEND", "software")

from qtshot.config.settings import SnapshotSettings  # noqa: E402


@pytest.fixture
def snapshot_settings(tmp_path):
    return SnapshotSettings(
        storage_root=str(tmp_path / "screenshots"),
        package_name="com.example.app",
        variant="screenshots-default",
        idle_timeout_s=5.0,
    )


@pytest.fixture
def solid_image():
    from PyQt6.QtGui import QColor, QImage

    def make(width: int = 4, height: int = 4, color: str = "#336699"):
        image = QImage(width, height, QImage.Format.Format_ARGB32)
        image.fill(QColor(color))
        return image

    return make

"""Snapshot persistence.

Layout on disk (one PNG per snapshot)::

  {storage_root}/{package_name}/{variant}/{name}.png

Writes always overwrite: two captures resolving to the same name within a
run leave only the last one. PNG bytes are produced by Qt from the image
alone, so identical pixels (and text chunks) yield identical files.
Filesystem failures are never masked; they surface as ``SnapshotStoreError``.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path

from PyQt6.QtCore import QBuffer, QIODevice
from PyQt6.QtGui import QImage

from ..errors import SnapshotStoreError

__all__ = [
    "StoredSnapshot",
    "SnapshotStore",
    "encode_png",
    "hash_image_bytes",
]

_logger = logging.getLogger(__name__)


def encode_png(image: QImage) -> bytes:
    """Encode ``image`` as PNG bytes in memory."""
    buff = QBuffer()
    buff.open(QIODevice.OpenModeFlag.ReadWrite)
    try:
        if not image.save(buff, "PNG"):
            raise SnapshotStoreError("Qt failed to encode image as PNG")
        return bytes(buff.data())
    finally:
        buff.close()


def hash_image_bytes(data: bytes) -> str:
    return sha256(data).hexdigest()


@dataclass(frozen=True)
class StoredSnapshot:
    name: str
    path: Path
    width: int
    height: int
    sha256: str


class SnapshotStore:
    def __init__(self, storage_root: str | Path, package_name: str, variant: str) -> None:
        self.storage_root = Path(storage_root)
        self.package_name = package_name
        self.variant = variant

    @property
    def package_dir(self) -> Path:
        return self.storage_root / self.package_name

    @property
    def variant_dir(self) -> Path:
        return self.package_dir / self.variant

    def path_for(self, name: str) -> Path:
        return self.variant_dir / f"{name}.png"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def save(self, image: QImage, name: str) -> StoredSnapshot:
        """Write ``image`` as ``{name}.png``, replacing any previous file."""
        path = self.path_for(name)
        data = encode_png(image)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                _logger.debug("Overwriting existing snapshot %s", path)
            path.write_bytes(data)
        except OSError as exc:
            raise SnapshotStoreError(
                f"Could not write snapshot {name!r}: {exc}",
                context={"name": name, "path": str(path)},
            ) from exc
        stored = StoredSnapshot(
            name=name,
            path=path,
            width=image.width(),
            height=image.height(),
            sha256=hash_image_bytes(data),
        )
        _logger.info("Snapshot written: %s (%dx%d)", path, stored.width, stored.height)
        return stored

    def reset(self) -> None:
        """Recursively delete every snapshot stored for this package."""
        target = self.package_dir
        if not target.exists():
            return
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise SnapshotStoreError(
                f"Could not clear snapshots under {target}: {exc}",
                context={"path": str(target)},
            ) from exc
        _logger.info("Cleared snapshots under %s", target)

    def list_names(self) -> list[str]:
        if not self.variant_dir.is_dir():
            return []
        return sorted(p.stem for p in self.variant_dir.glob("*.png"))

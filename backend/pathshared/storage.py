"""Storage abstraction for player progress snapshots.

Snapshots are JSON documents, one file per player, written atomically
(temp-file-then-rename) with owner-only permissions (0o600) inside an
owner-only directory (0o700).
"""

import contextlib
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

_SNAPSHOT_DIR_MODE = 0o700
_SNAPSHOT_FILE_MODE = 0o600

_SNAPSHOT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_snapshot_id(snapshot_id: str) -> None:
    """Reject ids that are not 1-64 chars of letters, digits, '_' or '-'."""
    if not _SNAPSHOT_ID_RE.match(snapshot_id):
        raise ValueError(f"Invalid snapshot id {snapshot_id!r}")


class SnapshotStorage(Protocol):
    """Protocol for persisting serialized snapshots by id."""

    def save_snapshot(self, snapshot_id: str, content: str) -> None: ...

    def load_snapshot(self, snapshot_id: str) -> str | None: ...

    def delete_snapshot(self, snapshot_id: str) -> None: ...


class LocalSnapshotStorage:
    """Stores JSON snapshots on the local filesystem."""

    def __init__(self, data_dir: str) -> None:
        self._data_dir = Path(data_dir).resolve()

    def _target(self, snapshot_id: str) -> Path:
        validate_snapshot_id(snapshot_id)
        target = (self._data_dir / f"{snapshot_id}.json").resolve()
        if not target.is_relative_to(self._data_dir):
            raise ValueError(f"Path traversal rejected: '{snapshot_id}' resolves outside data directory")
        return target

    def save_snapshot(self, snapshot_id: str, content: str) -> None:
        """Atomically write a snapshot, creating the directory lazily on first write."""
        target = self._target(snapshot_id)

        self._data_dir.mkdir(mode=_SNAPSHOT_DIR_MODE, parents=True, exist_ok=True)
        self._data_dir.chmod(_SNAPSHOT_DIR_MODE)

        fd, tmp_path = tempfile.mkstemp(dir=str(self._data_dir), suffix=".tmp", prefix=".snapshot_")
        fd_owned = True
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _SNAPSHOT_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(target)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
        logger.info("saved snapshot", snapshot_id=snapshot_id, path=str(target))

    def load_snapshot(self, snapshot_id: str) -> str | None:
        """Return the stored snapshot text, or None if nothing was saved yet."""
        target = self._target(snapshot_id)
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def delete_snapshot(self, snapshot_id: str) -> None:
        target = self._target(snapshot_id)
        target.unlink(missing_ok=True)
        logger.info("deleted snapshot", snapshot_id=snapshot_id)

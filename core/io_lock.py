# Purpose: Centralize safe, cross-process file I/O with file-based locks.
# Provides locking wrappers for the JSON documents and binary blobs the draft
# store keeps on disk, so concurrent requests never read half-written files.

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock, Timeout
import logging


_logger = logging.getLogger(__name__)


# Defaults can be tuned via env vars
READ_TIMEOUT_DEFAULT: float = float(os.getenv("BOND_GENERATOR_FILELOCK_READ_TIMEOUT", "15"))
WRITE_TIMEOUT_DEFAULT: float = float(os.getenv("BOND_GENERATOR_FILELOCK_WRITE_TIMEOUT", "30"))


def _lockfile_for(path: Path) -> Path:
    """Return a lock file path next to the target (e.g., state.json.lock)."""
    # Always suffix with .lock (keep original suffix too to avoid collisions)
    return path.with_suffix(path.suffix + ".lock")


def _atomic_write(target: Path, data: bytes) -> None:
    """Write to a temporary file in the same directory then os.replace()."""
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent), prefix=target.name + ".tmp-", suffix=target.suffix or ".tmp"
    )
    try:
        with os.fdopen(tmp_fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, str(target))  # atomic on same volume
    finally:
        # If anything failed before replace, clean up tmp file
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def read_bytes_locked(path: str | os.PathLike, *, timeout: float = READ_TIMEOUT_DEFAULT) -> bytes:
    """Read a file under a file lock to avoid reading while another process writes."""
    target = Path(path)
    lock = FileLock(str(_lockfile_for(target)), timeout=timeout)
    try:
        with lock:
            return target.read_bytes()
    except Timeout as e:
        _logger.error(f"Timeout acquiring read lock for {target}: {e}")
        raise


def write_bytes_locked(
    path: str | os.PathLike, data: bytes, *, timeout: float = WRITE_TIMEOUT_DEFAULT
) -> None:
    """Write bytes with a lock. Uses atomic replace so readers never see a partial file."""
    target = Path(path)
    # Ensure parent exists
    target.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(_lockfile_for(target)), timeout=timeout)
    try:
        with lock:
            _atomic_write(target, data)
    except Timeout as e:
        _logger.error(f"Timeout acquiring write lock for {target}: {e}")
        raise


def read_json_locked(
    path: str | os.PathLike, *, timeout: float = READ_TIMEOUT_DEFAULT
) -> Optional[Any]:
    """Read a JSON document under a lock. Returns None when the file does not exist."""
    target = Path(path)
    if not target.exists():
        return None
    raw = read_bytes_locked(target, timeout=timeout)
    return json.loads(raw.decode("utf-8"))


def write_json_locked(
    path: str | os.PathLike, payload: Any, *, timeout: float = WRITE_TIMEOUT_DEFAULT
) -> None:
    """Serialize payload as indented JSON and write it atomically under a lock."""
    data = json.dumps(payload, indent=2, sort_keys=True, default=str).encode("utf-8")
    write_bytes_locked(path, data, timeout=timeout)


def remove_tree_locked(
    path: str | os.PathLike, *, timeout: float = WRITE_TIMEOUT_DEFAULT
) -> bool:
    """Remove a directory tree while holding a lock named after it.

    Returns True when something was removed, False when the directory was absent.
    """
    target = Path(path)
    lock_path = target.parent / (target.name + ".lock")
    lock = FileLock(str(lock_path), timeout=timeout)
    try:
        with lock:
            if not target.exists():
                return False
            shutil.rmtree(target)
            return True
    except Timeout as e:
        _logger.error(f"Timeout acquiring delete lock for {target}: {e}")
        raise
    finally:
        if lock_path.exists() and not lock.is_locked:
            try:
                lock_path.unlink()
            except OSError:
                pass


__all__ = [
    "read_bytes_locked",
    "write_bytes_locked",
    "read_json_locked",
    "write_json_locked",
    "remove_tree_locked",
]

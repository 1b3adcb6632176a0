"""Atomic file writes, directory layout, and root discovery."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from braid.errors import BraidError

BRAID_DIR = ".braid"
BRAID_ROOT_ENV = "BRAID_ROOT"


class BraidRootError(BraidError):
    """Raised when BRAID_ROOT env var is set but invalid."""


def _fsync_directory(path: Path) -> None:
    """Fsync a directory so a rename inside it is durable.

    Some platforms cannot fsync a directory descriptor; ``OSError`` is
    ignored there.
    """
    try:
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        pass


def atomic_write(path: Path, content: str | bytes) -> None:
    """Write *content* to *path* via temp file, fsync, and rename.

    The temp file lives next to the target so the rename stays on one
    filesystem.

    Raises:
        FileNotFoundError: If the parent directory does not exist.
    """
    parent = path.parent
    if not parent.is_dir():
        raise FileNotFoundError(f"Parent directory does not exist: {parent}")

    data = content.encode("utf-8") if isinstance(content, str) else content

    fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=".tmp.")
    closed = False
    try:
        # os.write() can short-write.
        remaining = memoryview(data)
        while remaining:
            written = os.write(fd, remaining)
            remaining = remaining[written:]
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
        _fsync_directory(parent)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def ensure_braid_dirs(root: Path) -> Path:
    """Create ``.braid/`` with its ``docs/`` and ``locks/`` under *root*; return ``.braid/``."""
    braid_dir = root / BRAID_DIR
    for name in ("docs", "locks"):
        (braid_dir / name).mkdir(parents=True, exist_ok=True)
    return braid_dir


def find_root(start: Path | None = None) -> Path | None:
    """Find the project directory containing ``.braid/``.

    BRAID_ROOT, when set, wins and is validated without walking up.
    Otherwise walks up from *start* (default: cwd).

    Raises:
        BraidRootError: If BRAID_ROOT is set but invalid.
    """
    env_root = os.environ.get(BRAID_ROOT_ENV)
    if env_root is not None:
        if not env_root:
            raise BraidRootError("BRAID_ROOT is set but empty")
        env_path = Path(env_root)
        if not env_path.is_dir():
            raise BraidRootError(f"BRAID_ROOT points to a path that does not exist: {env_root}")
        if not (env_path / BRAID_DIR).is_dir():
            raise BraidRootError(
                f"BRAID_ROOT points to a directory with no {BRAID_DIR}/ inside: {env_root}"
            )
        return env_path

    current = (start or Path.cwd()).resolve()
    while True:
        if (current / BRAID_DIR).is_dir():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent

"""Project directory layout and crash-safe file replacement."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

EDITSYNC_DIR = ".editsync"
EDITSYNC_ROOT_ENV = "EDITSYNC_ROOT"


class EditSyncRootError(Exception):
    """Raised when EDITSYNC_ROOT is set but does not name an editsync project."""


def atomic_write(path: Path, text: str) -> None:
    """Replace *path* with *text* so readers see the old or the new file, never a torn one.

    Raises FileNotFoundError if the parent directory does not exist.
    """
    tmp = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=".tmp.", delete=False
    )
    try:
        with tmp:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


def ensure_editsync_dirs(root: Path, drafts_dir: str = "drafts") -> Path:
    """Create ``.editsync/{drafts_dir}`` and ``.editsync/locks`` under *root*."""
    base = root / EDITSYNC_DIR
    (base / drafts_dir).mkdir(parents=True, exist_ok=True)
    (base / "locks").mkdir(exist_ok=True)
    return base


def find_root(start: Path | None = None) -> Path | None:
    """Return the nearest directory at or above *start* holding ``.editsync/``.

    EDITSYNC_ROOT, when set, is authoritative: it is returned if valid and
    EditSyncRootError is raised otherwise.
    """
    env_root = os.environ.get(EDITSYNC_ROOT_ENV)
    if env_root is not None:
        return _checked_env_root(env_root)

    here = (start or Path.cwd()).resolve()
    for candidate in (here, *here.parents):
        if (candidate / EDITSYNC_DIR).is_dir():
            return candidate
    return None


def _checked_env_root(value: str) -> Path:
    if not value:
        raise EditSyncRootError(f"{EDITSYNC_ROOT_ENV} is set but empty")
    root = Path(value)
    if not (root / EDITSYNC_DIR).is_dir():
        raise EditSyncRootError(f"{EDITSYNC_ROOT_ENV}={value} has no {EDITSYNC_DIR}/ inside")
    return root

"""Per-key file locking for the file-backed key-value store."""

from __future__ import annotations

import contextlib
import hashlib
from collections.abc import Generator
from pathlib import Path

from filelock import FileLock, Timeout


class LockTimeout(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""


def lock_name(key: str) -> str:
    """Return a filesystem-safe lock basename for an arbitrary store key."""
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


@contextlib.contextmanager
def key_lock(
    locks_dir: Path,
    key: str,
    timeout: float = 10,
) -> Generator[None, None, None]:
    """Acquire a single file lock for *key* under ``locks_dir``.

    Args:
        locks_dir: Directory where lock files are stored.
        key: Store key being written.
        timeout: Seconds to wait before giving up.

    Raises:
        LockTimeout: If the lock cannot be acquired within *timeout* seconds.
    """
    lock_path = locks_dir / f"{lock_name(key)}.lock"
    lock = FileLock(lock_path, timeout=timeout)
    try:
        lock.acquire()
    except Timeout:
        raise LockTimeout(f"Could not acquire lock '{key}' within {timeout}s") from None
    try:
        yield
    finally:
        lock.release()

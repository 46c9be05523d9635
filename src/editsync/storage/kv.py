"""Key-value stores consumed by the draft store.

The engine only needs ``get``/``set``/``delete`` over string keys and string
values.  Implementations translate their own failures into ``StorageError``.
``keys(prefix)`` is optional and only used for listing (CLI).
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote, unquote

from editsync.core.errors import StorageError
from editsync.storage.fs import atomic_write
from editsync.storage.locks import LockTimeout, key_lock

_SUFFIX = ".json"


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store.  ``max_entries`` simulates a full storage quota."""

    def __init__(self, max_entries: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()
        self.max_entries = max_entries
        self.available = True

    def get(self, key: str) -> str | None:
        self._check_available()
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_available()
        with self._lock:
            if (
                self.max_entries is not None
                and key not in self._data
                and len(self._data) >= self.max_entries
            ):
                raise StorageError(f"Storage full ({self.max_entries} entries)")
            self._data[key] = value

    def delete(self, key: str) -> None:
        self._check_available()
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        self._check_available()
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def _check_available(self) -> None:
        if not self.available:
            raise StorageError("Storage unavailable")


class FileKeyValueStore:
    """One file per key under ``data_dir``, written atomically under a per-key lock.

    Keys are percent-encoded into file names, so any string key is safe.
    """

    def __init__(self, data_dir: Path, locks_dir: Path | None = None, lock_timeout: float = 10) -> None:
        self.data_dir = data_dir
        self.locks_dir = locks_dir or data_dir / ".locks"
        self.lock_timeout = lock_timeout
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.locks_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create store directory {data_dir}: {exc}") from exc

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read '{key}': {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            with key_lock(self.locks_dir, key, timeout=self.lock_timeout):
                atomic_write(self._path(key), value)
        except (OSError, LockTimeout) as exc:
            raise StorageError(f"Cannot write '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with key_lock(self.locks_dir, key, timeout=self.lock_timeout):
                self._path(key).unlink(missing_ok=True)
        except (OSError, LockTimeout) as exc:
            raise StorageError(f"Cannot delete '{key}': {exc}") from exc

    def keys(self, prefix: str = "") -> list[str]:
        try:
            names = [p.name for p in self.data_dir.glob(f"*{_SUFFIX}")]
        except OSError as exc:
            raise StorageError(f"Cannot list {self.data_dir}: {exc}") from exc
        decoded = (unquote(name[: -len(_SUFFIX)]) for name in names)
        return sorted(k for k in decoded if k.startswith(prefix))

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{quote(key, safe='')}{_SUFFIX}"

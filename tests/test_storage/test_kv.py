"""Tests for the key-value stores backing drafts."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from editsync.core.errors import StorageError
from editsync.storage.kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore


class TestMemoryStore:
    def test_get_set_delete(self) -> None:
        kv = MemoryKeyValueStore()
        assert kv.get("a") is None
        kv.set("a", "1")
        assert kv.get("a") == "1"
        kv.delete("a")
        assert kv.get("a") is None

    def test_delete_missing_is_noop(self) -> None:
        MemoryKeyValueStore().delete("nope")

    def test_full(self) -> None:
        kv = MemoryKeyValueStore(max_entries=1)
        kv.set("a", "1")
        kv.set("a", "2")  # overwrite does not count
        with pytest.raises(StorageError, match="Storage full"):
            kv.set("b", "1")

    def test_unavailable(self) -> None:
        kv = MemoryKeyValueStore()
        kv.available = False
        with pytest.raises(StorageError, match="unavailable"):
            kv.get("a")
        with pytest.raises(StorageError):
            kv.set("a", "1")

    def test_keys_by_prefix(self) -> None:
        kv = MemoryKeyValueStore()
        for key in ("draft:b", "draft:a", "other"):
            kv.set(key, "x")
        assert kv.keys("draft:") == ["draft:a", "draft:b"]

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryKeyValueStore(), KeyValueStore)


class TestFileStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data")
        kv.set("draft:doc1:title", '{"v": 1}')
        assert kv.get("draft:doc1:title") == '{"v": 1}'

    def test_survives_reopen(self, tmp_path: Path) -> None:
        FileKeyValueStore(tmp_path / "data").set("k", "v")
        assert FileKeyValueStore(tmp_path / "data").get("k") == "v"

    def test_key_encoded_into_file_name(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data")
        kv.set("draft:a/b:c", "x")
        names = [p.name for p in (tmp_path / "data").glob("*.json")]
        assert names == ["draft%3Aa%2Fb%3Ac.json"]

    def test_keys(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data", locks_dir=tmp_path / "locks")
        kv.set("draft-index:doc1", "[]")
        kv.set("draft:doc1:title", "{}")
        assert kv.keys("draft-index:") == ["draft-index:doc1"]
        assert kv.keys() == ["draft-index:doc1", "draft:doc1:title"]

    def test_delete(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data")
        kv.set("k", "v")
        kv.delete("k")
        kv.delete("k")
        assert kv.get("k") is None

    def test_write_failure_becomes_storage_error(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data")
        with patch("editsync.storage.kv.atomic_write", side_effect=OSError("No space left")):
            with pytest.raises(StorageError, match="No space left"):
                kv.set("k", "v")

    def test_undecodable_file_becomes_storage_error(self, tmp_path: Path) -> None:
        kv = FileKeyValueStore(tmp_path / "data")
        (tmp_path / "data" / "k.json").write_bytes(b"\xff\xfe\x00")
        with pytest.raises(StorageError):
            kv.get("k")

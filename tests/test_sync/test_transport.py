"""Tests for the in-memory remote store used by demos and tests."""

from __future__ import annotations

import asyncio

import pytest

from editsync.core.errors import NetworkError, PermissionDeniedError, ValidationError
from editsync.sync.transport import InMemoryRemoteStore


def _save(store: InMemoryRemoteStore, value, version, field_id: str = "title"):
    return asyncio.run(store.save("doc1", field_id, value, version))


class TestInMemoryRemoteStore:
    def test_accepts_matching_version(self, remote: InMemoryRemoteStore) -> None:
        assert _save(remote, "New", 1) == {"version": 1, "next_version": 2}
        assert remote.value_of("doc1", "title") == "New"
        assert remote.version_of("doc1", "title") == 2

    def test_stale_version_returns_current_state(self, remote: InMemoryRemoteStore) -> None:
        assert _save(remote, "New", 0) == {"version": 1, "value": "Hello"}
        assert remote.value_of("doc1", "title") == "Hello"

    def test_unseeded_field_starts_at_zero(self, remote: InMemoryRemoteStore) -> None:
        assert _save(remote, "x", 0, field_id="body") == {"version": 0, "next_version": 1}

    def test_records_calls(self, remote: InMemoryRemoteStore) -> None:
        _save(remote, "New", 1)
        assert remote.calls == [{"entity_id": "doc1", "field_id": "title", "value": "New", "version": 1}]

    def test_offline(self, remote: InMemoryRemoteStore) -> None:
        remote.online = False
        with pytest.raises(NetworkError):
            _save(remote, "New", 1)

    def test_fail_next(self, remote: InMemoryRemoteStore) -> None:
        remote.fail_next(ConnectionResetError("reset"), times=2)
        for _ in range(2):
            with pytest.raises(ConnectionResetError):
                _save(remote, "New", 1)
        assert _save(remote, "New", 1)["next_version"] == 2

    def test_denied(self, remote: InMemoryRemoteStore) -> None:
        remote.deny("doc1", "title")
        with pytest.raises(PermissionDeniedError):
            _save(remote, "New", 1)

    def test_validator(self, remote: InMemoryRemoteStore) -> None:
        remote.validators["title"] = lambda v: ["Too long"] if len(v) > 3 else []
        with pytest.raises(ValidationError) as exc_info:
            _save(remote, "Longer", 1)
        assert exc_info.value.reasons == ("Too long",)
        assert _save(remote, "Ok", 1)["next_version"] == 2

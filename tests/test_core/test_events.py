"""Tests for event construction."""

from __future__ import annotations

import re

from ulid import ULID

from editsync.core.events import create_event, state_changed_event, utc_now


class TestCreateEvent:
    def test_required_keys(self) -> None:
        event = create_event("save_started", "doc1", "title", {"attempt": 1})
        assert event["schema_version"] == 1
        assert event["type"] == "save_started"
        assert event["entity_id"] == "doc1"
        assert event["field_id"] == "title"
        assert event["data"] == {"attempt": 1}
        assert event["id"].startswith("ev_")
        ULID.from_str(event["id"][3:])

    def test_op_id_only_when_given(self) -> None:
        assert "op_id" not in create_event("draft_cleared", "doc1", "title", {})
        event = create_event("save_started", "doc1", "title", {}, op_id="op_x")
        assert event["op_id"] == "op_x"

    def test_explicit_id_and_ts(self) -> None:
        event = create_event("x", "d", "f", {}, event_id="ev_1", ts="2024-01-01T00:00:00Z")
        assert event["id"] == "ev_1"
        assert event["ts"] == "2024-01-01T00:00:00Z"


class TestStateChangedEvent:
    def test_from_to(self) -> None:
        event = state_changed_event("doc1", "title", "idle", "editing")
        assert event["type"] == "state_changed"
        assert event["data"] == {"from": "idle", "to": "editing"}

    def test_extra_data(self) -> None:
        event = state_changed_event("doc1", "title", "saving", "saved", state={"name": "saved"})
        assert event["data"]["state"] == {"name": "saved"}


def test_utc_now_format() -> None:
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", utc_now())

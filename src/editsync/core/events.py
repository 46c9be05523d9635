"""Session event creation and schema.

Every EditSession transition is announced to its listeners as an event dict.
Events are plain JSON-serializable dicts so they can be logged, forwarded to
a UI bridge, or written to a JSONL audit file without conversion.
"""

from __future__ import annotations

from datetime import datetime, timezone

from editsync.core.ids import generate_event_id

# ---------------------------------------------------------------------------
# Event construction
# ---------------------------------------------------------------------------


def create_event(
    type: str,
    entity_id: str,
    field_id: str,
    data: dict,
    *,
    event_id: str | None = None,
    ts: str | None = None,
    op_id: str | None = None,
) -> dict:
    """Build a complete event dict.

    ``op_id`` is included only when the event concerns a specific
    SaveOperation.
    """
    event: dict = {
        "schema_version": 1,
        "id": event_id if event_id is not None else generate_event_id(),
        "ts": ts if ts is not None else utc_now(),
        "type": type,
        "entity_id": entity_id,
        "field_id": field_id,
        "data": data,
    }
    if op_id is not None:
        event["op_id"] = op_id
    return event


def state_changed_event(
    entity_id: str,
    field_id: str,
    from_state: str,
    to_state: str,
    **extra: object,
) -> dict:
    """Build a ``state_changed`` event."""
    data: dict = {"from": from_state, "to": to_state}
    data.update(extra)
    return create_event("state_changed", entity_id, field_id, data)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def utc_now() -> str:
    """Return the current UTC time as an RFC 3339 string with ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

"""ULID generation and draft key schema."""

from __future__ import annotations

from urllib.parse import quote, unquote

from ulid import ULID

DRAFT_KEY_PREFIX = "draft"
DRAFT_INDEX_PREFIX = "draft-index"


def generate_operation_id() -> str:
    """Generate a new save operation ID with the op_ prefix."""
    return f"op_{ULID()}"


def generate_event_id() -> str:
    """Generate a new event ID with the ev_ prefix."""
    return f"ev_{ULID()}"


def _encode_entity(entity_id: str) -> str:
    if not isinstance(entity_id, str) or not entity_id:
        raise ValueError(f"Invalid entity id for draft key: {entity_id!r}")
    return quote(entity_id, safe="")


def draft_key(entity_id: str, field_id: str) -> str:
    """Return the storage key for a draft: ``draft:{entity_id}:{field_id}``.

    The entity id is percent-encoded so it never contains ``:``; field ids
    are kept as they are.  Raises ValueError if *entity_id* is empty.
    """
    return f"{DRAFT_KEY_PREFIX}:{_encode_entity(entity_id)}:{field_id}"


def draft_index_key(entity_id: str) -> str:
    """Return the storage key listing the drafted field ids of an entity."""
    return f"{DRAFT_INDEX_PREFIX}:{_encode_entity(entity_id)}"


def entity_from_index_key(key: str) -> str:
    """Recover the entity id from a ``draft-index:`` key."""
    return unquote(key.split(":", 1)[1])

"""Data model: fields, save operations, drafts, conflict tokens, retry state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter

from editsync.core.errors import error_to_dict
from editsync.core.events import utc_now
from editsync.core.ids import generate_operation_id


@dataclass
class EditableField:
    """A single editable attribute of an entity.

    Owned by exactly one EditSession and mutated only by its transitions.
    ``remote_value`` is the last value the remote store confirmed.
    """

    entity_id: str
    field_id: str
    current_value: Any = None
    last_known_version: Any = None
    remote_value: Any = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_id, self.field_id)

    @property
    def is_dirty(self) -> bool:
        """True if the local value differs from the remote one."""
        return self.current_value != self.remote_value

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "field_id": self.field_id,
            "current_value": self.current_value,
            "last_known_version": self.last_known_version,
            "remote_value": self.remote_value,
        }


@dataclass(frozen=True)
class SaveOperation:
    """One attempted write.  Superseded by a newer operation, never mutated."""

    entity_id: str
    field_id: str
    value: Any
    version_at_submit: Any
    attempt: int
    edit_seq: int
    op_id: str = field(default_factory=generate_operation_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "op_id": self.op_id,
            "entity_id": self.entity_id,
            "field_id": self.field_id,
            "value": self.value,
            "version_at_submit": self.version_at_submit,
            "attempt": self.attempt,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class DraftRecord:
    """A persisted edit that has not reached the remote store yet."""

    entity_id: str
    field_id: str
    value: Any
    saved_locally_at: str = field(default_factory=utc_now)
    version: Any = None
    attempt: int = 0

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "field_id": self.field_id,
            "value": self.value,
            "saved_locally_at": self.saved_locally_at,
            "version": self.version,
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, d: dict) -> DraftRecord:
        """Deserialize and validate a stored draft.

        Raises:
            pydantic.ValidationError: If *d* is not a well-formed draft.
        """
        return DRAFT_ADAPTER.validate_python(d)


DRAFT_ADAPTER: TypeAdapter[DraftRecord] = TypeAdapter(DraftRecord)


@dataclass(frozen=True)
class ConflictToken:
    """Version mismatch between what we assumed and what the remote holds."""

    expected_version: Any
    observed_version: Any

    def to_dict(self) -> dict:
        return {
            "expected_version": self.expected_version,
            "observed_version": self.observed_version,
        }


@dataclass(frozen=True)
class RetryState:
    """Progress through a retry sequence.  ``next_eligible_at`` is loop time in seconds."""

    attempt: int
    next_eligible_at: float
    last_error: BaseException | None = None

    def to_dict(self) -> dict:
        return {
            "attempt": self.attempt,
            "next_eligible_at": self.next_eligible_at,
            "last_error": error_to_dict(self.last_error),
        }

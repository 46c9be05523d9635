"""Tagged-union states of an EditSession.

Each state is its own frozen dataclass, so a session is always in exactly
one of them and state-specific data (the in-flight operation, the conflict
token, the give-up error) only exists where it is meaningful.

Lifecycle::

    idle -> editing -> validating -> scheduled -> saving
         -> saved | conflict | error | offline -> idle
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from editsync.core.errors import error_to_dict
from editsync.core.models import ConflictToken, DraftRecord, SaveOperation


@dataclass(frozen=True)
class Idle:
    name: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Editing:
    name: ClassVar[str] = "editing"
    value: Any = None


@dataclass(frozen=True)
class Validating:
    name: ClassVar[str] = "validating"
    value: Any = None


@dataclass(frozen=True)
class Scheduled:
    """A commit is pending.  ``delay`` is seconds until the timer fires."""

    name: ClassVar[str] = "scheduled"
    value: Any = None
    delay: float = 0.0
    retry_attempt: int = 0


@dataclass(frozen=True)
class Saving:
    name: ClassVar[str] = "saving"
    operation: SaveOperation | None = None


@dataclass(frozen=True)
class Saved:
    name: ClassVar[str] = "saved"
    version: Any = None


@dataclass(frozen=True)
class Conflict:
    name: ClassVar[str] = "conflict"
    token: ConflictToken | None = None
    local_value: Any = None
    remote_value: Any = None


@dataclass(frozen=True)
class Error:
    name: ClassVar[str] = "error"
    error: BaseException | None = None


@dataclass(frozen=True)
class Offline:
    name: ClassVar[str] = "offline"
    draft: DraftRecord | None = None
    error: BaseException | None = None


SessionState = Union[Idle, Editing, Validating, Scheduled, Saving, Saved, Conflict, Error, Offline]

STATE_NAMES: tuple[str, ...] = (
    "idle",
    "editing",
    "validating",
    "scheduled",
    "saving",
    "saved",
    "conflict",
    "error",
    "offline",
)

# cancel() is a no-op in these.
TERMINAL_STATES: frozenset[str] = frozenset({"idle", "saved"})


def state_to_dict(state: SessionState) -> dict:
    """Serialize a state for snapshots and JSON output."""
    d: dict = {"name": state.name}
    if isinstance(state, (Editing, Validating)):
        d["value"] = state.value
    elif isinstance(state, Scheduled):
        d["value"] = state.value
        d["delay"] = state.delay
        d["retry_attempt"] = state.retry_attempt
    elif isinstance(state, Saving) and state.operation is not None:
        d["operation"] = state.operation.to_dict()
    elif isinstance(state, Saved):
        d["version"] = state.version
    elif isinstance(state, Conflict):
        d["token"] = state.token.to_dict() if state.token is not None else None
        d["local_value"] = state.local_value
        d["remote_value"] = state.remote_value
    elif isinstance(state, Error):
        d["error"] = error_to_dict(state.error)
    elif isinstance(state, Offline):
        d["draft"] = state.draft.to_dict() if state.draft is not None else None
        d["error"] = error_to_dict(state.error)
    return d

"""Optimistic-concurrency conflict detection.

The remote save contract echoes the version the store compared the write
against.  A save is clean only if that version is exactly the one we
submitted; anything else, including a missing version, is a conflict.  The
resolver never picks a winner.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from editsync.core.models import ConflictToken

OUTCOME_CLEAN = "clean"
OUTCOME_CONFLICT = "conflict"
OUTCOME_UNKNOWN = "unknown"


@dataclass(frozen=True)
class Clean:
    version: Any


@dataclass(frozen=True)
class Conflict:
    token: ConflictToken


def resolve(version_at_submit: Any, version_in_response: Any) -> Clean | Conflict:
    """Compare the submitted version with the one the remote store reports."""
    if version_in_response is not None and version_in_response == version_at_submit:
        return Clean(version_in_response)
    return Conflict(ConflictToken(version_at_submit, version_in_response))


def classify_response(version_at_submit: Any, response: object) -> tuple[str, Clean | Conflict | None]:
    """Classify a save response as clean, conflict, or unknown.

    Returns ``(outcome, detail)``.  ``detail`` is ``None`` for ``unknown``
    (the response was not a mapping and cannot be interpreted).
    """
    if not isinstance(response, Mapping):
        return (OUTCOME_UNKNOWN, None)
    result = resolve(version_at_submit, response.get("version"))
    if isinstance(result, Clean):
        return (OUTCOME_CLEAN, result)
    return (OUTCOME_CONFLICT, result)


def next_version(response: Mapping) -> Any:
    """Return the version a field holds after a clean save.

    Uses ``next_version`` from the response when present.  Otherwise integer
    versions are assumed to increment by one and opaque tokens to stay as
    they are.
    """
    if response.get("next_version") is not None:
        return response["next_version"]
    version = response.get("version")
    if isinstance(version, int) and not isinstance(version, bool):
        return version + 1
    return version

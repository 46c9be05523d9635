"""Error taxonomy and failure classification.

Every failure a save attempt can produce is reduced to one of four kinds:

    validation  – the value itself is not acceptable (never retried)
    permission  – the caller may not write this field (never retried)
    conflict    – the remote version moved underneath us (user must choose)
    network     – the remote store could not be reached (retried, then offline)

``StorageError`` belongs to local persistence and never reaches the state
machine as a save failure.
"""

from __future__ import annotations

KIND_VALIDATION = "validation"
KIND_PERMISSION = "permission"
KIND_CONFLICT = "conflict"
KIND_NETWORK = "network"

# Kinds of errors raised outside the save path; never retried.
KIND_STORAGE = "storage"
KIND_CONFIG = "config"
KIND_UPLOAD = "upload"

FAILURE_KINDS: frozenset[str] = frozenset(
    {KIND_VALIDATION, KIND_PERMISSION, KIND_CONFLICT, KIND_NETWORK}
)

RETRYABLE_KINDS: frozenset[str] = frozenset({KIND_NETWORK})


class EditSyncError(Exception):
    """Base class for all editsync errors."""

    kind: str | None = None


class ValidationError(EditSyncError):
    """A value was rejected, either by the local gate or by the server."""

    kind = KIND_VALIDATION

    def __init__(self, reasons: list[str] | tuple[str, ...] | str) -> None:
        if isinstance(reasons, str):
            reasons = (reasons,)
        self.reasons: tuple[str, ...] = tuple(reasons)
        super().__init__("; ".join(self.reasons) or "Invalid value")


class NetworkError(EditSyncError):
    """The remote store could not be reached or did not answer in time."""

    kind = KIND_NETWORK


class ConflictError(EditSyncError):
    """The remote store holds a newer version than the one submitted.

    ``remote_value`` and ``remote_version`` carry the competing state so the
    caller can offer an explicit choice.  Either is ``None`` when the store
    did not report it.
    """

    kind = KIND_CONFLICT

    def __init__(
        self,
        message: str = "Remote version changed",
        *,
        remote_value: object = None,
        remote_version: object = None,
    ) -> None:
        super().__init__(message)
        self.remote_value = remote_value
        self.remote_version = remote_version


class PermissionDeniedError(EditSyncError):
    """The remote store refused the write for authorization reasons."""

    kind = KIND_PERMISSION


class StorageError(EditSyncError):
    """Local draft persistence failed (full, unavailable, or unwritable)."""

    kind = KIND_STORAGE


class ConfigError(EditSyncError):
    """Engine configuration is invalid."""

    kind = KIND_CONFIG


def classify_failure(exc: BaseException) -> str:
    """Map an exception raised by a save call to a failure kind.

    Taxonomy errors carry their own kind.  Timeouts, OS-level errors and
    anything unrecognized are classified as ``network`` so the edit is kept
    and retried rather than dropped.
    """
    if isinstance(exc, EditSyncError) and exc.kind in FAILURE_KINDS:
        return exc.kind
    return KIND_NETWORK


def is_retryable(kind: str) -> bool:
    """Return ``True`` if failures of *kind* may be retried."""
    return kind in RETRYABLE_KINDS


def error_to_dict(exc: BaseException | None) -> dict | None:
    """Serialize an error for events, snapshots, and JSON output."""
    if exc is None:
        return None
    d: dict = {
        "kind": exc.kind if isinstance(exc, EditSyncError) and exc.kind else classify_failure(exc),
        "type": type(exc).__name__,
        "message": str(exc),
    }
    if isinstance(exc, ValidationError):
        d["reasons"] = list(exc.reasons)
    if isinstance(exc, ConflictError):
        d["remote_version"] = exc.remote_version
    return d

"""Field-level aggregation of file upload progress.

The transfer itself belongs to an external upload transport.  It reports
per-file progress and a terminal result per file; the tracker folds those
into one ``saving`` / ``saved`` / ``error`` state for the field, announced
through the same listener contract as EditSession.

The field stays ``saving`` until every file is terminal, then becomes
``saved`` if all succeeded or ``error`` if any failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from editsync.core.errors import KIND_UPLOAD, EditSyncError, error_to_dict
from editsync.core.events import create_event, state_changed_event
from editsync.core.states import Error, Idle, Saved, Saving, SessionState, state_to_dict

logger = logging.getLogger(__name__)

FILE_PENDING = "pending"
FILE_DONE = "done"
FILE_FAILED = "failed"


class UploadError(EditSyncError):
    """One or more files of a field failed to upload."""

    kind = KIND_UPLOAD

    def __init__(self, failures: dict[str, str]) -> None:
        self.failures = dict(failures)
        names = ", ".join(sorted(failures))
        super().__init__(f"{len(failures)} file(s) failed: {names}")


@dataclass
class FileProgress:
    file_id: str
    loaded: int = 0
    total: int | None = None
    status: str = FILE_PENDING
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "file_id": self.file_id,
            "loaded": self.loaded,
            "total": self.total,
            "status": self.status,
            "error": self.error,
        }


class UploadTracker:
    """Aggregates per-file reports for one attachment field."""

    def __init__(self, entity_id: str, field_id: str) -> None:
        self.entity_id = entity_id
        self.field_id = field_id
        self.state: SessionState = Idle()
        self.files: dict[str, FileProgress] = {}
        self._listeners: list[Callable[[dict], None]] = []

    def subscribe(self, fn: Callable[[dict], None]) -> Callable[[], None]:
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(fn)
            except ValueError:
                pass

        return _unsubscribe

    # -----------------------------------------------------------------------
    # Reports from the upload transport
    # -----------------------------------------------------------------------

    def start(self, files: Iterable[str] | Mapping[str, int | None]) -> None:
        """Begin a batch.  *files* is a list of ids or a ``{file_id: total_bytes}`` mapping."""
        totals = files if isinstance(files, Mapping) else {f: None for f in files}
        if not isinstance(self.state, Saving):
            # Previous batch finished; its files no longer count.
            self.files.clear()
        for file_id, total in totals.items():
            self.files[file_id] = FileProgress(file_id, total=total)
        if self.files:
            self._settle_state()

    def progress(self, file_id: str, loaded: int, total: int | None = None) -> None:
        entry = self._entry(file_id)
        if entry.status != FILE_PENDING:
            return
        entry.loaded = loaded
        if total is not None:
            entry.total = total
        self._emit(
            create_event(
                "upload_progress",
                self.entity_id,
                self.field_id,
                {"file": entry.to_dict(), "overall": self.overall_progress},
            )
        )

    def complete(self, file_id: str) -> None:
        entry = self._entry(file_id)
        entry.status = FILE_DONE
        if entry.total is not None:
            entry.loaded = entry.total
        self._emit(create_event("upload_file_completed", self.entity_id, self.field_id, {"file": entry.to_dict()}))
        self._settle_state()

    def fail(self, file_id: str, error: BaseException | str) -> None:
        entry = self._entry(file_id)
        entry.status = FILE_FAILED
        entry.error = str(error)
        self._emit(create_event("upload_file_failed", self.entity_id, self.field_id, {"file": entry.to_dict()}))
        self._settle_state()

    def reset(self) -> None:
        self.files.clear()
        self._transition(Idle())

    # -----------------------------------------------------------------------
    # Aggregates
    # -----------------------------------------------------------------------

    @property
    def overall_progress(self) -> float:
        """Fraction of bytes transferred across files with a known size (0.0–1.0).

        Files with unknown size count as 0 until they complete, then as 1.
        """
        if not self.files:
            return 0.0
        known = [f for f in self.files.values() if f.total]
        unknown = [f for f in self.files.values() if not f.total]
        total_bytes = sum(f.total for f in known)
        loaded_bytes = sum(min(f.loaded, f.total) for f in known)
        byte_fraction = loaded_bytes / total_bytes if total_bytes else 0.0
        done_unknown = sum(1 for f in unknown if f.status != FILE_PENDING)
        if not unknown:
            return byte_fraction
        unknown_fraction = done_unknown / len(unknown)
        if not known:
            return unknown_fraction
        share = len(known) / len(self.files)
        return byte_fraction * share + unknown_fraction * (1 - share)

    def snapshot(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "field_id": self.field_id,
            "state": state_to_dict(self.state),
            "progress": self.overall_progress,
            "files": [f.to_dict() for f in sorted(self.files.values(), key=lambda f: f.file_id)],
        }

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _entry(self, file_id: str) -> FileProgress:
        entry = self.files.get(file_id)
        if entry is None:
            # Late registration: the transport reported a file we were not told about.
            entry = self.files[file_id] = FileProgress(file_id)
            self._settle_state()
        return entry

    def _settle_state(self) -> None:
        statuses = [f.status for f in self.files.values()]
        if FILE_PENDING in statuses:
            target: SessionState = Saving()
        elif FILE_FAILED in statuses:
            failures = {f.file_id: f.error or "failed" for f in self.files.values() if f.status == FILE_FAILED}
            target = Error(UploadError(failures))
        else:
            target = Saved()
        if target.name != self.state.name:
            self._transition(target)

    def _transition(self, state: SessionState) -> None:
        previous = self.state
        self.state = state
        data: dict = {}
        if isinstance(state, Error):
            data["error"] = error_to_dict(state.error)
        self._emit(state_changed_event(self.entity_id, self.field_id, previous.name, state.name, **data))

    def _emit(self, event: dict) -> None:
        for fn in list(self._listeners):
            try:
                fn(event)
            except Exception as exc:
                logger.warning("upload listener error: %s", exc)

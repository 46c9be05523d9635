"""Per-field edit state machine.

An EditSession owns one ``EditableField`` and drives it through::

    idle -> editing -> validating -> scheduled -> saving
         -> saved | conflict | error | offline -> idle

The causal chain is explicit: ``edit()`` validates, validation schedules,
the scheduler commits, the commit calls the remote store, and the response
decides the next state.  Every transition is announced to listeners as an
event dict (see ``editsync.core.events``).

Ordering: each ``edit()``/``cancel()`` bumps ``edit_seq``.  A SaveOperation
remembers the sequence it was created at; when its response arrives after
the sequence moved on, the response is stale and never touches the field's
current value.  Saves are serialized per session, so at most one operation
is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from editsync.core.conflicts import (
    OUTCOME_CLEAN,
    OUTCOME_CONFLICT,
    classify_response,
    next_version,
)
from editsync.core.config import resolve_config
from editsync.core.errors import (
    KIND_CONFLICT,
    KIND_NETWORK,
    KIND_VALIDATION,
    NetworkError,
    classify_failure,
    error_to_dict,
)
from editsync.core.events import create_event, state_changed_event
from editsync.core.models import ConflictToken, DraftRecord, EditableField, RetryState, SaveOperation
from editsync.core.retry import GiveUp, RetryPolicy
from editsync.core.states import (
    TERMINAL_STATES,
    Conflict,
    Editing,
    Error,
    Idle,
    Offline,
    Saved,
    Scheduled,
    Saving,
    SessionState,
    Validating,
    state_to_dict,
)
from editsync.core.validation import ACCEPT_ALL, Outcome, Rejected, ValidationGate
from editsync.storage.drafts import OfflineDraftStore
from editsync.sync.connectivity import Connectivity
from editsync.sync.scheduler import SaveScheduler
from editsync.sync.transport import RemoteStore

logger = logging.getLogger(__name__)

Listener = Callable[[dict], None]


class EditSession:
    """Lifecycle of a single editable field."""

    def __init__(
        self,
        field: EditableField,
        remote: RemoteStore,
        *,
        gate: ValidationGate | None = None,
        retry_policy: RetryPolicy | None = None,
        drafts: OfflineDraftStore | None = None,
        connectivity: Connectivity | None = None,
        config: dict | None = None,
        loop: Any = None,
    ) -> None:
        config = resolve_config(config)
        self.field = field
        self.remote = remote
        self.gate = gate or ACCEPT_ALL
        self.retry_policy = retry_policy or RetryPolicy(config.get("retry"))
        self.drafts = drafts
        self.connectivity = connectivity
        self.save_timeout: float = config.get("save_timeout_ms", 10000) / 1000.0
        self.scheduler = SaveScheduler(
            self._on_timer,
            config.get("settle_window_ms", 2000) / 1000.0,
            loop=loop,
        )

        self.state: SessionState = Idle()
        self.retry_state: RetryState | None = None
        self.last_operation: SaveOperation | None = None
        self.edit_seq = 0

        self._attempt = 0
        self._owed = False
        self._has_draft = False
        self._save_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------

    @property
    def entity_id(self) -> str:
        return self.field.entity_id

    @property
    def field_id(self) -> str:
        return self.field.field_id

    @property
    def key(self) -> tuple[str, str]:
        return self.field.key

    @property
    def value(self) -> Any:
        return self.field.current_value

    @property
    def state_name(self) -> str:
        return self.state.name

    @property
    def has_pending_commit(self) -> bool:
        """True if a value is waiting to be submitted."""
        return self._owed

    def snapshot(self) -> dict:
        """JSON-friendly view of field, state, and retry progress."""
        return {
            "field": self.field.to_dict(),
            "state": state_to_dict(self.state),
            "retry": self.retry_state.to_dict() if self.retry_state else None,
            "last_operation": self.last_operation.to_dict() if self.last_operation else None,
            "pending_commit": self._owed,
            "has_draft": self._has_draft,
        }

    # -----------------------------------------------------------------------
    # Listeners
    # -----------------------------------------------------------------------

    def subscribe(self, fn: Listener) -> Callable[[], None]:
        """Register *fn(event)*; returns a callable that unsubscribes it."""
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(fn)
            except ValueError:
                pass

        return _unsubscribe

    def _emit(self, event: dict) -> None:
        for fn in list(self._listeners):
            try:
                fn(event)
            except Exception as exc:
                logger.warning("session listener error: %s", exc)

    def _event(self, type: str, data: dict, op: SaveOperation | None = None) -> None:
        self._emit(
            create_event(
                type,
                self.entity_id,
                self.field_id,
                data,
                op_id=op.op_id if op is not None else None,
            )
        )

    def _transition(self, state: SessionState) -> None:
        previous = self.state
        self.state = state
        logger.debug("%s/%s: %s -> %s", self.entity_id, self.field_id, previous.name, state.name)
        self._emit(
            state_changed_event(
                self.entity_id,
                self.field_id,
                previous.name,
                state.name,
                state=state_to_dict(state),
            )
        )

    # -----------------------------------------------------------------------
    # User-facing operations
    # -----------------------------------------------------------------------

    def edit(self, value: Any) -> SessionState:
        """Record a new local value and run it through validation.

        Supersedes any pending commit, any retry sequence, and the relevance
        of any in-flight save's response.
        """
        self.edit_seq += 1
        self.retry_state = None
        self._attempt = 0
        self.field.current_value = value
        self._transition(Editing(value))
        self.validate()
        return self.state

    def validate(self) -> Outcome:
        """Run the gate on the current value; schedule a commit if accepted."""
        value = self.field.current_value
        self._transition(Validating(value))
        outcome = self.gate.check(value)
        if isinstance(outcome, Rejected):
            self.scheduler.cancel()
            self._owed = False
            self._transition(Error(outcome.to_error()))
            return outcome
        self.field.current_value = outcome.value
        self._owed = True
        if self._has_draft:
            self._write_draft(attempt=0)
        delay = self.scheduler.schedule()
        self._transition(Scheduled(outcome.value, delay=delay))
        return outcome

    async def flush_now(self) -> SaveOperation | None:
        """Commit immediately (blur, navigation-away), skipping the debounce window.

        Never double-submits: the timer is cancelled first, and a save already
        in flight is waited for instead of duplicated.
        """
        self.scheduler.cancel()
        return await self.commit()

    def cancel(self) -> None:
        """Drop uncommitted edits and any draft; revert to the last remote value."""
        if self.state.name in TERMINAL_STATES and not self._owed:
            return
        self.edit_seq += 1
        self.scheduler.cancel()
        self._owed = False
        self._attempt = 0
        self.retry_state = None
        self.field.current_value = self.field.remote_value
        self._clear_draft()
        self._transition(Idle())

    async def keep_local(self) -> SaveOperation | None:
        """Resolve a conflict by resubmitting the local value on top of the remote version."""
        if not isinstance(self.state, Conflict):
            raise RuntimeError(f"keep_local() requires the conflict state, not {self.state_name}")
        token = self.state.token
        if token is not None and token.observed_version is not None:
            self.field.last_known_version = token.observed_version
        self._attempt = 0
        self.retry_state = None
        self._owed = True
        self._transition(Scheduled(self.field.current_value, delay=0.0))
        return await self.commit()

    def discard_local(self) -> None:
        """Resolve a conflict by adopting the remote value and version."""
        if not isinstance(self.state, Conflict):
            raise RuntimeError(f"discard_local() requires the conflict state, not {self.state_name}")
        conflict = self.state
        self.edit_seq += 1
        self.scheduler.cancel()
        self._owed = False
        self.field.current_value = conflict.remote_value
        self.field.remote_value = conflict.remote_value
        if conflict.token is not None and conflict.token.observed_version is not None:
            self.field.last_known_version = conflict.token.observed_version
        self._clear_draft()
        self._transition(Idle())

    def resume(self, delay: float = 0.0) -> None:
        """Start a fresh retry sequence for an offline (or restored) session."""
        if not self._owed and not isinstance(self.state, Offline):
            return
        self._attempt = 0
        self.retry_state = None
        self._owed = True
        delay = self.scheduler.schedule(delay)
        self._transition(Scheduled(self.field.current_value, delay=delay))

    def restore(self, draft: DraftRecord, *, start_timer: bool = True) -> None:
        """Re-hydrate an unsent draft into the ``scheduled`` state."""
        self.edit_seq += 1
        self.field.current_value = draft.value
        if draft.version is not None:
            self.field.last_known_version = draft.version
        self._has_draft = True
        self._attempt = 0
        self.retry_state = None
        self._owed = True
        delay = self.scheduler.schedule() if start_timer else 0.0
        self._event("draft_restored", {"draft": draft.to_dict()})
        self._transition(Scheduled(draft.value, delay=delay))

    # -----------------------------------------------------------------------
    # Commit
    # -----------------------------------------------------------------------

    def _on_timer(self) -> None:
        self._spawn(self.commit())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "%s/%s: commit task failed: %s", self.entity_id, self.field_id, task.exception()
            )

    async def settle(self) -> None:
        """Wait until no timer-driven commit is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel timers and background commits.  In-flight remote calls are abandoned."""
        self.scheduler.cancel()
        for task in list(self._tasks):
            task.cancel()

    async def commit(self) -> SaveOperation | None:
        """Submit the latest coalesced value.

        Returns the SaveOperation created, or ``None`` when there was nothing
        to submit (already submitted, cancelled, unchanged, or offline).
        """
        self.scheduler.cancel()
        async with self._save_lock:
            if not self._owed:
                return None
            if not self.field.is_dirty and not self._has_draft and self._attempt == 0:
                # Same value the remote already holds; nothing to send.
                self._owed = False
                self._transition(Idle())
                return None
            if self.connectivity is not None and not self.connectivity.online:
                self._go_offline(NetworkError("offline"), attempt=self._attempt)
                return None

            op = SaveOperation(
                entity_id=self.entity_id,
                field_id=self.field_id,
                value=self.field.current_value,
                version_at_submit=self.field.last_known_version,
                attempt=self._attempt + 1,
                edit_seq=self.edit_seq,
            )
            self._owed = False
            self.last_operation = op
            self._transition(Saving(op))
            self._event("save_started", op.to_dict(), op)

            try:
                response = await asyncio.wait_for(
                    self.remote.save(op.entity_id, op.field_id, op.value, op.version_at_submit),
                    timeout=self.save_timeout,
                )
            except asyncio.TimeoutError:
                self._handle_failure(op, NetworkError(f"save timed out after {self.save_timeout}s"))
            except Exception as exc:
                self._handle_failure(op, exc)
            else:
                self._handle_response(op, response)
            return op

    def _is_stale(self, op: SaveOperation) -> bool:
        return op.edit_seq != self.edit_seq

    def _handle_response(self, op: SaveOperation, response: object) -> None:
        outcome, detail = classify_response(op.version_at_submit, response)

        if outcome == OUTCOME_CLEAN:
            # The remote accepted the write even if the user has moved on.
            self.field.last_known_version = next_version(response)
            self.field.remote_value = op.value
            if self._is_stale(op):
                self._discard(op, "save_succeeded")
                return
            self.retry_state = None
            self._attempt = 0
            self._clear_draft()
            self._event("save_succeeded", {"version": self.field.last_known_version}, op)
            self._transition(Saved(self.field.last_known_version))
            return

        if outcome == OUTCOME_CONFLICT:
            if self._is_stale(op):
                self._discard(op, "conflict")
                return
            self._enter_conflict(op, detail.token, response.get("value", self.field.remote_value))
            return

        self._handle_failure(op, NetworkError(f"unrecognized save response: {response!r}"))

    def _handle_failure(self, op: SaveOperation, exc: BaseException) -> None:
        kind = classify_failure(exc)
        if self._is_stale(op):
            self._discard(op, kind)
            return
        self._event("save_failed", {"attempt": op.attempt, "error": error_to_dict(exc)}, op)

        if kind == KIND_NETWORK:
            self._attempt = op.attempt
            self._write_draft(attempt=op.attempt)
            decision = self.retry_policy.decide(op.attempt, exc)
            if isinstance(decision, GiveUp):
                logger.info(
                    "%s/%s: %s; keeping draft offline", self.entity_id, self.field_id, decision.reason
                )
                self._go_offline(exc, attempt=op.attempt)
                return
            self._owed = True
            delay = self.scheduler.schedule(decision.delay)
            self.retry_state = RetryState(
                attempt=op.attempt,
                next_eligible_at=self.scheduler.time() + delay,
                last_error=exc,
            )
            self._event("retry_scheduled", {"attempt": op.attempt, "delay_ms": decision.delay_ms}, op)
            self._transition(Scheduled(op.value, delay=delay, retry_attempt=op.attempt))
            return

        if kind == KIND_CONFLICT:
            token = ConflictToken(op.version_at_submit, getattr(exc, "remote_version", None))
            remote_value = getattr(exc, "remote_value", None)
            if remote_value is None:
                remote_value = self.field.remote_value
            self._enter_conflict(op, token, remote_value)
            return

        # validation / permission: terminal, never retried, no draft kept
        if kind == KIND_VALIDATION:
            exc = self.gate.from_server_errors(exc).to_error()
        self.retry_state = None
        self._attempt = 0
        self._clear_draft()
        self._transition(Error(exc))

    def _enter_conflict(self, op: SaveOperation, token: ConflictToken, remote_value: Any) -> None:
        self.retry_state = None
        self._attempt = 0
        self._event(
            "conflict_detected",
            {"token": token.to_dict(), "local_value": op.value, "remote_value": remote_value},
            op,
        )
        self._transition(
            Conflict(token=token, local_value=self.field.current_value, remote_value=remote_value)
        )

    def _go_offline(self, exc: BaseException, *, attempt: int) -> None:
        self._owed = False
        self.retry_state = None
        draft = self._write_draft(attempt=attempt)
        self._transition(Offline(draft=draft, error=exc))

    def _discard(self, op: SaveOperation, outcome: str) -> None:
        logger.debug("%s/%s: dropping stale response for %s", self.entity_id, self.field_id, op.op_id)
        self._event("save_discarded", {"outcome": outcome}, op)

    # -----------------------------------------------------------------------
    # Drafts
    # -----------------------------------------------------------------------

    def _write_draft(self, *, attempt: int) -> DraftRecord:
        draft = DraftRecord(
            entity_id=self.entity_id,
            field_id=self.field_id,
            value=self.field.current_value,
            version=self.field.last_known_version,
            attempt=attempt,
        )
        self._has_draft = True
        if self.drafts is not None:
            persisted = self.drafts.save(draft)
            self._event("draft_written", {"draft": draft.to_dict(), "persisted": persisted})
        return draft

    def _clear_draft(self) -> None:
        if not self._has_draft:
            return
        self._has_draft = False
        if self.drafts is not None:
            self.drafts.delete(self.entity_id, self.field_id)
            self._event("draft_cleared", {})

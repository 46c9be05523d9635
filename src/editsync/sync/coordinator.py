"""Process-wide registry of active edit sessions.

The coordinator is an explicit object with a construction/teardown boundary
(``close()``); nothing here is module-level state.  The registry is the only
resource shared between sessions and is guarded by a lock so
lookup-or-create is atomic.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from editsync.core.config import resolve_config
from editsync.core.models import EditableField
from editsync.core.retry import RetryPolicy
from editsync.core.states import STATE_NAMES, Offline, Saved, Scheduled, state_to_dict
from editsync.core.validation import ValidationGate
from editsync.storage.drafts import OfflineDraftStore
from editsync.sync.connectivity import Connectivity
from editsync.sync.session import EditSession
from editsync.sync.transport import RemoteStore

logger = logging.getLogger(__name__)


@dataclass
class FlushSummary:
    """Combined result of ``flush_all``."""

    entity_id: str
    saved: list[str] = field(default_factory=list)
    failed: dict[str, dict] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "ok": self.ok,
            "saved": sorted(self.saved),
            "failed": dict(sorted(self.failed.items())),
            "skipped": sorted(self.skipped),
        }


class SyncCoordinator:
    """Owns every EditSession, keyed by ``(entity_id, field_id)``."""

    def __init__(
        self,
        remote: RemoteStore,
        *,
        drafts: OfflineDraftStore | None = None,
        connectivity: Connectivity | None = None,
        config: dict | None = None,
        gates: dict[str, ValidationGate] | None = None,
        retry_policy: RetryPolicy | None = None,
        loop: Any = None,
    ) -> None:
        self.remote = remote
        self.drafts = drafts
        self.connectivity = connectivity
        self.config = resolve_config(config)
        self.gates = dict(gates or {})
        self.retry_policy = retry_policy or RetryPolicy(self.config.get("retry"))
        self._loop = loop
        self._lock = threading.Lock()
        self._sessions: dict[tuple[str, str], EditSession] = {}
        self._entities: set[str] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False
        if connectivity is not None:
            self._unsubscribe = connectivity.subscribe(self._on_connectivity)

    # -----------------------------------------------------------------------
    # Registry
    # -----------------------------------------------------------------------

    def session(
        self,
        entity_id: str,
        field_id: str,
        *,
        value: Any = None,
        version: Any = None,
        gate: ValidationGate | None = None,
    ) -> EditSession:
        """Return the session for a field, creating it on first use.

        *value* and *version* seed the field (as the last known remote state)
        only when the session is created.
        """
        if self._closed:
            raise RuntimeError("SyncCoordinator is closed")
        key = (entity_id, field_id)
        with self._lock:
            existing = self._sessions.get(key)
            if existing is not None:
                return existing
            session = EditSession(
                EditableField(
                    entity_id=entity_id,
                    field_id=field_id,
                    current_value=value,
                    last_known_version=version,
                    remote_value=value,
                ),
                self.remote,
                gate=gate or self.gates.get(field_id),
                retry_policy=self.retry_policy,
                drafts=self.drafts,
                connectivity=self.connectivity,
                config=self.config,
                loop=self._loop,
            )
            self._sessions[key] = session
            self._entities.add(entity_id)
        logger.debug("session created for %s/%s", entity_id, field_id)
        return session

    def get(self, entity_id: str, field_id: str) -> EditSession | None:
        with self._lock:
            return self._sessions.get((entity_id, field_id))

    def sessions(self, entity_id: str | None = None) -> list[EditSession]:
        """Sessions for one entity (or all), ordered by key."""
        with self._lock:
            items = sorted(self._sessions.items())
        return [s for (eid, _), s in items if entity_id is None or eid == entity_id]

    def release(self, entity_id: str, field_id: str) -> bool:
        """Forget a session after cancelling its timers.  Returns ``False`` if unknown."""
        with self._lock:
            session = self._sessions.pop((entity_id, field_id), None)
        if session is None:
            return False
        session.close()
        return True

    # -----------------------------------------------------------------------
    # Bulk operations
    # -----------------------------------------------------------------------

    async def flush_all(self, entity_id: str) -> FlushSummary:
        """Commit every pending session of an entity now (navigation-away, logout)."""
        sessions = self.sessions(entity_id)
        results = await asyncio.gather(*(s.flush_now() for s in sessions))
        summary = FlushSummary(entity_id)
        for s, op in zip(sessions, results):
            if op is None and s.state.name in ("idle", "saved"):
                summary.skipped.append(s.field_id)
            elif isinstance(s.state, Saved):
                summary.saved.append(s.field_id)
            else:
                summary.failed[s.field_id] = state_to_dict(s.state)
        logger.info(
            "flushed %s: %d saved, %d failed, %d skipped",
            entity_id,
            len(summary.saved),
            len(summary.failed),
            len(summary.skipped),
        )
        return summary

    def cancel_all(self, entity_id: str) -> int:
        """Cancel every session of an entity.  Returns how many were cancelled."""
        count = 0
        for s in self.sessions(entity_id):
            if s.state.name not in ("idle", "saved") or s.has_pending_commit:
                s.cancel()
                count += 1
        return count

    def restore_drafts(self, entity_id: str) -> list[EditSession]:
        """Re-hydrate persisted drafts of an entity into ``scheduled`` sessions.

        While offline the sessions wait without a timer; reconnecting resumes
        them.
        """
        if self.drafts is None:
            return []
        restored: list[EditSession] = []
        online = self.connectivity is None or self.connectivity.online
        for draft in self.drafts.load_all(entity_id):
            session = self.session(draft.entity_id, draft.field_id, version=draft.version)
            if session.state.name in ("saving", "scheduled", "conflict"):
                # Already live in this process; the session owns the newer truth.
                continue
            session.restore(draft, start_timer=online)
            restored.append(session)
        with self._lock:
            self._entities.add(entity_id)
        if restored:
            logger.info("restored %d draft(s) for %s", len(restored), entity_id)
        return restored

    def status(self, entity_id: str) -> dict:
        """Counts of sessions per state plus persisted draft count."""
        counts = {name: 0 for name in STATE_NAMES}
        for s in self.sessions(entity_id):
            counts[s.state.name] += 1
        drafts = len(self.drafts.load_all(entity_id)) if self.drafts is not None else 0
        return {"entity_id": entity_id, "states": counts, "drafts": drafts}

    async def settle(self) -> None:
        """Wait for all timer-driven commits currently running to finish."""
        for s in self.sessions():
            await s.settle()

    # -----------------------------------------------------------------------
    # Connectivity
    # -----------------------------------------------------------------------

    def _on_connectivity(self, online: bool) -> None:
        if not online or self._closed:
            return
        with self._lock:
            entities = sorted(self._entities)
        for s in self.sessions():
            if isinstance(s.state, Offline) or (
                isinstance(s.state, Scheduled) and not s.scheduler.pending
            ):
                s.resume()
        for entity_id in entities:
            self.restore_drafts(entity_id)

    # -----------------------------------------------------------------------
    # Teardown
    # -----------------------------------------------------------------------

    def close(self) -> None:
        """Cancel all timers, drop all sessions, and unsubscribe from connectivity."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for s in sessions:
            s.close()

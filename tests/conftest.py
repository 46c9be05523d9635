"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from editsync.core.config import merge_config
from editsync.core.models import EditableField
from editsync.storage.drafts import OfflineDraftStore
from editsync.storage.kv import MemoryKeyValueStore
from editsync.sync.connectivity import Connectivity
from editsync.sync.coordinator import SyncCoordinator
from editsync.sync.session import EditSession
from editsync.sync.transport import InMemoryRemoteStore


# ---------------------------------------------------------------------------
# Virtual time
# ---------------------------------------------------------------------------


class _FakeHandle:
    def __init__(self, when: float, callback, args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Stands in for the event loop's ``call_later``/``time`` in schedulers.

    Timers only fire when the test calls ``advance()``.  Callbacks run
    synchronously inside ``advance()``; commits they spawn run on the real
    loop, so tests ``await session.settle()`` afterwards.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_FakeHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback, *args) -> _FakeHandle:
        handle = _FakeHandle(self.now + delay, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._timers if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._timers if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target
        self._timers = [h for h in self._timers if not h.cancelled]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def remote() -> InMemoryRemoteStore:
    """Remote store holding ``doc1/title = "Hello"`` at version 1."""
    store = InMemoryRemoteStore()
    store.seed("doc1", "title", "Hello", 1)
    return store


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def drafts(kv: MemoryKeyValueStore) -> OfflineDraftStore:
    return OfflineDraftStore(kv)


@pytest.fixture()
def connectivity() -> Connectivity:
    return Connectivity(online=True)


@pytest.fixture()
def engine_config() -> dict:
    """Defaults: 2s settle window, 1s/2x backoff capped at 30s, 3 attempts, no jitter."""
    return merge_config({})


@pytest.fixture()
def make_session(remote, drafts, connectivity, engine_config, clock):
    """Factory fixture: build an EditSession over ``doc1``.

    Usage::

        session = make_session()                    # doc1/title = "Hello" @ v1
        session = make_session("body", value="", version=0, gate=gate)
    """

    def _make(field_id: str = "title", *, value="Hello", version=1, **kwargs) -> EditSession:
        kwargs.setdefault("drafts", drafts)
        kwargs.setdefault("connectivity", connectivity)
        kwargs.setdefault("config", engine_config)
        kwargs.setdefault("loop", clock)
        field = EditableField(
            entity_id="doc1",
            field_id=field_id,
            current_value=value,
            last_known_version=version,
            remote_value=value,
        )
        return EditSession(field, remote, **kwargs)

    return _make


@pytest.fixture()
def coordinator(remote, drafts, connectivity, engine_config, clock):
    coord = SyncCoordinator(
        remote,
        drafts=drafts,
        connectivity=connectivity,
        config=engine_config,
        loop=clock,
    )
    yield coord
    coord.close()


@pytest.fixture()
def recorder():
    """Collect events from a session or tracker.

    Usage::

        events = recorder(session)
        ...
        assert "save_succeeded" in [e["type"] for e in events]
    """

    def _record(source) -> list[dict]:
        events: list[dict] = []
        source.subscribe(events.append)
        return events

    return _record


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def editsync_root(tmp_path: Path) -> Path:
    """Return a temporary directory suitable for initializing .editsync/ in."""
    return tmp_path


@pytest.fixture()
def initialized_root(editsync_root: Path) -> Path:
    """Return a temporary directory with .editsync/ already initialized."""
    from editsync.core.config import default_config, serialize_config
    from editsync.storage.fs import EDITSYNC_DIR, atomic_write, ensure_editsync_dirs

    ensure_editsync_dirs(editsync_root)
    atomic_write(editsync_root / EDITSYNC_DIR / "config.json", serialize_config(default_config()))
    return editsync_root


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(initialized_root: Path) -> dict[str, str]:
    """Return env dict with EDITSYNC_ROOT pointing to initialized_root."""
    return {"EDITSYNC_ROOT": str(initialized_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("drafts", "list")
    """
    from editsync.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json


@pytest.fixture()
def project_drafts(initialized_root: Path) -> OfflineDraftStore:
    """The file-backed draft store of the initialized project."""
    from editsync.storage.fs import EDITSYNC_DIR
    from editsync.storage.kv import FileKeyValueStore

    base = initialized_root / EDITSYNC_DIR
    return OfflineDraftStore(FileKeyValueStore(base / "drafts", locks_dir=base / "locks"))

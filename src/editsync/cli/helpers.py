"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from editsync.core.config import load_config
from editsync.core.ids import draft_key
from editsync.storage.drafts import OfflineDraftStore
from editsync.storage.fs import EDITSYNC_DIR, EditSyncRootError, find_root
from editsync.storage.kv import FileKeyValueStore


# ---------------------------------------------------------------------------
# Root & config
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find .editsync/ directory or exit with error."""
    try:
        root = find_root()
    except EditSyncRootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not an editsync project (no .editsync/ found). Run 'editsync init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / EDITSYNC_DIR


def load_project_config(editsync_dir: Path, is_json: bool = False) -> dict:
    """Load config.json from the editsync directory, merged over the defaults."""
    config_path = editsync_dir / "config.json"
    if not config_path.exists():
        return load_config("{}")
    try:
        return load_config(config_path.read_text())
    except json.JSONDecodeError as e:
        output_error(f"config.json is not valid JSON: {e}", "INVALID_CONFIG", is_json)


def open_draft_store(editsync_dir: Path, config: dict) -> OfflineDraftStore:
    """Open the file-backed draft store configured for this project."""
    kv = FileKeyValueStore(
        editsync_dir / config.get("drafts_dir", "drafts"),
        locks_dir=editsync_dir / "locks",
    )
    return OfflineDraftStore(kv)


def check_entity_id(entity_id: str, is_json: bool) -> None:
    """Exit with INVALID_ID if *entity_id* cannot be used in a draft key."""
    try:
        draft_key(entity_id, "_")
    except ValueError as e:
        output_error(str(e), "INVALID_ID", is_json)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2, default=str) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(
    *,
    data: object,
    human_message: str,
    is_json: bool,
) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)


def format_value(value: object) -> str:
    """Render a field value for human output."""
    return json.dumps(value, default=str)

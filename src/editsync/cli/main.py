"""CLI entry point and commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from editsync.core.config import (
    default_config,
    get_setting,
    serialize_config,
    set_setting,
    validate_config,
)
from editsync.storage.fs import EDITSYNC_DIR, atomic_write, ensure_editsync_dirs


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr.")
def cli(verbose: bool) -> None:
    """editsync: optimistic field saves with offline drafts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize editsync in (defaults to current directory).",
)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def init(target_path: str, output_json: bool) -> None:
    """Initialize a new editsync project."""
    from editsync.cli.helpers import output_result

    root = Path(target_path)
    editsync_dir = root / EDITSYNC_DIR

    # Idempotency: if .editsync/ already exists as a directory, skip
    if editsync_dir.is_dir():
        output_result(
            data={"path": str(editsync_dir), "created": False},
            human_message=f"editsync already initialized in {EDITSYNC_DIR}/",
            is_json=output_json,
        )
        return

    if editsync_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{EDITSYNC_DIR}' exists but is not a directory. "
            "Remove it and try again."
        )

    config = default_config()
    ensure_editsync_dirs(root, config["drafts_dir"])
    atomic_write(editsync_dir / "config.json", serialize_config(config))

    output_result(
        data={"path": str(editsync_dir), "created": True},
        human_message=f"Initialized empty editsync project in {EDITSYNC_DIR}/",
        is_json=output_json,
    )


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group("config")
def config_group() -> None:
    """Inspect and change engine settings."""


@config_group.command("show")
@click.argument("key", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def config_show(key: str | None, output_json: bool) -> None:
    """Print the effective configuration, or a single dotted KEY."""
    from editsync.cli.helpers import load_project_config, output_error, output_result, require_root

    editsync_dir = require_root(output_json)
    config = load_project_config(editsync_dir, output_json)

    if key is None:
        output_result(
            data=config,
            human_message=serialize_config(config).rstrip("\n"),
            is_json=output_json,
        )
        return

    try:
        value = get_setting(config, key)
    except KeyError:
        output_error(f"Unknown setting: '{key}'.", "UNKNOWN_KEY", output_json)
    output_result(
        data={"key": key, "value": value},
        human_message=json.dumps(value, sort_keys=True, indent=2),
        is_json=output_json,
    )


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def config_set(key: str, value: str, output_json: bool) -> None:
    """Set a dotted KEY (e.g. retry.max_attempts) to VALUE.

    VALUE is parsed as JSON when possible, otherwise stored as a string.
    """
    from editsync.cli.helpers import load_project_config, output_error, output_result, require_root

    editsync_dir = require_root(output_json)
    config = load_project_config(editsync_dir, output_json)

    try:
        get_setting(dict(default_config()), key)
    except KeyError:
        output_error(f"Unknown setting: '{key}'.", "UNKNOWN_KEY", output_json)

    try:
        parsed: object = json.loads(value)
    except json.JSONDecodeError:
        parsed = value

    updated = set_setting(config, key, parsed)
    ok, failures = validate_config(updated)
    if not ok:
        output_error("; ".join(failures), "INVALID_CONFIG", output_json)

    atomic_write(editsync_dir / "config.json", serialize_config(updated))
    output_result(
        data={"key": key, "value": parsed},
        human_message=f"Set {key} = {json.dumps(parsed)}",
        is_json=output_json,
    )


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from editsync.cli import drafts_cmds as _drafts_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()

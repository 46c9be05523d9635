"""CLI commands for inspecting and discarding offline drafts."""

from __future__ import annotations

import click

from editsync.cli.helpers import (
    check_entity_id,
    format_value,
    load_project_config,
    open_draft_store,
    output_error,
    output_result,
    require_root,
)
from editsync.cli.main import cli


@cli.group()
def drafts() -> None:
    """Unsent edits kept on disk."""


@drafts.command("list")
@click.argument("entity_id", required=False)
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def drafts_list(entity_id: str | None, output_json: bool) -> None:
    """List drafts, for one ENTITY_ID or for every entity."""
    editsync_dir = require_root(output_json)
    store = open_draft_store(editsync_dir, load_project_config(editsync_dir, output_json))

    if entity_id is not None:
        check_entity_id(entity_id, output_json)
        entity_ids = [entity_id]
    else:
        entity_ids = store.entity_ids()

    records = [d for eid in entity_ids for d in store.load_all(eid)]

    if output_json:
        output_result(data=[d.to_dict() for d in records], human_message="", is_json=True)
        return

    if not records:
        click.echo("No drafts.")
        return
    for d in records:
        click.echo(
            f"{d.entity_id}  {d.field_id}  v{d.version}  attempt={d.attempt}  "
            f"{d.saved_locally_at}  {format_value(d.value)}"
        )


@drafts.command("show")
@click.argument("entity_id")
@click.argument("field_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def drafts_show(entity_id: str, field_id: str, output_json: bool) -> None:
    """Show the draft stored for one field."""
    editsync_dir = require_root(output_json)
    check_entity_id(entity_id, output_json)
    store = open_draft_store(editsync_dir, load_project_config(editsync_dir, output_json))

    draft = store.load(entity_id, field_id)
    if draft is None:
        output_error(f"No draft for {entity_id}/{field_id}.", "NOT_FOUND", output_json)

    lines = [
        f"Entity:   {draft.entity_id}",
        f"Field:    {draft.field_id}",
        f"Version:  {draft.version}",
        f"Attempt:  {draft.attempt}",
        f"Saved at: {draft.saved_locally_at}",
        f"Value:    {format_value(draft.value)}",
    ]
    output_result(data=draft.to_dict(), human_message="\n".join(lines), is_json=output_json)


@drafts.command("discard")
@click.argument("entity_id")
@click.argument("field_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def drafts_discard(entity_id: str, field_id: str, output_json: bool) -> None:
    """Delete the draft stored for one field.  Its edit is lost."""
    editsync_dir = require_root(output_json)
    check_entity_id(entity_id, output_json)
    store = open_draft_store(editsync_dir, load_project_config(editsync_dir, output_json))

    if store.load(entity_id, field_id) is None:
        output_error(f"No draft for {entity_id}/{field_id}.", "NOT_FOUND", output_json)
    if not store.delete(entity_id, field_id):
        output_error(f"Could not delete draft: {store.last_error}", "STORAGE_ERROR", output_json)

    output_result(
        data={"entity_id": entity_id, "field_id": field_id, "discarded": True},
        human_message=f"Discarded draft {entity_id}/{field_id}",
        is_json=output_json,
    )

"""Record commands for the recordsync CLI.

Commands:
- list: List records (served from the cache when offline)
- create: Create a record
- update: Update a record
- delete: Delete a record
- clear-cache: Forget cached record lists
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from typing import TYPE_CHECKING, Any

import click

from recordsync.client.cli.session import open_actions
from recordsync.client.sync import SyncError
from recordsync.core.records import (
    FilterSpec,
    NewAttachment,
    RecordInput,
    RecordUpdate,
    to_utc,
)
from recordsync.core.types import RecordCategory, Severity

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from recordsync.client.sync import RecordActions
    from recordsync.core.records import Record

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]
SEVERITIES = click.Choice([s.value for s in Severity], case_sensitive=False)
CATEGORY_HELP = "Record category (e.g. " + ", ".join(c.value for c in RecordCategory) + ")."


def format_record(record: Record) -> str:
    """One-line summary of a record."""
    status = "resolved" if record.resolved else "open"
    line = (
        f"{record.id}  {record.date:%Y-%m-%d}  {record.category:<12} "
        f"{record.severity or '-':<8} {status:<8}"
    )
    if record.description:
        line += f"  {record.description}"
    if record.attachments:
        line += f"  [{len(record.attachments)} attachment(s)]"
    return line


def parse_fields(values: tuple[str, ...]) -> dict[str, str]:
    """Parse KEY=VALUE pairs."""
    fields = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {value!r}")
        fields[key] = val
    return fields


def _utc(value: datetime | None) -> datetime | None:
    return to_utc(value) if value is not None else None


def run(operation: Callable[[RecordActions], Awaitable[Any]]) -> Any:
    """Run an operation against the configured stack, exiting 1 on sync errors."""

    async def _run() -> Any:
        async with open_actions() as actions:
            return await operation(actions)

    try:
        return asyncio.run(_run())
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command("list")
@click.option("--category", "-c", multiple=True, help="Only this category (repeatable).")
@click.option("--severity", "-s", multiple=True, type=SEVERITIES,
              help="Only this severity (repeatable).")
@click.option("--from", "start_date", type=click.DateTime(DATE_FORMATS), default=None,
              help="Earliest record date (UTC).")
@click.option("--to", "end_date", type=click.DateTime(DATE_FORMATS), default=None,
              help="Latest record date (UTC).")
@click.option("--resolved/--unresolved", default=None, help="Only resolved or open records.")
@click.option("--query", "-q", default=None, help="Free-text search.")
def list_records(
    category: tuple[str, ...],
    severity: tuple[str, ...],
    start_date: datetime | None,
    end_date: datetime | None,
    resolved: bool | None,
    query: str | None,
) -> None:
    """List records.

    Without a connection, records cached during the last five minutes are
    shown instead.
    """
    filters = FilterSpec(
        start_date=_utc(start_date),
        end_date=_utc(end_date),
        categories=frozenset(category),
        severities=frozenset(severity),
        resolved=resolved,
        query=query,
    )
    result = run(lambda actions: actions.fetch_records(filters))

    if result.is_offline:
        click.echo("Offline: showing cached records.", err=True)
    if not result.records:
        click.echo("No records.")
        return
    for record in result.records:
        click.echo(format_record(record))


@click.command()
@click.option("--date", "date", type=click.DateTime(DATE_FORMATS), default=None,
              help="Event date (UTC, default: now).")
@click.option("--category", "-c", required=True, help=CATEGORY_HELP)
@click.option("--severity", "-s", default=None, type=SEVERITIES, help="Severity level.")
@click.option("--resolved", is_flag=True, help="Mark as resolved.")
@click.option("--description", "-d", default=None, help="Description.")
@click.option("--field", "-f", "field_values", multiple=True, metavar="KEY=VALUE",
              help="Extra field (repeatable).")
@click.option("--attach", "-a", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="File to attach (repeatable).")
def create(
    date: datetime | None,
    category: str,
    severity: str | None,
    resolved: bool,
    description: str | None,
    field_values: tuple[str, ...],
    attach: tuple[str, ...],
) -> None:
    """Create a record (requires a connection)."""
    fields: dict[str, Any] = parse_fields(field_values)
    if description:
        fields["description"] = description
    now = to_utc(datetime.now().astimezone())
    data = RecordInput(
        date=_utc(date) or now,
        category=category,
        severity=severity,
        resolved=resolved,
        resolved_at=now if resolved else None,
        fields=fields,
        attachments=tuple(NewAttachment.from_path(p) for p in attach),
    )
    record = run(lambda actions: actions.create_record(data))
    click.echo(f"Created {format_record(record)}")


@click.command()
@click.argument("record_id")
@click.option("--date", "date", type=click.DateTime(DATE_FORMATS), default=None,
              help="New event date (UTC).")
@click.option("--category", "-c", default=None, help="New category.")
@click.option("--severity", "-s", default=None, type=SEVERITIES, help="New severity.")
@click.option("--resolved/--unresolved", default=None, help="Mark resolved or open.")
@click.option("--description", "-d", default=None,
              help="New description (replaces all fields, like --field).")
@click.option("--field", "-f", "field_values", multiple=True, metavar="KEY=VALUE",
              help="Field to set (repeatable, replaces all fields).")
@click.option("--attach", "-a", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="File to attach (repeatable).")
@click.option("--remove-attachment", "-r", multiple=True, metavar="URL",
              help="Attachment URL to remove (repeatable).")
def update(
    record_id: str,
    date: datetime | None,
    category: str | None,
    severity: str | None,
    resolved: bool | None,
    description: str | None,
    field_values: tuple[str, ...],
    attach: tuple[str, ...],
    remove_attachment: tuple[str, ...],
) -> None:
    """Update a record (requires a connection)."""
    fields: dict[str, Any] | None = None
    if field_values or description is not None:
        fields = parse_fields(field_values)
        if description is not None:
            fields["description"] = description
    resolved_at = None
    if resolved:
        resolved_at = to_utc(datetime.now().astimezone())
    changes = RecordUpdate(
        date=_utc(date),
        category=category,
        severity=severity,
        resolved=resolved,
        resolved_at=resolved_at,
        fields=fields,
        attachments=tuple(NewAttachment.from_path(p) for p in attach),
        removed_attachments=remove_attachment,
    )
    record = run(lambda actions: actions.update_record(record_id, changes))
    click.echo(f"Updated {format_record(record)}")


@click.command()
@click.argument("record_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def delete(record_id: str, yes: bool) -> None:
    """Delete a record and its attachments (requires a connection)."""
    if not yes and not click.confirm(f"Delete record {record_id}?"):
        sys.exit(0)
    run(lambda actions: actions.delete_record(record_id))
    click.echo(f"Deleted {record_id}")


@click.command("clear-cache")
def clear_cache() -> None:
    """Forget all cached record lists."""
    run(lambda actions: actions.clear_cache())
    click.echo("Cache cleared.")

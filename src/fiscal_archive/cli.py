"""CLI for the fiscal archive (folders, document filing, deadlines, MCP server)."""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from fiscal_archive.config import (
    DB_FILENAME,
    NOTIFICATION_LIST_LIMIT,
    NOTIFICATION_RETENTION_DAYS,
    resolve_data_directory,
)
from fiscal_archive.core.database.connection import open_database
from fiscal_archive.core.deadlines.aggregator import collect_deadlines
from fiscal_archive.core.deadlines.config import get_deadline_configs, update_deadline_config
from fiscal_archive.core.documents.linking import (
    link_document,
    list_linked,
    search_unlinked,
    unlink_document,
)
from fiscal_archive.core.documents.store import get_document
from fiscal_archive.core.importer.loader import import_records_file
from fiscal_archive.core.notifications import store as notification_store
from fiscal_archive.core.scan import maybe_scan, run_scan
from fiscal_archive.core.tree import navigation
from fiscal_archive.errors import ArchiveError
from fiscal_archive.logging_config import configure_logging
from fiscal_archive.serializers import (
    archive_to_dict,
    breadcrumbs_to_str,
    config_to_dict,
    document_to_dict,
    notification_to_dict,
    report_to_dict,
    view_to_dict,
)

app = typer.Typer(help="Fiscal archive: file documents into folders and track their deadlines.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Archive database directory"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]
TodayOption = Annotated[
    datetime | None,
    typer.Option("--today", formats=["%Y-%m-%d"], help="Reference day (YYYY-MM-DD)"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write a rotating debug log here"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose, log_file=log_file)


def _db_path(data_dir: Path | None) -> Path:
    return (data_dir or resolve_data_directory()) / DB_FILENAME


@contextmanager
def _session(data_dir: Path | None, *, create: bool = False) -> Iterator[sqlite3.Connection]:
    """Open the archive database; archive errors become exit code 1."""
    db_path = _db_path(data_dir)
    if not create and not db_path.exists():
        logger.error("Archive database not found: {}. Run 'init' or 'import' first.", db_path)
        raise typer.Exit(1)
    try:
        conn = open_database(db_path)
    except ArchiveError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    try:
        yield conn
    except ArchiveError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.command()
def init(data_dir: DataDirOption = None) -> None:
    """Create the archive database with seeded document types and thresholds."""
    with _session(data_dir, create=True):
        typer.echo(f"Archive database ready at {_db_path(data_dir)}")


@app.command(name="import")
def import_cmd(
    source_file: Path = typer.Argument(..., help="JSON records file"),
    data_dir: DataDirOption = None,
    force: bool = typer.Option(False, "--force", "-f", help="Re-import an unchanged file"),
) -> None:
    """Import owners, document types, folders and documents from a JSON file."""
    if not source_file.exists():
        logger.error("Records file not found: {}", source_file)
        raise typer.Exit(1)

    with _session(data_dir, create=True) as conn:
        try:
            stats = import_records_file(conn, source_file, force=force)
        except ValueError as e:
            logger.error("Cannot import {}: {}", source_file.name, e)
            raise typer.Exit(1) from e
        if stats.skipped:
            typer.echo(f"{source_file.name} unchanged, nothing imported (use --force)")
        else:
            typer.echo(
                f"Imported {stats.archives} folders, {stats.general_documents} general documents, "
                f"{stats.invoices} invoices, {stats.owners} owners"
            )


@app.command()
def folders(
    parent_id: str | None = typer.Argument(None, help="Folder ID (top level when omitted)"),
    query: str = typer.Option("", "--filter", "-q", help="Filter on description or code"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """List the folders directly under a folder."""
    with _session(data_dir) as conn:
        if parent_id is not None:
            navigation.get_archive(conn, parent_id)
        children = navigation.list_children(conn, parent_id=parent_id, query=query)
        if output_json:
            _echo_json([archive_to_dict(c) for c in children])
            return
        if parent_id is not None:
            typer.echo(breadcrumbs_to_str(navigation.get_breadcrumbs(conn, parent_id)))
        typer.echo(f"{len(children)} folders:\n")
        for child in children:
            code = f"[{child.code}] " if child.code else ""
            typer.echo(f"  {code}{child.description}  id={child.id}")


@app.command()
def mkdir(
    description: str = typer.Argument(..., help="Folder description"),
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="Parent folder ID")] = None,
    code: Annotated[str | None, typer.Option("--code", help="Reference code")] = None,
    period: Annotated[str | None, typer.Option("--period", help="Fiscal period")] = None,
    date: Annotated[str | None, typer.Option("--date", help="Free-form date")] = None,
    notes: Annotated[str | None, typer.Option("--notes", help="Notes")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a folder."""
    with _session(data_dir) as conn:
        node = navigation.create_archive(
            conn, description=description, code=code, period=period, date=date,
            notes=notes, parent_id=parent,
        )
        typer.echo(f"Created folder {node.description}  id={node.id}")


@app.command()
def edit(
    archive_id: str = typer.Argument(..., help="Folder ID"),
    description: Annotated[str | None, typer.Option("--description", help="New description")] = None,
    parent: Annotated[str | None, typer.Option("--parent", "-p", help="Move under this folder")] = None,
    top_level: bool = typer.Option(False, "--top-level", help="Move to the top level"),
    code: Annotated[str | None, typer.Option("--code", help="Reference code ('' clears)")] = None,
    period: Annotated[str | None, typer.Option("--period", help="Fiscal period ('' clears)")] = None,
    date: Annotated[str | None, typer.Option("--date", help="Free-form date ('' clears)")] = None,
    notes: Annotated[str | None, typer.Option("--notes", help="Notes ('' clears)")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Edit a folder. Options left out keep their current value."""
    if parent is not None and top_level:
        logger.error("--parent and --top-level are mutually exclusive")
        raise typer.Exit(1)

    with _session(data_dir) as conn:
        current = navigation.get_archive(conn, archive_id)
        new_parent = None if top_level else (parent if parent is not None else current.parent_id)
        node = navigation.update_archive(
            conn,
            archive_id,
            description=description if description is not None else current.description,
            code=code if code is not None else current.code,
            period=period if period is not None else current.period,
            date=date if date is not None else current.date,
            notes=notes if notes is not None else current.notes,
            parent_id=new_parent,
        )
        typer.echo(f"Updated folder {node.description}  id={node.id}")


@app.command()
def rm(
    archive_id: str = typer.Argument(..., help="Folder ID"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a folder. Subfolders and filed documents are left in place."""
    with _session(data_dir) as conn:
        node = navigation.delete_archive(conn, archive_id)
        typer.echo(f"Deleted folder {node.description}")


@app.command()
def path(
    archive_id: str = typer.Argument(..., help="Folder ID"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show the breadcrumb trail from the top level down to a folder."""
    with _session(data_dir) as conn:
        crumbs = navigation.get_breadcrumbs(conn, archive_id)
        if output_json:
            _echo_json([{"id": c.archive_id, "description": c.description, "code": c.code} for c in crumbs])
        else:
            typer.echo(breadcrumbs_to_str(crumbs))


@app.command()
def search(
    query: str = typer.Argument("", help="Substring of description, number, owner or notes"),
    doc_type: str = typer.Option("all", "--type", "-t", help="all, general or invoice"),
    entity_type: str = typer.Option("all", "--entity", "-e", help="all, supplier, client or staff"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Search documents not yet filed in any folder."""
    with _session(data_dir) as conn:
        results = search_unlinked(conn, query=query, doc_type=doc_type, entity_type=entity_type)
        if output_json:
            _echo_json([view_to_dict(r) for r in results])
            return
        typer.echo(f"{len(results)} unfiled documents:\n")
        for r in results:
            deadline = r.deadline_date.isoformat() if r.deadline_date else "-"
            typer.echo(f"  [{r.kind}] {r.label}  ({r.owner_name or 'N/A'})  due {deadline}")
            typer.echo(f"    id={r.id}")


@app.command()
def link(
    doc_type: str = typer.Argument(..., help="general or invoice"),
    doc_id: str = typer.Argument(..., help="Document ID"),
    archive_id: str = typer.Argument(..., help="Folder ID"),
    data_dir: DataDirOption = None,
) -> None:
    """File a document in a folder, moving it if it is filed elsewhere."""
    with _session(data_dir) as conn:
        view = link_document(conn, doc_type=doc_type, doc_id=doc_id, archive_id=archive_id)
        typer.echo(f"Filed {view.label} in {archive_id}")


@app.command()
def unlink(
    doc_type: str = typer.Argument(..., help="general or invoice"),
    doc_id: str = typer.Argument(..., help="Document ID"),
    data_dir: DataDirOption = None,
) -> None:
    """Remove a document from its folder."""
    with _session(data_dir) as conn:
        view = unlink_document(conn, doc_type=doc_type, doc_id=doc_id)
        typer.echo(f"Unfiled {view.label}")


@app.command()
def show(
    doc_type: str = typer.Argument(..., help="general or invoice"),
    doc_id: str = typer.Argument(..., help="Document ID"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show one document in full."""
    with _session(data_dir) as conn:
        document = get_document(conn, doc_type, doc_id)
        data = document_to_dict(document)
        if output_json:
            _echo_json(data)
            return
        typer.echo(f"[{data['kind']}] {data['label']}  id={data['id']}")
        typer.echo(f"  owner:    {data['owner'] or 'N/A'}")
        typer.echo(f"  issued:   {data['issue_date'] or '-'}")
        typer.echo(f"  deadline: {data['deadline_date'] or '-'}")
        if document.archive_id and navigation.archive_exists(conn, document.archive_id):
            crumbs = navigation.get_breadcrumbs(conn, document.archive_id)
            typer.echo(f"  folder:   {breadcrumbs_to_str(crumbs)}")
        else:
            typer.echo(f"  folder:   {document.archive_id or '-'}")
        for attachment in data.get("attachments", []):
            typer.echo(f"  attachment: {attachment['title']} ({attachment['file_path']})")


@app.command()
def contents(
    archive_id: str = typer.Argument(..., help="Folder ID"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """List the documents filed in a folder."""
    with _session(data_dir) as conn:
        documents = list_linked(conn, archive_id)
        if output_json:
            _echo_json([view_to_dict(d) for d in documents])
            return
        typer.echo(f"{len(documents)} documents:\n")
        for d in documents:
            typer.echo(f"  [{d.kind}] {d.label}  ({d.owner_name or 'N/A'})  id={d.id}")


@app.command()
def deadlines(
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Only expired, upcoming or ok"),
    ] = None,
    query: str = typer.Option("", "--filter", "-q", help="Filter on description or owner"),
    today: TodayOption = None,
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show documents with deadlines and how close they are."""
    if status is not None and status not in ("expired", "upcoming", "ok"):
        logger.error("Unknown status '{}'", status)
        raise typer.Exit(1)

    with _session(data_dir) as conn:
        report = collect_deadlines(conn, today=today.date() if today else None)
        data = report_to_dict(report, status=status, query=query)
        if output_json:
            _echo_json(data)
            return
        summary = report.summary
        typer.echo(
            f"{summary.total} need attention: {summary.expired} expired, "
            f"{summary.upcoming} upcoming ({summary.ok} ok)\n"
        )
        for item in data["items"]:
            typer.echo(
                f"  [{item['status']}] {item['deadline_date']}  {item['description']}  "
                f"({item['owner']})  {item['days_remaining']} days"
            )


@app.command()
def config(
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show the alert thresholds."""
    with _session(data_dir) as conn:
        configs = get_deadline_configs(conn)
        if output_json:
            _echo_json([config_to_dict(c) for c in configs])
            return
        for c in configs:
            name = c.document_type_name or c.document_type
            typer.echo(f"  {name}: {c.days_before} days  id={c.id}")


@app.command(name="set-threshold")
def set_threshold(
    config_id: str = typer.Argument(..., help="Config ID"),
    days: int = typer.Argument(..., help="Days before the deadline to start alerting"),
    data_dir: DataDirOption = None,
) -> None:
    """Change an alert threshold."""
    with _session(data_dir) as conn:
        updated = update_deadline_config(conn, config_id=config_id, days_before=days)
        typer.echo(f"{updated.document_type_name or updated.document_type}: {updated.days_before} days")


@app.command()
def scan(
    full: bool = typer.Option(False, "--full", help="Classify every dated document"),
    today: TodayOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Classify deadlines and raise new notifications."""
    with _session(data_dir) as conn:
        result = run_scan(conn, now=today, full=full)
        summary = result.report.summary
        typer.echo(
            f"{summary.expired} expired, {summary.upcoming} upcoming: "
            f"{result.stats.created} new notifications, {result.stats.skipped} already raised"
        )


@app.command()
def notifications(
    unread: bool = typer.Option(False, "--unread", "-u", help="Only unread notifications"),
    limit: int = typer.Option(NOTIFICATION_LIST_LIMIT, "--limit", "-n", help="Max results"),
    no_scan: bool = typer.Option(False, "--no-scan", help="Skip the automatic deadline scan"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """List notifications, newest first."""
    with _session(data_dir) as conn:
        if not no_scan:
            maybe_scan(conn)
        items = notification_store.list_notifications(conn, limit=limit, unread_only=unread)
        if output_json:
            _echo_json([notification_to_dict(n) for n in items])
            return
        typer.echo(f"{notification_store.count_unread(conn)} unread\n")
        for n in items:
            marker = " " if n.is_read else "*"
            typer.echo(f"{marker} {n.created_at}  {n.title}")
            typer.echo(f"    {n.message}  id={n.id}")


@app.command()
def read(
    notification_id: str = typer.Argument(..., help="Notification ID"),
    data_dir: DataDirOption = None,
) -> None:
    """Mark a notification read."""
    with _session(data_dir) as conn:
        notification = notification_store.get_notification(conn, notification_id)
        notification_store.mark_read(conn, notification_id)
        typer.echo(f"Read: {notification.title}")


@app.command(name="read-all")
def read_all(data_dir: DataDirOption = None) -> None:
    """Mark every notification read."""
    with _session(data_dir) as conn:
        changed = notification_store.mark_all_read(conn)
        typer.echo(f"Marked {changed} notifications read")


@app.command()
def dismiss(
    notification_id: str = typer.Argument(..., help="Notification ID"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a notification."""
    with _session(data_dir) as conn:
        notification = notification_store.get_notification(conn, notification_id)
        notification_store.delete_notification(conn, notification_id)
        typer.echo(f"Dismissed: {notification.title}")


@app.command()
def prune(
    days: int = typer.Option(NOTIFICATION_RETENTION_DAYS, "--days", help="Remove notifications older than this"),
    data_dir: DataDirOption = None,
) -> None:
    """Remove old notifications."""
    with _session(data_dir) as conn:
        removed = notification_store.clear_old_notifications(conn, days=days)
        typer.echo(f"Removed {removed} notifications")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from fiscal_archive.mcp.server import run_mcp_server

    run_mcp_server()

"""MCP server exposing archive browsing, document filing and deadline alerts."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from fiscal_archive.config import (
    DB_FILENAME,
    NOTIFICATION_LIST_LIMIT,
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
from fiscal_archive.core.notifications import store as notification_store
from fiscal_archive.core.scan import maybe_scan
from fiscal_archive.core.tree.navigation import (
    archive_exists,
    get_archive,
    get_breadcrumbs,
    list_children,
)
from fiscal_archive.errors import ArchiveError
from fiscal_archive.serializers import (
    archive_to_dict,
    breadcrumbs_to_str,
    config_to_dict,
    document_to_dict,
    notification_to_dict,
    report_to_dict,
    view_to_dict,
)

# --- Core functions (testable without MCP context) ---


def archive_list_children(
    conn: sqlite3.Connection,
    *,
    parent_id: str | None = None,
    query: str = "",
) -> dict[str, Any]:
    """List the folders directly under parent_id (top level when omitted).

    Args:
        parent_id: Folder ID, or None for top-level folders.
        query: Optional filter on folder description or code.
    """
    try:
        parent = get_archive(conn, parent_id) if parent_id else None
        children = list_children(conn, parent_id=parent_id, query=query)
    except ArchiveError as e:
        return {"error": str(e)}
    output: dict[str, Any] = {
        "folders": [archive_to_dict(c) for c in children],
        "count": len(children),
    }
    if parent is not None:
        output["parent"] = archive_to_dict(parent)
        output["breadcrumbs"] = breadcrumbs_to_str(get_breadcrumbs(conn, parent.id))
    return output


def archive_get_folder(conn: sqlite3.Connection, *, archive_id: str) -> dict[str, Any]:
    """Get a folder with its breadcrumb trail and the documents filed in it."""
    try:
        node = get_archive(conn, archive_id)
        crumbs = get_breadcrumbs(conn, archive_id)
    except ArchiveError as e:
        return {"error": str(e)}
    documents = list_linked(conn, archive_id)
    return {
        "folder": archive_to_dict(node),
        "breadcrumbs": breadcrumbs_to_str(crumbs),
        "path": [{"id": c.archive_id, "description": c.description, "code": c.code} for c in crumbs],
        "subfolders": len(list_children(conn, parent_id=archive_id)),
        "documents": [view_to_dict(d) for d in documents],
    }


def documents_search(
    conn: sqlite3.Connection,
    *,
    query: str = "",
    doc_type: str = "all",
    entity_type: str = "all",
) -> dict[str, Any]:
    """Search documents not yet filed in any folder.

    Args:
        query: Substring of description, document number, owner or notes.
        doc_type: "all", "general" or "invoice".
        entity_type: "all", "supplier", "client" or "staff".
    """
    try:
        results = search_unlinked(conn, query=query, doc_type=doc_type, entity_type=entity_type)
    except ArchiveError as e:
        return {"error": str(e), "results": [], "count": 0}
    return {"results": [view_to_dict(r) for r in results], "count": len(results)}


def documents_get(conn: sqlite3.Connection, *, doc_type: str, doc_id: str) -> dict[str, Any]:
    """Get one document with its kind-specific fields and folder trail."""
    try:
        document = get_document(conn, doc_type, doc_id)
    except ArchiveError as e:
        return {"error": str(e)}
    result: dict[str, Any] = {"document": document_to_dict(document), "path": None}
    if document.archive_id and archive_exists(conn, document.archive_id):
        result["path"] = breadcrumbs_to_str(get_breadcrumbs(conn, document.archive_id))
    return result


def documents_link(
    conn: sqlite3.Connection,
    *,
    doc_type: str,
    doc_id: str,
    archive_id: str,
) -> dict[str, Any]:
    """File a document in a folder, moving it if already filed elsewhere."""
    try:
        view = link_document(conn, doc_type=doc_type, doc_id=doc_id, archive_id=archive_id)
    except ArchiveError as e:
        return {"error": str(e)}
    return {"success": True, "document": view_to_dict(view)}


def documents_unlink(conn: sqlite3.Connection, *, doc_type: str, doc_id: str) -> dict[str, Any]:
    """Return a document to the unfiled pool."""
    try:
        view = unlink_document(conn, doc_type=doc_type, doc_id=doc_id)
    except ArchiveError as e:
        return {"error": str(e)}
    return {"success": True, "document": view_to_dict(view)}


def deadlines_upcoming(
    conn: sqlite3.Connection,
    *,
    status: str | None = None,
    query: str = "",
    today: date | None = None,
) -> dict[str, Any]:
    """Classify every dated document against its alert threshold.

    Args:
        status: Only return items with this status ("expired", "upcoming", "ok").
        query: Only return items whose description or owner contains this text.
        today: Reference day (defaults to the current date).
    """
    if status is not None and status not in ("expired", "upcoming", "ok"):
        return {"error": f"Unknown status '{status}'."}
    return report_to_dict(collect_deadlines(conn, today=today), status=status, query=query)


def deadlines_configs(conn: sqlite3.Connection) -> dict[str, Any]:
    """List the alert thresholds per category and fiscal document type."""
    configs = get_deadline_configs(conn)
    return {"configs": [config_to_dict(c) for c in configs], "count": len(configs)}


def deadlines_set_threshold(
    conn: sqlite3.Connection,
    *,
    config_id: str,
    days_before: int,
) -> dict[str, Any]:
    """Change how many days before its deadline a document starts alerting."""
    try:
        config = update_deadline_config(conn, config_id=config_id, days_before=days_before)
    except ArchiveError as e:
        return {"error": str(e)}
    return {"success": True, "config": config_to_dict(config)}


def notifications_list(
    conn: sqlite3.Connection,
    *,
    unread_only: bool = False,
    limit: int = NOTIFICATION_LIST_LIMIT,
) -> dict[str, Any]:
    """List notifications, newest first, with the unread count."""
    limit = max(1, min(limit, 200))
    items = notification_store.list_notifications(conn, limit=limit, unread_only=unread_only)
    return {
        "notifications": [notification_to_dict(n) for n in items],
        "count": len(items),
        "unread": notification_store.count_unread(conn),
    }


def notifications_mark_read(
    conn: sqlite3.Connection,
    *,
    notification_id: str | None = None,
) -> dict[str, Any]:
    """Mark one notification read, or all of them when no ID is given."""
    if notification_id is None:
        changed = notification_store.mark_all_read(conn)
    else:
        try:
            notification_store.get_notification(conn, notification_id)
        except ArchiveError as e:
            return {"error": str(e)}
        changed = notification_store.mark_read(conn, notification_id)
    return {"success": True, "changed": changed, "unread": notification_store.count_unread(conn)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    conn: sqlite3.Connection
    data_dir: Path
    scan_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open database on startup, close on shutdown."""
    data_dir = resolve_data_directory()
    conn = open_database(data_dir / DB_FILENAME)
    logger.info("Serving archive database in {}", data_dir)
    try:
        yield ServerContext(conn=conn, data_dir=data_dir)
    finally:
        conn.close()


mcp_server = FastMCP(
    "fiscal-archive",
    instructions="""\
The fiscal archive files supplier, client and staff documents (general
documents and invoices) into a tree of folders, and raises alerts before
their expiry or due dates.

## Typical flows
- Browse: archive_list_children_tool from the top level, then
  archive_get_folder_tool on a folder to see its trail and documents.
- File: documents_search_tool lists documents not filed anywhere;
  documents_link_tool files one into a folder; documents_get_tool shows
  one document in full.
- Deadlines: deadlines_upcoming_tool returns expired and upcoming items with
  a summary; notifications_list_tool shows the alerts already raised.

Document types are "general" or "invoice". Deadline statuses are "expired",
"upcoming" and "ok".
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


async def _auto_scan(ctx: ServerContext) -> None:
    """Raise deadline notifications if the scan cooldown has elapsed.

    Uses a lock so that concurrent tool calls run at most one scan.
    """
    async with ctx.scan_lock:
        maybe_scan(ctx.conn)


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def archive_list_children_tool(
    ctx: Context,
    parent_id: str | None = None,
    query: str = "",
) -> dict[str, Any]:
    """List archive folders directly under a parent folder.

    Omit parent_id to list the top-level folders.

    Args:
        parent_id: Folder ID from a previous listing.
        query: Filter on folder description or code.
    """
    return archive_list_children(_ctx(ctx).conn, parent_id=parent_id, query=query)


@mcp_server.tool()
async def archive_get_folder_tool(ctx: Context, archive_id: str) -> dict[str, Any]:
    """Get a folder with its breadcrumb trail and the documents filed in it.

    Args:
        archive_id: Folder ID.
    """
    return archive_get_folder(_ctx(ctx).conn, archive_id=archive_id)


@mcp_server.tool()
async def documents_search_tool(
    ctx: Context,
    query: str = "",
    doc_type: str = "all",
    entity_type: str = "all",
) -> dict[str, Any]:
    """Search documents that are not filed in any folder yet.

    Args:
        query: Substring of description, document number, owner name or notes.
        doc_type: "all", "general" or "invoice".
        entity_type: "all", "supplier", "client" or "staff".
    """
    return documents_search(
        _ctx(ctx).conn, query=query, doc_type=doc_type, entity_type=entity_type
    )


@mcp_server.tool()
async def documents_get_tool(ctx: Context, doc_type: str, doc_id: str) -> dict[str, Any]:
    """Get a document with its dates, owner, attachments or invoice fields.

    Args:
        doc_type: "general" or "invoice".
        doc_id: Document ID.
    """
    return documents_get(_ctx(ctx).conn, doc_type=doc_type, doc_id=doc_id)


@mcp_server.tool()
async def documents_link_tool(
    ctx: Context,
    doc_type: str,
    doc_id: str,
    archive_id: str,
) -> dict[str, Any]:
    """File a document in a folder. A document filed elsewhere is moved.

    Args:
        doc_type: "general" or "invoice".
        doc_id: Document ID from documents_search_tool.
        archive_id: Target folder ID.
    """
    return documents_link(_ctx(ctx).conn, doc_type=doc_type, doc_id=doc_id, archive_id=archive_id)


@mcp_server.tool()
async def documents_unlink_tool(ctx: Context, doc_type: str, doc_id: str) -> dict[str, Any]:
    """Remove a document from its folder.

    Args:
        doc_type: "general" or "invoice".
        doc_id: Document ID.
    """
    return documents_unlink(_ctx(ctx).conn, doc_type=doc_type, doc_id=doc_id)


@mcp_server.tool()
async def deadlines_upcoming_tool(
    ctx: Context,
    status: str | None = None,
    query: str = "",
) -> dict[str, Any]:
    """Get documents with deadlines, classified as expired, upcoming or ok.

    Also raises any pending deadline notifications.

    Args:
        status: Only return items with this status.
        query: Filter on document description or owner name.
    """
    await _auto_scan(_ctx(ctx))
    return deadlines_upcoming(_ctx(ctx).conn, status=status, query=query)


@mcp_server.tool()
async def deadlines_configs_tool(ctx: Context) -> dict[str, Any]:
    """List alert thresholds (days before the deadline) per document category."""
    return deadlines_configs(_ctx(ctx).conn)


@mcp_server.tool()
async def deadlines_set_threshold_tool(
    ctx: Context,
    config_id: str,
    days_before: int,
) -> dict[str, Any]:
    """Change an alert threshold.

    Args:
        config_id: Config ID from deadlines_configs_tool.
        days_before: Days before the deadline to start alerting (0 or more).
    """
    return deadlines_set_threshold(_ctx(ctx).conn, config_id=config_id, days_before=days_before)


@mcp_server.tool()
async def notifications_list_tool(
    ctx: Context,
    unread_only: bool = False,
    limit: int = NOTIFICATION_LIST_LIMIT,
) -> dict[str, Any]:
    """List notifications, newest first.

    Args:
        unread_only: Only unread notifications.
        limit: Max results (1-200, default 50).
    """
    await _auto_scan(_ctx(ctx))
    return notifications_list(_ctx(ctx).conn, unread_only=unread_only, limit=limit)


@mcp_server.tool()
async def notifications_mark_read_tool(
    ctx: Context,
    notification_id: str | None = None,
) -> dict[str, Any]:
    """Mark a notification read. Omit notification_id to mark all read.

    Args:
        notification_id: Notification ID from notifications_list_tool.
    """
    return notifications_mark_read(_ctx(ctx).conn, notification_id=notification_id)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from fiscal_archive.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")

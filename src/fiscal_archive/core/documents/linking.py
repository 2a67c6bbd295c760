"""Linking documents to archive folders and searching the unlinked pool."""

import sqlite3

from loguru import logger

from fiscal_archive.config import SEARCH_LIMIT_PER_KIND
from fiscal_archive.core.database.connection import like_pattern, transaction
from fiscal_archive.core.documents.store import (
    GENERAL_SELECT,
    INVOICE_SELECT,
    get_document,
    map_rows,
    row_to_general,
    row_to_invoice,
)
from fiscal_archive.core.tree.navigation import archive_exists
from fiscal_archive.errors import NotFoundError, ValidationError
from fiscal_archive.models.document import OWNER_KINDS, DocumentView

_DOC_TYPE_FILTERS = ("all", "general", "invoice")
_ENTITY_TYPE_FILTERS = ("all", *OWNER_KINDS)

_TABLES = {"general": "general_documents", "invoice": "invoices"}


def _search_general(
    conn: sqlite3.Connection, *, query: str, entity_type: str, limit: int
) -> list[DocumentView]:
    where_clauses = ["gd.archive_id IS NULL"]
    params: list[str | int] = []

    if query:
        where_clauses.append(
            "(casefold(gd.description) LIKE ? ESCAPE '\\' "
            "OR casefold(s.name) LIKE ? ESCAPE '\\' "
            "OR casefold(c.name) LIKE ? ESCAPE '\\' "
            "OR casefold(st.name) LIKE ? ESCAPE '\\')"
        )
        params.extend([like_pattern(query)] * 4)

    if entity_type != "all":
        where_clauses.append("gd.related_entity_type = ?")
        params.append(entity_type)

    sql = (
        f"{GENERAL_SELECT} WHERE {' AND '.join(where_clauses)} "
        "ORDER BY gd.created_at DESC, gd.rowid DESC LIMIT ?"
    )
    params.append(limit)
    return [d.view() for d in map_rows(conn.execute(sql, params), row_to_general)]


def _search_invoices(
    conn: sqlite3.Connection, *, query: str, entity_type: str, limit: int
) -> list[DocumentView]:
    if entity_type == "staff":
        # Invoices are owned by suppliers or clients only.
        return []

    where_clauses = ["i.archive_id IS NULL"]
    params: list[str | int] = []

    if query:
        where_clauses.append(
            "(casefold(i.document_number) LIKE ? ESCAPE '\\' "
            "OR casefold(s.name) LIKE ? ESCAPE '\\' "
            "OR casefold(c.name) LIKE ? ESCAPE '\\' "
            "OR casefold(i.notes) LIKE ? ESCAPE '\\')"
        )
        params.extend([like_pattern(query)] * 4)

    if entity_type == "supplier":
        where_clauses.append("i.supplier_id IS NOT NULL")
    elif entity_type == "client":
        where_clauses.append("i.client_id IS NOT NULL")

    sql = (
        f"{INVOICE_SELECT} WHERE {' AND '.join(where_clauses)} "
        "ORDER BY i.created_at DESC, i.rowid DESC LIMIT ?"
    )
    params.append(limit)
    return [d.view() for d in map_rows(conn.execute(sql, params), row_to_invoice)]


def search_unlinked(
    conn: sqlite3.Connection,
    *,
    query: str = "",
    doc_type: str = "all",
    entity_type: str = "all",
    limit: int = SEARCH_LIMIT_PER_KIND,
) -> list[DocumentView]:
    """Search documents that are not filed in any archive folder.

    Args:
        conn: Database connection.
        query: Case-insensitive substring matched against description or
            document number, owner name, and invoice notes.
        doc_type: "all", "general" or "invoice".
        entity_type: "all", "supplier", "client" or "staff".
        limit: Max results per document kind.

    Returns:
        General documents first, then invoices, each newest first.

    Raises:
        ValidationError: A filter value is not recognised.
    """
    if doc_type not in _DOC_TYPE_FILTERS:
        msg = f"Unknown document filter '{doc_type}', expected one of {_DOC_TYPE_FILTERS!r}"
        raise ValidationError(msg)
    if entity_type not in _ENTITY_TYPE_FILTERS:
        msg = f"Unknown entity filter '{entity_type}', expected one of {_ENTITY_TYPE_FILTERS!r}"
        raise ValidationError(msg)

    query = query.strip()
    results: list[DocumentView] = []
    if doc_type in ("all", "general"):
        results.extend(_search_general(conn, query=query, entity_type=entity_type, limit=limit))
    if doc_type in ("all", "invoice"):
        results.extend(_search_invoices(conn, query=query, entity_type=entity_type, limit=limit))
    return results


def link_document(
    conn: sqlite3.Connection,
    *,
    doc_type: str,
    doc_id: str,
    archive_id: str,
) -> DocumentView:
    """File a document in a folder, moving it if it was filed elsewhere.

    Raises:
        ValidationError: doc_type is not 'general' or 'invoice'.
        NotFoundError: The document or the folder does not exist.
    """
    document = get_document(conn, doc_type, doc_id)
    if not archive_exists(conn, archive_id):
        msg = f"Archive '{archive_id}' not found."
        raise NotFoundError(msg)

    if document.archive_id == archive_id:
        logger.debug("{} {} already in archive {}", doc_type, doc_id, archive_id)
        return document.view()

    with transaction(conn):
        conn.execute(
            f"UPDATE {_TABLES[doc_type]} SET archive_id = ? WHERE id = ?",
            (archive_id, doc_id),
        )

    if document.archive_id is not None:
        logger.info("Moved {} {} from archive {} to {}", doc_type, doc_id, document.archive_id, archive_id)
    else:
        logger.info("Linked {} {} to archive {}", doc_type, doc_id, archive_id)
    return get_document(conn, doc_type, doc_id).view()


def unlink_document(conn: sqlite3.Connection, *, doc_type: str, doc_id: str) -> DocumentView:
    """Remove a document from its folder. Unlinking an unfiled document is a no-op.

    Raises:
        ValidationError: doc_type is not 'general' or 'invoice'.
        NotFoundError: The document does not exist.
    """
    document = get_document(conn, doc_type, doc_id)
    if document.archive_id is None:
        return document.view()

    with transaction(conn):
        conn.execute(f"UPDATE {_TABLES[doc_type]} SET archive_id = NULL WHERE id = ?", (doc_id,))
    logger.info("Unlinked {} {} from archive {}", doc_type, doc_id, document.archive_id)
    return get_document(conn, doc_type, doc_id).view()


def list_linked(conn: sqlite3.Connection, archive_id: str) -> list[DocumentView]:
    """Documents of both kinds filed in archive_id, general documents first.

    An id that no longer names a folder still returns whatever documents
    point at it.
    """
    general = map_rows(
        conn.execute(
            f"{GENERAL_SELECT} WHERE gd.archive_id = ? ORDER BY gd.created_at DESC, gd.rowid DESC",
            (archive_id,),
        ),
        row_to_general,
    )
    invoices = map_rows(
        conn.execute(
            f"{INVOICE_SELECT} WHERE i.archive_id = ? ORDER BY i.created_at DESC, i.rowid DESC",
            (archive_id,),
        ),
        row_to_invoice,
    )
    return [d.view() for d in general] + [d.view() for d in invoices]

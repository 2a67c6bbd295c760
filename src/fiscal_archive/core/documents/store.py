"""Reading general documents and invoices into their tagged models."""

import sqlite3
from collections.abc import Callable, Iterable
from datetime import date
from typing import TypeVar

from loguru import logger

from fiscal_archive.errors import NotFoundError, StorageError, ValidationError
from fiscal_archive.models.document import (
    DOC_KINDS,
    Attachment,
    Document,
    GeneralDocument,
    Invoice,
    OwnerRef,
)

T = TypeVar("T")

GENERAL_SELECT = """
    SELECT gd.id, gd.description, gd.issue_date, gd.expiry_date,
           gd.related_entity_type, gd.related_entity_id,
           CASE gd.related_entity_type
               WHEN 'supplier' THEN s.name
               WHEN 'client' THEN c.name
               WHEN 'staff' THEN st.name
           END AS owner_name,
           gd.archive_id
    FROM general_documents gd
    LEFT JOIN suppliers s ON gd.related_entity_type = 'supplier' AND s.id = gd.related_entity_id
    LEFT JOIN clients c ON gd.related_entity_type = 'client' AND c.id = gd.related_entity_id
    LEFT JOIN staff st ON gd.related_entity_type = 'staff' AND st.id = gd.related_entity_id
"""

INVOICE_SELECT = """
    SELECT i.id, i.document_number, i.type, i.document_type_id, dt.code,
           i.date, i.due_date, i.supplier_id, i.client_id,
           COALESCE(s.name, c.name) AS owner_name,
           i.notes, i.archive_id, i.pdf_path
    FROM invoices i
    LEFT JOIN document_types dt ON dt.id = i.document_type_id
    LEFT JOIN suppliers s ON s.id = i.supplier_id
    LEFT JOIN clients c ON c.id = i.client_id
"""


def parse_date(value: str | None) -> date | None:
    """Parse a stored date, ignoring any time part."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip()[:10])


def row_to_general(row: tuple, attachments: tuple[Attachment, ...] = ()) -> GeneralDocument:
    owner = None
    if row[4] and row[5]:
        owner = OwnerRef(kind=row[4], id=row[5], name=row[6])
    return GeneralDocument(
        id=row[0],
        description=row[1],
        issue_date=parse_date(row[2]),
        expiry_date=parse_date(row[3]),
        owner=owner,
        archive_id=row[7],
        attachments=attachments,
    )


def row_to_invoice(row: tuple) -> Invoice:
    owner = None
    if row[7]:
        owner = OwnerRef(kind="supplier", id=row[7], name=row[9])
    elif row[8]:
        owner = OwnerRef(kind="client", id=row[8], name=row[9])
    return Invoice(
        id=row[0],
        document_number=row[1],
        invoice_type=row[2],
        document_type_id=row[3],
        document_type_code=row[4],
        issue_date=parse_date(row[5]),
        due_date=parse_date(row[6]),
        owner=owner,
        notes=row[10],
        archive_id=row[11],
        pdf_path=row[12],
    )


def map_rows(rows: Iterable[tuple], mapper: Callable[[tuple], T]) -> list[T]:
    """Map rows to models, logging and skipping rows with unreadable values."""
    result: list[T] = []
    for row in rows:
        try:
            result.append(mapper(row))
        except ValueError:
            logger.exception("Skipping document {}: unreadable stored value", row[0])
    return result


def require_kind(doc_type: str) -> None:
    if doc_type not in DOC_KINDS:
        msg = f"Unknown document type '{doc_type}', expected one of {DOC_KINDS!r}"
        raise ValidationError(msg)


def get_attachments(conn: sqlite3.Connection, document_id: str) -> tuple[Attachment, ...]:
    rows = conn.execute(
        "SELECT id, title, file_path FROM general_document_attachments "
        "WHERE document_id = ? ORDER BY rowid",
        (document_id,),
    ).fetchall()
    return tuple(Attachment(id=r[0], title=r[1], file_path=r[2]) for r in rows)


def get_document(conn: sqlite3.Connection, doc_type: str, doc_id: str) -> Document:
    """Return one document as its tagged variant.

    Raises:
        ValidationError: doc_type is not 'general' or 'invoice'.
        NotFoundError: No document of that kind has this id.
    """
    require_kind(doc_type)
    if doc_type == "general":
        row = conn.execute(f"{GENERAL_SELECT} WHERE gd.id = ?", (doc_id,)).fetchone()
    else:
        row = conn.execute(f"{INVOICE_SELECT} WHERE i.id = ?", (doc_id,)).fetchone()
    if row is None:
        msg = f"{doc_type.capitalize()} document '{doc_id}' not found."
        raise NotFoundError(msg)

    try:
        if doc_type == "general":
            return row_to_general(row, get_attachments(conn, doc_id))
        return row_to_invoice(row)
    except ValueError as e:
        msg = f"Stored {doc_type} document '{doc_id}' is unreadable: {e}"
        raise StorageError(msg) from e


def list_dated_documents(
    conn: sqlite3.Connection,
    *,
    horizon: date | None = None,
) -> list[Document]:
    """Every document with a deadline date (general expiry, invoice due date).

    Args:
        conn: Database connection.
        horizon: When set, only documents whose deadline falls on or before it.
    """
    general_sql = f"{GENERAL_SELECT} WHERE gd.expiry_date IS NOT NULL AND gd.expiry_date != ''"
    invoice_sql = f"{INVOICE_SELECT} WHERE i.due_date IS NOT NULL AND i.due_date != ''"
    params: tuple[str, ...] = ()
    if horizon is not None:
        general_sql += " AND substr(gd.expiry_date, 1, 10) <= ?"
        invoice_sql += " AND substr(i.due_date, 1, 10) <= ?"
        params = (horizon.isoformat(),)

    documents: list[Document] = []
    documents.extend(map_rows(conn.execute(general_sql, params), row_to_general))
    documents.extend(map_rows(conn.execute(invoice_sql, params), row_to_invoice))
    return documents

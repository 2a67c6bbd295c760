"""Import a records JSON file into the archive database."""

import hashlib
import json
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from fiscal_archive.core.database.schema import get_metadata, set_metadata
from fiscal_archive.core.deadlines.config import ensure_default_configs
from fiscal_archive.core.importer.json_reader import ParsedRecords, parse_records


@dataclass(frozen=True)
class ImportStats:
    """Summary of an import operation."""

    skipped: bool
    archives: int = 0
    general_documents: int = 0
    invoices: int = 0
    owners: int = 0


_OWNER_TABLES = {"supplier": "suppliers", "client": "clients", "staff": "staff"}


def _file_hash(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _resolve_type_ids(conn: sqlite3.Connection) -> dict[str, str]:
    return dict(conn.execute("SELECT code, id FROM document_types").fetchall())


def _known_archive_ids(conn: sqlite3.Connection, records: ParsedRecords) -> set[str]:
    known = {row[0] for row in conn.execute("SELECT id FROM archives")}
    known.update(a.id for a in records.archives)
    return known


def check_archive_references(conn: sqlite3.Connection, records: ParsedRecords) -> None:
    """Raise ValueError for a document linked to a folder that exists nowhere.

    A folder counts when it is in the file or already in the database.
    """
    known = _known_archive_ids(conn, records)
    for doc in [*records.general_documents, *records.invoices]:
        if doc.archive_id is not None and doc.archive_id not in known:
            msg = f"Document {doc.id!r} references unknown archive {doc.archive_id!r}"
            raise ValueError(msg)


def insert_records(conn: sqlite3.Connection, records: ParsedRecords) -> None:
    """Upsert parsed records. The caller commits.

    Existing rows keep their created_at, and a document the file leaves
    unlinked keeps the folder link it already has.
    """
    check_archive_references(conn, records)

    for owner in records.owners:
        conn.execute(
            f"""INSERT INTO {_OWNER_TABLES[owner.kind]} (id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name""",
            (owner.id, owner.name),
        )

    # Types are matched on code, so a seeded type keeps its id and its deadline config.
    for dt in records.document_types:
        conn.execute(
            """INSERT INTO document_types (id, code, name) VALUES (?, ?, ?)
               ON CONFLICT(code) DO UPDATE SET name = excluded.name""",
            (dt.id, dt.code, dt.name),
        )
    type_ids = _resolve_type_ids(conn)
    file_type_ids = {dt.id: type_ids[dt.code] for dt in records.document_types}

    conn.executemany(
        """INSERT INTO archives
           (id, description, created_at, code, period, date, notes, parent_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               description = excluded.description,
               code = excluded.code,
               period = excluded.period,
               date = excluded.date,
               notes = excluded.notes,
               parent_id = excluded.parent_id""",
        [
            (a.id, a.description, a.created_at, a.code, a.period, a.date, a.notes, a.parent_id)
            for a in records.archives
        ],
    )

    now_ms = int(time.time() * 1000)
    for doc in records.general_documents:
        conn.execute(
            """INSERT INTO general_documents
               (id, description, issue_date, expiry_date, related_entity_type,
                related_entity_id, archive_id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   description = excluded.description,
                   issue_date = excluded.issue_date,
                   expiry_date = excluded.expiry_date,
                   related_entity_type = excluded.related_entity_type,
                   related_entity_id = excluded.related_entity_id,
                   archive_id = COALESCE(excluded.archive_id, general_documents.archive_id)""",
            (
                doc.id, doc.description,
                doc.issue_date.isoformat() if doc.issue_date else None,
                doc.expiry_date.isoformat() if doc.expiry_date else None,
                doc.owner.kind if doc.owner else None,
                doc.owner.id if doc.owner else None,
                doc.archive_id, now_ms,
            ),
        )
        conn.execute("DELETE FROM general_document_attachments WHERE document_id = ?", (doc.id,))
        conn.executemany(
            """INSERT OR REPLACE INTO general_document_attachments
               (id, document_id, title, file_path) VALUES (?, ?, ?, ?)""",
            [(a.id, doc.id, a.title, a.file_path) for a in doc.attachments],
        )

    for inv in records.invoices:
        type_id = file_type_ids.get(inv.document_type_id, inv.document_type_id)
        if type_id is None and inv.document_type_code:
            type_id = type_ids.get(inv.document_type_code)
            if type_id is None:
                logger.warning(
                    "Invoice {} has unknown document type {}", inv.id, inv.document_type_code
                )
        conn.execute(
            """INSERT INTO invoices
               (id, type, document_type_id, document_number, date, due_date,
                supplier_id, client_id, notes, pdf_path, archive_id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   type = excluded.type,
                   document_type_id = excluded.document_type_id,
                   document_number = excluded.document_number,
                   date = excluded.date,
                   due_date = excluded.due_date,
                   supplier_id = excluded.supplier_id,
                   client_id = excluded.client_id,
                   notes = excluded.notes,
                   pdf_path = excluded.pdf_path,
                   archive_id = COALESCE(excluded.archive_id, invoices.archive_id)""",
            (
                inv.id, inv.invoice_type, type_id, inv.document_number,
                inv.issue_date.isoformat() if inv.issue_date else None,
                inv.due_date.isoformat() if inv.due_date else None,
                inv.owner.id if inv.owner and inv.owner.kind == "supplier" else None,
                inv.owner.id if inv.owner and inv.owner.kind == "client" else None,
                inv.notes, inv.pdf_path, inv.archive_id, now_ms,
            ),
        )


def import_records_file(
    conn: sqlite3.Connection,
    path: Path,
    *,
    force: bool = False,
) -> ImportStats:
    """Import suppliers, clients, staff, document types, archives and documents.

    Args:
        conn: SQLite connection (schema must already exist).
        path: JSON records file.
        force: Re-import even if the file hasn't changed since the last import.

    Returns:
        ImportStats with counts per record kind.

    Raises:
        ValueError: Malformed records, or a document linked to an unknown archive.
    """
    source_hash = _file_hash(path)
    hash_key = f"import_hash:{path.name}"
    if not force and get_metadata(conn, hash_key) == source_hash:
        logger.info("{} unchanged since last import, skipping", path.name)
        return ImportStats(skipped=True)

    data = json.loads(path.read_text(encoding="utf-8"))
    records = parse_records(data, created_at=int(time.time() * 1000))

    try:
        insert_records(conn, records)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.exception("Failed to import {}", path.name)
        raise

    # New document types need their own deadline configs.
    ensure_default_configs(conn)
    set_metadata(conn, hash_key, source_hash)

    stats = ImportStats(
        skipped=False,
        archives=len(records.archives),
        general_documents=len(records.general_documents),
        invoices=len(records.invoices),
        owners=len(records.owners),
    )
    logger.info(
        "Import complete: {} archives, {} general documents, {} invoices, {} owners",
        stats.archives, stats.general_documents, stats.invoices, stats.owners,
    )
    return stats

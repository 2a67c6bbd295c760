"""SQLite schema creation and migration for the fiscal archive."""

import sqlite3
import uuid

from loguru import logger

from fiscal_archive.config import SEEDED_DOCUMENT_TYPES

SCHEMA_VERSION = 1

# parent_id and archive_id carry no FOREIGN KEY clause: deleting a folder
# leaves its children and linked documents pointing at the missing id.
_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS suppliers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS clients (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS staff (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS document_types (
    id TEXT PRIMARY KEY,
    code TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS archives (
    id TEXT PRIMARY KEY,
    code TEXT,
    description TEXT NOT NULL,
    period TEXT,
    date TEXT,
    notes TEXT,
    parent_id TEXT,
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_archives_parent ON archives(parent_id, created_at DESC);

CREATE TABLE IF NOT EXISTS general_documents (
    id TEXT PRIMARY KEY,
    description TEXT NOT NULL,
    issue_date TEXT,
    expiry_date TEXT,
    related_entity_type TEXT
        CHECK (related_entity_type IS NULL
               OR related_entity_type IN ('supplier', 'client', 'staff')),
    related_entity_id TEXT,
    archive_id TEXT,
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_general_documents_archive ON general_documents(archive_id);
CREATE INDEX IF NOT EXISTS idx_general_documents_expiry ON general_documents(expiry_date);

CREATE TABLE IF NOT EXISTS general_document_attachments (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    title TEXT NOT NULL,
    file_path TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_attachments_document
    ON general_document_attachments(document_id);

CREATE TABLE IF NOT EXISTS invoices (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL DEFAULT 'PURCHASE',
    document_type_id TEXT,
    document_number TEXT NOT NULL,
    date TEXT,
    due_date TEXT,
    supplier_id TEXT,
    client_id TEXT,
    notes TEXT,
    pdf_path TEXT,
    archive_id TEXT,
    created_at INTEGER NOT NULL,
    CHECK (supplier_id IS NULL OR client_id IS NULL)
);

CREATE INDEX IF NOT EXISTS idx_invoices_archive ON invoices(archive_id);
CREATE INDEX IF NOT EXISTS idx_invoices_due ON invoices(due_date);

CREATE TABLE IF NOT EXISTS deadline_configs (
    id TEXT PRIMARY KEY,
    document_type TEXT NOT NULL UNIQUE,
    days_before INTEGER NOT NULL DEFAULT 15 CHECK (days_before >= 0),
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL CHECK (type IN ('deadline', 'system', 'info')),
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    is_read INTEGER NOT NULL DEFAULT 0,
    link TEXT,
    dedup_key TEXT,
    created_at TEXT NOT NULL,
    created_on TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_notifications_dedup
    ON notifications(dedup_key, created_on);
CREATE INDEX IF NOT EXISTS idx_notifications_created ON notifications(created_at DESC);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        row = conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
    conn.commit()


def seed_document_types(conn: sqlite3.Connection) -> int:
    """Insert the standard fiscal document types that are missing. Returns the number added."""
    existing = {row[0] for row in conn.execute("SELECT code FROM document_types")}
    added = 0
    for code, name in SEEDED_DOCUMENT_TYPES:
        if code in existing:
            continue
        conn.execute(
            "INSERT INTO document_types (id, code, name) VALUES (?, ?, ?)",
            (str(uuid.uuid4()), code, name),
        )
        added += 1
    conn.commit()
    return added


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema and seed reference data."""
    from fiscal_archive.core.deadlines.config import ensure_default_configs

    version = get_schema_version(conn)
    if version is None:
        create_schema(conn)
        logger.debug("Created schema version {}", SCHEMA_VERSION)
    seed_document_types(conn)
    ensure_default_configs(conn)

"""Opening the archive database and running mutations as transactions."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from fiscal_archive.core.database.schema import migrate_schema
from fiscal_archive.errors import ConflictError, StorageError


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


def prepare_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Register SQL helper functions and bring the schema up to date."""
    # SQLite's LOWER() only folds ASCII; names and descriptions carry accents.
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    migrate_schema(conn)
    return conn


def open_database(path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the archive database."""
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = prepare_connection(sqlite3.connect(str(path)))
    except sqlite3.Error as e:
        msg = f"Cannot open archive database {path}: {e}"
        raise StorageError(msg) from e
    logger.debug("Opened archive database {}", path)
    return conn


def like_pattern(text: str) -> str:
    """Build a case-folded substring pattern for `casefold(col) LIKE ? ESCAPE '\\'`."""
    escaped = text.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Commit on success, roll back on any error.

    Constraint violations surface as ConflictError, other SQLite failures
    as StorageError. Neither is retried.
    """
    try:
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ConflictError(str(e)) from e
    except sqlite3.Error as e:
        conn.rollback()
        raise StorageError(str(e)) from e
    except BaseException:
        conn.rollback()
        raise

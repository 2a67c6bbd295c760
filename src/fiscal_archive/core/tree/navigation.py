"""Archive folder tree: create, edit, delete, children and breadcrumbs."""

import sqlite3
import time
import uuid

from loguru import logger

from fiscal_archive.core.database.connection import like_pattern, transaction
from fiscal_archive.errors import NotFoundError, ValidationError
from fiscal_archive.models.archive import ArchiveNode, Breadcrumb

_ARCHIVE_COLUMNS = "id, description, created_at, code, period, date, notes, parent_id"


def _to_node(row: tuple) -> ArchiveNode:
    return ArchiveNode(
        id=row[0], description=row[1], created_at=row[2], code=row[3],
        period=row[4], date=row[5], notes=row[6], parent_id=row[7],
    )


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_description(description: str) -> str:
    if not description or not description.strip():
        msg = "Archive description is required."
        raise ValidationError(msg)
    return description.strip()


def count_archives(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM archives").fetchone()[0]


def archive_exists(conn: sqlite3.Connection, archive_id: str) -> bool:
    return conn.execute("SELECT 1 FROM archives WHERE id = ?", (archive_id,)).fetchone() is not None


def get_archive(conn: sqlite3.Connection, archive_id: str) -> ArchiveNode:
    """Return one folder by id.

    Raises:
        NotFoundError: No folder has this id.
    """
    row = conn.execute(
        f"SELECT {_ARCHIVE_COLUMNS} FROM archives WHERE id = ?", (archive_id,)
    ).fetchone()
    if row is None:
        msg = f"Archive '{archive_id}' not found."
        raise NotFoundError(msg)
    return _to_node(row)


def _require_parent(conn: sqlite3.Connection, parent_id: str | None) -> None:
    if parent_id is not None and not archive_exists(conn, parent_id):
        msg = f"Parent archive '{parent_id}' not found."
        raise NotFoundError(msg)


def _ancestor_ids(conn: sqlite3.Connection, start_id: str | None) -> list[str]:
    """Walk parent references upward from start_id (inclusive).

    Stops at a root, at a missing parent, or after count_archives() steps.
    """
    limit = count_archives(conn)
    chain: list[str] = []
    current = start_id
    while current is not None:
        if len(chain) >= limit:
            logger.warning("Archive parent chain from {} exceeds {} steps, aborting walk", start_id, limit)
            break
        row = conn.execute("SELECT parent_id FROM archives WHERE id = ?", (current,)).fetchone()
        if row is None:
            break
        chain.append(current)
        current = row[0]
    return chain


def create_archive(
    conn: sqlite3.Connection,
    *,
    description: str,
    code: str | None = None,
    period: str | None = None,
    date: str | None = None,
    notes: str | None = None,
    parent_id: str | None = None,
) -> ArchiveNode:
    """Create a folder, at the top level or under parent_id.

    Raises:
        ValidationError: description is blank.
        NotFoundError: parent_id does not exist.
    """
    node = ArchiveNode(
        id=str(uuid.uuid4()),
        description=_require_description(description),
        created_at=int(time.time() * 1000),
        code=_clean(code),
        period=_clean(period),
        date=_clean(date),
        notes=_clean(notes),
        parent_id=parent_id,
    )
    _require_parent(conn, parent_id)

    with transaction(conn):
        conn.execute(
            f"INSERT INTO archives ({_ARCHIVE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                node.id, node.description, node.created_at, node.code,
                node.period, node.date, node.notes, node.parent_id,
            ),
        )
    logger.info("Created archive {} ({})", node.description, node.id)
    return node


def update_archive(
    conn: sqlite3.Connection,
    archive_id: str,
    *,
    description: str,
    code: str | None = None,
    period: str | None = None,
    date: str | None = None,
    notes: str | None = None,
    parent_id: str | None = None,
) -> ArchiveNode:
    """Replace the editable fields of a folder, possibly moving it.

    Raises:
        NotFoundError: The folder or the new parent does not exist.
        ValidationError: description is blank, or the new parent is the
            folder itself or one of its descendants.
    """
    current = get_archive(conn, archive_id)
    description = _require_description(description)

    if parent_id != current.parent_id and parent_id is not None:
        _require_parent(conn, parent_id)
        if archive_id in _ancestor_ids(conn, parent_id):
            msg = (
                f"Cannot move archive '{current.description}' under '{parent_id}': "
                "a folder cannot be placed inside itself or its own subfolders."
            )
            raise ValidationError(msg)

    updated = ArchiveNode(
        id=archive_id,
        description=description,
        created_at=current.created_at,
        code=_clean(code),
        period=_clean(period),
        date=_clean(date),
        notes=_clean(notes),
        parent_id=parent_id,
    )
    with transaction(conn):
        conn.execute(
            "UPDATE archives SET code = ?, description = ?, period = ?, date = ?, "
            "notes = ?, parent_id = ? WHERE id = ?",
            (
                updated.code, updated.description, updated.period, updated.date,
                updated.notes, updated.parent_id, archive_id,
            ),
        )
    if parent_id != current.parent_id:
        logger.info("Moved archive {} from {} to {}", archive_id, current.parent_id, parent_id)
    return updated


def delete_archive(conn: sqlite3.Connection, archive_id: str) -> ArchiveNode:
    """Delete one folder row.

    Children keep their parent_id and documents keep their archive_id; both
    now reference a missing folder. Nothing cascades.

    Raises:
        NotFoundError: No folder has this id.
    """
    node = get_archive(conn, archive_id)
    with transaction(conn):
        conn.execute("DELETE FROM archives WHERE id = ?", (archive_id,))

    orphans = conn.execute(
        "SELECT COUNT(*) FROM archives WHERE parent_id = ?", (archive_id,)
    ).fetchone()[0]
    if orphans:
        logger.warning("Deleted archive {} left {} subfolders detached", archive_id, orphans)
    else:
        logger.info("Deleted archive {}", archive_id)
    return node


def list_children(
    conn: sqlite3.Connection,
    *,
    parent_id: str | None = None,
    query: str = "",
) -> tuple[ArchiveNode, ...]:
    """Get the direct children of a folder (None = top level), newest first.

    Args:
        conn: Database connection.
        parent_id: Folder whose children to list, or None for the roots.
        query: Optional case-insensitive filter on description or code.
    """
    sql = f"SELECT {_ARCHIVE_COLUMNS} FROM archives WHERE "
    params: list[str] = []
    if parent_id is None:
        sql += "parent_id IS NULL "
    else:
        sql += "parent_id = ? "
        params.append(parent_id)

    if query.strip():
        sql += (
            "AND (casefold(description) LIKE ? ESCAPE '\\' "
            "OR casefold(COALESCE(code, '')) LIKE ? ESCAPE '\\') "
        )
        pattern = like_pattern(query.strip())
        params.extend([pattern, pattern])

    sql += "ORDER BY created_at DESC, rowid DESC"
    return tuple(_to_node(r) for r in conn.execute(sql, params).fetchall())


def get_breadcrumbs(conn: sqlite3.Connection, archive_id: str) -> tuple[Breadcrumb, ...]:
    """Get the trail from the root down to archive_id (inclusive).

    The walk is bounded by the number of folders, so corrupt data holding a
    cycle still yields a finite trail. A missing parent ends the trail.

    Raises:
        NotFoundError: No folder has this id.
    """
    if not archive_exists(conn, archive_id):
        msg = f"Archive '{archive_id}' not found."
        raise NotFoundError(msg)

    ids = _ancestor_ids(conn, archive_id)
    placeholders = ",".join("?" * len(ids))
    rows = conn.execute(
        f"SELECT id, description, code FROM archives WHERE id IN ({placeholders})",
        ids,
    ).fetchall()
    by_id = {r[0]: Breadcrumb(archive_id=r[0], description=r[1], code=r[2]) for r in rows}
    return tuple(by_id[i] for i in reversed(ids))

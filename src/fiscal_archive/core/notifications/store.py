"""Notification store: list, create, mark read, delete."""

import sqlite3
import uuid
from datetime import datetime, timedelta

from loguru import logger

from fiscal_archive.config import NOTIFICATION_LIST_LIMIT, NOTIFICATION_RETENTION_DAYS
from fiscal_archive.core.database.connection import transaction
from fiscal_archive.errors import NotFoundError, ValidationError
from fiscal_archive.models.notification import NOTIFICATION_TYPES, Notification

_NOTIFICATION_COLUMNS = "id, type, title, message, is_read, created_at, link, dedup_key"


def _to_notification(row: tuple) -> Notification:
    return Notification(
        id=row[0], type=row[1], title=row[2], message=row[3], is_read=bool(row[4]),
        created_at=row[5], link=row[6], dedup_key=row[7],
    )


def timestamp(now: datetime) -> tuple[str, str]:
    """Return (created_at, created_on) as stored for a notification created at `now`."""
    return now.isoformat(timespec="seconds"), now.date().isoformat()


def list_notifications(
    conn: sqlite3.Connection,
    *,
    limit: int = NOTIFICATION_LIST_LIMIT,
    unread_only: bool = False,
) -> list[Notification]:
    """Newest notifications first."""
    sql = f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications "
    if unread_only:
        sql += "WHERE is_read = 0 "
    sql += "ORDER BY created_at DESC, rowid DESC LIMIT ?"
    return [_to_notification(r) for r in conn.execute(sql, (limit,)).fetchall()]


def get_notification(conn: sqlite3.Connection, notification_id: str) -> Notification:
    row = conn.execute(
        f"SELECT {_NOTIFICATION_COLUMNS} FROM notifications WHERE id = ?", (notification_id,)
    ).fetchone()
    if row is None:
        msg = f"Notification '{notification_id}' not found."
        raise NotFoundError(msg)
    return _to_notification(row)


def count_unread(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM notifications WHERE is_read = 0").fetchone()[0]


def create_notification(
    conn: sqlite3.Connection,
    *,
    notification_type: str,
    title: str,
    message: str,
    link: str | None = None,
    dedup_key: str | None = None,
    now: datetime | None = None,
) -> Notification:
    """Insert an unread notification.

    Raises:
        ValidationError: Unknown type or blank title.
        ConflictError: dedup_key was already used today.
    """
    if notification_type not in NOTIFICATION_TYPES:
        msg = f"Unknown notification type '{notification_type}', expected one of {NOTIFICATION_TYPES!r}"
        raise ValidationError(msg)
    if not title.strip():
        msg = "Notification title is required."
        raise ValidationError(msg)

    created_at, created_on = timestamp(now or datetime.now())
    notification = Notification(
        id=str(uuid.uuid4()), type=notification_type, title=title, message=message,  # type: ignore[arg-type]
        is_read=False, created_at=created_at, link=link, dedup_key=dedup_key,
    )
    with transaction(conn):
        conn.execute(
            "INSERT INTO notifications "
            "(id, type, title, message, is_read, link, dedup_key, created_at, created_on) "
            "VALUES (?, ?, ?, ?, 0, ?, ?, ?, ?)",
            (
                notification.id, notification.type, notification.title, notification.message,
                notification.link, notification.dedup_key, created_at, created_on,
            ),
        )
    logger.debug("Created {} notification {}", notification_type, title)
    return notification


def mark_read(conn: sqlite3.Connection, notification_id: str) -> int:
    """Mark one notification read. Returns 1 if it changed, 0 if already read or missing."""
    with transaction(conn):
        cur = conn.execute(
            "UPDATE notifications SET is_read = 1 WHERE id = ? AND is_read = 0",
            (notification_id,),
        )
    return cur.rowcount


def mark_all_read(conn: sqlite3.Connection) -> int:
    """Mark every notification read. Returns how many changed."""
    with transaction(conn):
        cur = conn.execute("UPDATE notifications SET is_read = 1 WHERE is_read = 0")
    return cur.rowcount


def delete_notification(conn: sqlite3.Connection, notification_id: str) -> int:
    """Delete one notification. Returns 1 if it existed, else 0."""
    with transaction(conn):
        cur = conn.execute("DELETE FROM notifications WHERE id = ?", (notification_id,))
    return cur.rowcount


def clear_old_notifications(
    conn: sqlite3.Connection,
    *,
    days: int = NOTIFICATION_RETENTION_DAYS,
    now: datetime | None = None,
) -> int:
    """Delete notifications created more than `days` days ago. Returns how many went."""
    cutoff = ((now or datetime.now()) - timedelta(days=days)).date().isoformat()
    with transaction(conn):
        cur = conn.execute("DELETE FROM notifications WHERE created_on < ?", (cutoff,))
    if cur.rowcount:
        logger.info("Removed {} notifications older than {} days", cur.rowcount, days)
    return cur.rowcount

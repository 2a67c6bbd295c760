"""Turn deadline scan results into de-duplicated notifications."""

import sqlite3
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from fiscal_archive.config import DEADLINES_VIEW
from fiscal_archive.core.database.connection import transaction
from fiscal_archive.core.notifications.store import timestamp
from fiscal_archive.errors import ArchiveError, ConflictError
from fiscal_archive.models.deadline import DeadlineItem, DeadlineStatus

_TITLES = {
    DeadlineStatus.EXPIRED: "Documento Vencido: {description}",
    DeadlineStatus.UPCOMING: "Vencimento Próximo: {description}",
}

# A new alert is allowed only when every earlier alert for the same key was
# created before today and has been read.
_INSERT_UNLESS_LIVE_SQL = """
    INSERT INTO notifications
        (id, type, title, message, is_read, link, dedup_key, created_at, created_on)
    SELECT ?, 'deadline', ?, ?, 0, ?, ?, ?, ?
    WHERE NOT EXISTS (
        SELECT 1 FROM notifications
        WHERE dedup_key = ? AND (created_on = ? OR is_read = 0)
    )
"""


@dataclass(frozen=True)
class NotifyStats:
    """Outcome of one notification pass."""

    created: int = 0
    skipped: int = 0
    failed: int = 0


def dedup_key(item: DeadlineItem) -> str:
    """Stable identity of an alert: document kind, document id and status."""
    return f"{item.kind}:{item.id}:{item.status.value}"


def compose_title(item: DeadlineItem) -> str:
    return _TITLES[item.status].format(description=item.description)


def compose_message(item: DeadlineItem) -> str:
    when = item.deadline_date.strftime("%d/%m/%Y")
    if item.status is DeadlineStatus.EXPIRED:
        return f"O documento da entidade {item.owner_name} venceu em {when}."
    noun = "dia" if item.days_remaining == 1 else "dias"
    return f"O documento da entidade {item.owner_name} vence em {item.days_remaining} {noun} ({when})."


def notify_deadlines(
    conn: sqlite3.Connection,
    items: Iterable[DeadlineItem],
    *,
    now: datetime | None = None,
) -> NotifyStats:
    """Create a notification for each EXPIRED or UPCOMING item that has no live alert.

    An alert is live when it was created today or is still unread. The check
    and the insert are one statement, so repeated or overlapping scans never
    add a second live alert for the same document and status.

    Args:
        conn: Database connection.
        items: Classified documents; OK items are ignored.
        now: Creation time, defaults to the local current time.

    Returns:
        NotifyStats with created, skipped and failed counts.
    """
    created_at, created_on = timestamp(now or datetime.now())
    created = skipped = failed = 0

    for item in items:
        if item.status is DeadlineStatus.OK:
            continue
        key = dedup_key(item)
        try:
            with transaction(conn):
                cur = conn.execute(
                    _INSERT_UNLESS_LIVE_SQL,
                    (
                        str(uuid.uuid4()), compose_title(item), compose_message(item),
                        DEADLINES_VIEW, key, created_at, created_on,
                        key, created_on,
                    ),
                )
        except ConflictError:
            # Another scan raised the same alert today.
            logger.debug("Alert {} already raised", key)
            skipped += 1
            continue
        except ArchiveError:
            logger.exception("Could not record alert {}", key)
            failed += 1
            continue

        if cur.rowcount:
            created += 1
            logger.debug("New alert {}", key)
        else:
            skipped += 1

    if created:
        logger.info("Created {} deadline notifications ({} already live)", created, skipped)
    return NotifyStats(created=created, skipped=skipped, failed=failed)

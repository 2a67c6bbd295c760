"""Tests for turning classified deadlines into de-duplicated notifications."""

import sqlite3
from datetime import date, datetime, timedelta

import pytest

from fiscal_archive.config import DEADLINES_VIEW
from fiscal_archive.core.deadlines.aggregator import aggregate
from fiscal_archive.core.notifications import deduper
from fiscal_archive.core.notifications.deduper import (
    compose_message,
    compose_title,
    dedup_key,
    notify_deadlines,
)
from fiscal_archive.core.notifications.store import list_notifications, mark_all_read
from fiscal_archive.models.deadline import DeadlineItem, DeadlineStatus
from fiscal_archive.models.document import GeneralDocument, OwnerRef

MORNING = datetime(2025, 3, 10, 9, 0)
CONTRATO_X = GeneralDocument(
    id="g-x",
    description="Contrato X",
    expiry_date=date(2025, 3, 13),
    owner=OwnerRef(kind="supplier", id="s1", name="Águas do Norte"),
)


def _items(at: datetime, *documents: GeneralDocument) -> tuple[DeadlineItem, ...]:
    return aggregate(documents or (CONTRATO_X,), {"general": 7}, today=at.date()).items


def _count(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM notifications").fetchone()[0]


def test_contrato_x_alerts_once_per_day(empty_db: sqlite3.Connection) -> None:
    items = _items(MORNING)
    assert items[0].status is DeadlineStatus.UPCOMING

    stats = notify_deadlines(empty_db, items, now=MORNING)
    assert (stats.created, stats.skipped) == (1, 0)
    [notification] = list_notifications(empty_db)
    assert notification.title == "Vencimento Próximo: Contrato X"
    assert notification.message == "O documento da entidade Águas do Norte vence em 3 dias (13/03/2025)."
    assert notification.type == "deadline"
    assert notification.link == DEADLINES_VIEW
    assert notification.dedup_key == "general:g-x:upcoming"

    stats = notify_deadlines(empty_db, _items(MORNING), now=MORNING + timedelta(hours=8))
    assert (stats.created, stats.skipped) == (0, 1)
    assert _count(empty_db) == 1


def test_unread_alert_blocks_next_day(empty_db: sqlite3.Connection) -> None:
    notify_deadlines(empty_db, _items(MORNING), now=MORNING)
    tomorrow = MORNING + timedelta(days=1)
    stats = notify_deadlines(empty_db, _items(tomorrow), now=tomorrow)
    assert stats.created == 0
    assert _count(empty_db) == 1


def test_read_alert_allows_new_one_next_day(empty_db: sqlite3.Connection) -> None:
    notify_deadlines(empty_db, _items(MORNING), now=MORNING)
    mark_all_read(empty_db)

    # Reading it the same day does not re-arm the alert.
    assert notify_deadlines(empty_db, _items(MORNING), now=MORNING).created == 0

    tomorrow = MORNING + timedelta(days=1)
    stats = notify_deadlines(empty_db, _items(tomorrow), now=tomorrow)
    assert stats.created == 1
    assert list_notifications(empty_db)[0].message.endswith("vence em 2 dias (13/03/2025).")


def test_status_change_raises_expired_alert(empty_db: sqlite3.Connection) -> None:
    notify_deadlines(empty_db, _items(MORNING), now=MORNING)
    later = datetime(2025, 3, 14, 9, 0)
    items = _items(later)
    assert items[0].status is DeadlineStatus.EXPIRED

    assert notify_deadlines(empty_db, items, now=later).created == 1
    newest = list_notifications(empty_db)[0]
    assert newest.title == "Documento Vencido: Contrato X"
    assert newest.message == "O documento da entidade Águas do Norte venceu em 13/03/2025."


def test_renamed_document_keeps_its_alert_identity(empty_db: sqlite3.Connection) -> None:
    notify_deadlines(empty_db, _items(MORNING), now=MORNING)
    renamed = GeneralDocument(
        id="g-x", description="Contrato X (revisto)", expiry_date=date(2025, 3, 13)
    )
    assert notify_deadlines(empty_db, _items(MORNING, renamed), now=MORNING).created == 0


def test_ok_items_are_ignored(empty_db: sqlite3.Connection) -> None:
    far = GeneralDocument(id="g-far", description="Longe", expiry_date=date(2025, 12, 31))
    stats = notify_deadlines(empty_db, _items(MORNING, far), now=MORNING)
    assert (stats.created, stats.skipped, stats.failed) == (0, 0, 0)
    assert _count(empty_db) == 0


def test_singular_day_phrasing() -> None:
    tomorrow_doc = GeneralDocument(id="g-t", description="Amanhã", expiry_date=date(2025, 3, 11))
    [item] = _items(MORNING, tomorrow_doc)
    assert compose_title(item) == "Vencimento Próximo: Amanhã"
    assert compose_message(item) == "O documento da entidade N/A vence em 1 dia (11/03/2025)."
    assert dedup_key(item) == "general:g-t:upcoming"


def test_same_day_insert_from_another_scan_counts_as_skipped(
    empty_db: sqlite3.Connection, monkeypatch: pytest.MonkeyPatch
) -> None:
    notify_deadlines(empty_db, _items(MORNING), now=MORNING)
    # Hide the first alert from the live check so only the unique index stops the second.
    monkeypatch.setattr(
        deduper,
        "_INSERT_UNLESS_LIVE_SQL",
        deduper._INSERT_UNLESS_LIVE_SQL.replace(
            "WHERE dedup_key = ?", "WHERE dedup_key = ? || ':elsewhere'"
        ),
    )
    stats = notify_deadlines(empty_db, _items(MORNING), now=MORNING + timedelta(hours=1))
    assert (stats.created, stats.skipped, stats.failed) == (0, 1, 0)
    assert _count(empty_db) == 1

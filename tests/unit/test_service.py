"""Tests for the ArchiveService facade."""

import sqlite3
import time
from datetime import date, datetime
from pathlib import Path

import pytest

from fiscal_archive import ArchiveService, NotFoundError, ValidationError
from fiscal_archive.core.database.schema import set_metadata


@pytest.fixture
def service(populated_db: sqlite3.Connection) -> ArchiveService:
    return ArchiveService(populated_db)


def test_open_creates_database(tmp_path: Path) -> None:
    service = ArchiveService.open(tmp_path / "archive.db")
    try:
        assert service.archive.list_children() == ()
        assert service.notifications.count_unread() == 0
    finally:
        service.close()


def test_archive_operations(service: ArchiveService) -> None:
    node = service.archive.create(description="Bancos", parent_id="a-2025")
    assert service.archive.get(node.id).description == "Bancos"
    assert [c.archive_id for c in service.archive.breadcrumbs(node.id)] == ["a-2025", node.id]

    service.archive.update(node.id, description="Bancos e caixa", parent_id="a-2025")
    assert service.archive.list_children("a-2025", query="caixa")[0].id == node.id

    service.archive.delete(node.id)
    with pytest.raises(NotFoundError):
        service.archive.get(node.id)


def test_document_operations(service: ArchiveService) -> None:
    assert [d.id for d in service.documents.search("seguro")] == ["g-seguro"]
    service.documents.link("general", "g-seguro", "a-q1")
    assert [d.id for d in service.documents.list_linked("a-q1")] == ["g-seguro"]
    assert service.documents.get("general", "g-seguro").archive_id == "a-q1"
    service.documents.unlink("general", "g-seguro")
    assert service.documents.list_linked("a-q1") == []


def test_deadline_operations(service: ArchiveService) -> None:
    report = service.deadlines.upcoming(today=date(2025, 3, 10))
    assert report.summary.total == 4

    invoice = next(c for c in service.deadlines.config.get() if c.document_type == "invoice")
    with pytest.raises(ValidationError):
        service.deadlines.config.update(invoice.id, -5)
    assert service.deadlines.config.update(invoice.id, 20).days_before == 20


def test_notification_operations(service: ArchiveService) -> None:
    created = service.notifications.create(
        notification_type="system", title="Cópia de segurança", message="Concluída"
    )
    assert service.notifications.count_unread() == 1
    assert service.notifications.list()[0].id == created.id

    assert service.notifications.mark_read(created.id) == 1
    assert service.notifications.list(unread_only=True) == []
    assert service.notifications.mark_all_read() == 0
    assert service.notifications.clear_old() == 0
    assert service.notifications.delete(created.id) == 1


def test_scan_and_refresh(service: ArchiveService) -> None:
    result = service.scan(now=datetime(2025, 3, 10, 9, 0))
    assert result.stats.created == 4
    assert service.notifications.count_unread() == 4

    set_metadata(service.conn, "last_scan_at", str(int(time.time())))
    assert service.refresh() is None

"""Facade grouping the core operations under archive, documents, deadlines and notifications."""

import sqlite3
from datetime import date, datetime
from pathlib import Path

from fiscal_archive.config import NOTIFICATION_LIST_LIMIT, NOTIFICATION_RETENTION_DAYS
from fiscal_archive.core.database.connection import open_database
from fiscal_archive.core.deadlines import config as deadline_config
from fiscal_archive.core.deadlines.aggregator import collect_deadlines
from fiscal_archive.core.documents import linking
from fiscal_archive.core.documents.store import get_document
from fiscal_archive.core.notifications import store as notification_store
from fiscal_archive.core.scan import ScanResult, maybe_scan, run_scan
from fiscal_archive.core.tree import navigation
from fiscal_archive.models.archive import ArchiveNode, Breadcrumb
from fiscal_archive.models.deadline import DeadlineConfig, DeadlineReport
from fiscal_archive.models.document import Document, DocumentView
from fiscal_archive.models.notification import Notification


class ArchiveOperations:
    """Folder tree operations."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create(self, *, description: str, **fields: str | None) -> ArchiveNode:
        return navigation.create_archive(self._conn, description=description, **fields)

    def update(self, archive_id: str, *, description: str, **fields: str | None) -> ArchiveNode:
        return navigation.update_archive(self._conn, archive_id, description=description, **fields)

    def delete(self, archive_id: str) -> ArchiveNode:
        return navigation.delete_archive(self._conn, archive_id)

    def get(self, archive_id: str) -> ArchiveNode:
        return navigation.get_archive(self._conn, archive_id)

    def list_children(self, parent_id: str | None = None, *, query: str = "") -> tuple[ArchiveNode, ...]:
        return navigation.list_children(self._conn, parent_id=parent_id, query=query)

    def breadcrumbs(self, archive_id: str) -> tuple[Breadcrumb, ...]:
        return navigation.get_breadcrumbs(self._conn, archive_id)


class DocumentOperations:
    """Searching, linking and listing documents."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def search(self, query: str = "", doc_type: str = "all", entity_type: str = "all") -> list[DocumentView]:
        return linking.search_unlinked(
            self._conn, query=query, doc_type=doc_type, entity_type=entity_type
        )

    def link(self, doc_type: str, doc_id: str, archive_id: str) -> DocumentView:
        return linking.link_document(self._conn, doc_type=doc_type, doc_id=doc_id, archive_id=archive_id)

    def unlink(self, doc_type: str, doc_id: str) -> DocumentView:
        return linking.unlink_document(self._conn, doc_type=doc_type, doc_id=doc_id)

    def list_linked(self, archive_id: str) -> list[DocumentView]:
        return linking.list_linked(self._conn, archive_id)

    def get(self, doc_type: str, doc_id: str) -> Document:
        return get_document(self._conn, doc_type, doc_id)


class DeadlineConfigOperations:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self) -> list[DeadlineConfig]:
        return deadline_config.get_deadline_configs(self._conn)

    def update(self, config_id: str, days_before: int) -> DeadlineConfig:
        return deadline_config.update_deadline_config(
            self._conn, config_id=config_id, days_before=days_before
        )


class DeadlineOperations:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self.config = DeadlineConfigOperations(conn)

    def upcoming(self, today: date | None = None) -> DeadlineReport:
        return collect_deadlines(self._conn, today=today)


class NotificationOperations:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def list(self, limit: int = NOTIFICATION_LIST_LIMIT, *, unread_only: bool = False) -> list[Notification]:
        return notification_store.list_notifications(self._conn, limit=limit, unread_only=unread_only)

    def create(
        self,
        *,
        notification_type: str,
        title: str,
        message: str,
        link: str | None = None,
    ) -> Notification:
        return notification_store.create_notification(
            self._conn, notification_type=notification_type, title=title, message=message, link=link
        )

    def mark_read(self, notification_id: str) -> int:
        return notification_store.mark_read(self._conn, notification_id)

    def mark_all_read(self) -> int:
        return notification_store.mark_all_read(self._conn)

    def delete(self, notification_id: str) -> int:
        return notification_store.delete_notification(self._conn, notification_id)

    def count_unread(self) -> int:
        return notification_store.count_unread(self._conn)

    def clear_old(self, days: int = NOTIFICATION_RETENTION_DAYS) -> int:
        return notification_store.clear_old_notifications(self._conn, days=days)


class ArchiveService:
    """Entry point for UI layers: one connection, grouped operations.

    Example:
        service = ArchiveService.open(path)
        service.scan()
        service.deadlines.upcoming().summary.total
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.archive = ArchiveOperations(conn)
        self.documents = DocumentOperations(conn)
        self.deadlines = DeadlineOperations(conn)
        self.notifications = NotificationOperations(conn)

    @classmethod
    def open(cls, db_path: Path | str) -> "ArchiveService":
        return cls(open_database(db_path))

    def scan(self, *, now: datetime | None = None, full: bool = False) -> ScanResult:
        """Explicit refresh: always scans."""
        return run_scan(self.conn, now=now, full=full)

    def refresh(self) -> ScanResult | None:
        """Focus-style trigger: scans only when the cooldown has elapsed."""
        return maybe_scan(self.conn)

    def close(self) -> None:
        self.conn.close()

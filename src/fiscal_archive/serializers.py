"""JSON-ready dict views of the domain models, shared by the CLI and the MCP server."""

from typing import Any

from fiscal_archive.models.archive import ArchiveNode, Breadcrumb
from fiscal_archive.models.deadline import DeadlineConfig, DeadlineItem, DeadlineReport
from fiscal_archive.models.document import Document, DocumentView, GeneralDocument
from fiscal_archive.models.notification import Notification


def archive_to_dict(node: ArchiveNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "code": node.code,
        "description": node.description,
        "period": node.period,
        "date": node.date,
        "notes": node.notes,
        "parent_id": node.parent_id,
    }


def breadcrumbs_to_str(crumbs: tuple[Breadcrumb, ...]) -> str:
    return " > ".join(c.description[:40] for c in crumbs)


def view_to_dict(view: DocumentView) -> dict[str, Any]:
    return {
        "id": view.id,
        "kind": view.kind,
        "label": view.label,
        "deadline_date": view.deadline_date.isoformat() if view.deadline_date else None,
        "owner": view.owner_name,
        "archive_id": view.archive_id,
    }


def document_to_dict(document: Document) -> dict[str, Any]:
    """Projection plus the kind-specific fields."""
    data = view_to_dict(document.view())
    data["issue_date"] = document.issue_date.isoformat() if document.issue_date else None
    data["owner_type"] = document.owner.kind if document.owner else None
    if isinstance(document, GeneralDocument):
        data["attachments"] = [
            {"title": a.title, "file_path": a.file_path} for a in document.attachments
        ]
    else:
        data["document_number"] = document.document_number
        data["document_type"] = document.document_type_code
        data["invoice_type"] = document.invoice_type
        data["notes"] = document.notes
        data["pdf_path"] = document.pdf_path
    return data


def deadline_item_to_dict(item: DeadlineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "kind": item.kind,
        "description": item.description,
        "deadline_date": item.deadline_date.isoformat(),
        "owner": item.owner_name,
        "threshold_days": item.threshold_days,
        "days_remaining": item.days_remaining,
        "status": item.status.value,
    }


def report_to_dict(
    report: DeadlineReport,
    *,
    status: str | None = None,
    query: str = "",
) -> dict[str, Any]:
    """Items narrowed by status and by a substring of description or owner.

    The summary always counts the whole report.
    """
    items = report.items
    if status:
        items = tuple(i for i in items if i.status.value == status)
    if needle := query.strip().casefold():
        items = tuple(
            i for i in items
            if needle in i.description.casefold() or needle in i.owner_name.casefold()
        )
    return {
        "today": report.today.isoformat(),
        "items": [deadline_item_to_dict(i) for i in items],
        "summary": {
            "expired": report.summary.expired,
            "upcoming": report.summary.upcoming,
            "ok": report.summary.ok,
            "total": report.summary.total,
        },
    }


def config_to_dict(config: DeadlineConfig) -> dict[str, Any]:
    return {
        "id": config.id,
        "document_type": config.document_type,
        "name": config.document_type_name,
        "days_before": config.days_before,
        "updated_at": config.updated_at,
    }


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }

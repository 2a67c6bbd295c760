"""Classify dated documents against their alert thresholds."""

import sqlite3
from collections.abc import Iterable, Mapping
from datetime import date, timedelta

from loguru import logger

from fiscal_archive.config import DEFAULT_THRESHOLD_DAYS
from fiscal_archive.core.deadlines.config import get_threshold_map
from fiscal_archive.core.documents.store import list_dated_documents
from fiscal_archive.models.deadline import (
    DeadlineItem,
    DeadlineReport,
    DeadlineStatus,
    DeadlineSummary,
)
from fiscal_archive.models.document import Document, Invoice


def resolve_threshold(document: Document, configs: Mapping[str, int]) -> int:
    """Pick the alert lead time for a document.

    Precedence, first match wins:
      1. the config of the invoice's fiscal document type,
      2. the config of the document's category ("general" / "invoice"),
      3. the literal default for the category.

    A configured value of 0 is a valid match.
    """
    if isinstance(document, Invoice) and document.document_type_id is not None:
        days = configs.get(document.document_type_id)
        if days is not None:
            return days
    days = configs.get(document.kind)
    if days is not None:
        return days
    return DEFAULT_THRESHOLD_DAYS[document.kind]


def days_remaining(deadline: date, today: date) -> int:
    """Calendar days from today to the deadline; negative once it has passed."""
    return (deadline - today).days


def classify(remaining: int, threshold_days: int) -> DeadlineStatus:
    if remaining < 0:
        return DeadlineStatus.EXPIRED
    if remaining <= threshold_days:
        return DeadlineStatus.UPCOMING
    return DeadlineStatus.OK


def aggregate(
    documents: Iterable[Document],
    configs: Mapping[str, int],
    *,
    today: date,
) -> DeadlineReport:
    """Classify every document that has a deadline date.

    Pure: the result depends only on the arguments. A document that cannot
    be classified is logged and left out; the rest of the report is kept.

    Returns:
        DeadlineReport with items ordered by deadline date and the per-status counts.
    """
    items: list[DeadlineItem] = []
    for document in documents:
        deadline = document.deadline_date
        if deadline is None:
            continue
        try:
            threshold = resolve_threshold(document, configs)
            remaining = days_remaining(deadline, today)
            items.append(
                DeadlineItem(
                    id=document.id,
                    kind=document.kind,
                    description=document.label,
                    deadline_date=deadline,
                    owner_name=(document.owner.name if document.owner else None) or "N/A",
                    threshold_days=threshold,
                    days_remaining=remaining,
                    status=classify(remaining, threshold),
                )
            )
        except Exception:
            logger.exception("Skipping {} {} in deadline scan", document.kind, document.id)

    items.sort(key=lambda i: (i.deadline_date, i.kind, i.id))
    summary = DeadlineSummary(
        expired=sum(1 for i in items if i.status is DeadlineStatus.EXPIRED),
        upcoming=sum(1 for i in items if i.status is DeadlineStatus.UPCOMING),
        ok=sum(1 for i in items if i.status is DeadlineStatus.OK),
    )
    return DeadlineReport(items=tuple(items), summary=summary, today=today)


def alert_horizon(configs: Mapping[str, int], today: date) -> date:
    """Latest deadline date that can be EXPIRED or UPCOMING under the given configs."""
    longest = max([*configs.values(), *DEFAULT_THRESHOLD_DAYS.values()])
    return today + timedelta(days=longest)


def collect_deadlines(
    conn: sqlite3.Connection,
    *,
    today: date | None = None,
    near_term_only: bool = False,
) -> DeadlineReport:
    """Read all dated documents and thresholds and aggregate them from scratch.

    Args:
        conn: Database connection.
        today: Reference day, defaults to the local current date.
        near_term_only: Skip documents whose deadline lies beyond every
            threshold; their status can only be OK.
    """
    today = today or date.today()
    configs = get_threshold_map(conn)
    horizon = alert_horizon(configs, today) if near_term_only else None
    documents = list_dated_documents(conn, horizon=horizon)
    report = aggregate(documents, configs, today=today)
    logger.debug(
        "Deadline scan: {} documents, {} expired, {} upcoming",
        len(report.items), report.summary.expired, report.summary.upcoming,
    )
    return report

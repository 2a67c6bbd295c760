"""Deadline scan: classify documents, then raise de-duplicated alerts."""

import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from fiscal_archive.config import SCAN_INTERVAL
from fiscal_archive.core.database.schema import get_metadata, set_metadata
from fiscal_archive.core.deadlines.aggregator import collect_deadlines
from fiscal_archive.core.notifications.deduper import NotifyStats, notify_deadlines
from fiscal_archive.models.deadline import DeadlineReport


@dataclass(frozen=True)
class ScanResult:
    """What one scan saw and what it recorded."""

    report: DeadlineReport
    stats: NotifyStats


def run_scan(
    conn: sqlite3.Connection,
    *,
    now: datetime | None = None,
    full: bool = False,
) -> ScanResult:
    """Run one scan cycle.

    Args:
        conn: Database connection.
        now: Scan time, defaults to the local current time.
        full: Classify every dated document instead of only those whose
            deadline falls within the longest threshold.
    """
    now = now or datetime.now()
    report = collect_deadlines(conn, today=now.date(), near_term_only=not full)
    stats = notify_deadlines(conn, report.items, now=now)
    set_metadata(conn, "last_scan_at", str(int(now.timestamp())))
    logger.info(
        "Scan finished: {} expired, {} upcoming, {} new notifications",
        report.summary.expired, report.summary.upcoming, stats.created,
    )
    return ScanResult(report=report, stats=stats)


def is_scan_needed(conn: sqlite3.Connection, interval: int) -> bool:
    """Check if the last scan is older than `interval` seconds.

    Args:
        conn: SQLite connection with metadata table.
        interval: Minimum seconds between scans.

    Returns:
        True if a scan should be performed.
    """
    last_scan = get_metadata(conn, "last_scan_at")
    if last_scan is None:
        return True
    return (time.time() - int(last_scan)) >= interval


def maybe_scan(conn: sqlite3.Connection, *, interval: int = SCAN_INTERVAL) -> ScanResult | None:
    """Scan unless one ran within the cooldown.

    Used for frequent triggers such as window focus. Returns None when
    skipped.
    """
    if not is_scan_needed(conn, interval):
        logger.debug("Skipping deadline scan, last one is within {}s", interval)
        return None
    return run_scan(conn)

"""Deadline threshold configuration store."""

import sqlite3
import uuid
from datetime import datetime

from loguru import logger

from fiscal_archive.config import SEEDED_DEADLINE_CONFIGS, SEEDED_DOCUMENT_TYPE_DAYS
from fiscal_archive.core.database.connection import transaction
from fiscal_archive.errors import NotFoundError, ValidationError
from fiscal_archive.models.deadline import DeadlineConfig


def get_deadline_configs(conn: sqlite3.Connection) -> list[DeadlineConfig]:
    """Return every config, category keys first, then document types by code."""
    rows = conn.execute(
        "SELECT dc.id, dc.document_type, dc.days_before, dt.name, dc.updated_at "
        "FROM deadline_configs dc "
        "LEFT JOIN document_types dt ON dc.document_type = dt.id "
        "ORDER BY dt.code IS NOT NULL, dt.code, dc.document_type"
    ).fetchall()
    return [
        DeadlineConfig(
            id=r[0], document_type=r[1], days_before=r[2],
            document_type_name=r[3], updated_at=r[4],
        )
        for r in rows
    ]


def get_threshold_map(conn: sqlite3.Connection) -> dict[str, int]:
    """Map document type id or category key to days_before."""
    return dict(conn.execute("SELECT document_type, days_before FROM deadline_configs").fetchall())


def update_deadline_config(
    conn: sqlite3.Connection,
    *,
    config_id: str,
    days_before: int,
) -> DeadlineConfig:
    """Change the lead time of one config.

    Raises:
        ValidationError: days_before is negative.
        NotFoundError: No config has this id.
    """
    if days_before < 0:
        msg = f"days_before must be >= 0, got {days_before}"
        raise ValidationError(msg)

    now = datetime.now().isoformat(timespec="seconds")
    with transaction(conn):
        cur = conn.execute(
            "UPDATE deadline_configs SET days_before = ?, updated_at = ? WHERE id = ?",
            (days_before, now, config_id),
        )
        if cur.rowcount == 0:
            msg = f"Deadline config '{config_id}' not found."
            raise NotFoundError(msg)

    logger.info("Deadline config {} set to {} days", config_id, days_before)
    return next(c for c in get_deadline_configs(conn) if c.id == config_id)


def ensure_default_configs(conn: sqlite3.Connection) -> int:
    """Seed category configs into an empty table and give every document type a config.

    Returns:
        Number of configs inserted.
    """
    inserted = 0
    with transaction(conn):
        count = conn.execute("SELECT COUNT(*) FROM deadline_configs").fetchone()[0]
        if count == 0:
            for key, days in SEEDED_DEADLINE_CONFIGS.items():
                conn.execute(
                    "INSERT INTO deadline_configs (id, document_type, days_before) VALUES (?, ?, ?)",
                    (str(uuid.uuid4()), key, days),
                )
                inserted += 1

        missing = conn.execute(
            "SELECT dt.id FROM document_types dt "
            "WHERE NOT EXISTS (SELECT 1 FROM deadline_configs dc WHERE dc.document_type = dt.id)"
        ).fetchall()
        for (type_id,) in missing:
            conn.execute(
                "INSERT INTO deadline_configs (id, document_type, days_before) VALUES (?, ?, ?)",
                (str(uuid.uuid4()), type_id, SEEDED_DOCUMENT_TYPE_DAYS),
            )
            inserted += 1

    if inserted:
        logger.debug("Seeded {} deadline configs", inserted)
    return inserted

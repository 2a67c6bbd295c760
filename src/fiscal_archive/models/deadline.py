"""Deadline configuration and classification models."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from fiscal_archive.models.document import DocKind


class DeadlineStatus(StrEnum):
    """Where a dated document stands relative to its alert threshold."""

    EXPIRED = "expired"
    UPCOMING = "upcoming"
    OK = "ok"


@dataclass(frozen=True)
class DeadlineConfig:
    """Alert lead time for a document type or a category key."""

    id: str
    document_type: str
    days_before: int
    document_type_name: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class DeadlineItem:
    """One classified document."""

    id: str
    kind: DocKind
    description: str
    deadline_date: date
    owner_name: str
    threshold_days: int
    days_remaining: int
    status: DeadlineStatus


@dataclass(frozen=True)
class DeadlineSummary:
    """Counts per status. OK items are excluded from the total."""

    expired: int = 0
    upcoming: int = 0
    ok: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.upcoming


@dataclass(frozen=True)
class DeadlineReport:
    """Result of one aggregation pass."""

    items: tuple[DeadlineItem, ...]
    summary: DeadlineSummary
    today: date

"""Archive folder models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ArchiveNode:
    """A folder in the archive forest."""

    id: str
    description: str
    created_at: int
    code: str | None = None
    period: str | None = None
    date: str | None = None
    notes: str | None = None
    parent_id: str | None = None


@dataclass(frozen=True)
class Breadcrumb:
    """One step of the root-to-node trail."""

    archive_id: str
    description: str
    code: str | None = None

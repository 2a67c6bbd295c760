"""Document archive and deadline notification engine for fiscal records."""

from fiscal_archive.errors import (
    ArchiveError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from fiscal_archive.service import ArchiveService

__all__ = [
    "ArchiveError",
    "ArchiveService",
    "ConflictError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
]

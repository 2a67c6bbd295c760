"""Exception hierarchy for the fiscal archive core."""


class ArchiveError(Exception):
    """Base class for errors surfaced to callers of the archive core."""


class NotFoundError(ArchiveError):
    """A referenced archive node, document or notification does not exist."""


class ValidationError(ArchiveError):
    """Input rejected before any write (empty field, cyclic re-parenting, bad filter)."""


class ConflictError(ArchiveError):
    """A write collided with a uniqueness constraint."""


class StorageError(ArchiveError):
    """The underlying SQLite store failed."""

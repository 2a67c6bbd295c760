"""Configuration constants for fiscal-archive."""

import os
from pathlib import Path

# Environment variable that overrides the data directory lookup.
DATA_DIR_ENV: str = "FISCAL_ARCHIVE_DIR"

# Directory with the archive database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/fiscal-archive").expanduser(),
    Path("~/.fiscal-archive").expanduser(),
    Path("~/.config/fiscal-archive").expanduser(),
]

DB_FILENAME: str = "archive.db"

# Max documents returned per kind by the unlinked-pool search.
SEARCH_LIMIT_PER_KIND: int = 50

# Default page size of the notification list.
NOTIFICATION_LIST_LIMIT: int = 50

# Notifications older than this many days are removed by clear_old_notifications.
NOTIFICATION_RETENTION_DAYS: int = 30

# View identifier the UI navigates to from a deadline notification.
DEADLINES_VIEW: str = "documents_deadlines"

# Last-resort thresholds when no deadline config matches.
DEFAULT_THRESHOLD_DAYS: dict[str, int] = {
    "general": 7,
    "invoice": 15,
}

# Category configs seeded into an empty deadline_configs table.
SEEDED_DEADLINE_CONFIGS: dict[str, int] = {
    "invoice": 15,
    "contract": 30,
    "general": 7,
}

# Threshold seeded for every fiscal document type lacking a config.
SEEDED_DOCUMENT_TYPE_DAYS: int = 15

# Fiscal document types seeded into an empty document_types table.
SEEDED_DOCUMENT_TYPES: list[tuple[str, str]] = [
    ("FT", "Factura"),
    ("FR", "Factura Recibo"),
    ("RC", "Recibo"),
    ("NC", "Nota de Crédito"),
]

# Minimum seconds between two automatic deadline scans.
SCAN_INTERVAL: int = 300


def resolve_data_directory() -> Path:
    """Return the data directory: env override, else first existing candidate, else the first."""
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]

"""Notification models."""

from dataclasses import dataclass
from typing import Literal

NotificationType = Literal["deadline", "system", "info"]

NOTIFICATION_TYPES: tuple[str, ...] = ("deadline", "system", "info")


@dataclass(frozen=True)
class Notification:
    """A user-dismissible alert."""

    id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool
    created_at: str
    link: str | None = None
    dedup_key: str | None = None

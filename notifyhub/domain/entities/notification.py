"""Domain entity representing a persisted notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .notification_event import NotificationContent
from .recipient import RecipientKey


@dataclass
class Notification:
    """Notification stored for a specific recipient."""

    id: int | None
    recipient: RecipientKey
    title: str
    message: str
    category: str = "info"
    icon: str | None = None
    link: str | None = None
    sender_id: int | None = None
    sender_name: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None

    def to_content(self) -> NotificationContent:
        """Return the immutable content published to live listeners."""

        return NotificationContent(
            id=self.id,
            title=self.title,
            message=self.message,
            category=self.category,
            sender_id=self.sender_id,
            sender_name=self.sender_name,
            icon=self.icon,
            link=self.link,
        )


__all__ = ["Notification"]

"""Immutable payload units fanned out to live notification streams."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

from .recipient import RecipientKey

NOTIFICATION_CATEGORIES = ("info", "success", "warning", "error")


class EventKind(str, Enum):
    """Frame types written on a notification stream."""

    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"
    NEW_NOTIFICATION = "new_notification"


@dataclass(frozen=True)
class NotificationContent:
    """User-facing part of a notification.

    ``tag`` is the de-duplication identifier shared by the live stream and
    the push payload for the same logical notification. It is derived from
    ``id`` when the notification was persisted and random otherwise.
    """

    title: str
    message: str
    category: str = "info"
    id: int | None = None
    sender_id: int | None = None
    sender_name: str | None = None
    icon: str | None = None
    link: str | None = None
    tag: str = ""

    def __post_init__(self) -> None:
        if self.category not in NOTIFICATION_CATEGORIES:
            raise ValueError(f"Unsupported notification category {self.category!r}")
        if not self.tag:
            tag = (
                f"notification-{self.id}"
                if self.id is not None
                else f"notification-{uuid4().hex}"
            )
            object.__setattr__(self, "tag", tag)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON representation sent to browsers."""

        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "icon": self.icon,
            "link": self.link,
            "tag": self.tag,
        }


@dataclass(frozen=True)
class NotificationEvent:
    """One event delivered to stream listeners.

    Instances are never mutated after construction, so the same object is
    handed to every listener of a fan-out.
    """

    kind: EventKind
    recipient: RecipientKey | None = None
    notification: NotificationContent | None = None
    timestamp: int | None = None
    extra: tuple[tuple[str, Any], ...] = field(default=())

    @classmethod
    def connected(cls, recipient: RecipientKey) -> "NotificationEvent":
        return cls(
            kind=EventKind.CONNECTED,
            extra=(
                ("subjectType", recipient.subject_type.value),
                ("subjectId", recipient.subject_id),
            ),
        )

    @classmethod
    def heartbeat(cls, timestamp: int) -> "NotificationEvent":
        return cls(kind=EventKind.HEARTBEAT, timestamp=timestamp)

    @classmethod
    def new_notification(
        cls, recipient: RecipientKey, notification: NotificationContent
    ) -> "NotificationEvent":
        return cls(
            kind=EventKind.NEW_NOTIFICATION,
            recipient=recipient,
            notification=notification,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-serializable wire representation."""

        data: dict[str, Any] = {"type": self.kind.value}
        if self.recipient is not None:
            data["recipientType"] = self.recipient.subject_type.value
            data["recipientId"] = self.recipient.subject_id
        if self.notification is not None:
            data["notification"] = self.notification.to_dict()
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        data.update(self.extra)
        return data


__all__ = [
    "EventKind",
    "NOTIFICATION_CATEGORIES",
    "NotificationContent",
    "NotificationEvent",
]

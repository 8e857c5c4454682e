"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from notifyhub.domain.entities import RecipientKey, SubjectType

NotificationCategory = Literal["info", "success", "warning", "error"]


class RecipientRef(BaseModel):
    """Recipient addressed by a send request."""

    type: SubjectType
    id: int = Field(..., gt=0)

    def to_key(self) -> RecipientKey:
        return RecipientKey(subject_type=self.type, subject_id=self.id)


class NotificationCreateRequest(BaseModel):
    """Payload used to send a notification to one or more recipients."""

    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    category: NotificationCategory = "info"
    icon: str | None = Field(default=None, max_length=500)
    link: str | None = Field(default=None, max_length=500)
    sender_name: str | None = Field(default=None, max_length=120)
    recipients: list[RecipientRef] = Field(..., min_length=1)


class NotificationSendResponse(BaseModel):
    sent: int
    live_deliveries: int
    notification_ids: list[int]


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark notifications as read."""

    notification_ids: list[int] | None = None
    mark_all: bool = False

    def unique_ids(self) -> list[int]:
        """Return the identifiers without duplicates preserving order."""

        return list(dict.fromkeys(self.notification_ids or []))


class NotificationMarkReadResponse(BaseModel):
    updated: int


class NotificationRead(BaseModel):
    """Representation of a stored notification delivered to the client."""

    id: int
    recipient_type: SubjectType
    recipient_id: int
    title: str
    message: str
    category: str
    icon: str | None = None
    link: str | None = None
    sender_id: int | None = None
    sender_name: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class PaginationRead(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class NotificationPage(BaseModel):
    notifications: list[NotificationRead]
    pagination: PaginationRead
    unread_count: int


__all__ = [
    "NotificationCategory",
    "NotificationCreateRequest",
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationPage",
    "NotificationRead",
    "NotificationSendResponse",
    "PaginationRead",
    "RecipientRef",
]

"""Pydantic schemas exposed by the HTTP API."""

from .health import HealthRead
from .notification import (
    NotificationCreateRequest,
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationPage,
    NotificationRead,
    NotificationSendResponse,
    PaginationRead,
    RecipientRef,
)
from .push_subscription import (
    PushSubscribeRequest,
    PushSubscriptionRead,
    PushSubscriptionStatus,
    PushUnsubscribeRequest,
    PushUnsubscribeResponse,
    SubscriberRead,
)

__all__ = [
    "HealthRead",
    "NotificationCreateRequest",
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationPage",
    "NotificationRead",
    "NotificationSendResponse",
    "PaginationRead",
    "PushSubscribeRequest",
    "PushSubscriptionRead",
    "PushSubscriptionStatus",
    "PushUnsubscribeRequest",
    "PushUnsubscribeResponse",
    "RecipientRef",
    "SubscriberRead",
]

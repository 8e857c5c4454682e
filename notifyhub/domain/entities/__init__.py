"""Domain entities exposed by the application."""

from .notification import Notification
from .notification_event import (
    NOTIFICATION_CATEGORIES,
    EventKind,
    NotificationContent,
    NotificationEvent,
)
from .push_subscription import PushSubscription
from .recipient import InvalidRecipientError, RecipientKey, SubjectType

__all__ = [
    "EventKind",
    "InvalidRecipientError",
    "NOTIFICATION_CATEGORIES",
    "Notification",
    "NotificationContent",
    "NotificationEvent",
    "PushSubscription",
    "RecipientKey",
    "SubjectType",
]

"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .push_subscription import PushSubscriptionModel

__all__ = ["NotificationModel", "PushSubscriptionModel"]

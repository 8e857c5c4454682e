"""Repository implementations for infrastructure layer."""

from .notification_repository import NotificationRepository
from .push_subscription_repository import PushSubscriptionRepository, SubscriberSummary

__all__ = ["NotificationRepository", "PushSubscriptionRepository", "SubscriberSummary"]

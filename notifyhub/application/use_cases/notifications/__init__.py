"""Public helpers for emitting notifications."""

from .send_notification import (
    SendNotificationResult,
    push_and_prune,
    schedule_push,
    send_notification,
)

__all__ = [
    "SendNotificationResult",
    "push_and_prune",
    "schedule_push",
    "send_notification",
]

"""In-process publish/subscribe router for notification events."""

from __future__ import annotations

import logging
import threading

from notifyhub.domain.entities import (
    NotificationContent,
    NotificationEvent,
    RecipientKey,
    SubjectType,
)

from .registry import ListenerHandle, NotificationListener, SubscriptionRegistry

logger = logging.getLogger(__name__)


class Subscription:
    """Disposal handle returned by :meth:`NotificationBroadcaster.subscribe`."""

    def __init__(self, broadcaster: "NotificationBroadcaster", handle: ListenerHandle) -> None:
        self._broadcaster = broadcaster
        self.handle = handle
        self._closed = False
        self._lock = threading.Lock()

    @property
    def key(self) -> RecipientKey:
        return self.handle.key

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> bool:
        """Unregister the listener; later calls are no-ops returning ``False``."""

        with self._lock:
            if self._closed:
                return False
            self._closed = True
        return self._broadcaster.unsubscribe(self.handle)


class NotificationBroadcaster:
    """Route published notifications to listeners of the exact recipient key.

    Only listeners connected to this process are reached: running several
    replicas requires swapping this class for one backed by a shared message
    bus that keeps the same ``subscribe``/``publish`` contract.
    """

    def __init__(self, registry: SubscriptionRegistry | None = None) -> None:
        self._registry = registry or SubscriptionRegistry()

    def subscribe(self, key: RecipientKey, listener: NotificationListener) -> Subscription:
        handle = self._registry.register(key, listener)
        logger.info(
            "Listener subscribed for %s (listeners=%d)",
            key,
            self._registry.active_count_for(key),
        )
        return Subscription(self, handle)

    def unsubscribe(self, target: Subscription | ListenerHandle) -> bool:
        if isinstance(target, Subscription):
            return target.close()
        removed = self._registry.unregister(target)
        if removed:
            logger.info(
                "Listener unsubscribed for %s (listeners=%d)",
                target.key,
                self._registry.active_count_for(target.key),
            )
        return removed

    def publish(self, key: RecipientKey, notification: NotificationContent) -> int:
        """Deliver ``notification`` to every listener currently registered for ``key``.

        Returns the number of listeners that accepted the event. A failing
        listener is logged and skipped; it never reaches the publisher.
        """

        listeners = self._registry.listeners_for(key)
        logger.debug("Broadcasting to %s, listeners: %d", key, len(listeners))
        if not listeners:
            return 0

        event = NotificationEvent.new_notification(key, notification)
        delivered = 0
        for listener in listeners:
            try:
                listener.deliver(event)
            except Exception:
                logger.exception("Notification listener failed for %s", key)
            else:
                delivered += 1
        return delivered

    def publish_to(
        self,
        subject_type: str | SubjectType,
        subject_id: int,
        notification: NotificationContent,
    ) -> int:
        """Publish using raw identity parts; raises ``InvalidRecipientError``."""

        return self.publish(RecipientKey.of(subject_type, subject_id), notification)

    def is_subscribed(self, subscription: Subscription) -> bool:
        return self._registry.contains(subscription.handle)

    def active_count(self) -> int:
        return self._registry.active_count()

    def active_count_for(self, key: RecipientKey) -> int:
        return self._registry.active_count_for(key)


__all__ = ["NotificationBroadcaster", "Subscription"]

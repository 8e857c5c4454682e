"""In-memory mapping from recipients to their live listeners."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Dict, Protocol, Tuple

from notifyhub.domain.entities import NotificationEvent, RecipientKey


class NotificationListener(Protocol):
    """Receiver of events published for one recipient."""

    def deliver(self, event: NotificationEvent) -> None:
        """Handle ``event``; must not block on I/O."""


@dataclass(frozen=True)
class ListenerHandle:
    """Opaque token identifying one registration."""

    key: RecipientKey
    token: int
    listener: NotificationListener = field(compare=False, repr=False)


class SubscriptionRegistry:
    """Thread-safe ``RecipientKey -> listeners`` map.

    Publishers run both on the event loop and in the request threadpool, so
    every mutation and snapshot happens under a single lock. Keys are dropped
    as soon as their last listener leaves.
    """

    def __init__(self) -> None:
        self._listeners: Dict[RecipientKey, Dict[int, NotificationListener]] = {}
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)

    def register(self, key: RecipientKey, listener: NotificationListener) -> ListenerHandle:
        with self._lock:
            token = next(self._tokens)
            self._listeners.setdefault(key, {})[token] = listener
        return ListenerHandle(key=key, token=token, listener=listener)

    def unregister(self, handle: ListenerHandle) -> bool:
        """Remove ``handle``; returns ``False`` when it was already gone."""

        with self._lock:
            listeners = self._listeners.get(handle.key)
            if listeners is None or listeners.pop(handle.token, None) is None:
                return False
            if not listeners:
                del self._listeners[handle.key]
        return True

    def listeners_for(self, key: RecipientKey) -> Tuple[NotificationListener, ...]:
        """Return a snapshot of the listeners in registration order."""

        with self._lock:
            listeners = self._listeners.get(key)
            return tuple(listeners.values()) if listeners else ()

    def contains(self, handle: ListenerHandle) -> bool:
        with self._lock:
            return handle.token in self._listeners.get(handle.key, {})

    def keys(self) -> Tuple[RecipientKey, ...]:
        with self._lock:
            return tuple(self._listeners)

    def active_count(self) -> int:
        with self._lock:
            return sum(len(listeners) for listeners in self._listeners.values())

    def active_count_for(self, key: RecipientKey) -> int:
        with self._lock:
            return len(self._listeners.get(key, {}))


__all__ = ["ListenerHandle", "NotificationListener", "SubscriptionRegistry"]

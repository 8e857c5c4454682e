"""Realtime notification fan-out and delivery for the infrastructure layer."""

from .broadcaster import NotificationBroadcaster, Subscription
from .push import (
    PushDispatcher,
    PushDispatchReport,
    PushSendResult,
    PushTransport,
    SubscriptionStore,
    build_push_payload,
)
from .registry import ListenerHandle, NotificationListener, SubscriptionRegistry
from .stream import (
    CloseReason,
    EventStreamResponse,
    NotificationStreamSession,
    SessionState,
    SessionStateError,
    StreamSessionManager,
    format_sse_frame,
)
from .webpush import WebPushTransport

__all__ = [
    "CloseReason",
    "EventStreamResponse",
    "ListenerHandle",
    "NotificationBroadcaster",
    "NotificationListener",
    "NotificationStreamSession",
    "PushDispatchReport",
    "PushDispatcher",
    "PushSendResult",
    "PushTransport",
    "SessionState",
    "SessionStateError",
    "StreamSessionManager",
    "Subscription",
    "SubscriptionRegistry",
    "SubscriptionStore",
    "WebPushTransport",
    "build_push_payload",
    "format_sse_frame",
]

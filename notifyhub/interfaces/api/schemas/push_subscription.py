"""Pydantic models for browser push subscription management."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from notifyhub.domain.entities import SubjectType


class PushSubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscriptionPayload(BaseModel):
    """``PushSubscription.toJSON()`` as produced by the browser."""

    endpoint: str = Field(..., min_length=1, max_length=1000)
    keys: PushSubscriptionKeys


class PushSubscribeRequest(BaseModel):
    subscription: PushSubscriptionPayload


class PushUnsubscribeRequest(BaseModel):
    """Deactivate ``endpoint`` or, when omitted, every endpoint of the caller."""

    endpoint: str | None = None


class PushSubscriptionRead(BaseModel):
    id: int
    endpoint: str
    is_active: bool
    created_at: datetime | None = None


class PushSubscriptionStatus(BaseModel):
    subscribed: bool
    subscriptions: list[PushSubscriptionRead]
    vapid_public_key: str | None = None


class PushUnsubscribeResponse(BaseModel):
    deactivated: int


class SubscriberRead(BaseModel):
    type: SubjectType
    id: int
    subscription_count: int
    last_subscription: datetime | None = None


__all__ = [
    "PushSubscribeRequest",
    "PushSubscriptionKeys",
    "PushSubscriptionPayload",
    "PushSubscriptionRead",
    "PushSubscriptionStatus",
    "PushUnsubscribeRequest",
    "PushUnsubscribeResponse",
    "SubscriberRead",
]

"""Endpoints managing browser push subscriptions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from notifyhub.config import Settings
from notifyhub.domain.entities import PushSubscription, RecipientKey, SubjectType
from notifyhub.infrastructure.database import get_db
from notifyhub.infrastructure.repositories import PushSubscriptionRepository
from notifyhub.interfaces.api.dependencies import (
    get_app_settings,
    get_current_recipient,
    require_user,
)
from notifyhub.interfaces.api.schemas import (
    PushSubscribeRequest,
    PushSubscriptionRead,
    PushSubscriptionStatus,
    PushUnsubscribeRequest,
    PushUnsubscribeResponse,
    SubscriberRead,
)

router = APIRouter(prefix="/notifications", tags=["push subscriptions"])


def _subscription_to_schema(subscription: PushSubscription) -> PushSubscriptionRead:
    return PushSubscriptionRead(
        id=subscription.id or 0,
        endpoint=subscription.endpoint,
        is_active=subscription.is_active,
        created_at=subscription.created_at,
    )


def _status(
    subscriptions: list[PushSubscription], settings: Settings
) -> PushSubscriptionStatus:
    return PushSubscriptionStatus(
        subscribed=bool(subscriptions),
        subscriptions=[_subscription_to_schema(item) for item in subscriptions],
        vapid_public_key=settings.vapid_public_key,
    )


@router.get("/subscribe", response_model=PushSubscriptionStatus)
def get_subscription_status(
    db: Session = Depends(get_db),
    recipient: RecipientKey = Depends(get_current_recipient),
    settings: Settings = Depends(get_app_settings),
) -> PushSubscriptionStatus:
    """Return the caller's active push endpoints and the VAPID public key."""

    return _status(list(PushSubscriptionRepository(db).list_for(recipient)), settings)


@router.post(
    "/subscribe",
    response_model=PushSubscriptionStatus,
    status_code=status.HTTP_201_CREATED,
)
def subscribe(
    payload: PushSubscribeRequest,
    request: Request,
    db: Session = Depends(get_db),
    recipient: RecipientKey = Depends(get_current_recipient),
    settings: Settings = Depends(get_app_settings),
) -> PushSubscriptionStatus:
    """Register or refresh the push endpoint of the caller's browser."""

    repository = PushSubscriptionRepository(db)
    repository.upsert(
        recipient,
        endpoint=payload.subscription.endpoint,
        keys=payload.subscription.keys.model_dump(),
        user_agent=request.headers.get("user-agent"),
    )
    return _status(list(repository.list_for(recipient)), settings)


@router.delete("/subscribe", response_model=PushUnsubscribeResponse)
def unsubscribe(
    payload: PushUnsubscribeRequest | None = None,
    db: Session = Depends(get_db),
    recipient: RecipientKey = Depends(get_current_recipient),
) -> PushUnsubscribeResponse:
    """Deactivate one endpoint of the caller, or all of them."""

    repository = PushSubscriptionRepository(db)
    if payload is not None and payload.endpoint:
        deactivated = repository.deactivate(payload.endpoint, recipient=recipient)
    else:
        deactivated = repository.deactivate_all_for(recipient)
    return PushUnsubscribeResponse(deactivated=deactivated)


@router.get("/subscribers", response_model=list[SubscriberRead])
def list_subscribers(
    subject_type: SubjectType | None = Query(None, alias="type"),
    db: Session = Depends(get_db),
    _: RecipientKey = Depends(require_user),
) -> list[SubscriberRead]:
    """List recipients that hold at least one active push subscription."""

    return [
        SubscriberRead(
            type=summary.recipient.subject_type,
            id=summary.recipient.subject_id,
            subscription_count=summary.subscription_count,
            last_subscription=summary.last_subscription,
        )
        for summary in PushSubscriptionRepository(db).list_subscribers(subject_type)
    ]

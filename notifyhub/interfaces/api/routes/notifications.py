"""Endpoints and event stream for realtime notifications."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from notifyhub.application.use_cases.notifications import send_notification
from notifyhub.domain.entities import Notification, RecipientKey
from notifyhub.infrastructure.database import get_db
from notifyhub.infrastructure.notifications import (
    EventStreamResponse,
    NotificationBroadcaster,
    PushDispatcher,
    StreamSessionManager,
)
from notifyhub.infrastructure.repositories import NotificationRepository
from notifyhub.interfaces.api.dependencies import (
    get_broadcaster,
    get_current_recipient,
    get_push_dispatcher,
    get_stream_manager,
    require_user,
)
from notifyhub.interfaces.api.schemas import (
    NotificationCreateRequest,
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationPage,
    NotificationRead,
    NotificationSendResponse,
    PaginationRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id or 0,
        recipient_type=notification.recipient.subject_type,
        recipient_id=notification.recipient.subject_id,
        title=notification.title,
        message=notification.message,
        category=notification.category,
        icon=notification.icon,
        link=notification.link,
        sender_id=notification.sender_id,
        sender_name=notification.sender_name,
        is_read=notification.is_read,
        read_at=notification.read_at,
        created_at=notification.created_at,
    )


@router.get("/stream")
async def notification_stream(
    recipient: RecipientKey = Depends(get_current_recipient),
    manager: StreamSessionManager = Depends(get_stream_manager),
) -> EventStreamResponse:
    """Open a server-sent event stream for the authenticated recipient."""

    session = manager.open_session(recipient)
    return EventStreamResponse(session)


@router.get("/", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    recipient: RecipientKey = Depends(get_current_recipient),
) -> NotificationPage:
    """Return a page of notifications for the authenticated recipient."""

    repository = NotificationRepository(db)
    notifications = repository.list_for_recipient(
        recipient, page=page, limit=limit, unread_only=unread_only
    )
    total = repository.count_for_recipient(recipient, unread_only=unread_only)
    return NotificationPage(
        notifications=[_notification_to_schema(item) for item in notifications],
        pagination=PaginationRead(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
        unread_count=repository.count_unread(recipient),
    )


@router.post(
    "/",
    response_model=NotificationSendResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_notification(
    payload: NotificationCreateRequest,
    db: Session = Depends(get_db),
    sender: RecipientKey = Depends(require_user),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    dispatcher: PushDispatcher = Depends(get_push_dispatcher),
) -> NotificationSendResponse:
    """Store and deliver a notification to every listed recipient."""

    result = send_notification(
        db,
        recipients=[recipient.to_key() for recipient in payload.recipients],
        title=payload.title,
        message=payload.message,
        category=payload.category,
        icon=payload.icon,
        link=payload.link,
        sender_id=sender.subject_id,
        sender_name=payload.sender_name,
        broadcaster=broadcaster,
        dispatcher=dispatcher,
    )
    return NotificationSendResponse(
        sent=len(result.notifications),
        live_deliveries=result.live_deliveries,
        notification_ids=[item.id for item in result.notifications if item.id is not None],
    )


@router.patch("/", response_model=NotificationMarkReadResponse)
def mark_notifications_read(
    payload: NotificationMarkReadRequest,
    db: Session = Depends(get_db),
    recipient: RecipientKey = Depends(get_current_recipient),
) -> NotificationMarkReadResponse:
    """Mark the given notifications, or all of them, as read."""

    repository = NotificationRepository(db)
    if payload.mark_all:
        updated = repository.mark_all_as_read(recipient)
    elif payload.notification_ids:
        updated = repository.mark_as_read(payload.unique_ids(), recipient=recipient)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="notification_ids or mark_all is required",
        )
    return NotificationMarkReadResponse(updated=updated)

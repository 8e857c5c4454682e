"""Persist a notification and deliver it through both transports."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Iterable

from anyio import from_thread, to_thread
from sqlalchemy.orm import Session

from notifyhub.domain.entities import Notification, NotificationContent, RecipientKey
from notifyhub.infrastructure.database import SessionLocal
from notifyhub.infrastructure.notifications import NotificationBroadcaster, PushDispatcher
from notifyhub.infrastructure.repositories import (
    NotificationRepository,
    PushSubscriptionRepository,
)

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


@dataclass(frozen=True)
class SendNotificationResult:
    notifications: list[Notification]
    live_deliveries: int


def send_notification(
    session: Session,
    *,
    recipients: Iterable[RecipientKey],
    title: str,
    message: str,
    broadcaster: NotificationBroadcaster,
    dispatcher: PushDispatcher | None = None,
    category: str = "info",
    icon: str | None = None,
    link: str | None = None,
    sender_id: int | None = None,
    sender_name: str | None = None,
) -> SendNotificationResult:
    """Store one notification per recipient, publish it live, then push it.

    Live delivery finishes before this function returns; push delivery is
    scheduled in the background so a slow push service never holds up
    streams or the caller.
    """

    unique_recipients = list(dict.fromkeys(recipients))
    if not unique_recipients:
        raise ValueError("No recipients provided")

    saved = NotificationRepository(session).create_many(
        Notification(
            id=None,
            recipient=recipient,
            title=title,
            message=message,
            category=category,
            icon=icon,
            link=link,
            sender_id=sender_id,
            sender_name=sender_name,
        )
        for recipient in unique_recipients
    )

    live_deliveries = 0
    for notification in saved:
        content = notification.to_content()
        live_deliveries += broadcaster.publish(notification.recipient, content)
        if dispatcher is not None:
            schedule_push(dispatcher, notification.recipient, content)

    logger.info(
        "Sent notification to %d recipients (live deliveries=%d)",
        len(saved),
        live_deliveries,
    )
    return SendNotificationResult(notifications=saved, live_deliveries=live_deliveries)


async def push_and_prune(
    dispatcher: PushDispatcher, key: RecipientKey, content: NotificationContent
) -> None:
    """Run a push dispatch and deactivate the endpoints reported as gone."""

    try:
        report = await dispatcher.dispatch(key, content)
        if report.expired:
            await to_thread.run_sync(deactivate_endpoints, report.expired)
    except Exception:
        logger.exception("Background push delivery failed for %s", key)


def deactivate_endpoints(endpoints: list[str]) -> int:
    with SessionLocal() as session:
        removed = PushSubscriptionRepository(session).deactivate_endpoints(endpoints)
    logger.info("Deactivated %d expired push subscriptions", removed)
    return removed


def schedule_push(
    dispatcher: PushDispatcher, key: RecipientKey, content: NotificationContent
) -> None:
    """Start :func:`push_and_prune` without waiting for it.

    Inside an event loop, or a worker thread of one, the dispatch becomes a
    task on that loop. Callers with no loop at all get a dedicated thread
    running its own loop until the dispatch finishes.
    """

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        try:
            from_thread.run_sync(_spawn, dispatcher, key, content)
        except RuntimeError:
            threading.Thread(
                target=asyncio.run,
                args=(push_and_prune(dispatcher, key, content),),
                name="push-dispatch",
            ).start()
    else:
        _spawn(dispatcher, key, content)


def _spawn(dispatcher: PushDispatcher, key: RecipientKey, content: NotificationContent) -> None:
    task = asyncio.get_running_loop().create_task(push_and_prune(dispatcher, key, content))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


__all__ = [
    "SendNotificationResult",
    "deactivate_endpoints",
    "push_and_prune",
    "schedule_push",
    "send_notification",
]

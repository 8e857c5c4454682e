"""Deliver notifications to durable push endpoints of a recipient."""

from __future__ import annotations

import json
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

import anyio

from notifyhub.domain.entities import NotificationContent, PushSubscription, RecipientKey

logger = logging.getLogger(__name__)

EXPIRED_STATUS_CODES = frozenset({404, 410})
DEFAULT_ICON = "/icon-192x192.png"
DEFAULT_BADGE = "/badge-72x72.png"


class SubscriptionStore(Protocol):
    """Read side of the durable push subscription storage."""

    def active_subscriptions_for(
        self, subject_type: str, subject_id: int
    ) -> Sequence[PushSubscription]:
        ...


class PushTransport(Protocol):
    """Client of the external push delivery service."""

    def send(self, subscription: PushSubscription, payload: str) -> "PushSendResult":
        ...


SubscriptionStoreFactory = Callable[[], AbstractContextManager[SubscriptionStore]]


@dataclass(frozen=True)
class PushSendResult:
    """Outcome reported by a :class:`PushTransport` for one endpoint."""

    success: bool
    status_code: int | None = None
    reason: str | None = None

    @property
    def expired(self) -> bool:
        return self.status_code in EXPIRED_STATUS_CODES


@dataclass
class PushDispatchReport:
    """Per-endpoint outcome of one :meth:`PushDispatcher.dispatch` call.

    ``expired`` endpoints are permanently gone; pruning them is up to the
    owner of the subscription store.
    """

    recipient: RecipientKey
    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed) + len(self.expired)


def build_push_payload(
    notification: NotificationContent,
    *,
    default_url: str = "/panel",
    icon: str = DEFAULT_ICON,
    badge: str = DEFAULT_BADGE,
) -> dict[str, Any]:
    """Return the payload rendered by the browser background worker."""

    return {
        "title": notification.title,
        "body": notification.message,
        "icon": notification.icon or icon,
        "badge": badge,
        "tag": notification.tag,
        "data": {
            "url": notification.link or default_url,
            "id": notification.id,
            "category": notification.category,
        },
    }


class PushDispatcher:
    """Send a notification to every active push endpoint of a recipient.

    Runs independently of live streams, so a recipient with an open tab may
    get the same notification twice; clients de-duplicate on ``tag``.
    Each endpoint is attempted concurrently under its own timeout and a
    failing endpoint never affects the others.
    """

    def __init__(
        self,
        store_factory: SubscriptionStoreFactory,
        transport: PushTransport,
        *,
        timeout: float = 10.0,
        default_url: str = "/panel",
        icon: str = DEFAULT_ICON,
        badge: str = DEFAULT_BADGE,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._store_factory = store_factory
        self._transport = transport
        self._timeout = timeout
        self._default_url = default_url
        self._icon = icon
        self._badge = badge

    async def dispatch(
        self, key: RecipientKey, notification: NotificationContent
    ) -> PushDispatchReport:
        report = PushDispatchReport(recipient=key)
        try:
            targets = await anyio.to_thread.run_sync(self._load_targets, key)
        except Exception:
            logger.exception("Could not load push subscriptions for %s", key)
            return report

        if not targets:
            logger.debug("No active push subscriptions for %s", key)
            return report

        payload = json.dumps(
            build_push_payload(
                notification,
                default_url=self._default_url,
                icon=self._icon,
                badge=self._badge,
            )
        )
        async with anyio.create_task_group() as task_group:
            for target in targets:
                task_group.start_soon(self._send_one, target, payload, report)

        logger.info(
            "Push dispatch for %s: delivered=%d failed=%d expired=%d",
            key,
            len(report.delivered),
            len(report.failed),
            len(report.expired),
        )
        return report

    def _load_targets(self, key: RecipientKey) -> list[PushSubscription]:
        with self._store_factory() as store:
            return list(
                store.active_subscriptions_for(key.subject_type.value, key.subject_id)
            )

    async def _send_one(
        self, target: PushSubscription, payload: str, report: PushDispatchReport
    ) -> None:
        try:
            with anyio.fail_after(self._timeout):
                result = await anyio.to_thread.run_sync(
                    self._transport.send, target, payload, abandon_on_cancel=True
                )
        except TimeoutError:
            logger.warning(
                "Push delivery to %s timed out after %.1fs", target.endpoint, self._timeout
            )
            report.failed.append(target.endpoint)
            return
        except Exception:
            logger.exception("Push delivery to %s raised", target.endpoint)
            report.failed.append(target.endpoint)
            return

        if result.success:
            report.delivered.append(target.endpoint)
        elif result.expired:
            logger.warning(
                "Push endpoint %s is gone (status %s)", target.endpoint, result.status_code
            )
            report.expired.append(target.endpoint)
        else:
            logger.error(
                "Push delivery to %s failed with status %s: %s",
                target.endpoint,
                result.status_code,
                result.reason,
            )
            report.failed.append(target.endpoint)


__all__ = [
    "EXPIRED_STATUS_CODES",
    "PushDispatchReport",
    "PushDispatcher",
    "PushSendResult",
    "PushTransport",
    "SubscriptionStore",
    "SubscriptionStoreFactory",
    "build_push_payload",
]

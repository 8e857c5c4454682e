"""Web Push (VAPID) implementation of the push transport."""

from __future__ import annotations

import logging

from pywebpush import WebPushException, webpush

from notifyhub.config import Settings
from notifyhub.domain.entities import PushSubscription

from .push import PushSendResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class WebPushTransport:
    """Send payloads to browser push services signed with the VAPID key."""

    def __init__(
        self,
        *,
        vapid_private_key: str | None,
        vapid_subject: str,
        timeout: float = 10.0,
        ttl: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._private_key = vapid_private_key
        self._subject = vapid_subject
        self._timeout = timeout
        self._ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebPushTransport":
        return cls(
            vapid_private_key=settings.vapid_private_key,
            vapid_subject=settings.vapid_subject,
            timeout=settings.push_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._private_key)

    def send(self, subscription: PushSubscription, payload: str) -> PushSendResult:
        if not self.enabled:
            logger.info("VAPID keys not configured; skipping push to %s", subscription.endpoint)
            return PushSendResult(success=False, reason="push disabled")

        try:
            response = webpush(
                subscription_info=subscription.subscription_info(),
                data=payload,
                vapid_private_key=self._private_key,
                # webpush() adds aud/exp to the claims it receives
                vapid_claims={"sub": self._subject},
                timeout=self._timeout,
                ttl=self._ttl,
            )
        except WebPushException as exc:
            status_code = getattr(exc.response, "status_code", None)
            return PushSendResult(success=False, status_code=status_code, reason=str(exc))

        status_code = getattr(response, "status_code", None)
        if isinstance(status_code, int) and not 200 <= status_code < 300:
            return PushSendResult(
                success=False,
                status_code=status_code,
                reason=getattr(response, "text", None),
            )
        return PushSendResult(success=True, status_code=status_code)


__all__ = ["WebPushTransport"]

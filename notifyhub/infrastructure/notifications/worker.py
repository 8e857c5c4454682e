"""Client-side delivery agent for push payloads.

The agent runs outside the server process (a browser service worker or a
desktop helper) and only ever sees push payloads, never the live stream.
Its host environment is reached through the small protocols below, which
mirror the service worker ``registration`` and ``clients`` objects.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Notification Hub"
FALLBACK_TITLE = "Notification"
DEFAULT_BODY = "You have a new notification"
DEFAULT_ICON = "/icon-192x192.png"
DEFAULT_BADGE = "/badge-72x72.png"
DEFAULT_TAG = "notification"
DEFAULT_URL = "/panel"
VIBRATE_PATTERN = (200, 100, 200)
NEW_NOTIFICATION_MESSAGE = "NEW_NOTIFICATION"


class WindowClient(Protocol):
    url: str

    def focus(self) -> Awaitable[Any]:
        ...

    def post_message(self, message: dict[str, Any]) -> Any:
        ...


class WindowClients(Protocol):
    def match_all(self, *, include_uncontrolled: bool = True) -> Awaitable[Sequence[WindowClient]]:
        ...

    def open_window(self, url: str) -> Awaitable[Any]:
        ...

    def claim(self) -> Awaitable[None]:
        ...


class WorkerRegistration(Protocol):
    def show_notification(self, title: str, options: dict[str, Any]) -> Awaitable[None]:
        ...

    def skip_waiting(self) -> Awaitable[None]:
        ...


class DisplayedNotification(Protocol):
    data: dict[str, Any] | None

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class ClickOutcome:
    """What :meth:`BackgroundWorker.on_notification_click` did."""

    url: str
    focused: bool
    opened: bool


def parse_push_payload(data: bytes | str | None) -> dict[str, Any]:
    """Decode a push payload, degrading to a default notification.

    ``None`` (a push without data) yields ``{}``. Anything that is not a
    JSON object becomes ``{"title": "Notification", "body": <text>}`` where
    the text is whatever could be decoded from the payload.
    """

    if data is None:
        return {}

    text: str | None
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            text = data.decode("utf-8", errors="ignore").strip() or None
            return {"title": FALLBACK_TITLE, "body": text or DEFAULT_BODY}
    else:
        text = data

    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    body = text.strip() if isinstance(text, str) else ""
    return {"title": FALLBACK_TITLE, "body": body or DEFAULT_BODY}


def build_notification_options(
    payload: dict[str, Any], *, app_name: str = DEFAULT_TITLE
) -> tuple[str, dict[str, Any]]:
    """Return the ``(title, options)`` pair for ``show_notification``."""

    data = payload.get("data")
    options = {
        "body": payload.get("body") or DEFAULT_BODY,
        "icon": payload.get("icon") or DEFAULT_ICON,
        "badge": payload.get("badge") or DEFAULT_BADGE,
        "tag": payload.get("tag") or DEFAULT_TAG,
        "data": data if isinstance(data, dict) else {},
        "requireInteraction": False,
        "vibrate": list(VIBRATE_PATTERN),
    }
    return payload.get("title") or app_name, options


class BackgroundWorker:
    """Render push payloads and keep open application windows in sync."""

    def __init__(
        self,
        registration: WorkerRegistration,
        clients: WindowClients,
        *,
        app_name: str = DEFAULT_TITLE,
        default_url: str = DEFAULT_URL,
    ) -> None:
        self._registration = registration
        self._clients = clients
        self._app_name = app_name
        self._default_url = default_url

    async def on_install(self) -> None:
        await self._registration.skip_waiting()

    async def on_activate(self) -> None:
        await self._clients.claim()

    async def on_push(self, data: bytes | str | None) -> list[BaseException]:
        """Show the notification and notify windows; both are always attempted.

        Returns the errors raised by either branch after logging them.
        """

        payload = parse_push_payload(data)
        title, options = build_notification_options(payload, app_name=self._app_name)
        message = {
            "type": NEW_NOTIFICATION_MESSAGE,
            "title": title,
            "body": options["body"],
            "data": payload,
        }
        results = await asyncio.gather(
            self._registration.show_notification(title, options),
            self._broadcast_to_windows(message),
            return_exceptions=True,
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        for error in errors:
            logger.error("Push handling step failed: %r", error)
        return errors

    async def on_notification_click(self, notification: DisplayedNotification) -> ClickOutcome:
        """Focus a window already showing the target URL, else open one."""

        notification.close()
        data = notification.data or {}
        url = data.get("url") or self._default_url

        for client in await self._clients.match_all(include_uncontrolled=True):
            if client.url == url:
                await client.focus()
                return ClickOutcome(url=url, focused=True, opened=False)

        await self._clients.open_window(url)
        return ClickOutcome(url=url, focused=False, opened=True)

    async def _broadcast_to_windows(self, message: dict[str, Any]) -> int:
        windows = await self._clients.match_all(include_uncontrolled=True)
        posted = 0
        for window in windows:
            try:
                window.post_message(dict(message))
            except Exception:
                logger.exception("Could not post notification message to %s", window.url)
            else:
                posted += 1
        return posted


__all__ = [
    "BackgroundWorker",
    "ClickOutcome",
    "DisplayedNotification",
    "WindowClient",
    "WindowClients",
    "WorkerRegistration",
    "build_notification_options",
    "parse_push_payload",
]

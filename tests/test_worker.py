"""Tests for the push-side background worker."""

from __future__ import annotations

import asyncio
import json

import pytest

from notifyhub.infrastructure.notifications.worker import (
    BackgroundWorker,
    build_notification_options,
    parse_push_payload,
)


class _Window:
    def __init__(self, url: str, *, broken: bool = False) -> None:
        self.url = url
        self.broken = broken
        self.messages = []
        self.focused = False

    async def focus(self):
        self.focused = True
        return self

    def post_message(self, message) -> None:
        if self.broken:
            raise RuntimeError("window is gone")
        self.messages.append(message)


class _Clients:
    def __init__(self, windows=()) -> None:
        self.windows = list(windows)
        self.opened = []
        self.claimed = False

    async def match_all(self, *, include_uncontrolled: bool = True):
        return list(self.windows)

    async def open_window(self, url: str):
        self.opened.append(url)
        return _Window(url)

    async def claim(self) -> None:
        self.claimed = True


class _Registration:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.shown = []
        self.skipped_waiting = False

    async def show_notification(self, title, options) -> None:
        if self.fail:
            raise RuntimeError("permission denied")
        self.shown.append((title, options))

    async def skip_waiting(self) -> None:
        self.skipped_waiting = True


class _DisplayedNotification:
    def __init__(self, data) -> None:
        self.data = data
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (None, {}),
        (b'{"title": "Order shipped", "body": "#88"}', {"title": "Order shipped", "body": "#88"}),
        ("plain text alert", {"title": "Notification", "body": "plain text alert"}),
        (b"[1, 2, 3]", {"title": "Notification", "body": "[1, 2, 3]"}),
        (b"   ", {"title": "Notification", "body": "You have a new notification"}),
        (b"\xff\xfe", {"title": "Notification", "body": "You have a new notification"}),
    ],
)
def test_parse_push_payload_degrades_gracefully(data, expected) -> None:
    assert parse_push_payload(data) == expected


def test_notification_options_fall_back_to_defaults() -> None:
    title, options = build_notification_options({}, app_name="Notification Hub")

    assert title == "Notification Hub"
    assert options == {
        "body": "You have a new notification",
        "icon": "/icon-192x192.png",
        "badge": "/badge-72x72.png",
        "tag": "notification",
        "data": {},
        "requireInteraction": False,
        "vibrate": [200, 100, 200],
    }


def test_push_shows_notification_and_notifies_windows() -> None:
    registration = _Registration()
    window = _Window("/panel")
    worker = BackgroundWorker(registration, _Clients([window]))
    payload = {
        "title": "Order shipped",
        "body": "#88 left the warehouse",
        "tag": "notification-88",
        "data": {"url": "/orders/88", "id": 88},
    }

    errors = asyncio.run(worker.on_push(json.dumps(payload).encode("utf-8")))

    assert errors == []
    title, options = registration.shown[0]
    assert title == "Order shipped"
    assert options["tag"] == "notification-88"
    assert options["data"] == {"url": "/orders/88", "id": 88}
    assert window.messages == [
        {
            "type": "NEW_NOTIFICATION",
            "title": "Order shipped",
            "body": "#88 left the warehouse",
            "data": payload,
        }
    ]


def test_window_broadcast_runs_even_when_display_fails(caplog) -> None:
    healthy, broken = _Window("/panel"), _Window("/other", broken=True)
    worker = BackgroundWorker(_Registration(fail=True), _Clients([broken, healthy]))

    errors = asyncio.run(worker.on_push(b'{"title": "Hi"}'))

    assert len(errors) == 1
    assert isinstance(errors[0], RuntimeError)
    assert healthy.messages[0]["title"] == "Hi"
    assert "Push handling step failed" in caplog.text
    assert "Could not post notification message to /other" in caplog.text


def test_click_focuses_existing_window() -> None:
    target = _Window("/orders/88")
    clients = _Clients([_Window("/panel"), target])
    worker = BackgroundWorker(_Registration(), clients)
    notification = _DisplayedNotification({"url": "/orders/88"})

    outcome = asyncio.run(worker.on_notification_click(notification))

    assert notification.closed
    assert outcome.focused and not outcome.opened
    assert target.focused
    assert clients.opened == []


def test_click_opens_default_url_when_no_window_matches() -> None:
    clients = _Clients([_Window("/orders/1")])
    worker = BackgroundWorker(_Registration(), clients, default_url="/panel")

    outcome = asyncio.run(worker.on_notification_click(_DisplayedNotification(None)))

    assert outcome.url == "/panel"
    assert outcome.opened and not outcome.focused
    assert clients.opened == ["/panel"]


def test_lifecycle_hooks_take_control_immediately() -> None:
    registration, clients = _Registration(), _Clients()
    worker = BackgroundWorker(registration, clients)

    asyncio.run(worker.on_install())
    asyncio.run(worker.on_activate())

    assert registration.skipped_waiting
    assert clients.claimed

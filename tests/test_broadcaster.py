"""Tests for the in-process notification broadcaster."""

from __future__ import annotations

import logging

import pytest

from notifyhub.domain.entities import (
    EventKind,
    InvalidRecipientError,
    NotificationContent,
    RecipientKey,
)
from notifyhub.infrastructure.notifications import NotificationBroadcaster


class _Listener:
    def __init__(self) -> None:
        self.events = []

    def deliver(self, event) -> None:
        self.events.append(event)


class _FailingListener:
    def deliver(self, event) -> None:
        raise RuntimeError("socket closed")


def _content(title: str = "Invoice due") -> NotificationContent:
    return NotificationContent(title=title, message="#1042 is due tomorrow")


def test_publish_without_listeners_is_a_no_op(caplog) -> None:
    broadcaster = NotificationBroadcaster()

    with caplog.at_level(logging.DEBUG, logger="notifyhub"):
        delivered = broadcaster.publish(RecipientKey.of("user", 7), _content())

    assert delivered == 0
    assert "listeners: 0" in caplog.text


def test_publish_reaches_only_listeners_of_the_exact_key() -> None:
    broadcaster = NotificationBroadcaster()
    user_key = RecipientKey.of("user", 7)
    tab_a, tab_b, customer_tab = _Listener(), _Listener(), _Listener()
    broadcaster.subscribe(user_key, tab_a)
    broadcaster.subscribe(user_key, tab_b)
    broadcaster.subscribe(RecipientKey.of("customer", 7), customer_tab)

    delivered = broadcaster.publish(user_key, _content())

    assert delivered == 2
    assert tab_a.events == tab_b.events
    assert tab_a.events[0] is tab_b.events[0]
    event = tab_a.events[0]
    assert event.kind is EventKind.NEW_NOTIFICATION
    assert event.to_dict()["recipientType"] == "user"
    assert event.to_dict()["recipientId"] == 7
    assert customer_tab.events == []


def test_publish_preserves_order_per_listener() -> None:
    broadcaster = NotificationBroadcaster()
    key = RecipientKey.of("customer", 55)
    listener = _Listener()
    broadcaster.subscribe(key, listener)

    broadcaster.publish(key, _content("first"))
    broadcaster.publish(key, _content("second"))

    assert [event.notification.title for event in listener.events] == ["first", "second"]


def test_failing_listener_does_not_affect_others(caplog) -> None:
    broadcaster = NotificationBroadcaster()
    key = RecipientKey.of("user", 7)
    healthy = _Listener()
    broadcaster.subscribe(key, _FailingListener())
    broadcaster.subscribe(key, healthy)

    with caplog.at_level(logging.ERROR, logger="notifyhub"):
        delivered = broadcaster.publish(key, _content())

    assert delivered == 1
    assert len(healthy.events) == 1
    assert "Notification listener failed for user:7" in caplog.text


def test_subscription_close_is_idempotent() -> None:
    broadcaster = NotificationBroadcaster()
    key = RecipientKey.of("user", 7)
    listener = _Listener()
    subscription = broadcaster.subscribe(key, listener)

    assert broadcaster.is_subscribed(subscription)
    assert subscription.close() is True
    assert subscription.close() is False
    assert broadcaster.unsubscribe(subscription) is False
    assert subscription.closed
    assert broadcaster.active_count_for(key) == 0

    broadcaster.publish(key, _content())
    assert listener.events == []


def test_publish_to_validates_identity() -> None:
    broadcaster = NotificationBroadcaster()
    listener = _Listener()
    broadcaster.subscribe(RecipientKey.of("customer", 55), listener)

    assert broadcaster.publish_to("customer", 55, _content()) == 1
    with pytest.raises(InvalidRecipientError):
        broadcaster.publish_to("vendor", 55, _content())
    assert len(listener.events) == 1


def test_content_tag_follows_persisted_id() -> None:
    persisted = NotificationContent(title="t", message="m", id=12)
    transient = NotificationContent(title="t", message="m")

    assert persisted.tag == "notification-12"
    assert transient.tag.startswith("notification-")
    assert transient.tag != NotificationContent(title="t", message="m").tag
    with pytest.raises(ValueError):
        NotificationContent(title="t", message="m", category="urgent")

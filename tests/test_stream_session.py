"""Tests for server-sent event sessions."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
import threading

import pytest

from notifyhub.domain.entities import NotificationContent, RecipientKey
from notifyhub.infrastructure.notifications import (
    CloseReason,
    EventStreamResponse,
    NotificationBroadcaster,
    NotificationStreamSession,
    SessionState,
    SessionStateError,
    StreamSessionManager,
    format_sse_frame,
)


def _decode(frame: bytes) -> dict:
    assert frame.startswith(b"data: ")
    assert frame.endswith(b"\n\n")
    return json.loads(frame[len(b"data: ") : -2])


async def _next_frame(frames, timeout: float = 2.0) -> dict:
    return _decode(await asyncio.wait_for(frames.__anext__(), timeout))


def _content(title: str = "Invoice due") -> NotificationContent:
    return NotificationContent(title=title, message="#1042 is due tomorrow", id=1)


def test_format_sse_frame_keeps_unicode() -> None:
    assert format_sse_frame({"title": "Café"}) == 'data: {"title": "Café"}\n\n'.encode("utf-8")


def test_session_streams_connected_frame_then_notifications() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        key = RecipientKey.of("user", 7)
        session = NotificationStreamSession(key, broadcaster)
        session.open()
        frames = session.frames()

        assert await _next_frame(frames) == {
            "type": "connected",
            "subjectType": "user",
            "subjectId": 7,
        }

        assert broadcaster.publish(key, _content()) == 1
        event = await _next_frame(frames)
        assert event["type"] == "new_notification"
        assert event["recipientType"] == "user"
        assert event["recipientId"] == 7
        assert event["notification"]["title"] == "Invoice due"
        assert event["notification"]["tag"] == "notification-1"

        await frames.aclose()
        assert session.state is SessionState.CLOSED
        assert session.closed_reason is CloseReason.DISCONNECTED
        assert broadcaster.active_count_for(key) == 0

    asyncio.run(scenario())


def test_heartbeat_frames_stop_after_close() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        session = NotificationStreamSession(
            RecipientKey.of("customer", 55), broadcaster, heartbeat_interval=0.1
        )
        session.open()
        frames = session.frames()

        assert (await _next_frame(frames))["type"] == "connected"
        first = await _next_frame(frames)
        second = await _next_frame(frames)
        assert first["type"] == second["type"] == "heartbeat"
        assert isinstance(first["timestamp"], int)
        assert 80 <= second["timestamp"] - first["timestamp"] <= 1000

        assert session.close() is True
        with pytest.raises(StopAsyncIteration):
            await frames.__anext__()

        await asyncio.sleep(0.2)
        pending = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        assert pending == []

    asyncio.run(scenario())


def test_deliveries_from_other_threads_keep_order() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        key = RecipientKey.of("user", 7)
        session = NotificationStreamSession(key, broadcaster)
        session.open()
        frames = session.frames()
        await _next_frame(frames)

        def publish_both() -> None:
            broadcaster.publish(key, _content("E1"))
            broadcaster.publish(key, _content("E2"))

        await asyncio.to_thread(publish_both)

        titles = [(await _next_frame(frames))["notification"]["title"] for _ in range(2)]
        assert titles == ["E1", "E2"]
        session.close()

    asyncio.run(scenario())


def test_concurrent_close_runs_cleanup_once() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        key = RecipientKey.of("user", 7)
        closed_sessions = []
        session = NotificationStreamSession(
            key, broadcaster, on_close=closed_sessions.append
        )
        session.open()
        barrier = threading.Barrier(2)
        results = []

        def closer() -> None:
            barrier.wait()
            results.append(session.close(CloseReason.SHUTDOWN))

        threads = [threading.Thread(target=closer) for _ in range(2)]
        for thread in threads:
            thread.start()
        await asyncio.to_thread(lambda: [thread.join() for thread in threads])
        await asyncio.sleep(0.05)

        assert sorted(results) == [False, True]
        assert closed_sessions == [session]
        assert session.state is SessionState.CLOSED
        assert broadcaster.active_count_for(key) == 0
        assert session.close() is False

    asyncio.run(scenario())


def test_open_twice_is_rejected() -> None:
    async def scenario() -> None:
        session = NotificationStreamSession(RecipientKey.of("user", 7), NotificationBroadcaster())
        session.open()
        with pytest.raises(SessionStateError):
            session.open()
        session.close()
        with pytest.raises(SessionStateError):
            session.open()

    asyncio.run(scenario())


def test_cleanup_continues_when_a_step_fails(caplog) -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        key = RecipientKey.of("user", 7)

        def broken_callback(_session) -> None:
            raise RuntimeError("boom")

        session = NotificationStreamSession(key, broadcaster, on_close=broken_callback)
        session.open()

        assert session.close() is True
        assert broadcaster.active_count_for(key) == 0
        assert "close callback" in caplog.text

    asyncio.run(scenario())


def test_slow_consumer_is_disconnected() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        key = RecipientKey.of("user", 7)
        session = NotificationStreamSession(key, broadcaster, queue_size=2)
        session.open()

        broadcaster.publish(key, _content("E1"))
        broadcaster.publish(key, _content("E2"))

        assert session.state is SessionState.CLOSED
        assert session.closed_reason is CloseReason.SLOW_CONSUMER
        assert broadcaster.active_count_for(key) == 0

    asyncio.run(scenario())


def test_write_failure_closes_session_and_unsubscribes() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        manager = StreamSessionManager(broadcaster)
        key = RecipientKey.of("customer", 55)
        session = manager.open_session(key)
        response = EventStreamResponse(session)
        sent = []

        async def send(message) -> None:
            if message["type"] == "http.response.body" and message.get("body"):
                raise OSError("client went away")
            sent.append(message)

        with pytest.raises(OSError):
            await response.stream_response(send)

        assert sent[0]["type"] == "http.response.start"
        assert session.state is SessionState.CLOSED
        assert session.closed_reason is CloseReason.WRITE_ERROR
        assert broadcaster.active_count() == 0
        assert len(manager) == 0

    asyncio.run(scenario())


def test_response_carries_event_stream_headers() -> None:
    async def scenario() -> None:
        session = NotificationStreamSession(RecipientKey.of("user", 7), NotificationBroadcaster())
        session.open()
        response = EventStreamResponse(session)

        assert response.media_type == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache, no-transform"
        assert response.headers["x-accel-buffering"] == "no"
        session.close()

    asyncio.run(scenario())


def test_manager_close_all_closes_every_session() -> None:
    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        manager = StreamSessionManager(broadcaster)
        user = RecipientKey.of("user", 7)
        first = manager.open_session(user)
        manager.open_session(user)
        manager.open_session(RecipientKey.of("customer", 55))

        assert len(manager) == 3
        assert len(manager.sessions_for(user)) == 2

        assert manager.close_all() == 3
        assert len(manager) == 0
        assert broadcaster.active_count() == 0
        assert first.closed_reason is CloseReason.SHUTDOWN
        assert manager.close_all() == 0

    asyncio.run(scenario())


@pytest.mark.skipif(sys.platform == "win32", reason="needs SIGUSR1")
def test_exit_signal_sweeps_sessions_and_chains_previous_handler() -> None:
    received = []
    original = signal.signal(signal.SIGUSR1, lambda signum, frame: received.append(signum))

    async def scenario() -> None:
        broadcaster = NotificationBroadcaster()
        manager = StreamSessionManager(broadcaster)
        session = manager.open_session(RecipientKey.of("user", 7))
        restore = manager.close_on_exit_signals((signal.SIGUSR1,))

        signal.raise_signal(signal.SIGUSR1)
        await asyncio.sleep(0.05)

        assert received == [signal.SIGUSR1]
        assert session.closed_reason is CloseReason.SHUTDOWN
        assert broadcaster.active_count() == 0

        restore()
        signal.raise_signal(signal.SIGUSR1)
        assert received == [signal.SIGUSR1, signal.SIGUSR1]

    try:
        asyncio.run(scenario())
    finally:
        signal.signal(signal.SIGUSR1, original)


def test_exit_signals_are_left_alone_off_the_main_thread() -> None:
    before = signal.getsignal(signal.SIGTERM)
    results = []

    async def scenario() -> None:
        manager = StreamSessionManager(NotificationBroadcaster())
        restore = manager.close_on_exit_signals()
        results.append(signal.getsignal(signal.SIGTERM))
        restore()

    worker = threading.Thread(target=lambda: asyncio.run(scenario()))
    worker.start()
    worker.join(5)

    assert results == [before]

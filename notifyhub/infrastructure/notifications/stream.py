"""Server-sent event sessions fed by the notification broadcaster."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import threading
from datetime import datetime
from enum import Enum
from types import FrameType
from typing import Any, AsyncIterator, Callable, Iterable, Mapping
from uuid import uuid4

from fastapi.responses import StreamingResponse
from starlette.types import Send

from notifyhub.domain.entities import NotificationEvent, RecipientKey
from notifyhub.utils import epoch_millis, now_in_app_timezone

from .broadcaster import NotificationBroadcaster, Subscription

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_QUEUE_SIZE = 256
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSE = object()


class SessionState(str, Enum):
    INIT = "init"
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(str, Enum):
    DISCONNECTED = "disconnected"
    WRITE_ERROR = "write_error"
    SHUTDOWN = "shutdown"
    SLOW_CONSUMER = "slow_consumer"
    OPEN_FAILED = "open_failed"
    CLOSED = "closed"


class SessionStateError(RuntimeError):
    """Raised when a session is asked to perform an illegal transition."""


def format_sse_frame(payload: Mapping[str, Any]) -> bytes:
    """Encode ``payload`` as a single ``data:`` frame."""

    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


class NotificationStreamSession:
    """One live stream connection: ``INIT -> OPEN -> CLOSED``.

    Broadcaster deliveries and heartbeat ticks both become frames on a
    bounded FIFO queue with a single consumer (:meth:`frames`), so writes to
    one stream never interleave. :meth:`close` may be called any number of
    times, from any thread; it always cancels the heartbeat *and* releases
    the broadcaster subscription.
    """

    def __init__(
        self,
        recipient: RecipientKey,
        broadcaster: NotificationBroadcaster,
        *,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        on_close: Callable[["NotificationStreamSession"], None] | None = None,
    ) -> None:
        if heartbeat_interval <= 0:
            raise ValueError("heartbeat_interval must be positive")
        self.recipient = recipient
        self.session_id = uuid4().hex
        self.created_at: datetime = now_in_app_timezone()
        self.last_activity_at: datetime = self.created_at
        self.state = SessionState.INIT
        self.closed_reason: CloseReason | None = None

        self._broadcaster = broadcaster
        self._heartbeat_interval = heartbeat_interval
        self._queue_size = queue_size
        self._on_close = on_close
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[object] | None = None
        self._heartbeat: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    def open(self) -> None:
        """Subscribe, queue the ``connected`` frame and start the heartbeat.

        Must run on the event loop that will consume :meth:`frames`.
        """

        loop = asyncio.get_running_loop()
        with self._lock:
            if self.state is not SessionState.INIT:
                raise SessionStateError(f"Cannot open a session in state {self.state.value}")
            self._loop = loop
            self._queue = asyncio.Queue(maxsize=self._queue_size)
            self.state = SessionState.OPEN

        try:
            subscription = self._broadcaster.subscribe(self.recipient, self)
            if not self._attach("_subscription", subscription):
                subscription.close()
                return
            self._put(format_sse_frame(NotificationEvent.connected(self.recipient).to_dict()))
            heartbeat = loop.create_task(self._run_heartbeat())
            if not self._attach("_heartbeat", heartbeat):
                heartbeat.cancel()
                return
        except Exception as exc:
            self.close(CloseReason.OPEN_FAILED)
            raise SessionStateError(f"Failed to open stream for {self.recipient}") from exc
        logger.info("New stream connection: %s (session=%s)", self.recipient, self.session_id)

    def deliver(self, event: NotificationEvent) -> None:
        """Listener capability invoked by the broadcaster, from any thread."""

        if self.state is not SessionState.OPEN:
            return
        self._submit(format_sse_frame(event.to_dict()))

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield encoded frames until the session closes.

        Leaving the iteration early (client gone, cancelled, consumer error)
        tears the session down.
        """

        if self._queue is None:
            raise SessionStateError("Session must be opened before streaming")
        queue = self._queue
        try:
            while self.state is SessionState.OPEN:
                frame = await queue.get()
                if frame is _CLOSE:
                    break
                self.last_activity_at = now_in_app_timezone()
                yield frame  # type: ignore[misc]
        finally:
            self.close(CloseReason.DISCONNECTED)

    def close(self, reason: CloseReason = CloseReason.CLOSED) -> bool:
        """Tear the session down; returns ``False`` if it already was."""

        with self._lock:
            if self.state is SessionState.CLOSED:
                return False
            self.state = SessionState.CLOSED
            self.closed_reason = reason
            heartbeat, self._heartbeat = self._heartbeat, None
            subscription, self._subscription = self._subscription, None

        steps: list[tuple[str, Callable[[], object]]] = []
        if heartbeat is not None:
            steps.append(("cancel heartbeat", lambda: self._call_on_loop(heartbeat.cancel)))
        if subscription is not None:
            steps.append(("unsubscribe listener", subscription.close))
        if self._queue is not None:
            steps.append(("wake consumer", lambda: self._call_on_loop(self._wake_consumer)))
        if self._on_close is not None:
            steps.append(("close callback", lambda: self._on_close(self)))
        for description, step in steps:
            try:
                step()
            except Exception:
                logger.exception(
                    "Stream cleanup step %r failed for %s (session=%s)",
                    description,
                    self.recipient,
                    self.session_id,
                )

        logger.info(
            "Stream closed: %s (session=%s, reason=%s)",
            self.recipient,
            self.session_id,
            reason.value,
        )
        return True

    def _attach(self, attribute: str, resource: object) -> bool:
        # A close() racing with open() must not miss a resource created after it ran.
        with self._lock:
            if self.state is not SessionState.OPEN:
                return False
            setattr(self, attribute, resource)
            return True

    async def _run_heartbeat(self) -> None:
        while self.state is SessionState.OPEN:
            await asyncio.sleep(self._heartbeat_interval)
            if self.state is not SessionState.OPEN:
                break
            self._put(format_sse_frame(NotificationEvent.heartbeat(epoch_millis()).to_dict()))

    def _submit(self, frame: bytes) -> None:
        if self._on_own_loop():
            self._put(frame)
        else:
            self._loop.call_soon_threadsafe(self._put, frame)  # type: ignore[union-attr]

    def _put(self, frame: bytes) -> None:
        if self.state is not SessionState.OPEN or self._queue is None:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "Stream queue full for %s (session=%s); closing slow consumer",
                self.recipient,
                self.session_id,
            )
            self.close(CloseReason.SLOW_CONSUMER)

    def _wake_consumer(self) -> None:
        queue = self._queue
        if queue is None:
            return
        while True:
            try:
                queue.put_nowait(_CLOSE)
                return
            except asyncio.QueueFull:
                queue.get_nowait()

    def _on_own_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _call_on_loop(self, callback: Callable[[], object]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or self._on_own_loop():
            callback()
        else:
            loop.call_soon_threadsafe(callback)


class StreamSessionManager:
    """Create sessions and keep track of the open ones for shutdown sweeps."""

    def __init__(
        self,
        broadcaster: NotificationBroadcaster,
        *,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._broadcaster = broadcaster
        self._heartbeat_interval = heartbeat_interval
        self._queue_size = queue_size
        self._sessions: set[NotificationStreamSession] = set()
        self._lock = threading.Lock()

    def open_session(self, recipient: RecipientKey) -> NotificationStreamSession:
        session = NotificationStreamSession(
            recipient,
            self._broadcaster,
            heartbeat_interval=self._heartbeat_interval,
            queue_size=self._queue_size,
            on_close=self._discard,
        )
        with self._lock:
            self._sessions.add(session)
        session.open()
        return session

    def sessions_for(self, recipient: RecipientKey) -> list[NotificationStreamSession]:
        with self._lock:
            return [session for session in self._sessions if session.recipient == recipient]

    def close_all(self, reason: CloseReason = CloseReason.SHUTDOWN) -> int:
        with self._lock:
            sessions = list(self._sessions)
        closed = sum(1 for session in sessions if session.close(reason))
        if closed:
            logger.info("Closed %d notification streams (%s)", closed, reason.value)
        return closed

    def close_on_exit_signals(
        self, signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS
    ) -> Callable[[], None]:
        """Start the shutdown sweep as soon as the process is asked to exit.

        Servers drain open responses before running lifespan shutdown and an
        event stream never ends by itself, so waiting for the lifespan would
        hang. Handlers installed earlier (the server's own) still run after
        the sweep is scheduled. Returns a callable that restores them.
        """

        if threading.current_thread() is not threading.main_thread():
            logger.debug("Exit signals can only be hooked from the main thread")
            return lambda: None

        loop = asyncio.get_running_loop()
        previous: dict[int, Any] = {}

        def handle(signum: int, frame: FrameType | None) -> None:
            loop.call_soon_threadsafe(self.close_all, CloseReason.SHUTDOWN)
            chained = previous.get(signum)
            if callable(chained):
                chained(signum, frame)
            elif chained == signal.SIG_DFL:
                signal.signal(signum, signal.SIG_DFL)
                signal.raise_signal(signum)

        for signum in signals:
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, handle)

        def restore() -> None:
            for signum, handler in previous.items():
                if signal.getsignal(signum) is handle and handler is not None:
                    signal.signal(signum, handler)

        return restore

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _discard(self, session: NotificationStreamSession) -> None:
        with self._lock:
            self._sessions.discard(session)


class EventStreamResponse(StreamingResponse):
    """``text/event-stream`` response bound to one session's lifetime."""

    def __init__(
        self,
        session: NotificationStreamSession,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            session.frames(),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **(headers or {})},
        )
        self.session = session

    async def stream_response(self, send: Send) -> None:
        try:
            await super().stream_response(send)
        except Exception:
            self.session.close(CloseReason.WRITE_ERROR)
            raise
        finally:
            self.session.close(CloseReason.DISCONNECTED)


__all__ = [
    "CloseReason",
    "EventStreamResponse",
    "NotificationStreamSession",
    "SHUTDOWN_SIGNALS",
    "SSE_HEADERS",
    "SessionState",
    "SessionStateError",
    "StreamSessionManager",
    "format_sse_frame",
]

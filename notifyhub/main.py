from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notifyhub.config import Settings, get_settings
from notifyhub.infrastructure.database import SessionLocal, engine, initialize_database
from notifyhub.infrastructure.notifications import (
    NotificationBroadcaster,
    PushDispatcher,
    StreamSessionManager,
    WebPushTransport,
)
from notifyhub.infrastructure.repositories import PushSubscriptionRepository
from notifyhub.interfaces.api.routes import register_routes
from notifyhub.logging_utils import configure_logging

logger = logging.getLogger(__name__)


@contextmanager
def push_subscription_store() -> Iterator[PushSubscriptionRepository]:
    """Open a short-lived repository for one push dispatch."""

    with SessionLocal() as session:
        yield PushSubscriptionRepository(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup; close every open stream on shutdown."""

    initialize_database()
    restore_signals = app.state.stream_manager.close_on_exit_signals()
    try:
        yield
    finally:
        restore_signals()
        app.state.stream_manager.close_all()
        engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application and its notification components."""

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    broadcaster = NotificationBroadcaster()
    app.state.broadcaster = broadcaster
    app.state.stream_manager = StreamSessionManager(
        broadcaster,
        heartbeat_interval=settings.heartbeat_interval_seconds,
        queue_size=settings.stream_queue_size,
    )
    app.state.push_dispatcher = PushDispatcher(
        push_subscription_store,
        WebPushTransport.from_settings(settings),
        timeout=settings.push_timeout_seconds,
        default_url=settings.default_notification_url,
    )
    if not settings.push_enabled:
        logger.warning("VAPID keys are not configured; push delivery is disabled")

    register_routes(app)
    return app

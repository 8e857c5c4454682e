"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from notifyhub.config import Settings
from notifyhub.infrastructure.notifications import NotificationBroadcaster
from notifyhub.interfaces.api.dependencies import get_app_settings, get_broadcaster
from notifyhub.interfaces.api.schemas import HealthRead

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
def health(
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
) -> HealthRead:
    return HealthRead(
        status="ok",
        active_connections=broadcaster.active_count(),
        push_enabled=settings.push_enabled,
    )

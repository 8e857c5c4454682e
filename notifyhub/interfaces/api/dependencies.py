"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from notifyhub.config import Settings
from notifyhub.domain.entities import RecipientKey, SubjectType
from notifyhub.infrastructure.notifications import (
    NotificationBroadcaster,
    PushDispatcher,
    StreamSessionManager,
)
from notifyhub.infrastructure.security import resolve_recipient

AUTH_COOKIE_NAME = "auth_token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_token(request: Request, bearer_token: str | None) -> str | None:
    """Return the credential from the ``Authorization`` header or the auth cookie.

    Browsers cannot attach headers to ``EventSource`` requests; they send the
    cookie instead. Credentials are never read from the URL, which ends up in
    access logs.
    """

    return bearer_token or request.cookies.get(AUTH_COOKIE_NAME)


def resolve_current_recipient(token: str | None) -> RecipientKey:
    """Resolve the authenticated recipient for the provided token."""

    if not token:
        raise _unauthorized("Not authenticated")
    try:
        return resolve_recipient(token)
    except ValueError as exc:
        raise _unauthorized("Invalid credentials") from exc


def get_current_recipient(
    request: Request, token: str | None = Depends(oauth2_scheme)
) -> RecipientKey:
    """Return the recipient identified by the request credentials."""

    return resolve_current_recipient(extract_token(request, token))


def require_user(recipient: RecipientKey = Depends(get_current_recipient)) -> RecipientKey:
    """Ensure the caller is an internal user rather than a portal customer."""

    if recipient.subject_type is not SubjectType.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only internal users may perform this action",
        )
    return recipient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_broadcaster(request: Request) -> NotificationBroadcaster:
    return request.app.state.broadcaster


def get_stream_manager(request: Request) -> StreamSessionManager:
    return request.app.state.stream_manager


def get_push_dispatcher(request: Request) -> PushDispatcher:
    return request.app.state.push_dispatcher

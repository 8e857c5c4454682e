"""Access token helpers used to authorize notification recipients."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from notifyhub.config import get_settings
from notifyhub.domain.entities import InvalidRecipientError, RecipientKey, SubjectType

ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(tz=timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode({**data, "exp": expire}, settings.secret_key, algorithm=ALGORITHM)


def create_recipient_token(
    recipient: RecipientKey, expires_delta: timedelta | None = None
) -> str:
    """Issue a token whose claims resolve back to ``recipient``."""

    return create_access_token(
        {
            "sub": str(recipient.subject_id),
            "subject_type": recipient.subject_type.value,
        },
        expires_delta,
    )


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


def resolve_recipient(token: str) -> RecipientKey:
    """Return the single recipient identified by ``token``.

    Tokens issued by the portal carry ``role: customer`` instead of an
    explicit ``subject_type`` claim; anything else is an internal user.
    Raises :class:`ValueError` for expired, tampered or incomplete tokens.
    """

    payload = decode_access_token(token)
    subject = payload.get("sub")
    if subject is None:
        raise ValueError("Token has no subject")

    subject_type = payload.get("subject_type")
    if subject_type is None:
        subject_type = (
            SubjectType.CUSTOMER
            if payload.get("role") == SubjectType.CUSTOMER.value
            else SubjectType.USER
        )
    try:
        return RecipientKey.of(subject_type, subject)
    except InvalidRecipientError as exc:
        raise ValueError(str(exc)) from exc


__all__ = [
    "create_access_token",
    "create_recipient_token",
    "decode_access_token",
    "resolve_recipient",
]

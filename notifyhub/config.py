"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key used to verify signed access tokens", min_length=1
    )
    access_token_expire_minutes: int = Field(
        default=60,
        description="Number of minutes before access tokens expire",
        gt=0,
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone name or UTC offset used for persisted timestamps",
    )
    app_name: str = Field(
        default="Notification Hub",
        description="Name displayed when a push payload carries no title",
    )
    heartbeat_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between keepalive frames sent on notification streams",
        gt=0,
    )
    stream_queue_size: int = Field(
        default=256,
        description="Maximum number of frames buffered per stream before it is closed",
        gt=0,
    )
    push_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single call to the push delivery service",
        gt=0,
    )
    vapid_public_key: str | None = Field(
        default=None,
        description="VAPID application server public key shared with browsers",
    )
    vapid_private_key: str | None = Field(
        default=None,
        description="VAPID private key used to sign push requests",
    )
    vapid_subject: str = Field(
        default="mailto:admin@example.com",
        description="Contact URI sent as the VAPID ``sub`` claim",
    )
    default_notification_url: str = Field(
        default="/panel",
        description="Page opened when a notification without a link is clicked",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to open notification streams from the browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_vapid_pair(self) -> "Settings":
        if bool(self.vapid_public_key) ^ bool(self.vapid_private_key):
            raise ValueError(
                "VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY must both be provided to enable push"
            )
        if not self.vapid_subject.startswith(("mailto:", "https:")):
            raise ValueError("VAPID_SUBJECT must be a mailto: or https: URI")
        return self

    @property
    def push_enabled(self) -> bool:
        """Return ``True`` when web push credentials are configured."""

        return bool(self.vapid_public_key and self.vapid_private_key)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]

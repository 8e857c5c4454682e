"""Domain entity describing a durable browser push subscription."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .recipient import RecipientKey


@dataclass
class PushSubscription:
    """Push endpoint registered by a browser for one recipient."""

    id: int | None
    recipient: RecipientKey
    endpoint: str
    keys: dict[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def subscription_info(self) -> dict[str, object]:
        """Return the structure expected by web push clients."""

        return {"endpoint": self.endpoint, "keys": dict(self.keys)}


__all__ = ["PushSubscription"]

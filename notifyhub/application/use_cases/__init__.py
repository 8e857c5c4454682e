"""Aggregate application use cases."""

from .notifications import send_notification

__all__ = ["send_notification"]

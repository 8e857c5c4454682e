"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Iterable

from sqlalchemy.orm import Query, Session

from notifyhub.domain.entities import Notification, RecipientKey
from notifyhub.infrastructure.models import NotificationModel
from notifyhub.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide storage operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_many(self, notifications: Iterable[Notification]) -> list[Notification]:
        """Insert ``notifications`` in a single transaction and return them with ids."""

        models = []
        for notification in notifications:
            model = NotificationModel()
            self._apply_entity_to_model(model, notification)
            self.session.add(model)
            models.append(model)
        if not models:
            return []
        self.session.commit()
        for model in models:
            self.session.refresh(model)
        return [self._to_entity(model) for model in models]

    def create(self, notification: Notification) -> Notification:
        return self.create_many([notification])[0]

    def list_for_recipient(
        self,
        recipient: RecipientKey,
        *,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> Sequence[Notification]:
        query = self._recipient_query(recipient, unread_only=unread_only)
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        offset = (max(page, 1) - 1) * limit
        return [
            self._to_entity(model)
            for model in query.offset(offset).limit(limit).all()
        ]

    def count_for_recipient(
        self, recipient: RecipientKey, *, unread_only: bool = False
    ) -> int:
        return self._recipient_query(recipient, unread_only=unread_only).count()

    def count_unread(self, recipient: RecipientKey) -> int:
        return self.count_for_recipient(recipient, unread_only=True)

    def mark_as_read(
        self, notification_ids: Iterable[int], *, recipient: RecipientKey
    ) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        updated = (
            self._recipient_query(recipient, unread_only=True)
            .filter(NotificationModel.id.in_(ids))
            .update(self._read_values(), synchronize_session=False)
        )
        self.session.commit()
        return updated

    def mark_all_as_read(self, recipient: RecipientKey) -> int:
        updated = self._recipient_query(recipient, unread_only=True).update(
            self._read_values(), synchronize_session=False
        )
        self.session.commit()
        return updated

    def _recipient_query(self, recipient: RecipientKey, *, unread_only: bool) -> Query:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.recipient_type == recipient.subject_type.value,
            NotificationModel.recipient_id == recipient.subject_id,
        )
        if unread_only:
            query = query.filter(NotificationModel.is_read.is_(False))
        return query

    @staticmethod
    def _read_values() -> dict:
        return {
            NotificationModel.is_read: True,
            NotificationModel.read_at: ensure_app_naive_datetime(now_in_app_timezone()),
        }

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )
        model.recipient_type = notification.recipient.subject_type.value
        model.recipient_id = notification.recipient.subject_id
        model.title = notification.title
        model.message = notification.message
        model.category = notification.category
        model.icon = notification.icon
        model.link = notification.link
        model.sender_id = notification.sender_id
        model.sender_name = notification.sender_name
        model.is_read = notification.is_read
        model.read_at = ensure_app_naive_datetime(notification.read_at)

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient=RecipientKey.of(model.recipient_type, model.recipient_id),
            title=model.title,
            message=model.message,
            category=model.category,
            icon=model.icon,
            link=model.link,
            sender_id=model.sender_id,
            sender_name=model.sender_name,
            is_read=bool(model.is_read),
            read_at=ensure_app_timezone(model.read_at),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["NotificationRepository"]

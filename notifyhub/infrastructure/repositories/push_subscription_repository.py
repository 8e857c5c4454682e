"""Persistence helpers for browser push subscriptions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from notifyhub.domain.entities import PushSubscription, RecipientKey, SubjectType
from notifyhub.infrastructure.models import PushSubscriptionModel
from notifyhub.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


@dataclass(frozen=True)
class SubscriberSummary:
    """Aggregated view of a recipient holding active push subscriptions."""

    recipient: RecipientKey
    subscription_count: int
    last_subscription: datetime | None


class PushSubscriptionRepository:
    """Store of durable push endpoints.

    The read side (:meth:`active_subscriptions_for`) is what the push
    dispatcher consumes; the write side belongs to the surrounding
    application endpoints.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def active_subscriptions_for(
        self, subject_type: str | SubjectType, subject_id: int
    ) -> list[PushSubscription]:
        recipient = RecipientKey.of(subject_type, subject_id)
        query = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.subject_type == recipient.subject_type.value)
            .filter(PushSubscriptionModel.subject_id == recipient.subject_id)
            .filter(PushSubscriptionModel.is_active.is_(True))
            .order_by(PushSubscriptionModel.id)
        )
        return [self._to_entity(model) for model in query.all()]

    def list_for(self, recipient: RecipientKey) -> Sequence[PushSubscription]:
        return self.active_subscriptions_for(recipient.subject_type, recipient.subject_id)

    def upsert(
        self,
        recipient: RecipientKey,
        *,
        endpoint: str,
        keys: dict[str, str],
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Create or re-activate the subscription identified by ``endpoint``.

        A browser endpoint belongs to whoever registered it last, so an
        existing row is re-assigned to ``recipient``.
        """

        now = ensure_app_naive_datetime(now_in_app_timezone())
        model = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.endpoint == endpoint)
            .one_or_none()
        )
        if model is None:
            model = PushSubscriptionModel(endpoint=endpoint, created_at=now)
            self.session.add(model)
        model.subject_type = recipient.subject_type.value
        model.subject_id = recipient.subject_id
        model.keys = dict(keys)
        model.user_agent = user_agent
        model.is_active = True
        model.updated_at = now
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def deactivate(self, endpoint: str, *, recipient: RecipientKey | None = None) -> int:
        query = self.session.query(PushSubscriptionModel).filter(
            PushSubscriptionModel.endpoint == endpoint,
            PushSubscriptionModel.is_active.is_(True),
        )
        if recipient is not None:
            query = query.filter(
                PushSubscriptionModel.subject_type == recipient.subject_type.value,
                PushSubscriptionModel.subject_id == recipient.subject_id,
            )
        updated = query.update(self._inactive_values(), synchronize_session=False)
        self.session.commit()
        return updated

    def deactivate_endpoints(self, endpoints: Iterable[str]) -> int:
        unique = sorted({endpoint for endpoint in endpoints if endpoint})
        if not unique:
            return 0
        updated = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.endpoint.in_(unique))
            .update(self._inactive_values(), synchronize_session=False)
        )
        self.session.commit()
        return updated

    def deactivate_all_for(self, recipient: RecipientKey) -> int:
        updated = (
            self.session.query(PushSubscriptionModel)
            .filter(
                PushSubscriptionModel.subject_type == recipient.subject_type.value,
                PushSubscriptionModel.subject_id == recipient.subject_id,
                PushSubscriptionModel.is_active.is_(True),
            )
            .update(self._inactive_values(), synchronize_session=False)
        )
        self.session.commit()
        return updated

    def list_subscribers(
        self, subject_type: SubjectType | None = None
    ) -> list[SubscriberSummary]:
        query = self.session.query(
            PushSubscriptionModel.subject_type,
            PushSubscriptionModel.subject_id,
            func.count(PushSubscriptionModel.id),
            func.max(PushSubscriptionModel.updated_at),
        ).filter(PushSubscriptionModel.is_active.is_(True))
        if subject_type is not None:
            query = query.filter(PushSubscriptionModel.subject_type == subject_type.value)
        query = query.group_by(
            PushSubscriptionModel.subject_type, PushSubscriptionModel.subject_id
        ).order_by(PushSubscriptionModel.subject_type, PushSubscriptionModel.subject_id)
        return [
            SubscriberSummary(
                recipient=RecipientKey.of(row_type, row_id),
                subscription_count=int(count),
                last_subscription=ensure_app_timezone(last),
            )
            for row_type, row_id, count, last in query.all()
        ]

    @staticmethod
    def _inactive_values() -> dict:
        return {
            PushSubscriptionModel.is_active: False,
            PushSubscriptionModel.updated_at: ensure_app_naive_datetime(
                now_in_app_timezone()
            ),
        }

    @staticmethod
    def _to_entity(model: PushSubscriptionModel) -> PushSubscription:
        return PushSubscription(
            id=model.id,
            recipient=RecipientKey.of(model.subject_type, model.subject_id),
            endpoint=model.endpoint,
            keys=dict(model.keys or {}),
            user_agent=model.user_agent,
            is_active=bool(model.is_active),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["PushSubscriptionRepository", "SubscriberSummary"]

"""SQLAlchemy model for browser push subscriptions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import expression

from notifyhub.infrastructure.database import Base
from notifyhub.utils import now_in_app_naive_datetime


class PushSubscriptionModel(Base):
    """Durable push endpoint registered for a user or customer."""

    __tablename__ = "push_subscription"
    __table_args__ = (
        Index("ix_push_subscription_subject", "subject_type", "subject_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subject_type = Column(String(20), nullable=False)
    subject_id = Column(Integer, nullable=False)
    endpoint = Column(String(1000), nullable=False, unique=True)
    keys = Column(JSON, nullable=False, default=dict)
    user_agent = Column(Text, nullable=True)
    is_active = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["PushSubscriptionModel"]

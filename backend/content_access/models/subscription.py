"""
Subscription model.

Subscriptions are created and renewed by the billing flow. This package
reads them and, when missing, records a plan snapshot so later plan edits
do not retroactively change an existing subscriber's benefits.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, String, DateTime, Enum, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from content_access.access.clock import ensure_utc
from content_access.models.base import Base, TimestampMixin, generate_uuid


class SubscriptionStatus:
    """Subscription status values."""
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"


class Subscription(Base, TimestampMixin):
    """A principal's subscription to a plan."""

    __tablename__ = "subscriptions"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Subscribing principal"
    )
    plan_id = Column(
        String(36),
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Live plan"
    )
    status = Column(
        Enum(
            "pending", "active", "cancelled", "expired", "failed",
            name="subscription_status"
        ),
        default=SubscriptionStatus.PENDING,
        nullable=False,
        comment="Current subscription status"
    )
    start_date = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the subscription started"
    )
    end_date = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Null means open-ended"
    )
    plan_snapshot = Column(
        JSON,
        nullable=True,
        comment="Frozen copy of plan benefits: {plan_id, plan_name, benefits, captured_at}"
    )

    plan = relationship(
        "SubscriptionPlan",
        back_populates="subscriptions"
    )
    claims = relationship(
        "SubscriptionClaim",
        back_populates="subscription",
        lazy="dynamic"
    )

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, user_id={self.user_id}, status={self.status})>"

    def is_active_at(self, now: Optional[datetime] = None) -> bool:
        """Active status and no end date in the past."""
        if self.status != SubscriptionStatus.ACTIVE:
            return False
        if self.end_date is None:
            return True
        now = now or datetime.now(timezone.utc)
        return ensure_utc(self.end_date) > now

    @property
    def is_active(self) -> bool:
        return self.is_active_at()

    @property
    def snapshot_benefits(self) -> Optional[dict]:
        """Benefits captured on the subscription, or None for legacy rows."""
        snapshot = self.plan_snapshot or {}
        benefits = snapshot.get("benefits")
        return benefits if isinstance(benefits, dict) else None

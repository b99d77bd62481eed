"""
Subscription plan model.

Plans are global product offerings. The benefits map is keyed by content
type: true means unlimited, a positive integer is a monthly limit, anything
else means the type is not included.
"""

from sqlalchemy import Column, String, Text, Integer, Boolean, JSON
from sqlalchemy.orm import relationship

from content_access.models.base import Base, TimestampMixin, generate_uuid


class SubscriptionPlan(Base, TimestampMixin):
    """Defines per-content-type monthly claim benefits."""

    __tablename__ = "subscription_plans"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    name = Column(
        String(100),
        nullable=False,
        comment="Display name"
    )
    description = Column(
        Text,
        nullable=True,
        comment="Plan description for pricing page"
    )
    price_cents = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Monthly price in cents"
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the plan can be subscribed to"
    )
    benefits = Column(
        JSON,
        nullable=False,
        default=dict,
        comment="content_type -> true (unlimited) | int (monthly limit)"
    )

    subscriptions = relationship(
        "Subscription",
        back_populates="plan",
        lazy="dynamic"
    )

    def __repr__(self) -> str:
        return f"<SubscriptionPlan(id={self.id}, name={self.name})>"

"""
Subscription claim model.

A claim records that a subscriber drew one unit of their monthly allowance
against a specific catalog item. (subscription_id, content_type, content_id)
is unique: it is the only synchronization point for concurrent claiming.
"""

from sqlalchemy import Column, String, DateTime, Enum, JSON, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from content_access.constants.content_types import ALL_CONTENT_TYPES
from content_access.models.base import Base, TimestampMixin, generate_uuid


class ClaimStatus:
    """Claim status values. Revoked is terminal."""
    ACTIVE = "active"
    REVOKED = "revoked"


class SubscriptionClaim(Base, TimestampMixin):
    """A content item claimed against a subscription allowance."""

    __tablename__ = "subscription_claims"

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
        comment="Claiming principal"
    )
    subscription_id = Column(
        String(36),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        comment="Subscription whose allowance was used"
    )
    content_type = Column(
        Enum(*ALL_CONTENT_TYPES, name="claim_content_type"),
        nullable=False,
        comment="Catalog content type"
    )
    content_id = Column(
        String(36),
        nullable=False,
        comment="Claimed product id"
    )
    period = Column(
        String(7),
        nullable=False,
        comment="Calendar month of the claim (YYYY-MM)"
    )
    status = Column(
        Enum("active", "revoked", name="claim_status"),
        nullable=False,
        default=ClaimStatus.ACTIVE,
        comment="Revoked claims never return to active"
    )
    claimed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the claim was created"
    )
    revoked_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the claim was revoked"
    )
    revoked_reason = Column(
        String(255),
        nullable=True,
        comment="Audit reason for revocation"
    )
    parent_claim_id = Column(
        String(36),
        ForeignKey("subscription_claims.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Bundle claim that created this child"
    )
    usage = Column(
        JSON,
        nullable=True,
        comment="Typed usage record (see access.usage.ClaimUsage)"
    )

    subscription = relationship(
        "Subscription",
        back_populates="claims"
    )
    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "content_type", "content_id",
            name="uq_subscription_claims_content"
        ),
        Index("ix_subscription_claims_quota", "subscription_id", "period", "content_type"),
        Index("ix_subscription_claims_user_content", "user_id", "content_type", "content_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionClaim(id={self.id}, content_type={self.content_type}, "
            f"content_id={self.content_id}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == ClaimStatus.ACTIVE

"""
Purchase model: payment-backed direct access to a catalog item.

Purchases are written by the payment flow; this package only reads them.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Index

from content_access.constants.content_types import ALL_CONTENT_TYPES
from content_access.models.base import Base, TimestampMixin, generate_uuid


class PaymentStatus:
    """Purchase payment status values."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Purchase(Base, TimestampMixin):
    """Direct purchase of a product by a buyer."""

    __tablename__ = "purchases"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    buyer_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Purchasing principal"
    )
    content_type = Column(
        Enum(*ALL_CONTENT_TYPES, name="purchase_content_type"),
        nullable=False,
        comment="Catalog content type"
    )
    content_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        comment="Purchased product"
    )
    payment_status = Column(
        Enum("pending", "completed", "failed", "refunded", name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Only completed purchases grant access"
    )
    amount_cents = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Amount paid in cents"
    )
    access_expires_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Null means lifetime access"
    )

    __table_args__ = (
        Index("ix_purchases_buyer_content", "buyer_id", "content_type", "content_id"),
    )

    def __repr__(self) -> str:
        return f"<Purchase(id={self.id}, buyer_id={self.buyer_id}, status={self.payment_status})>"

    @property
    def is_lifetime(self) -> bool:
        return self.access_expires_at is None

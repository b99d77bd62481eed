"""
Catalog product model.

A product row is the Content Reference: (content_type, id). The owner_id
column is the Ownership Record. Type-specific facts (age restrictions,
preview flags, module lists) live in type_attributes.
"""

from sqlalchemy import Column, String, Boolean, Enum, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from content_access.constants.content_types import ALL_CONTENT_TYPES
from content_access.models.base import Base, TimestampMixin, generate_uuid


class Product(Base, TimestampMixin):
    """Catalog item that can be owned, purchased or claimed."""

    __tablename__ = "products"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    content_type = Column(
        Enum(*ALL_CONTENT_TYPES, name="content_type"),
        nullable=False,
        comment="Catalog content type"
    )
    title = Column(
        String(255),
        nullable=False,
        default="",
        comment="Display title"
    )
    owner_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Creator of the content"
    )
    is_published = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Unpublished content is visible to its creator only"
    )
    type_attributes = Column(
        JSON,
        nullable=True,
        comment="Per-type facts used by content validators"
    )
    bundle_items = Column(
        JSON,
        nullable=True,
        comment="List of {content_type, content_id} for composite products"
    )

    owner = relationship("User")

    __table_args__ = (
        Index("ix_products_type_published", "content_type", "is_published"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, content_type={self.content_type})>"

    @property
    def is_bundle(self) -> bool:
        return bool(self.bundle_items)

    def attribute(self, key: str, default=None):
        """Read a type attribute with a default."""
        return (self.type_attributes or {}).get(key, default)

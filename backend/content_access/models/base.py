"""
Shared column helpers for content access models.

Every table uses a UUID string primary key and server-side audit
timestamps; claim-specific instants (claimed_at, revoked_at) are set by the
services from the injected clock instead.
"""

import uuid

from sqlalchemy import Column, DateTime, func

from content_access.db_base import Base  # noqa: F401 - re-exported for models


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Row audit timestamps maintained by the database."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Row creation time"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last row update time"
    )

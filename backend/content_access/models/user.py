"""
User model: the principal whose access is being decided.
"""

from sqlalchemy import Column, String, Date, Enum, Index

from content_access.models.base import Base, TimestampMixin, generate_uuid


class User(Base, TimestampMixin):
    """
    Authenticated principal.

    birth_date is optional and only consulted by age-restricted content.
    """

    __tablename__ = "users"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    email = Column(
        String(255),
        nullable=True,
        unique=True,
        comment="Login email"
    )
    full_name = Column(
        String(255),
        nullable=True,
        comment="Display name"
    )
    role = Column(
        Enum("user", "teacher", "student", "admin", name="user_role"),
        nullable=False,
        default="user",
        comment="Principal role"
    )
    birth_date = Column(
        Date,
        nullable=True,
        comment="Used for minimum-age content restrictions"
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"

"""
Delegation edges between a dependent principal (student) and a delegate
principal (teacher).

Two sources exist: a direct teacher assignment and classroom memberships.
A student may have several teachers across both.
"""

from sqlalchemy import Column, String, Boolean, Enum, ForeignKey, Index, UniqueConstraint

from content_access.models.base import Base, TimestampMixin, generate_uuid


class MembershipStatus:
    """Classroom membership status values."""
    ACTIVE = "active"
    PENDING = "pending"
    REMOVED = "removed"


class TeacherAssignment(Base, TimestampMixin):
    """Explicit student -> teacher assignment."""

    __tablename__ = "teacher_assignments"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    student_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Dependent principal"
    )
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Delegate principal"
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive assignments grant nothing"
    )

    __table_args__ = (
        UniqueConstraint("student_id", "teacher_id", name="uq_teacher_assignments_pair"),
    )

    def __repr__(self) -> str:
        return f"<TeacherAssignment(student_id={self.student_id}, teacher_id={self.teacher_id})>"


class ClassroomMembership(Base, TimestampMixin):
    """Student membership in a teacher's classroom."""

    __tablename__ = "classroom_memberships"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )
    classroom_id = Column(
        String(36),
        nullable=False,
        comment="Classroom identifier"
    )
    student_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Dependent principal"
    )
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Classroom teacher, if assigned"
    )
    status = Column(
        Enum("active", "pending", "removed", name="membership_status"),
        nullable=False,
        default=MembershipStatus.ACTIVE,
        comment="Only active memberships delegate access"
    )

    __table_args__ = (
        Index("ix_classroom_memberships_student_status", "student_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassroomMembership(classroom_id={self.classroom_id}, "
            f"student_id={self.student_id}, status={self.status})>"
        )

"""
Relationship directory: which delegates (teachers) a principal has.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from content_access.models.delegation import (
    TeacherAssignment,
    ClassroomMembership,
    MembershipStatus,
)
from content_access.repositories.base import store_operation

logger = logging.getLogger(__name__)


class DelegationRepository:
    """Reads assignment and classroom membership edges."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def find_delegate_ids(self, student_id: str) -> List[str]:
        """
        Union of teachers from active assignments and active memberships.

        Order is stable: assignments first, then memberships, duplicates
        removed.
        """
        with store_operation("find_delegates", principal_id=student_id):
            assigned = self.db.query(TeacherAssignment.teacher_id).filter(
                TeacherAssignment.student_id == student_id,
                TeacherAssignment.is_active.is_(True),
            ).order_by(TeacherAssignment.created_at).all()

            memberships = self.db.query(ClassroomMembership.teacher_id).filter(
                ClassroomMembership.student_id == student_id,
                ClassroomMembership.status == MembershipStatus.ACTIVE,
                ClassroomMembership.teacher_id.isnot(None),
            ).order_by(ClassroomMembership.created_at).all()

        teacher_ids: List[str] = []
        for (teacher_id,) in list(assigned) + list(memberships):
            if teacher_id and teacher_id != student_id and teacher_id not in teacher_ids:
                teacher_ids.append(teacher_id)
        return teacher_ids

"""
Subscription lookups and plan snapshot persistence.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from content_access.models.subscription import Subscription, SubscriptionStatus
from content_access.repositories.base import store_operation

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """Repository for subscription data access."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def get_active_for_user(self, user_id: str, now: datetime) -> Optional[Subscription]:
        """
        Get the subscription considered active at `now`.

        Active means status=active and no end date in the past. When several
        rows qualify, the most recently started one wins.

        Args:
            user_id: Principal ID
            now: Evaluation instant

        Returns:
            Active subscription if found, None otherwise
        """
        with store_operation("get_active_subscription", principal_id=user_id):
            return self.db.query(Subscription).options(
                joinedload(Subscription.plan)
            ).filter(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
                or_(
                    Subscription.end_date.is_(None),
                    Subscription.end_date > now,
                ),
            ).order_by(
                Subscription.start_date.desc(),
                Subscription.created_at.desc(),
            ).first()

    def save_plan_snapshot(self, subscription: Subscription, snapshot: dict) -> None:
        """Attach a plan snapshot and flush it."""
        with store_operation("save_plan_snapshot", subscription_id=subscription.id):
            subscription.plan_snapshot = snapshot
            self.db.flush()

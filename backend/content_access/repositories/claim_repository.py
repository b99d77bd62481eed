"""
Subscription claim persistence.

The unique constraint on (subscription_id, content_type, content_id) is
enforced by the store; insert races surface here as IntegrityError.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from content_access.models.claim import SubscriptionClaim, ClaimStatus
from content_access.repositories.base import store_operation

logger = logging.getLogger(__name__)


class ClaimRepository:
    """Repository for subscription claims."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def get_by_id(self, claim_id: str) -> Optional[SubscriptionClaim]:
        with store_operation("get_claim", claim_id=claim_id):
            return self.db.query(SubscriptionClaim).filter(
                SubscriptionClaim.id == claim_id
            ).first()

    def find_by_content(
        self,
        subscription_id: str,
        content_type: str,
        content_id: str,
    ) -> Optional[SubscriptionClaim]:
        """Get the claim row for a subscription's content reference, in any status."""
        with store_operation(
            "find_claim_by_content",
            subscription_id=subscription_id,
            content_type=content_type,
            content_id=content_id,
        ):
            return self.db.query(SubscriptionClaim).filter(
                SubscriptionClaim.subscription_id == subscription_id,
                SubscriptionClaim.content_type == content_type,
                SubscriptionClaim.content_id == content_id,
            ).first()

    def find_active_for_user(
        self,
        user_id: str,
        content_type: str,
        content_id: str,
    ) -> List[SubscriptionClaim]:
        """All active claims a principal holds on a content reference."""
        with store_operation(
            "find_active_claims",
            principal_id=user_id,
            content_type=content_type,
            content_id=content_id,
        ):
            return self.db.query(SubscriptionClaim).filter(
                SubscriptionClaim.user_id == user_id,
                SubscriptionClaim.content_type == content_type,
                SubscriptionClaim.content_id == content_id,
                SubscriptionClaim.status == ClaimStatus.ACTIVE,
            ).order_by(SubscriptionClaim.claimed_at.desc()).all()

    def count_by_type(self, subscription_id: str, period: str) -> Dict[str, int]:
        """
        Count quota-bearing claims per content type for a period.

        Only active parent claims consume allowance. Revoking a claim returns
        its unit to the period; bundle children never draw one.
        """
        with store_operation("count_claims", subscription_id=subscription_id, period=period):
            rows = self.db.query(
                SubscriptionClaim.content_type,
                func.count(SubscriptionClaim.id),
            ).filter(
                SubscriptionClaim.subscription_id == subscription_id,
                SubscriptionClaim.period == period,
                SubscriptionClaim.status == ClaimStatus.ACTIVE,
                SubscriptionClaim.parent_claim_id.is_(None),
            ).group_by(SubscriptionClaim.content_type).all()
        return {content_type: count for content_type, count in rows}

    def get_children(self, parent_claim_id: str) -> List[SubscriptionClaim]:
        with store_operation("get_child_claims", claim_id=parent_claim_id):
            return self.db.query(SubscriptionClaim).filter(
                SubscriptionClaim.parent_claim_id == parent_claim_id
            ).all()

    def list_active_for_user_period(self, user_id: str, period: str) -> List[SubscriptionClaim]:
        with store_operation("list_user_claims", principal_id=user_id, period=period):
            return self.db.query(SubscriptionClaim).filter(
                SubscriptionClaim.user_id == user_id,
                SubscriptionClaim.period == period,
                SubscriptionClaim.status == ClaimStatus.ACTIVE,
            ).order_by(SubscriptionClaim.claimed_at.desc()).all()

    def add(self, claim: SubscriptionClaim) -> SubscriptionClaim:
        """Stage a new claim in the session."""
        self.db.add(claim)
        return claim

    def commit(self, operation: str = "commit_claims", **context: Any) -> None:
        """
        Commit staged claim changes.

        IntegrityError propagates for the caller to resolve; other store
        failures surface as InfrastructureError(operation).
        """
        with store_operation(operation, **context):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

"""
Catalog and purchase lookups.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from content_access.models.product import Product
from content_access.models.purchase import Purchase, PaymentStatus
from content_access.models.user import User
from content_access.repositories.base import store_operation

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Read access to products, purchases and principals."""

    def __init__(self, db_session: Session):
        """
        Initialize repository with database session.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    def get_product(self, content_type: str, content_id: str) -> Optional[Product]:
        """
        Get a product by its content reference.

        Returns:
            Product if found with the given type, None otherwise
        """
        with store_operation("get_product", content_type=content_type, content_id=content_id):
            return self.db.query(Product).filter(
                Product.id == content_id,
                Product.content_type == content_type,
            ).first()

    def get_user(self, user_id: str) -> Optional[User]:
        with store_operation("get_user", principal_id=user_id):
            return self.db.query(User).filter(User.id == user_id).first()

    def find_completed_purchase(
        self,
        buyer_id: str,
        content_type: str,
        content_id: str,
    ) -> Optional[Purchase]:
        """
        Find any completed purchase, expired or not.

        Used for claim eligibility: content that was ever bought outright is
        never drawn from a subscription allowance.
        """
        with store_operation(
            "find_completed_purchase",
            principal_id=buyer_id,
            content_type=content_type,
            content_id=content_id,
        ):
            return self.db.query(Purchase).filter(
                Purchase.buyer_id == buyer_id,
                Purchase.content_type == content_type,
                Purchase.content_id == content_id,
                Purchase.payment_status == PaymentStatus.COMPLETED,
            ).first()

    def find_valid_purchase(
        self,
        buyer_id: str,
        content_type: str,
        content_id: str,
        now: datetime,
    ) -> Optional[Purchase]:
        """
        Find a completed, unexpired purchase.

        Lifetime purchases (no expiry) are preferred over expiring ones.

        Returns:
            Purchase if one grants access at `now`, None otherwise
        """
        with store_operation(
            "find_valid_purchase",
            principal_id=buyer_id,
            content_type=content_type,
            content_id=content_id,
        ):
            purchases: List[Purchase] = self.db.query(Purchase).filter(
                Purchase.buyer_id == buyer_id,
                Purchase.content_type == content_type,
                Purchase.content_id == content_id,
                Purchase.payment_status == PaymentStatus.COMPLETED,
                or_(
                    Purchase.access_expires_at.is_(None),
                    Purchase.access_expires_at > now,
                ),
            ).all()

        if not purchases:
            return None
        return sorted(purchases, key=lambda p: p.access_expires_at is not None)[0]

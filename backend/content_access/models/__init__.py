"""
Database models for catalog access, subscriptions and claims.
"""

from content_access.models.base import TimestampMixin, generate_uuid
from content_access.models.user import User
from content_access.models.product import Product
from content_access.models.purchase import Purchase, PaymentStatus
from content_access.models.plan import SubscriptionPlan
from content_access.models.subscription import Subscription, SubscriptionStatus
from content_access.models.claim import SubscriptionClaim, ClaimStatus
from content_access.models.delegation import (
    TeacherAssignment,
    ClassroomMembership,
    MembershipStatus,
)

__all__ = [
    "TimestampMixin",
    "generate_uuid",
    "User",
    "Product",
    "Purchase",
    "PaymentStatus",
    "SubscriptionPlan",
    "Subscription",
    "SubscriptionStatus",
    "SubscriptionClaim",
    "ClaimStatus",
    "TeacherAssignment",
    "ClassroomMembership",
    "MembershipStatus",
]

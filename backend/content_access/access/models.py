"""
Typed results for access decisions, allowances and claims.

These are plain dataclasses, detached from the ORM session, so they can be
returned across service and API boundaries.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from content_access.access.clock import ensure_utc
from content_access.access.errors import AccessErrorCode

UNLIMITED = "unlimited"

Quota = Union[int, str]


class AccessType(str, Enum):
    """Layer that granted access."""
    CREATOR = "creator"
    PURCHASE = "purchase"
    SUBSCRIPTION_CLAIM = "subscription_claim"
    NONE = "none"


class AccessMethod(str, Enum):
    """How a subscription-claim grant was reached."""
    DIRECT_SUBSCRIPTION_CLAIM = "direct_subscription_claim"
    STUDENT_VIA_TEACHER_CLAIM = "student_via_teacher_claim"


CHECKED_LAYERS = [
    AccessType.CREATOR.value,
    AccessType.PURCHASE.value,
    AccessType.SUBSCRIPTION_CLAIM.value,
]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ContentValidation:
    """Outcome of the per-type validator."""
    applied: bool
    type: Optional[str] = None
    checks: List[str] = field(default_factory=list)
    passed: bool = True
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class AccessResult:
    """Result of an access check."""

    has_access: bool
    content_type: str
    content_id: str
    access_type: AccessType = AccessType.NONE
    reason: str = ""
    message: str = ""
    access_method: Optional[AccessMethod] = None
    allow_unpublished: bool = False
    is_lifetime_access: bool = False
    expires_at: Optional[datetime] = None
    checked_layers: List[str] = field(default_factory=list)
    teacher_id: Optional[str] = None
    claim_id: Optional[str] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)
    content_validation: Optional[ContentValidation] = None
    error_code: Optional[AccessErrorCode] = None

    @classmethod
    def denied(
        cls,
        content_type: str,
        content_id: str,
        reason: str,
        message: str = "",
        error_code: AccessErrorCode = AccessErrorCode.FORBIDDEN,
        **kwargs: Any,
    ) -> "AccessResult":
        return cls(
            has_access=False,
            content_type=content_type,
            content_id=content_id,
            reason=reason,
            message=message,
            error_code=error_code,
            **kwargs,
        )

    def to_dict(self) -> dict:
        return {
            "has_access": self.has_access,
            "access_type": self.access_type.value,
            "access_method": self.access_method.value if self.access_method else None,
            "reason": self.reason,
            "message": self.message,
            "content_type": self.content_type,
            "content_id": self.content_id,
            "allow_unpublished": self.allow_unpublished,
            "is_lifetime_access": self.is_lifetime_access,
            "expires_at": _iso(self.expires_at),
            "checked_layers": list(self.checked_layers),
            "teacher_id": self.teacher_id,
            "capabilities": dict(self.capabilities),
            "content_validation": asdict(self.content_validation) if self.content_validation else None,
            "error_code": self.error_code.value if self.error_code else None,
        }


@dataclass(frozen=True)
class AllowanceEntry:
    """Quota state for one content type in one period."""

    content_type: str
    allowed: Quota
    used: int
    remaining: Quota
    is_limited: bool
    has_reached_limit: bool
    not_included: bool = False

    @property
    def is_unlimited(self) -> bool:
        return self.allowed == UNLIMITED

    def to_dict(self) -> dict:
        data = {
            "allowed": self.allowed,
            "used": self.used,
            "remaining": self.remaining,
            "is_limited": self.is_limited,
            "has_reached_limit": self.has_reached_limit,
        }
        if self.not_included:
            data["not_included"] = True
        return data


@dataclass
class AllowanceSnapshot:
    """Per-type allowances of a subscription for a billing period."""

    subscription_id: str
    plan_id: str
    plan_name: Optional[str]
    period: str
    benefits_source: str
    allowances: Dict[str, AllowanceEntry] = field(default_factory=dict)

    def get(self, content_type: str) -> Optional[AllowanceEntry]:
        return self.allowances.get(content_type)

    def to_dict(self) -> dict:
        return {
            "subscription_id": self.subscription_id,
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "period": self.period,
            "benefits_source": self.benefits_source,
            "allowances": {k: v.to_dict() for k, v in self.allowances.items()},
        }


@dataclass(frozen=True)
class ClaimRecord:
    """Detached view of a SubscriptionClaim row."""

    id: str
    user_id: str
    subscription_id: str
    content_type: str
    content_id: str
    period: str
    status: str
    claimed_at: Optional[datetime]
    parent_claim_id: Optional[str] = None

    @classmethod
    def from_model(cls, claim) -> "ClaimRecord":
        return cls(
            id=claim.id,
            user_id=claim.user_id,
            subscription_id=claim.subscription_id,
            content_type=claim.content_type,
            content_id=claim.content_id,
            period=claim.period,
            status=claim.status,
            claimed_at=ensure_utc(claim.claimed_at),
            parent_claim_id=claim.parent_claim_id,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["claimed_at"] = _iso(self.claimed_at)
        return data


@dataclass
class ClaimEligibility:
    """Answer to "may this principal claim this item now?"."""

    can_claim: bool
    reason: Optional[str] = None
    error_code: Optional[AccessErrorCode] = None
    remaining: Optional[Quota] = None
    requires_confirmation: bool = False
    already_claimed: bool = False
    allowance: Optional[AllowanceEntry] = None

    def to_dict(self) -> dict:
        return {
            "can_claim": self.can_claim,
            "reason": self.reason,
            "error_code": self.error_code.value if self.error_code else None,
            "remaining": self.remaining,
            "requires_confirmation": self.requires_confirmation,
            "already_claimed": self.already_claimed,
            "allowance": self.allowance.to_dict() if self.allowance else None,
        }


@dataclass
class ClaimResult:
    """Outcome of a claim attempt."""

    success: bool
    already_claimed: bool = False
    needs_confirmation: bool = False
    claim: Optional[ClaimRecord] = None
    child_claims: List[ClaimRecord] = field(default_factory=list)
    remaining_claims: Optional[Quota] = None
    reason: Optional[str] = None
    error_code: Optional[AccessErrorCode] = None
    allowance: Optional[AllowanceEntry] = None

    @classmethod
    def failure(cls, error_code: AccessErrorCode, reason: str, **kwargs: Any) -> "ClaimResult":
        return cls(success=False, error_code=error_code, reason=reason, **kwargs)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "already_claimed": self.already_claimed,
            "needs_confirmation": self.needs_confirmation,
            "claim": self.claim.to_dict() if self.claim else None,
            "child_claims": [c.to_dict() for c in self.child_claims],
            "remaining_claims": self.remaining_claims,
            "reason": self.reason,
            "error_code": self.error_code.value if self.error_code else None,
            "allowance": self.allowance.to_dict() if self.allowance else None,
        }


@dataclass(frozen=True)
class DirectClaimResult:
    """Whether a principal holds a usable claim of their own."""

    has_claim: bool
    reason: str
    claim: Optional[ClaimRecord] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class RevocationResult:
    """Outcome of a revocation."""

    claim_id: str
    revoked_count: int
    revoked_claim_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "claim_id": self.claim_id,
            "revoked_count": self.revoked_count,
            "revoked_claim_ids": list(self.revoked_claim_ids),
        }

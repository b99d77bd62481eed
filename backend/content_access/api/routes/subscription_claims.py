"""
Subscription claim routes: allowances, eligibility, claiming, usage and
revocation.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from content_access.access.errors import ContentAccessError
from content_access.access.usage import UsageEvent
from content_access.api.dependencies import (
    error_response,
    get_content_access_service,
    get_current_user_id,
    require_admin,
)
from content_access.services.content_access_service import ContentAccessService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription-claims", tags=["subscription-claims"])

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

Quota = Union[int, str]


# Request/Response models
class AllowanceEntryResponse(BaseModel):
    allowed: Quota
    used: int
    remaining: Quota
    is_limited: bool
    has_reached_limit: bool
    not_included: bool = False


class AllowancesResponse(BaseModel):
    """Monthly allowances; has_subscription is false without an active plan."""
    has_subscription: bool
    subscription_id: Optional[str] = None
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    period: Optional[str] = None
    benefits_source: Optional[str] = None
    allowances: Dict[str, AllowanceEntryResponse] = {}


class EligibilityResponse(BaseModel):
    can_claim: bool
    reason: Optional[str] = None
    error_code: Optional[str] = None
    remaining: Optional[Quota] = None
    requires_confirmation: bool = False
    already_claimed: bool = False


class ClaimRequest(BaseModel):
    """Request to claim a product against the monthly allowance."""
    content_type: str = Field(..., description="Catalog content type")
    content_id: str = Field(..., description="Product ID")
    skip_confirmation: bool = Field(False, description="Caller confirmed using a limited claim")


class ClaimRecordResponse(BaseModel):
    id: str
    user_id: str
    subscription_id: str
    content_type: str
    content_id: str
    period: str
    status: str
    claimed_at: Optional[str] = None
    parent_claim_id: Optional[str] = None


class ClaimResponse(BaseModel):
    success: bool
    already_claimed: bool = False
    needs_confirmation: bool = False
    claim: Optional[ClaimRecordResponse] = None
    child_claims: List[ClaimRecordResponse] = []
    remaining_claims: Optional[Quota] = None
    reason: Optional[str] = None
    error_code: Optional[str] = None


class UsageRequest(BaseModel):
    """A usage event for a claimed product."""
    duration_minutes: float = Field(0, ge=0)
    activity_type: str = "view"
    completion_percent: int = Field(0, ge=0, le=100)
    session_id: Optional[str] = None
    device_info: Optional[str] = None
    feature_action: Optional[str] = None
    extensions: Dict[str, Union[str, int, float, bool, None]] = {}


class UsageResponse(BaseModel):
    total_sessions: int
    total_usage_minutes: float
    completion_status: str
    usage_pattern: str
    retention_score: float


class UsageSummaryResponse(BaseModel):
    period: str
    total_claims: int
    claims_by_type: Dict[str, int]
    total_sessions: int
    total_usage_minutes: float
    average_engagement: float
    completion_rate: int
    recent_activity: List[Dict[str, Any]]


class RevokeResponse(BaseModel):
    claim_id: str
    revoked_count: int
    revoked_claim_ids: List[str]


@router.get("/allowances", response_model=AllowancesResponse)
def get_allowances(
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """Get the caller's monthly allowances per content type."""
    try:
        snapshot = service.get_monthly_allowances(user_id, period)
    except ContentAccessError as e:
        return error_response(e)

    if snapshot is None:
        return AllowancesResponse(has_subscription=False)
    return AllowancesResponse(has_subscription=True, **snapshot.to_dict())


@router.get("/usage-summary", response_model=UsageSummaryResponse)
def get_usage_summary(
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """Summarize usage of the caller's claims for a period."""
    try:
        summary = service.get_user_usage_summary(user_id, period)
    except ContentAccessError as e:
        return error_response(e)
    return UsageSummaryResponse(**summary.to_dict())


@router.get("/{content_type}/{content_id}/eligibility", response_model=EligibilityResponse)
def get_claim_eligibility(
    content_type: str,
    content_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """Check whether the caller can claim a product right now."""
    try:
        eligibility = service.can_claim_product(user_id, content_type, content_id)
    except ContentAccessError as e:
        return error_response(e)

    data = eligibility.to_dict()
    data.pop("allowance", None)
    return EligibilityResponse(**data)


@router.post("", response_model=ClaimResponse)
def claim_product(
    claim_request: ClaimRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """
    Claim a product against the caller's monthly allowance.

    Limited benefits return needs_confirmation=true until the request is
    repeated with skip_confirmation=true.
    """
    logger.info("Claim requested", extra={
        "principal_id": user_id,
        "content_type": claim_request.content_type,
        "content_id": claim_request.content_id,
    })

    try:
        result = service.claim_product(
            user_id,
            claim_request.content_type,
            claim_request.content_id,
            skip_confirmation=claim_request.skip_confirmation,
        )
    except ContentAccessError as e:
        return error_response(e)

    data = result.to_dict()
    data.pop("allowance", None)
    return ClaimResponse(**data)


@router.post("/{content_type}/{content_id}/usage", response_model=UsageResponse)
def record_usage(
    content_type: str,
    content_id: str,
    usage_request: UsageRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """Record a usage session on the caller's claim."""
    event = UsageEvent(**usage_request.model_dump())
    try:
        usage = service.record_usage(user_id, content_type, content_id, event)
    except ContentAccessError as e:
        return error_response(e)

    return UsageResponse(
        total_sessions=usage.total_sessions,
        total_usage_minutes=usage.total_usage_minutes,
        completion_status=usage.completion_status,
        usage_pattern=usage.engagement.usage_pattern,
        retention_score=usage.engagement.retention_score,
    )


@router.delete("/{claim_id}", response_model=RevokeResponse)
def revoke_claim(
    claim_id: str,
    reason: Optional[str] = Query(None, max_length=255),
    admin_id: str = Depends(require_admin),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """Revoke a claim and its bundle children (admin only)."""
    logger.info("Claim revocation requested", extra={"claim_id": claim_id, "admin_id": admin_id})
    try:
        result = service.revoke_claim(claim_id, reason=reason)
    except ContentAccessError as e:
        return error_response(e)
    return RevokeResponse(**result.to_dict())

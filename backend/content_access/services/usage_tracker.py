"""
Usage tracking on subscription claims.

Every recorded event goes through ClaimUsage so the stored JSON always
matches the typed structure. Delegated (student via teacher) usage is
recorded on the teacher's claim with student attribution.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from content_access.access.clock import Clock, utc_now, period_for, resolve_timezone, is_valid_period
from content_access.access.errors import InfrastructureError, InvalidUsageError, NotFoundError
from content_access.access.usage import ClaimUsage, CompletionStatus, UsageEvent
from content_access.config.settings import AccessSettings, get_access_settings
from content_access.constants.content_types import ContentType
from content_access.models.claim import SubscriptionClaim
from content_access.repositories.claim_repository import ClaimRepository

logger = logging.getLogger(__name__)


@dataclass
class UsageSummary:
    """A principal's claim usage for one period."""
    period: str
    total_claims: int = 0
    claims_by_type: Dict[str, int] = field(default_factory=dict)
    total_sessions: int = 0
    total_usage_minutes: float = 0
    average_engagement: float = 0
    completion_rate: int = 0
    recent_activity: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "total_claims": self.total_claims,
            "claims_by_type": dict(self.claims_by_type),
            "total_sessions": self.total_sessions,
            "total_usage_minutes": self.total_usage_minutes,
            "average_engagement": self.average_engagement,
            "completion_rate": self.completion_rate,
            "recent_activity": list(self.recent_activity),
        }


class UsageTracker:
    """Records and summarizes claim usage."""

    def __init__(
        self,
        db_session: Session,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
    ):
        self.db = db_session
        self.claims = ClaimRepository(db_session)
        self._clock = clock or utc_now
        self._settings = settings or get_access_settings()
        self._tz = resolve_timezone(self._settings.period_timezone)

    def get_usage(self, claim: SubscriptionClaim) -> ClaimUsage:
        return ClaimUsage.from_dict(claim.usage, claimed_at=claim.claimed_at)

    def record_usage(
        self,
        user_id: str,
        content_type: str,
        content_id: str,
        event: UsageEvent,
    ) -> ClaimUsage:
        """
        Record usage against the principal's active claim.

        Raises:
            NotFoundError: If no active claim exists
            InvalidUsageError: If the event is rejected
            InfrastructureError: If the store fails
        """
        ctype = ContentType.parse(content_type)
        if ctype is None:
            raise NotFoundError(f"Unknown content type '{content_type}'")
        event.validate(ctype)

        claims = self.claims.find_active_for_user(user_id, content_type, content_id)
        if not claims:
            raise NotFoundError(
                "No active subscription claim found for this product",
                details={"content_type": content_type, "content_id": content_id},
            )
        return self.record_on_claim(claims[0], event)

    def record_on_claim(self, claim: SubscriptionClaim, event: UsageEvent) -> ClaimUsage:
        """Fold an event into a specific claim's usage and commit."""
        ctype = ContentType(claim.content_type)
        event.validate(ctype)

        usage = self.get_usage(claim)
        usage.apply(event, self._clock(), max_sessions=self._settings.max_tracked_sessions)

        try:
            claim.usage = usage.to_dict()
            self.claims.commit("record_usage", claim_id=claim.id)
        except InfrastructureError:
            self.claims.rollback()
            raise

        logger.info(
            "Usage recorded",
            extra={
                "claim_id": claim.id,
                "access_type": event.access_type,
                "total_sessions": usage.total_sessions,
                "total_usage_minutes": usage.total_usage_minutes,
            },
        )
        return usage

    def get_user_usage_summary(self, user_id: str, period: Optional[str] = None) -> UsageSummary:
        """
        Summarize a principal's active claims for a period.

        Claims whose stored usage fails validation are counted but their
        usage is skipped.
        """
        if period is not None and not is_valid_period(period):
            raise ValueError(f"Invalid period '{period}', expected YYYY-MM")
        period = period or period_for(self._clock(), self._tz)

        claims = self.claims.list_active_for_user_period(user_id, period)
        summary = UsageSummary(period=period, total_claims=len(claims))

        completed = 0
        engagement_scores = []
        for claim in claims:
            summary.claims_by_type[claim.content_type] = summary.claims_by_type.get(claim.content_type, 0) + 1
            try:
                usage = self.get_usage(claim)
            except InvalidUsageError as e:
                logger.warning("Skipping malformed usage record", extra={"claim_id": claim.id, "error": str(e)})
                continue

            summary.total_sessions += usage.total_sessions
            summary.total_usage_minutes += usage.total_usage_minutes
            engagement_scores.append(usage.engagement.retention_score)
            if usage.completion_status == CompletionStatus.COMPLETED:
                completed += 1

            if usage.last_accessed:
                summary.recent_activity.append({
                    "content_type": claim.content_type,
                    "content_id": claim.content_id,
                    "last_accessed": usage.last_accessed,
                    "total_sessions": usage.total_sessions,
                    "total_minutes": usage.total_usage_minutes,
                    "usage_pattern": usage.engagement.usage_pattern,
                    "completion_status": usage.completion_status,
                })

        if engagement_scores:
            summary.average_engagement = round(sum(engagement_scores) / len(engagement_scores), 2)
        if claims:
            summary.completion_rate = round(completed / len(claims) * 100)

        summary.recent_activity.sort(key=lambda a: a["last_accessed"], reverse=True)
        summary.recent_activity = summary.recent_activity[: self._settings.recent_activity_limit]
        return summary

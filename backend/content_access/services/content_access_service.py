"""
Content access facade.

Wires the resolver, arbiter, calculator, validator and usage tracker around
one database session and exposes the operations consumed by the API layer.

Usage:
    service = ContentAccessService(db_session)
    result = service.check_access(user_id, "game", game_id)
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from content_access.access.cache import TTLCache
from content_access.access.clock import Clock, utc_now
from content_access.access.models import (
    AccessResult,
    AllowanceSnapshot,
    ClaimEligibility,
    ClaimResult,
    RevocationResult,
)
from content_access.access.usage import ClaimUsage, UsageEvent
from content_access.config.settings import AccessSettings, get_access_settings
from content_access.services.access_resolver import AccessResolver
from content_access.services.allowance_calculator import AllowanceCalculator
from content_access.services.claim_arbiter import ClaimArbiter
from content_access.services.content_validator import ContentValidator
from content_access.services.delegated_access import DelegatedAccessResolver
from content_access.services.usage_tracker import UsageSummary, UsageTracker

logger = logging.getLogger(__name__)


class ContentAccessService:
    """Entry point for access checks and subscription claims."""

    def __init__(
        self,
        db_session: Session,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
        delegate_cache: Optional[TTLCache] = None,
    ):
        clock = clock or utc_now
        settings = settings or get_access_settings()

        self.allowances = AllowanceCalculator(db_session, clock=clock, settings=settings)
        self.arbiter = ClaimArbiter(db_session, allowances=self.allowances)
        self.usage = UsageTracker(db_session, clock=clock, settings=settings)
        self.delegated = DelegatedAccessResolver(
            db_session,
            claim_arbiter=self.arbiter,
            usage_tracker=self.usage,
            delegate_cache=delegate_cache,
            clock=clock,
            settings=settings,
        )
        self.validator = ContentValidator(db_session, clock=clock)
        self.resolver = AccessResolver(
            db_session,
            claim_arbiter=self.arbiter,
            delegated_resolver=self.delegated,
            content_validator=self.validator,
            clock=clock,
        )

    def check_access(self, principal_id: str, content_type: str, content_id: str) -> AccessResult:
        return self.resolver.check_access(principal_id, content_type, content_id)

    def can_claim_product(self, principal_id: str, content_type: str, content_id: str) -> ClaimEligibility:
        return self.arbiter.can_claim(principal_id, content_type, content_id)

    def claim_product(
        self,
        principal_id: str,
        content_type: str,
        content_id: str,
        skip_confirmation: bool = False,
    ) -> ClaimResult:
        return self.arbiter.claim_product(principal_id, content_type, content_id, skip_confirmation=skip_confirmation)

    def get_monthly_allowances(self, principal_id: str, period: Optional[str] = None) -> Optional[AllowanceSnapshot]:
        return self.allowances.calculate_monthly_allowances(principal_id, period)

    def revoke_claim(self, claim_id: str, reason: Optional[str] = None) -> RevocationResult:
        return self.arbiter.revoke_claim(claim_id, reason=reason)

    def record_usage(
        self,
        principal_id: str,
        content_type: str,
        content_id: str,
        event: UsageEvent,
    ) -> ClaimUsage:
        return self.usage.record_usage(principal_id, content_type, content_id, event)

    def get_user_usage_summary(self, principal_id: str, period: Optional[str] = None) -> UsageSummary:
        return self.usage.get_user_usage_summary(principal_id, period)

"""
Allowance Calculator - monthly claim quotas per content type.

Benefits are resolved snapshot-first: the plan snapshot stored on the
subscription wins over the live plan, so editing a plan never changes what
an existing subscriber is entitled to. Subscriptions without a snapshot
(legacy rows) fall back to the live plan until a claim records one.

Quotas are per calendar month with no rollover. Counting is scoped to the
claim's period, so a new month starts at zero.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from content_access.access.clock import Clock, utc_now, period_for, resolve_timezone, is_valid_period
from content_access.access.models import AllowanceEntry, AllowanceSnapshot, UNLIMITED
from content_access.config.settings import AccessSettings, get_access_settings
from content_access.models.subscription import Subscription
from content_access.repositories.claim_repository import ClaimRepository
from content_access.repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)

BENEFITS_SOURCE_SNAPSHOT = "snapshot"
BENEFITS_SOURCE_LIVE_PLAN = "live_plan"


def parse_benefit(benefit: Any) -> Optional[Any]:
    """
    Normalize one benefit value.

    Returns:
        UNLIMITED, a positive int limit, or None when not included
    """
    if benefit is True or benefit == UNLIMITED:
        return UNLIMITED
    # bool is an int subclass; False must not read as a limit of 0
    if isinstance(benefit, int) and not isinstance(benefit, bool) and benefit > 0:
        return benefit
    return None


def benefit_includes(benefits: Optional[Dict[str, Any]], content_type: str) -> bool:
    """True when the benefit map grants the content type at all."""
    if not benefits:
        return False
    return parse_benefit(benefits.get(content_type)) is not None


def build_entry(content_type: str, benefit: Any, used: int) -> AllowanceEntry:
    """Compute quota state for one content type."""
    limit = parse_benefit(benefit)
    if limit == UNLIMITED:
        return AllowanceEntry(
            content_type=content_type,
            allowed=UNLIMITED,
            used=used,
            remaining=UNLIMITED,
            is_limited=False,
            has_reached_limit=False,
        )
    if limit is not None:
        return AllowanceEntry(
            content_type=content_type,
            allowed=limit,
            used=used,
            remaining=max(0, limit - used),
            is_limited=True,
            has_reached_limit=used >= limit,
        )
    return AllowanceEntry(
        content_type=content_type,
        allowed=0,
        used=0,
        remaining=0,
        is_limited=True,
        has_reached_limit=True,
        not_included=True,
    )


class AllowanceCalculator:
    """Computes per-type quota usage for a principal's active subscription."""

    def __init__(
        self,
        db_session: Session,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
    ):
        self.db = db_session
        self.subscriptions = SubscriptionRepository(db_session)
        self.claims = ClaimRepository(db_session)
        self._clock = clock or utc_now
        settings = settings or get_access_settings()
        self._tz = resolve_timezone(settings.period_timezone)

    def now(self) -> datetime:
        return self._clock()

    def current_period(self) -> str:
        """Current billing period (YYYY-MM) in the configured timezone."""
        return period_for(self._clock(), self._tz)

    def get_active_subscription(self, user_id: str) -> Optional[Subscription]:
        return self.subscriptions.get_active_for_user(user_id, self._clock())

    def effective_benefits(self, subscription: Subscription) -> Tuple[Dict[str, Any], str]:
        """
        Resolve the benefit map for a subscription.

        Returns:
            (benefits, source) where source is "snapshot" or "live_plan"
        """
        snapshot = subscription.snapshot_benefits
        if snapshot is not None:
            return snapshot, BENEFITS_SOURCE_SNAPSHOT

        live = (subscription.plan.benefits if subscription.plan else None) or {}
        logger.debug(
            "Subscription has no plan snapshot, using live plan benefits",
            extra={"subscription_id": subscription.id, "plan_id": subscription.plan_id},
        )
        return live, BENEFITS_SOURCE_LIVE_PLAN

    def ensure_plan_snapshot(self, subscription: Subscription) -> bool:
        """
        Record the live plan's benefits onto a subscription lacking a snapshot.

        Flushes but does not commit; the caller's transaction owns the write.

        Returns:
            True if a snapshot was written
        """
        if subscription.snapshot_benefits is not None:
            return False

        plan = subscription.plan
        snapshot = {
            "plan_id": subscription.plan_id,
            "plan_name": plan.name if plan else None,
            "benefits": dict((plan.benefits if plan else None) or {}),
            "captured_at": self._clock().isoformat(),
        }
        self.subscriptions.save_plan_snapshot(subscription, snapshot)
        logger.info(
            "Recorded plan snapshot on subscription",
            extra={"subscription_id": subscription.id, "plan_id": subscription.plan_id},
        )
        return True

    def allowance_for(
        self,
        subscription: Subscription,
        content_type: str,
        period: Optional[str] = None,
    ) -> AllowanceEntry:
        """Quota state for a single content type."""
        period = period or self.current_period()
        benefits, _ = self.effective_benefits(subscription)
        counts = self.claims.count_by_type(subscription.id, period)
        return build_entry(content_type, benefits.get(content_type), counts.get(content_type, 0))

    def build_snapshot(self, subscription: Subscription, period: str) -> AllowanceSnapshot:
        benefits, source = self.effective_benefits(subscription)
        counts = self.claims.count_by_type(subscription.id, period)

        plan_name = (subscription.plan_snapshot or {}).get("plan_name")
        if plan_name is None and subscription.plan is not None:
            plan_name = subscription.plan.name

        return AllowanceSnapshot(
            subscription_id=subscription.id,
            plan_id=subscription.plan_id,
            plan_name=plan_name,
            period=period,
            benefits_source=source,
            allowances={
                content_type: build_entry(content_type, benefit, counts.get(content_type, 0))
                for content_type, benefit in benefits.items()
            },
        )

    def calculate_monthly_allowances(
        self,
        user_id: str,
        period: Optional[str] = None,
    ) -> Optional[AllowanceSnapshot]:
        """
        Calculate a principal's allowances for a billing period.

        Args:
            user_id: Principal ID
            period: YYYY-MM; defaults to the current month

        Returns:
            AllowanceSnapshot, or None without an active subscription

        Raises:
            ValueError: If period is not YYYY-MM
        """
        if period is not None and not is_valid_period(period):
            raise ValueError(f"Invalid period '{period}', expected YYYY-MM")
        period = period or self.current_period()

        subscription = self.get_active_subscription(user_id)
        if subscription is None:
            logger.debug("No active subscription for allowance calculation", extra={"principal_id": user_id})
            return None

        snapshot = self.build_snapshot(subscription, period)
        logger.debug(
            "Calculated monthly allowances",
            extra={
                "principal_id": user_id,
                "subscription_id": subscription.id,
                "period": period,
                "benefits_source": snapshot.benefits_source,
            },
        )
        return snapshot

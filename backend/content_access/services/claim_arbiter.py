"""
Claim Arbiter - validates, creates and revokes subscription claims.

Claim creation is idempotent per (subscription, content_type, content_id).
There is no lock between "check allowance" and "insert": the store's unique
constraint arbitrates concurrent inserts, and the loser of a race re-reads
the winner's row and reports alreadyClaimed.

Revocation is not idempotent. A revoked claim is terminal and revoking it
again raises AlreadyRevokedError. Bundle children are revoked with their
parent in the same transaction.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from content_access.access.clock import Clock, ensure_utc
from content_access.access.errors import (
    AccessErrorCode,
    AlreadyRevokedError,
    InfrastructureError,
    NotFoundError,
)
from content_access.access.models import (
    AllowanceEntry,
    ClaimEligibility,
    ClaimRecord,
    ClaimResult,
    DirectClaimResult,
    RevocationResult,
    UNLIMITED,
)
from content_access.access.usage import ClaimUsage
from content_access.config.settings import AccessSettings
from content_access.constants.content_types import ContentType
from content_access.models.base import generate_uuid
from content_access.models.claim import SubscriptionClaim, ClaimStatus
from content_access.models.product import Product
from content_access.models.subscription import Subscription
from content_access.repositories.catalog_repository import CatalogRepository
from content_access.repositories.claim_repository import ClaimRepository
from content_access.services.allowance_calculator import AllowanceCalculator, benefit_includes

logger = logging.getLogger(__name__)

# Insert attempts before a persistent constraint conflict is treated as a
# store failure (a bundle child can lose a race even when the parent wins).
MAX_CLAIM_ATTEMPTS = 2

REASON_NO_SUBSCRIPTION = "No active subscription"
REASON_PURCHASED = "You already own this product via direct purchase"
REASON_OWN_PRODUCT = "You cannot claim your own products"
REASON_REVOKED = "This product's claim was revoked and cannot be claimed again"


def _remaining_after_claim(entry: AllowanceEntry):
    if entry.remaining == UNLIMITED:
        return UNLIMITED
    return max(0, entry.remaining - 1)


class ClaimArbiter:
    """Claim preconditions, idempotent claim creation and revocation."""

    def __init__(
        self,
        db_session: Session,
        allowances: Optional[AllowanceCalculator] = None,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
    ):
        self.db = db_session
        self.allowances = allowances or AllowanceCalculator(db_session, clock=clock, settings=settings)
        self.catalog = CatalogRepository(db_session)
        self.claims = ClaimRepository(db_session)

    # =========================================================================
    # Preconditions
    # =========================================================================

    def validate_product_access(
        self,
        user_id: str,
        content_type: str,
        content_id: str,
    ) -> Tuple[Optional[Product], Optional[ClaimResult]]:
        """
        Check that a product may be claimed by this principal at all.

        Order: exists, published, not purchased, not owned. Any completed
        purchase blocks the claim, including one whose access has expired.

        Returns:
            (product, None) when claimable, (product_or_none, failure) otherwise
        """
        if ContentType.parse(content_type) is None:
            return None, ClaimResult.failure(
                AccessErrorCode.NOT_FOUND, f"Unknown content type '{content_type}'"
            )

        product = self.catalog.get_product(content_type, content_id)
        if product is None:
            return None, ClaimResult.failure(AccessErrorCode.NOT_FOUND, "Product not found")

        if not product.is_published:
            return product, ClaimResult.failure(AccessErrorCode.FORBIDDEN, "Product is not published")

        purchase = self.catalog.find_completed_purchase(user_id, content_type, content_id)
        if purchase is not None:
            return product, ClaimResult.failure(AccessErrorCode.ALREADY_OWNED, REASON_PURCHASED)

        if product.owner_id == user_id:
            return product, ClaimResult.failure(AccessErrorCode.ALREADY_OWNED, REASON_OWN_PRODUCT)

        return product, None

    @staticmethod
    def _allowance_failure(entry: AllowanceEntry) -> Optional[Tuple[AccessErrorCode, str]]:
        if entry.not_included:
            return (
                AccessErrorCode.ALLOWANCE_EXCEEDED,
                f"Product type {entry.content_type} not included in your subscription plan",
            )
        if entry.has_reached_limit:
            return (
                AccessErrorCode.ALLOWANCE_EXCEEDED,
                f"Monthly limit reached for {entry.content_type}",
            )
        return None

    def can_claim(self, user_id: str, content_type: str, content_id: str) -> ClaimEligibility:
        """
        Dry run of claim_product.

        An item already claimed under the active subscription reports
        can_claim=True with already_claimed=True and needs no confirmation.
        """
        _, failure = self.validate_product_access(user_id, content_type, content_id)
        if failure:
            return ClaimEligibility(can_claim=False, reason=failure.reason, error_code=failure.error_code)

        subscription = self.allowances.get_active_subscription(user_id)
        if subscription is None:
            return ClaimEligibility(
                can_claim=False,
                reason=REASON_NO_SUBSCRIPTION,
                error_code=AccessErrorCode.FORBIDDEN,
            )

        entry = self.allowances.allowance_for(subscription, content_type)
        existing = self.claims.find_by_content(subscription.id, content_type, content_id)
        if existing is not None:
            if not existing.is_active:
                return ClaimEligibility(
                    can_claim=False,
                    reason=REASON_REVOKED,
                    error_code=AccessErrorCode.FORBIDDEN,
                    allowance=entry,
                )
            return ClaimEligibility(
                can_claim=True,
                already_claimed=True,
                remaining=entry.remaining,
                allowance=entry,
            )

        failure = self._allowance_failure(entry)
        if failure:
            code, reason = failure
            return ClaimEligibility(can_claim=False, reason=reason, error_code=code, remaining=entry.remaining, allowance=entry)

        return ClaimEligibility(
            can_claim=True,
            remaining=entry.remaining,
            requires_confirmation=entry.is_limited,
            allowance=entry,
        )

    # =========================================================================
    # Claim creation
    # =========================================================================

    def claim_product(
        self,
        user_id: str,
        content_type: str,
        content_id: str,
        skip_confirmation: bool = False,
    ) -> ClaimResult:
        """
        Claim a product against the principal's monthly allowance.

        Args:
            user_id: Claiming principal
            content_type: Catalog content type
            content_id: Product ID
            skip_confirmation: Caller confirmed spending a limited claim

        Returns:
            ClaimResult; business failures are reported, not raised

        Raises:
            InfrastructureError: If the store fails
        """
        log_ctx = {"principal_id": user_id, "content_type": content_type, "content_id": content_id}

        product, failure = self.validate_product_access(user_id, content_type, content_id)
        if failure:
            logger.info("Claim rejected by product validation", extra={**log_ctx, "reason": failure.reason})
            return failure

        subscription = self.allowances.get_active_subscription(user_id)
        if subscription is None:
            return ClaimResult.failure(AccessErrorCode.FORBIDDEN, REASON_NO_SUBSCRIPTION)

        period = self.allowances.current_period()
        entry = self.allowances.allowance_for(subscription, content_type, period)

        existing = self.claims.find_by_content(subscription.id, content_type, content_id)
        if existing is not None:
            return self._existing_claim_result(existing, entry, log_ctx)

        allowance_failure = self._allowance_failure(entry)
        if allowance_failure:
            code, reason = allowance_failure
            logger.info("Claim rejected by allowance", extra={**log_ctx, "reason": reason})
            return ClaimResult.failure(code, reason, remaining_claims=entry.remaining, allowance=entry)

        if entry.is_limited and not skip_confirmation:
            return ClaimResult(
                success=False,
                needs_confirmation=True,
                error_code=AccessErrorCode.NEEDS_CONFIRMATION,
                reason=(
                    f"Claiming uses 1 of your {entry.remaining} remaining "
                    f"{content_type} claims this month"
                ),
                remaining_claims=entry.remaining,
                allowance=entry,
            )

        return self._create_claims(user_id, subscription, product, period, entry, log_ctx)

    def _existing_claim_result(self, existing: SubscriptionClaim, entry: AllowanceEntry, log_ctx: dict) -> ClaimResult:
        if not existing.is_active:
            return ClaimResult.failure(
                AccessErrorCode.FORBIDDEN,
                REASON_REVOKED,
                claim=ClaimRecord.from_model(existing),
            )
        logger.debug("Product already claimed", extra={**log_ctx, "claim_id": existing.id})
        return ClaimResult(
            success=True,
            already_claimed=True,
            claim=ClaimRecord.from_model(existing),
            remaining_claims=entry.remaining,
            allowance=entry,
        )

    def _build_claim(
        self,
        user_id: str,
        subscription: Subscription,
        content_type: str,
        content_id: str,
        period: str,
        parent_claim_id: Optional[str] = None,
    ) -> SubscriptionClaim:
        now = self.allowances.now()
        return SubscriptionClaim(
            id=generate_uuid(),
            user_id=user_id,
            subscription_id=subscription.id,
            content_type=content_type,
            content_id=content_id,
            period=period,
            status=ClaimStatus.ACTIVE,
            claimed_at=now,
            parent_claim_id=parent_claim_id,
            usage=ClaimUsage.initial(now).to_dict(),
        )

    def _bundle_children(
        self,
        user_id: str,
        subscription: Subscription,
        product: Product,
        parent: SubscriptionClaim,
        period: str,
    ) -> List[SubscriptionClaim]:
        """
        Build child claims for a bundle's items.

        Items the principal could not claim directly (missing, unpublished,
        purchased or owned) are skipped, as are items already claimed under
        this subscription.
        """
        children = []
        seen = set()
        for item in product.bundle_items or []:
            child_type = item.get("content_type") if isinstance(item, dict) else None
            child_id = item.get("content_id") if isinstance(item, dict) else None
            if ContentType.parse(child_type) is None or not child_id:
                logger.warning(
                    "Skipping malformed bundle item",
                    extra={"content_id": product.id, "item": repr(item)},
                )
                continue
            if (child_type, child_id) in seen or (child_type, child_id) == (product.content_type, product.id):
                continue
            seen.add((child_type, child_id))
            _, failure = self.validate_product_access(user_id, child_type, child_id)
            if failure:
                logger.info(
                    "Skipping bundle item not claimable by principal",
                    extra={
                        "principal_id": user_id,
                        "content_id": product.id,
                        "item_content_type": child_type,
                        "item_content_id": child_id,
                        "reason": failure.reason,
                    },
                )
                continue
            if self.claims.find_by_content(subscription.id, child_type, child_id) is not None:
                continue
            children.append(
                self._build_claim(user_id, subscription, child_type, child_id, period, parent_claim_id=parent.id)
            )
        return children

    def _create_claims(
        self,
        user_id: str,
        subscription: Subscription,
        product: Product,
        period: str,
        entry: AllowanceEntry,
        log_ctx: dict,
    ) -> ClaimResult:
        subscription_id = subscription.id
        content_type, content_id = product.content_type, product.id

        for attempt in range(1, MAX_CLAIM_ATTEMPTS + 1):
            try:
                self.allowances.ensure_plan_snapshot(subscription)
                parent = self._build_claim(user_id, subscription, content_type, content_id, period)
                children = self._bundle_children(user_id, subscription, product, parent, period)
                self.claims.add(parent)
                for child in children:
                    self.claims.add(child)
                self.claims.commit("create_claim", **log_ctx)
            except IntegrityError as e:
                self.claims.rollback()
                winner = self.claims.find_by_content(subscription_id, content_type, content_id)
                if winner is not None:
                    logger.warning(
                        "Concurrent claim resolved to existing claim",
                        extra={**log_ctx, "claim_id": winner.id},
                    )
                    result = self._existing_claim_result(winner, entry, log_ctx)
                    if result.success:
                        result.error_code = AccessErrorCode.CONFLICT_RESOLVED
                    return result
                if attempt == MAX_CLAIM_ATTEMPTS:
                    raise InfrastructureError("create_claim", e, **log_ctx) from e
                logger.warning("Claim insert conflicted on a bundle item, retrying", extra=log_ctx)
                continue
            except InfrastructureError:
                self.claims.rollback()
                raise

            logger.info(
                "Product claimed",
                extra={
                    **log_ctx,
                    "claim_id": parent.id,
                    "subscription_id": subscription_id,
                    "period": period,
                    "child_claims": len(children),
                },
            )
            return ClaimResult(
                success=True,
                claim=ClaimRecord.from_model(parent),
                child_claims=[ClaimRecord.from_model(c) for c in children],
                remaining_claims=_remaining_after_claim(entry),
                allowance=entry,
            )

        raise InfrastructureError("create_claim", None, **log_ctx)

    # =========================================================================
    # Claim lookup
    # =========================================================================

    def has_claimed_access(self, user_id: str, content_type: str, content_id: str) -> DirectClaimResult:
        """
        Whether the principal holds a usable claim of their own.

        A claim is usable while its subscription is active and the
        subscription's effective benefits still include the content type.
        Claim validity does not depend on the current month.
        """
        claims = self.claims.find_active_for_user(user_id, content_type, content_id)
        if not claims:
            return DirectClaimResult(has_claim=False, reason="no_direct_subscription_claim")

        now = self.allowances.now()
        reason = "subscription_inactive"
        for claim in claims:
            subscription = claim.subscription
            if subscription is None or not subscription.is_active_at(now):
                continue
            benefits, _ = self.allowances.effective_benefits(subscription)
            if not benefit_includes(benefits, content_type):
                reason = "benefit_no_longer_included"
                continue
            return DirectClaimResult(
                has_claim=True,
                reason="subscription_claim",
                claim=ClaimRecord.from_model(claim),
                expires_at=ensure_utc(subscription.end_date),
            )

        logger.debug(
            "Active claim found but not usable",
            extra={"principal_id": user_id, "content_type": content_type, "content_id": content_id, "reason": reason},
        )
        return DirectClaimResult(has_claim=False, reason=reason)

    # =========================================================================
    # Revocation
    # =========================================================================

    def revoke_claim(self, claim_id: str, reason: Optional[str] = None) -> RevocationResult:
        """
        Revoke a claim and every active child claim in one transaction.

        Args:
            claim_id: Claim to revoke
            reason: Audit reason

        Returns:
            RevocationResult with the number of claims revoked

        Raises:
            NotFoundError: If the claim does not exist
            AlreadyRevokedError: If the claim is already revoked
            InfrastructureError: If the store fails
        """
        claim = self.claims.get_by_id(claim_id)
        if claim is None:
            raise NotFoundError(f"Claim {claim_id} not found", details={"claim_id": claim_id})
        if claim.status == ClaimStatus.REVOKED:
            raise AlreadyRevokedError(claim_id)

        now = self.allowances.now()
        children = [c for c in self.claims.get_children(claim_id) if c.is_active]
        revoked = [claim] + children

        try:
            for item in revoked:
                item.status = ClaimStatus.REVOKED
                item.revoked_at = now
                item.revoked_reason = reason
            self.claims.commit("revoke_claim", claim_id=claim_id)
        except InfrastructureError:
            self.claims.rollback()
            raise

        revoked_ids = [item.id for item in revoked]
        logger.info(
            "Claim revoked",
            extra={"claim_id": claim_id, "revoked_count": len(revoked_ids), "reason": reason},
        )
        return RevocationResult(claim_id=claim_id, revoked_count=len(revoked_ids), revoked_claim_ids=revoked_ids)

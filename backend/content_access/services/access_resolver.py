"""
Access Resolver - multi-layer access decision.

Layers are tried in fixed order and the first grant wins:
    1. creator   - principal owns the product (unpublished allowed)
    2. purchase  - completed, unexpired purchase
    3. subscription_claim - direct claim, then a teacher's claim

A grant is then passed through the Content Validator. Layer denials fall
through; InfrastructureError propagates with the failing layer logged.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from content_access.access.clock import Clock, ensure_utc, utc_now
from content_access.access.errors import AccessErrorCode, InfrastructureError
from content_access.access.models import (
    AccessMethod,
    AccessResult,
    AccessType,
    CHECKED_LAYERS,
)
from content_access.constants.content_types import ContentType
from content_access.models.product import Product
from content_access.repositories.catalog_repository import CatalogRepository
from content_access.services.claim_arbiter import ClaimArbiter
from content_access.services.content_validator import ContentValidator
from content_access.services.delegated_access import DelegatedAccessResolver

logger = logging.getLogger(__name__)


class AccessResolver:
    """Orchestrates creator, purchase and claim layers plus validation."""

    def __init__(
        self,
        db_session: Session,
        claim_arbiter: ClaimArbiter,
        delegated_resolver: DelegatedAccessResolver,
        content_validator: ContentValidator,
        clock: Optional[Clock] = None,
    ):
        self.catalog = CatalogRepository(db_session)
        self.arbiter = claim_arbiter
        self.delegated = delegated_resolver
        self.validator = content_validator
        self._clock = clock or utc_now

    def check_access(self, principal_id: str, content_type: str, content_id: str) -> AccessResult:
        """
        Decide whether a principal may access a content item.

        Args:
            principal_id: Principal being checked
            content_type: Catalog content type
            content_id: Product ID

        Returns:
            AccessResult; denials are results, never exceptions

        Raises:
            InfrastructureError: If the store fails in any layer
        """
        if ContentType.parse(content_type) is None:
            return AccessResult.denied(
                content_type,
                content_id,
                reason="unknown_content_type",
                message=f"Unknown content type '{content_type}'",
                error_code=AccessErrorCode.NOT_FOUND,
            )

        product = self._run_layer(
            "catalog", principal_id, content_type, content_id,
            lambda: self.catalog.get_product(content_type, content_id),
        )
        if product is None:
            return AccessResult.denied(
                content_type,
                content_id,
                reason="product_not_found",
                message="Product not found",
                error_code=AccessErrorCode.NOT_FOUND,
            )

        layers = [
            (AccessType.CREATOR.value, self._check_creator),
            (AccessType.PURCHASE.value, self._check_purchase),
            (AccessType.SUBSCRIPTION_CLAIM.value, self._check_subscription_claim),
        ]
        checked: List[str] = []
        for name, check in layers:
            checked.append(name)
            granted = self._run_layer(
                name, principal_id, content_type, content_id,
                lambda: check(principal_id, product),
            )
            if granted is not None:
                granted.checked_layers = list(checked)
                logger.info(
                    "Access granted",
                    extra={
                        "principal_id": principal_id,
                        "content_type": content_type,
                        "content_id": content_id,
                        "layer": name,
                    },
                )
                return self._run_layer(
                    "content_validation", principal_id, content_type, content_id,
                    lambda: self.validator.validate(principal_id, granted, product),
                )

        logger.info(
            "No access layer granted access",
            extra={"principal_id": principal_id, "content_type": content_type, "content_id": content_id},
        )
        return AccessResult.denied(
            content_type,
            content_id,
            reason="no_valid_access",
            message="No valid access method found",
            checked_layers=list(CHECKED_LAYERS),
        )

    def _run_layer(self, layer: str, principal_id: str, content_type: str, content_id: str, fn: Callable):
        try:
            return fn()
        except InfrastructureError:
            logger.error(
                "Access check failed on store error",
                extra={
                    "principal_id": principal_id,
                    "content_type": content_type,
                    "content_id": content_id,
                    "layer": layer,
                },
            )
            raise

    # ----------------------------------------------------------------------
    # Layers
    # ----------------------------------------------------------------------

    def _check_creator(self, principal_id: str, product: Product) -> Optional[AccessResult]:
        if product.owner_id is None or product.owner_id != principal_id:
            return None
        return AccessResult(
            has_access=True,
            content_type=product.content_type,
            content_id=product.id,
            access_type=AccessType.CREATOR,
            reason="creator_ownership",
            message="User is the creator/owner of this content",
            allow_unpublished=True,
            is_lifetime_access=True,
        )

    def _check_purchase(self, principal_id: str, product: Product) -> Optional[AccessResult]:
        purchase = self.catalog.find_valid_purchase(
            principal_id, product.content_type, product.id, self._clock()
        )
        if purchase is None:
            return None
        return AccessResult(
            has_access=True,
            content_type=product.content_type,
            content_id=product.id,
            access_type=AccessType.PURCHASE,
            reason="valid_purchase",
            message="User has valid purchase access",
            is_lifetime_access=purchase.is_lifetime,
            expires_at=ensure_utc(purchase.access_expires_at),
        )

    def _check_subscription_claim(self, principal_id: str, product: Product) -> Optional[AccessResult]:
        direct = self.arbiter.has_claimed_access(principal_id, product.content_type, product.id)
        if direct.has_claim:
            return AccessResult(
                has_access=True,
                content_type=product.content_type,
                content_id=product.id,
                access_type=AccessType.SUBSCRIPTION_CLAIM,
                access_method=AccessMethod.DIRECT_SUBSCRIPTION_CLAIM,
                reason="subscription_claim",
                message="User has claimed this content via subscription allowance",
                is_lifetime_access=False,
                expires_at=direct.expires_at,
                claim_id=direct.claim.id,
            )

        delegated = self.delegated.check_delegated_access(principal_id, product.content_type, product.id)
        if delegated.has_access:
            return delegated

        logger.debug(
            "Subscription claim layer denied",
            extra={
                "principal_id": principal_id,
                "content_id": product.id,
                "direct_reason": direct.reason,
                "delegated_reason": delegated.reason,
            },
        )
        return None

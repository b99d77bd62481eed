"""
Content Validator - per-content-type checks applied after an access layer
grants base access.

Each content type registers one validator. Validators check publication
(the owning creator bypasses it), restrictions such as minimum age, and
return capability flags for the caller. A failed check downgrades the
result to denied. Unexpected validator exceptions are logged and the base
grant stands; store failures still propagate.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from content_access.access.clock import Clock, utc_now
from content_access.access.errors import AccessErrorCode, InfrastructureError
from content_access.access.models import (
    AccessMethod,
    AccessResult,
    AccessType,
    ContentValidation,
)
from content_access.constants.content_types import ContentType
from content_access.models.product import Product
from content_access.models.user import User
from content_access.repositories.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25
DEFAULT_MAX_PLAYERS = 10


@dataclass
class ValidationContext:
    """Inputs handed to a type validator."""
    principal_id: str
    product: Product
    base: AccessResult
    today: date
    load_user: Callable[[str], Optional[User]]

    @property
    def is_creator(self) -> bool:
        return self.base.access_type == AccessType.CREATOR

    @property
    def is_delegated(self) -> bool:
        return self.base.access_method == AccessMethod.STUDENT_VIA_TEACHER_CLAIM


@dataclass
class ValidationOutcome:
    passed: bool
    checks: List[str]
    capabilities: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def fail(cls, checks: List[str], reason: str, message: str) -> "ValidationOutcome":
        return cls(passed=False, checks=checks, reason=reason, message=message)


TypeValidator = Callable[[ValidationContext], ValidationOutcome]


def age_on(birth_date: date, today: date) -> int:
    """Whole years between birth_date and today using 365.25-day years."""
    return int((today - birth_date).days // DAYS_PER_YEAR)


def _publication_failure(ctx: ValidationContext, label: str, checks: List[str]) -> Optional[ValidationOutcome]:
    if not ctx.product.is_published and not ctx.is_creator:
        return ValidationOutcome.fail(
            checks,
            reason=f"{label}_not_published",
            message=f"{label.replace('_', ' ').capitalize()} is not published",
        )
    return None


# ----------------------------------------------------------------------
# Type validators
# ----------------------------------------------------------------------

def validate_workshop(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["publication_status", "age_restrictions"]
    failure = _publication_failure(ctx, "workshop", checks)
    if failure:
        return failure

    restrictions = ctx.product.attribute("access_restrictions") or {}
    min_age = restrictions.get("min_age")
    if min_age:
        user = ctx.load_user(ctx.principal_id)
        if user is not None and user.birth_date is not None:
            if age_on(user.birth_date, ctx.today) < min_age:
                return ValidationOutcome.fail(
                    checks,
                    reason="age_restriction",
                    message=f"Workshop requires minimum age of {min_age}",
                )

    return ValidationOutcome(
        passed=True,
        checks=checks,
        capabilities={
            "has_video_content": bool(ctx.product.attribute("video_url")),
            "duration_minutes": ctx.product.attribute("duration_minutes"),
        },
    )


def validate_course(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["publication_status", "sequential_requirements"]
    failure = _publication_failure(ctx, "course", checks)
    if failure:
        return failure

    modules = ctx.product.attribute("modules") or []
    return ValidationOutcome(
        passed=True,
        checks=checks,
        capabilities={
            "requires_sequential_completion": bool(ctx.product.attribute("requires_sequential_completion", False)),
            "total_modules": len(modules),
        },
    )


def validate_game(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["session_permissions", "multiplayer_limits"]
    can_create = ctx.base.access_type in (AccessType.CREATOR, AccessType.PURCHASE) or (
        ctx.base.access_method == AccessMethod.DIRECT_SUBSCRIPTION_CLAIM
    )
    return ValidationOutcome(
        passed=True,
        checks=checks,
        capabilities={
            "can_create_sessions": can_create,
            "join_only": ctx.is_delegated,
            "max_players": ctx.product.attribute("max_players", DEFAULT_MAX_PLAYERS),
        },
    )


def validate_file(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["publication_status", "availability"]
    failure = _publication_failure(ctx, "file", checks)
    if failure:
        return failure
    return ValidationOutcome(
        passed=True,
        checks=checks,
        capabilities={
            "allow_preview": bool(ctx.product.attribute("allow_preview", False)),
            "can_download": True,
        },
    )


def validate_tool(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["publication_status"]
    failure = _publication_failure(ctx, "tool", checks)
    if failure:
        return failure
    return ValidationOutcome(passed=True, checks=checks)


def validate_lesson_plan(ctx: ValidationContext) -> ValidationOutcome:
    checks = ["publication_status", "customization_permissions"]
    failure = _publication_failure(ctx, "lesson_plan", checks)
    if failure:
        return failure
    return ValidationOutcome(
        passed=True,
        checks=checks,
        capabilities={"can_customize": not ctx.is_delegated},
    )


DEFAULT_VALIDATORS: Dict[ContentType, TypeValidator] = {
    ContentType.WORKSHOP: validate_workshop,
    ContentType.COURSE: validate_course,
    ContentType.GAME: validate_game,
    ContentType.FILE: validate_file,
    ContentType.TOOL: validate_tool,
    ContentType.LESSON_PLAN: validate_lesson_plan,
}


class ContentValidator:
    """Applies the registered validator for a content type."""

    def __init__(
        self,
        db_session: Session,
        clock: Optional[Clock] = None,
        validators: Optional[Dict[ContentType, TypeValidator]] = None,
    ):
        self.catalog = CatalogRepository(db_session)
        self._clock = clock or utc_now
        self._validators = dict(DEFAULT_VALIDATORS if validators is None else validators)

    def register(self, content_type: ContentType, validator: TypeValidator) -> None:
        self._validators[content_type] = validator

    def validate(self, principal_id: str, base: AccessResult, product: Optional[Product] = None) -> AccessResult:
        """
        Run type-specific validation on a granted result.

        Args:
            principal_id: Principal being checked
            base: Granted result from an access layer
            product: Catalog record, if already loaded

        Returns:
            The base result enriched with capabilities, or a denial
        """
        ctype = ContentType.parse(base.content_type)
        validator = self._validators.get(ctype) if ctype else None
        if validator is None:
            base.content_validation = ContentValidation(
                applied=False,
                reason=f"No specific validation for {base.content_type}",
            )
            return base

        try:
            product = product or self.catalog.get_product(base.content_type, base.content_id)
            if product is None:
                return AccessResult.denied(
                    base.content_type,
                    base.content_id,
                    reason=f"{base.content_type}_not_found",
                    message="Content not found",
                    error_code=AccessErrorCode.NOT_FOUND,
                    checked_layers=base.checked_layers,
                )

            ctx = ValidationContext(
                principal_id=principal_id,
                product=product,
                base=base,
                today=self._clock().date(),
                load_user=self.catalog.get_user,
            )
            outcome = validator(ctx)
        except InfrastructureError:
            raise
        except Exception as e:
            logger.exception(
                "Content validator failed, keeping base access",
                extra={
                    "principal_id": principal_id,
                    "content_type": base.content_type,
                    "content_id": base.content_id,
                },
            )
            base.content_validation = ContentValidation(
                applied=False,
                error=str(e),
                reason="Validation error occurred",
            )
            return base

        validation = ContentValidation(
            applied=True,
            type=base.content_type,
            checks=outcome.checks,
            passed=outcome.passed,
            reason=outcome.reason,
        )
        if not outcome.passed:
            logger.info(
                "Access downgraded by content validation",
                extra={
                    "principal_id": principal_id,
                    "content_type": base.content_type,
                    "content_id": base.content_id,
                    "reason": outcome.reason,
                },
            )
            return AccessResult.denied(
                base.content_type,
                base.content_id,
                reason=outcome.reason,
                message=outcome.message or "",
                checked_layers=base.checked_layers,
                content_validation=validation,
            )

        base.capabilities.update(outcome.capabilities)
        base.content_validation = validation
        return base

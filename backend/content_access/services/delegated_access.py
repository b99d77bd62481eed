"""
Delegated Access Resolver - student access through a teacher's claims.

A student is linked to teachers by an explicit assignment or by classroom
membership. If any linked teacher holds a usable claim on the content, the
student gets access and the usage is attributed to the teacher's claim. No
claim is created for the student.
"""

import logging
from threading import Lock
from typing import List, Optional

from sqlalchemy.orm import Session

from content_access.access.cache import TTLCache
from content_access.access.clock import Clock, utc_now
from content_access.access.errors import ContentAccessError
from content_access.access.models import AccessMethod, AccessResult, AccessType
from content_access.access.usage import ACCESS_STUDENT_VIA_TEACHER, UsageEvent
from content_access.config.settings import AccessSettings, get_access_settings
from content_access.repositories.delegation_repository import DelegationRepository
from content_access.services.claim_arbiter import ClaimArbiter
from content_access.services.usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "delegates:"


class DelegatedAccessResolver:
    """Resolves access through delegate principals' claims."""

    def __init__(
        self,
        db_session: Session,
        claim_arbiter: ClaimArbiter,
        usage_tracker: Optional[UsageTracker] = None,
        delegate_cache: Optional[TTLCache] = None,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
    ):
        self.db = db_session
        self.arbiter = claim_arbiter
        self.usage = usage_tracker or UsageTracker(db_session, clock=clock, settings=settings)
        self.directory = DelegationRepository(db_session)
        self._cache = delegate_cache if delegate_cache is not None else get_delegate_cache(settings, clock)

    def find_delegates(self, principal_id: str) -> List[str]:
        """Delegate (teacher) ids for a principal, cached per principal."""
        key = f"{CACHE_KEY_PREFIX}{principal_id}"
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        teacher_ids = self.directory.find_delegate_ids(principal_id)
        self._cache.set(key, tuple(teacher_ids))
        return teacher_ids

    def invalidate(self, principal_id: str) -> bool:
        """Drop a principal's cached delegates (call when edges change)."""
        return self._cache.delete(f"{CACHE_KEY_PREFIX}{principal_id}")

    def check_delegated_access(self, principal_id: str, content_type: str, content_id: str) -> AccessResult:
        """
        Grant access through the first delegate holding a usable claim.

        Returns:
            Granted AccessResult with teacher_id, or a denial with reason
            "no_teachers_found" / "no_teacher_claims"
        """
        teacher_ids = self.find_delegates(principal_id)
        if not teacher_ids:
            return AccessResult.denied(
                content_type,
                content_id,
                reason="no_teachers_found",
                message="Student is not connected to any teachers",
            )

        for teacher_id in teacher_ids:
            direct = self.arbiter.has_claimed_access(teacher_id, content_type, content_id)
            if not direct.has_claim:
                continue

            self._record_delegated_usage(principal_id, teacher_id, direct.claim.id)
            logger.info(
                "Access granted via teacher claim",
                extra={
                    "principal_id": principal_id,
                    "teacher_id": teacher_id,
                    "content_type": content_type,
                    "content_id": content_id,
                },
            )
            return AccessResult(
                has_access=True,
                content_type=content_type,
                content_id=content_id,
                access_type=AccessType.SUBSCRIPTION_CLAIM,
                access_method=AccessMethod.STUDENT_VIA_TEACHER_CLAIM,
                reason="teacher_subscription_claim",
                message="Access granted via teacher's subscription claim",
                is_lifetime_access=False,
                expires_at=direct.expires_at,
                teacher_id=teacher_id,
                claim_id=direct.claim.id,
            )

        return AccessResult.denied(
            content_type,
            content_id,
            reason="no_teacher_claims",
            message="No teachers have subscription claims for this content",
        )

    def _record_delegated_usage(self, student_id: str, teacher_id: str, claim_id: str) -> None:
        """Attribute the access to the teacher's claim. Never fails the check."""
        try:
            claim = self.arbiter.claims.get_by_id(claim_id)
            if claim is None:
                return
            self.usage.record_on_claim(
                claim,
                UsageEvent(
                    activity_type="view",
                    access_type=ACCESS_STUDENT_VIA_TEACHER,
                    student_user_id=student_id,
                ),
            )
        except ContentAccessError as e:
            logger.warning(
                "Failed to record student usage on teacher claim",
                extra={
                    "principal_id": student_id,
                    "teacher_id": teacher_id,
                    "claim_id": claim_id,
                    "error": str(e),
                },
            )


# Module-level delegate cache
_cache_instance: Optional[TTLCache] = None
_cache_lock = Lock()


def get_delegate_cache(
    settings: Optional[AccessSettings] = None,
    clock: Optional[Clock] = None,
) -> TTLCache:
    """Get the shared delegate cache, created on first use."""
    global _cache_instance
    if _cache_instance is None:
        with _cache_lock:
            if _cache_instance is None:
                settings = settings or get_access_settings()
                _cache_instance = TTLCache(
                    ttl_seconds=settings.delegate_cache_ttl_seconds,
                    max_size=settings.delegate_cache_max_entries,
                    clock=clock or utc_now,
                )
    return _cache_instance


def reset_delegate_cache() -> None:
    global _cache_instance
    with _cache_lock:
        _cache_instance = None

"""
Business logic services.
"""

from content_access.services.allowance_calculator import AllowanceCalculator
from content_access.services.claim_arbiter import ClaimArbiter
from content_access.services.usage_tracker import UsageTracker, UsageSummary
from content_access.services.delegated_access import DelegatedAccessResolver
from content_access.services.content_validator import ContentValidator
from content_access.services.access_resolver import AccessResolver
from content_access.services.content_access_service import ContentAccessService

__all__ = [
    "AllowanceCalculator",
    "ClaimArbiter",
    "UsageTracker",
    "UsageSummary",
    "DelegatedAccessResolver",
    "ContentValidator",
    "AccessResolver",
    "ContentAccessService",
]

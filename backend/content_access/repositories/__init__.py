"""Repository layer."""

from content_access.repositories.catalog_repository import CatalogRepository
from content_access.repositories.subscription_repository import SubscriptionRepository
from content_access.repositories.claim_repository import ClaimRepository
from content_access.repositories.delegation_repository import DelegationRepository

__all__ = [
    "CatalogRepository",
    "SubscriptionRepository",
    "ClaimRepository",
    "DelegationRepository",
]

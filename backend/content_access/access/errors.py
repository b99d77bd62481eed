"""
Structured error classes for content access and subscription claims.

Expected business outcomes (no access, quota reached, needs confirmation)
are returned as result objects carrying an AccessErrorCode. Exceptions are
reserved for audited boundaries (revocation), missing records on write
paths, rejected usage payloads, and store failures.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class AccessErrorCode(str, Enum):
    """Machine-readable outcome codes."""
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    ALLOWANCE_EXCEEDED = "allowance_exceeded"
    ALREADY_OWNED = "already_owned"
    NEEDS_CONFIRMATION = "needs_confirmation"
    CONFLICT_RESOLVED = "conflict_resolved"
    ALREADY_REVOKED = "already_revoked"
    INFRASTRUCTURE_ERROR = "infrastructure_error"
    INVALID_USAGE = "invalid_usage"


HTTP_STATUS_BY_CODE = {
    AccessErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AccessErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    AccessErrorCode.ALLOWANCE_EXCEEDED: status.HTTP_402_PAYMENT_REQUIRED,
    AccessErrorCode.ALREADY_OWNED: status.HTTP_409_CONFLICT,
    AccessErrorCode.NEEDS_CONFIRMATION: status.HTTP_409_CONFLICT,
    AccessErrorCode.CONFLICT_RESOLVED: status.HTTP_200_OK,
    AccessErrorCode.ALREADY_REVOKED: status.HTTP_409_CONFLICT,
    AccessErrorCode.INFRASTRUCTURE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    AccessErrorCode.INVALID_USAGE: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class ContentAccessError(Exception):
    """Base exception for content access errors."""

    error_code: AccessErrorCode = AccessErrorCode.FORBIDDEN

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.error_code]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(ContentAccessError):
    """Content, product or claim does not exist."""
    error_code = AccessErrorCode.NOT_FOUND


class AlreadyRevokedError(ContentAccessError):
    """
    Raised when revoking a claim that is already revoked.

    Revocation is a one-way audited action, so a second attempt is reported
    rather than silently accepted.
    """
    error_code = AccessErrorCode.ALREADY_REVOKED

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(
            f"Claim {claim_id} is already revoked",
            details={"claim_id": claim_id},
        )


class InvalidUsageError(ContentAccessError):
    """Usage payload failed validation at the store boundary."""
    error_code = AccessErrorCode.INVALID_USAGE


class InfrastructureError(ContentAccessError):
    """
    Store unreachable, timed out or otherwise failed.

    Never converted into an access denial.
    """
    error_code = AccessErrorCode.INFRASTRUCTURE_ERROR

    def __init__(self, operation: str, cause: Optional[BaseException] = None, **context: Any):
        self.operation = operation
        self.cause = cause
        self.context = context
        super().__init__(
            f"Store operation '{operation}' failed",
            details={"operation": operation},
        )

    def to_dict(self) -> dict:
        # Context holds internal identifiers; keep it out of responses.
        return {
            "error": self.error_code.value,
            "message": "Service temporarily unavailable",
        }

"""
Access check routes.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from content_access.access.errors import ContentAccessError
from content_access.api.dependencies import (
    error_response,
    get_content_access_service,
    get_current_user_id,
)
from content_access.services.content_access_service import ContentAccessService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/access", tags=["access"])


class ContentValidationResponse(BaseModel):
    applied: bool
    type: Optional[str] = None
    checks: List[str] = []
    passed: bool = True
    reason: Optional[str] = None
    error: Optional[str] = None


class AccessResponse(BaseModel):
    """Access decision for one content item."""
    has_access: bool
    access_type: str
    access_method: Optional[str] = None
    reason: str
    message: str
    content_type: str
    content_id: str
    allow_unpublished: bool
    is_lifetime_access: bool
    expires_at: Optional[str] = None
    checked_layers: List[str]
    teacher_id: Optional[str] = None
    capabilities: Dict[str, Any]
    content_validation: Optional[ContentValidationResponse] = None
    error_code: Optional[str] = None


@router.get("/{content_type}/{content_id}", response_model=AccessResponse)
def check_access(
    content_type: str,
    content_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ContentAccessService = Depends(get_content_access_service),
):
    """
    Check whether the caller may access a content item.

    Denials are returned with has_access=false and a reason; only store
    failures produce an error status.
    """
    try:
        result = service.check_access(user_id, content_type, content_id)
    except ContentAccessError as e:
        logger.error("Access check failed", extra={
            "principal_id": user_id,
            "content_type": content_type,
            "content_id": content_id,
            "error": e.error_code.value,
        })
        return error_response(e)

    return AccessResponse(**result.to_dict())

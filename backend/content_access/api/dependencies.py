"""
Shared route dependencies.

The principal id is set on request.state by the upstream authentication
middleware; routes never accept it from the client.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from content_access.access.errors import ContentAccessError
from content_access.database.session import get_db_session
from content_access.services.content_access_service import ContentAccessService

logger = logging.getLogger(__name__)


def get_current_user_id(request: Request) -> str:
    """Authenticated principal id, or 401."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return user_id


def require_admin(request: Request) -> str:
    """Principal id of an admin caller, or 403."""
    user_id = get_current_user_id(request)
    if getattr(request.state, "user_role", None) != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return user_id


def get_content_access_service(db_session: Session = Depends(get_db_session)) -> ContentAccessService:
    """Service bound to the request's database session."""
    return ContentAccessService(db_session)


def error_response(error: ContentAccessError) -> JSONResponse:
    """Render a ContentAccessError with its HTTP status."""
    return JSONResponse(status_code=error.http_status, content=error.to_dict())

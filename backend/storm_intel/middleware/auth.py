"""
Authentication and role dependencies

The session token comes from the Authorization bearer header or the
access_token cookie. Every failure reads the same to the caller.
"""

import logging

from fastapi import Depends, HTTPException, Request
from jose import JWTError
from sqlalchemy.orm import Session

from storm_intel.database import get_db
from storm_intel.models.crm import User

from .jwt_session import decode_access_token

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized"
FORBIDDEN = "Insufficient permissions"


def _token_from_request(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get("access_token")


def get_current_user_optional(request: Request, db: Session = Depends(get_db)) -> User | None:
    """
    Resolve the caller from the session token (doesn't raise)

    Returns:
        Active User if authenticated, None otherwise
    """
    token = _token_from_request(request)
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(user: User | None = Depends(get_current_user_optional)) -> User:
    """
    Get current user (required - raises 401 if not authenticated)
    """
    if user is None:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
    return user


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of ``roles``, else 403."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.info("User %s with role %r denied (needs one of %s)", user.id, user.role, roles)
            raise HTTPException(status_code=403, detail=FORBIDDEN)
        return user

    return dependency

"""
API dependencies

Supports both cookie-based and header-based auth. The Authorization header
wins when both are present.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.cookies import get_access_token_from_cookie
from marketplace.core.database import get_db
from marketplace.core.exceptions import AuthenticationError, PermissionDeniedError
from marketplace.core.security import decode_token
from marketplace.models.user import User

# Optional bearer - doesn't fail if no Authorization header
security = HTTPBearer(auto_error=False)


def get_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return get_access_token_from_cookie(request)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Get current authenticated user, whatever their account status.
    """
    token = get_token_from_request(request, credentials)
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise AuthenticationError("Invalid or expired token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User not found")

    return user


async def get_active_user(user: User = Depends(get_current_user)) -> User:
    """Authenticated user whose account is active; required to trade."""
    if not user.is_active:
        raise PermissionDeniedError("Account is not active")
    return user


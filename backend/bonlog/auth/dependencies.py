"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bonlog.auth.jwt import decode_token
from bonlog.database import get_db
from bonlog.models.user import User

# Optional bearer — returns None if no token provided. Billing endpoints turn a
# missing session into an error result instead of FastAPI's automatic 403.
_bearer_scheme_optional = HTTPBearer(auto_error=False)


def _user_id_from_token(token: str) -> uuid.UUID | None:
    """Return the ``sub`` of a valid access token, or None."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None

    # Only accept access tokens, not refresh tokens
    if payload.get("type") != "access":
        return None

    sub: str | None = payload.get("sub")
    if sub is None:
        return None

    try:
        return uuid.UUID(sub)
    except ValueError:
        return None


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme_optional),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Optionally authenticate a user from a Bearer token.

    Returns ``None`` instead of raising when no (valid) token is provided.
    """
    if credentials is None:
        return None

    user_id = _user_id_from_token(credentials.credentials)
    if user_id is None:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None

    return user


async def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    """Return the authenticated user.

    Raises:
        HTTPException 401: If the token is missing, invalid, expired, or the
            user is unknown or inactive.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Return the current user only if they are an administrator.

    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="管理者権限が必要です",
        )
    return user

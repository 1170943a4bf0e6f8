"""
API dependencies
Bearer-token authentication and role checks
"""
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.exceptions import (
    UnauthenticatedError,
    UnauthorizedError,
)
from marketplace.core.security import Subject, decode_access_token
from marketplace.database import get_db
from marketplace.models.user import User


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/token",
    auto_error=False,
)


def _subject_from_user(user: User) -> Subject:
    return Subject(
        subject_id=user.id,
        role=user.role.value if hasattr(user.role, "value") else str(user.role),
        email_verified=bool(user.email_verified),
        email=user.email,
    )


async def _load_user(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_access_token(token)
        user_id = int(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        raise UnauthenticatedError("Could not validate credentials")

    # Role and verification come from the store, never from the token
    user = await db.get(User, user_id, populate_existing=True)
    if user is None or not user.is_active:
        raise UnauthenticatedError("Could not validate credentials")
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to an active user

    Raises:
        UnauthenticatedError: If the token is missing, invalid or expired,
            or the user no longer exists
    """
    if not token:
        raise UnauthenticatedError("Not authenticated")
    return await _load_user(token, db)


async def get_current_subject(user: User = Depends(get_current_user)) -> Subject:
    return _subject_from_user(user)


async def get_optional_subject(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Subject]:
    """Like get_current_subject, but anonymous callers get None"""
    if not token:
        return None
    try:
        user = await _load_user(token, db)
    except UnauthenticatedError:
        return None
    return _subject_from_user(user)


async def require_admin(subject: Subject = Depends(get_current_subject)) -> Subject:
    if not subject.is_admin:
        raise UnauthorizedError("Admin privileges required")
    return subject

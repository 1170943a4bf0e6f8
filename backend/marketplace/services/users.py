"""
User Service
Registration, credential checks and single-use emailed tokens
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.exceptions import (
    ConflictError,
    ServerError,
    UnauthenticatedError,
    ValidationError,
)
from marketplace.core.security import (
    generate_opaque_token,
    get_password_hash,
    hash_opaque_token,
    verify_password,
)
from marketplace.models.user import AuthToken, AuthTokenPurpose, User, UserRole
from marketplace.services.notifications import Notification

logger = logging.getLogger(__name__)

_TOKEN_LIFETIMES = {
    AuthTokenPurpose.EMAIL_VERIFY: lambda: timedelta(minutes=settings.EMAIL_VERIFY_TOKEN_EXPIRE_MINUTES),
    AuthTokenPurpose.PASSWORD_RESET: lambda: timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def verify_email_url(token: str) -> str:
    return f"{settings.SITE_URL}/verify-email.html?token={token}"


def reset_password_url(token: str) -> str:
    return f"{settings.SITE_URL}/reset-password.html?token={token}"


class UserService:
    """Account lifecycle on top of the users and auth_tokens tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def register(self, email: str, password: str, full_name: Optional[str] = None) -> User:
        """
        Create an unverified ``user``-role account

        Raises:
            ConflictError: If the email is already registered
        """
        email = normalize_email(email)
        if await self.get_by_email(email):
            raise ConflictError("Email already registered")

        user = User(
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=UserRole.USER,
            email_verified=False,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("Email already registered") from e

        await self.db.refresh(user)
        logger.info(f"Registered user {user.id} ({email})")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Raises:
            UnauthenticatedError: Unknown email, wrong password or inactive account
        """
        user = await self.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise UnauthenticatedError("Incorrect email or password")
        if not user.is_active:
            raise UnauthenticatedError("Inactive user")
        return user

    # ------------------------------------------------------------------
    # Single-use tokens
    # ------------------------------------------------------------------

    async def issue_token(self, user: User, purpose: AuthTokenPurpose) -> str:
        """Store the hash of a fresh token and return the raw value for the email link"""
        raw_token = generate_opaque_token()
        self.db.add(AuthToken(
            user_id=user.id,
            purpose=purpose,
            token_hash=hash_opaque_token(raw_token),
            expires_at=datetime.utcnow() + _TOKEN_LIFETIMES[purpose](),
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to issue {purpose.value} token for user {user.id}: {e}")
            raise ServerError("Failed to issue token") from e
        return raw_token

    async def consume_token(self, raw_token: str, purpose: AuthTokenPurpose) -> User:
        """
        Mark a token used and return its user

        Consumption is an UPDATE guarded on ``used_at IS NULL``, so two
        concurrent requests with the same token cannot both succeed.

        Raises:
            ValidationError: Unknown, expired or already used token
        """
        now = datetime.utcnow()
        result = await self.db.execute(
            select(AuthToken).where(
                AuthToken.token_hash == hash_opaque_token(raw_token or ""),
                AuthToken.purpose == purpose,
            )
        )
        token = result.scalar_one_or_none()
        if token is None or token.used_at is not None or token.expires_at <= now:
            raise ValidationError("Invalid or expired token")

        consumed = await self.db.execute(
            update(AuthToken)
            .where(AuthToken.id == token.id, AuthToken.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            await self.db.rollback()
            raise ValidationError("Invalid or expired token")

        user = await self.db.get(User, token.user_id)
        if user is None or not user.is_active:
            await self.db.rollback()
            raise ValidationError("Invalid or expired token")
        return user

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def request_email_verification(self, user: User) -> Optional[Notification]:
        """Returns None when there is nothing to send"""
        if user.email_verified:
            return None
        raw_token = await self.issue_token(user, AuthTokenPurpose.EMAIL_VERIFY)
        return Notification(user.email, "verify_email", {"verify_url": verify_email_url(raw_token)})

    async def verify_email(self, raw_token: str) -> User:
        user = await self.consume_token(raw_token, AuthTokenPurpose.EMAIL_VERIFY)
        if not user.email_verified:
            user.email_verified = True
            user.email_verified_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.id} verified their email")
        return user

    async def request_password_reset(self, email: str) -> Optional[Notification]:
        """Unknown emails yield None; callers respond identically either way"""
        user = await self.get_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return None
        raw_token = await self.issue_token(user, AuthTokenPurpose.PASSWORD_RESET)
        return Notification(user.email, "password_reset", {"reset_url": reset_password_url(raw_token)})

    async def reset_password(self, raw_token: str, new_password: str) -> User:
        user = await self.consume_token(raw_token, AuthTokenPurpose.PASSWORD_RESET)
        user.hashed_password = get_password_hash(new_password)
        await self.db.commit()
        logger.info(f"User {user.id} reset their password")
        return user


async def ensure_admin(db: AsyncSession, email: str, password: str) -> Tuple[User, bool]:
    """
    Create the bootstrap admin, or promote an existing account

    Returns:
        (user, created)
    """
    service = UserService(db)
    user = await service.get_by_email(email)
    if user is None:
        user = User(
            email=normalize_email(email),
            hashed_password=get_password_hash(password),
            full_name="Administrator",
            role=UserRole.ADMIN,
            email_verified=True,
            email_verified_at=datetime.utcnow(),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user, True

    user.role = UserRole.ADMIN
    await db.commit()
    return user, False

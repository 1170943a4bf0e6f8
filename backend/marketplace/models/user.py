"""
User model for authentication and authorization
"""
import enum
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String

from marketplace.database import Base


class UserRole(str, enum.Enum):
    """User role"""
    USER = "user"
    ADMIN = "admin"


class AuthTokenPurpose(str, enum.Enum):
    """What a single-use emailed token unlocks"""
    EMAIL_VERIFY = "EMAIL_VERIFY"
    PASSWORD_RESET = "PASSWORD_RESET"


class User(Base):
    """User model"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(
        Enum(UserRole, values_callable=lambda e: [m.value for m in e], name="userrole"),
        nullable=False,
        default=UserRole.USER,
    )
    email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class AuthToken(Base):
    """Single-use, time-limited token (email verification, password reset)"""

    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(Enum(AuthTokenPurpose, name="authtokenpurpose"), nullable=False)
    # SHA-256 of the emailed token; the raw token is never stored
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_auth_token_user_purpose', 'user_id', 'purpose'),
    )

    def __repr__(self) -> str:
        return f"<AuthToken {self.purpose} user={self.user_id}>"

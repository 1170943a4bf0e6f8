"""
User Pydantic schemas for request/response validation
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, ConfigDict, Field

from marketplace.core.config import settings
from marketplace.models.user import UserRole


class UserCreate(BaseModel):
    """Schema for registering a user"""
    email: EmailStr
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH)
    full_name: Optional[str] = None


class UserLogin(BaseModel):
    """Schema for user login"""
    email: EmailStr
    password: str


class User(BaseModel):
    """User schema for API responses"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole
    email_verified: bool
    is_active: bool
    created_at: datetime


class Token(BaseModel):
    """JWT token response"""
    token: str
    token_type: str = "bearer"


class OAuth2Token(BaseModel):
    """OAuth2 password-flow token response"""
    access_token: str
    token_type: str = "bearer"


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH)


class MessageResponse(BaseModel):
    ok: bool = True
    message: Optional[str] = None

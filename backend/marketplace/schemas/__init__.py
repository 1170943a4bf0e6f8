"""Schemas package initialization"""
from .user import User, UserCreate, UserLogin, Token
from .listing import (
    ListingCreate,
    ListingUpdate,
    ListingResponse,
    ListingListResponse,
    ListingImageCreate,
    ListingImageResponse,
)

__all__ = [
    # User schemas
    "User",
    "UserCreate",
    "UserLogin",
    "Token",
    # Listing schemas
    "ListingCreate",
    "ListingUpdate",
    "ListingResponse",
    "ListingListResponse",
    "ListingImageCreate",
    "ListingImageResponse",
]

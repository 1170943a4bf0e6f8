"""Models package initialization"""

from marketplace.models.user import User, UserRole, AuthToken, AuthTokenPurpose
from marketplace.models.listing import (
    Listing,
    ListingImage,
    ListingStatus,
    MarketStatus,
    ListingType,
    PropertyType,
)

__all__ = [
    "User",
    "UserRole",
    "AuthToken",
    "AuthTokenPurpose",
    "Listing",
    "ListingImage",
    "ListingStatus",
    "MarketStatus",
    "ListingType",
    "PropertyType",
]

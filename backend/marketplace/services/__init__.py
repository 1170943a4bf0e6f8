"""Services package"""

from marketplace.services.address import normalize_address_fields
from marketplace.services.listings import ListingService
from marketplace.services.users import UserService

__all__ = [
    "normalize_address_fields",
    "ListingService",
    "UserService",
]

"""
Listing Schemas
"""
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.models.listing import ListingStatus, ListingType, MarketStatus, PropertyType


# Image Schemas
class ListingImageCreate(BaseModel):
    """Image already uploaded to the image host"""
    url: str = Field(..., min_length=1, max_length=2000)
    alt_text: Optional[str] = Field(None, max_length=500)
    position: Optional[int] = Field(None, ge=0)
    public_id: Optional[str] = None
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v


class ListingImageResponse(BaseModel):
    """Listing image response"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    alt_text: Optional[str]
    position: int
    public_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


# Listing Create/Update Schemas
class ListingCreate(BaseModel):
    """Schema for creating a listing"""
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    listing_type: ListingType = ListingType.SALE
    property_type: PropertyType = PropertyType.OTHER

    # Pricing
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, allow_inf_nan=False)

    # Location
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    eircode: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    # Characteristics
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    size_sqm: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    ber_rating: Optional[str] = Field(None, max_length=8)
    features: Optional[List[str]] = None

    # Images
    images: Optional[List[ListingImageCreate]] = None


class ListingUpdate(BaseModel):
    """Schema for updating a listing (only while DRAFT or REJECTED)"""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    listing_type: Optional[ListingType] = None
    property_type: Optional[PropertyType] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2, allow_inf_nan=False)
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    eircode: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    size_sqm: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    ber_rating: Optional[str] = Field(None, max_length=8)
    features: Optional[List[str]] = None


# Moderation Schemas
class RejectRequest(BaseModel):
    """Body of POST /listings/{id}/reject; emptiness is checked by the workflow"""
    reason: Optional[str] = Field(None, max_length=2000)


class CloseRequest(BaseModel):
    """Body of POST /listings/{id}/close; validated against MarketStatus by the workflow"""
    outcome: Optional[str] = None


# Response Schemas
class ListingResponse(BaseModel):
    """Listing response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: Optional[str]
    owner_id: int

    title: str
    description: Optional[str]
    listing_type: ListingType
    property_type: PropertyType
    price: float

    address_line1: Optional[str]
    address_line2: Optional[str]
    city: Optional[str]
    county: Optional[str]
    eircode: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]

    bedrooms: Optional[int]
    bathrooms: Optional[int]
    size_sqm: Optional[float]
    ber_rating: Optional[str]
    features: Optional[List[str]]

    status: ListingStatus
    market_status: Optional[MarketStatus]
    rejected_reason: Optional[str]

    created_at: datetime
    updated_at: Optional[datetime]
    submitted_at: Optional[datetime]
    published_at: Optional[datetime]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    archived_at: Optional[datetime]

    images: List[ListingImageResponse] = []


class ListingListResponse(BaseModel):
    """List of listings with pagination"""
    total: int
    skip: int
    limit: int
    items: List[ListingResponse]


class ListingStatusCounts(BaseModel):
    """Admin console counters, one per status"""
    total: int
    DRAFT: int = 0
    SUBMITTED: int = 0
    PUBLISHED: int = 0
    REJECTED: int = 0
    CLOSED: int = 0

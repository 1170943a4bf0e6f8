"""
Listing model for properties offered for sale or rent
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Numeric, Integer, DateTime, Enum, Float, JSON,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from marketplace.database import Base


class ListingStatus(str, enum.Enum):
    """Moderation status of a listing"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class MarketStatus(str, enum.Enum):
    """Outcome recorded when a listing is closed"""
    SOLD = "SOLD"
    RENTED = "RENTED"
    CANCELLED = "CANCELLED"
    OTHER = "OTHER"


class ListingType(str, enum.Enum):
    """Operation type"""
    SALE = "SALE"
    RENT = "RENT"


class PropertyType(str, enum.Enum):
    """Type of property"""
    HOUSE = "HOUSE"
    APARTMENT = "APARTMENT"
    BUNGALOW = "BUNGALOW"
    SITE = "SITE"
    COMMERCIAL = "COMMERCIAL"
    OTHER = "OTHER"


class Listing(Base):
    """Listing model"""

    __tablename__ = "listings"

    # Identity
    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(120), unique=True, nullable=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Listing details
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    listing_type = Column(Enum(ListingType, name="listingtype"), nullable=False, default=ListingType.SALE)
    property_type = Column(Enum(PropertyType, name="propertytype"), nullable=False, default=PropertyType.OTHER, index=True)

    # Pricing
    price = Column(Numeric(12, 2), nullable=False, index=True)

    # Location
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True, index=True)
    county = Column(String(255), nullable=True, index=True)
    eircode = Column(String(10), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Characteristics
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)
    size_sqm = Column(Numeric(10, 2), nullable=True)
    ber_rating = Column(String(8), nullable=True)  # Energy rating, e.g. "B2"
    features = Column(JSON, nullable=True)  # List of feature strings

    # Status
    status = Column(Enum(ListingStatus, name="listingstatus"), nullable=False, default=ListingStatus.DRAFT, index=True)
    market_status = Column(Enum(MarketStatus, name="marketstatus"), nullable=True)

    # Moderation
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    images = relationship(
        "ListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingImage.position",
        lazy="selectin",
    )

    # Indexes
    __table_args__ = (
        Index('idx_listing_price_range', 'status', 'price'),
        Index('idx_listing_search', 'status', 'county', 'city', 'property_type'),
    )

    def __repr__(self) -> str:
        return f"<Listing {self.id} {self.status} {self.title[:50]}>"


class ListingImage(Base):
    """Listing image model"""

    __tablename__ = "listing_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    public_id = Column(String(255), nullable=True)  # Image host identifier
    alt_text = Column(String(500), nullable=True)
    position = Column(Integer, default=0, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    listing = relationship("Listing", back_populates="images")

    __table_args__ = (
        UniqueConstraint('listing_id', 'position', name='uq_listing_image_position'),
    )

    def __repr__(self) -> str:
        return f"<ListingImage {self.id} #{self.position}>"

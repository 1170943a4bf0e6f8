"""
Listings API endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import (
    get_current_subject,
    get_optional_subject,
    require_admin,
)
from marketplace.core.security import Subject
from marketplace.database import get_db
from marketplace.models.listing import Listing, ListingStatus, ListingType, PropertyType
from marketplace.schemas.listing import (
    CloseRequest,
    ListingCreate,
    ListingImageCreate,
    ListingListResponse,
    ListingResponse,
    ListingStatusCounts,
    ListingUpdate,
    RejectRequest,
)
from marketplace.services.listings import ListingService
from marketplace.services.notifications import NotificationDispatcher, get_notification_dispatcher
from marketplace.services.workflow import TransitionEvent


router = APIRouter()


def _list_response(total: int, skip: int, limit: int, listings: List[Listing]) -> ListingListResponse:
    return ListingListResponse(
        total=total,
        skip=skip,
        limit=limit,
        items=[ListingResponse.model_validate(listing) for listing in listings],
    )


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    listing_in: ListingCreate,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
) -> Listing:
    """
    Create a new DRAFT listing owned by the caller

    Images may be attached up front or later via POST /listings/{id}/images.
    """
    return await ListingService(db).create_listing(subject, listing_in)


@router.get("", response_model=ListingListResponse)
async def list_published_listings(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    q: Optional[str] = Query(None, description="Free text over title and address"),
    city: Optional[str] = None,
    county: Optional[str] = None,
    property_type: Optional[PropertyType] = None,
    listing_type: Optional[ListingType] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    bedrooms_min: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ListingListResponse:
    """Public browse of PUBLISHED listings"""
    total, listings = await ListingService(db).list_published(
        skip=skip,
        limit=limit,
        q=q,
        city=city,
        county=county,
        property_type=property_type,
        listing_type=listing_type,
        price_min=price_min,
        price_max=price_max,
        bedrooms_min=bedrooms_min,
    )
    return _list_response(total, skip, limit, listings)


@router.get("/mine", response_model=ListingListResponse)
async def list_my_listings(
    status_filter: Optional[ListingStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
) -> ListingListResponse:
    total, listings = await ListingService(db).list_for_owner(subject, status_filter, skip, limit)
    return _list_response(total, skip, limit, listings)


@router.get("/_admin", response_model=ListingListResponse)
async def list_all_listings(
    status_filter: Optional[ListingStatus] = Query(None, alias="status"),
    q: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: Subject = Depends(require_admin),
) -> ListingListResponse:
    """Moderation queue: every listing in any status"""
    total, listings = await ListingService(db).list_all(status_filter, q, skip, limit)
    return _list_response(total, skip, limit, listings)


@router.get("/_admin/stats", response_model=ListingStatusCounts)
async def listing_status_counts(
    db: AsyncSession = Depends(get_db),
    _admin: Subject = Depends(require_admin),
) -> ListingStatusCounts:
    return ListingStatusCounts(**await ListingService(db).status_counts())


@router.get("/{slug}", response_model=ListingResponse)
async def get_listing(
    slug: str,
    db: AsyncSession = Depends(get_db),
    subject: Optional[Subject] = Depends(get_optional_subject),
) -> Listing:
    """
    Fetch one listing by slug

    Non-published listings are only visible to their owner and admins;
    everyone else gets 404.
    """
    return await ListingService(db).get_by_slug(slug, subject)


@router.put("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: int,
    listing_in: ListingUpdate,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
) -> Listing:
    """Edit a DRAFT or REJECTED listing"""
    return await ListingService(db).update_listing(listing_id, subject, listing_in)


@router.post("/{listing_id}/images", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def add_listing_image(
    listing_id: int,
    image_in: ListingImageCreate,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
) -> Listing:
    """Record an image already uploaded to the image host"""
    return await ListingService(db).add_image(listing_id, subject, image_in)


@router.delete("/{listing_id}/images/{image_id}", response_model=ListingResponse)
async def remove_listing_image(
    listing_id: int,
    image_id: int,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
) -> Listing:
    return await ListingService(db).remove_image(listing_id, image_id, subject)


# ----------------------------------------------------------------------
# Workflow transitions
# ----------------------------------------------------------------------

async def _transition(
    db: AsyncSession,
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    listing_id: int,
    event: TransitionEvent,
    subject: Subject,
    **kwargs,
) -> Listing:
    listing, notification = await ListingService(db).transition(listing_id, event, subject, **kwargs)
    # Runs after the response is sent; the transition is already committed
    background_tasks.add_task(dispatcher.dispatch, notification)
    return listing


@router.post("/{listing_id}/submit", response_model=ListingResponse)
async def submit_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Listing:
    """Send a DRAFT or REJECTED listing for moderation (owner, verified email)"""
    return await _transition(db, background_tasks, dispatcher, listing_id, TransitionEvent.SUBMIT, subject)


@router.post("/{listing_id}/approve", response_model=ListingResponse)
async def approve_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Listing:
    return await _transition(db, background_tasks, dispatcher, listing_id, TransitionEvent.APPROVE, subject)


@router.post("/{listing_id}/reject", response_model=ListingResponse)
async def reject_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    body: Optional[RejectRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Listing:
    return await _transition(
        db, background_tasks, dispatcher, listing_id, TransitionEvent.REJECT, subject,
        reason=body.reason if body else None,
    )


@router.post("/{listing_id}/close", response_model=ListingResponse)
async def close_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    body: Optional[CloseRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Listing:
    """Take a PUBLISHED listing off the market with an outcome (SOLD, RENTED, CANCELLED, OTHER)"""
    return await _transition(
        db, background_tasks, dispatcher, listing_id, TransitionEvent.CLOSE, subject,
        outcome=body.outcome if body else None,
    )


@router.post("/{listing_id}/reopen", response_model=ListingResponse)
async def reopen_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    subject: Subject = Depends(get_current_subject),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> Listing:
    return await _transition(db, background_tasks, dispatcher, listing_id, TransitionEvent.REOPEN, subject)

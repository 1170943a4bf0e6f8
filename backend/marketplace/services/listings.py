"""
Listing Service
Composes the workflow engine with the database for the listing API
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.exceptions import (
    ConflictError,
    MarketplaceError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
    ValidationError,
)
from marketplace.core.security import Subject
from marketplace.models.listing import Listing, ListingImage, ListingStatus
from marketplace.schemas.listing import ListingCreate, ListingImageCreate, ListingUpdate
from marketplace.services.address import normalize_address_fields
from marketplace.services.notifications import Notification, build_transition_notification
from marketplace.services.slugs import build_base_slug, generate_unique_slug
from marketplace.services.workflow import (
    EDITABLE_STATUSES,
    TransitionEvent,
    TransitionPlan,
    authorize_transition,
    plan_transition,
)

logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "county", "eircode")
_NON_NULLABLE_FIELDS = ("title", "price", "listing_type", "property_type")
_LIKE_ESCAPE = "\\"


def _contains_pattern(text: str) -> str:
    """ILIKE pattern matching ``text`` literally anywhere in the column"""
    escaped = (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def _apply_listing_filters(
    stmt,
    status_filter: Optional[ListingStatus] = None,
    q: Optional[str] = None,
    city: Optional[str] = None,
    county: Optional[str] = None,
    property_type: Optional[str] = None,
    listing_type: Optional[str] = None,
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
    bedrooms_min: Optional[int] = None,
):
    """Apply common listing filters to a query statement"""
    if status_filter:
        stmt = stmt.where(Listing.status == status_filter)
    if q:
        pattern = _contains_pattern(q.strip())
        stmt = stmt.where(or_(
            Listing.title.ilike(pattern, escape=_LIKE_ESCAPE),
            Listing.address_line1.ilike(pattern, escape=_LIKE_ESCAPE),
            Listing.address_line2.ilike(pattern, escape=_LIKE_ESCAPE),
            Listing.city.ilike(pattern, escape=_LIKE_ESCAPE),
            Listing.county.ilike(pattern, escape=_LIKE_ESCAPE),
            Listing.eircode.ilike(pattern, escape=_LIKE_ESCAPE),
        ))
    if city:
        stmt = stmt.where(Listing.city.ilike(_contains_pattern(city), escape=_LIKE_ESCAPE))
    if county:
        stmt = stmt.where(Listing.county.ilike(_contains_pattern(county), escape=_LIKE_ESCAPE))
    if property_type:
        stmt = stmt.where(Listing.property_type == property_type)
    if listing_type:
        stmt = stmt.where(Listing.listing_type == listing_type)
    if price_min is not None:
        stmt = stmt.where(Listing.price >= price_min)
    if price_max is not None:
        stmt = stmt.where(Listing.price <= price_max)
    if bedrooms_min is not None:
        stmt = stmt.where(Listing.bedrooms >= bedrooms_min)
    return stmt


class ListingService:
    """
    Listing CRUD, search and moderation.

    Every write that depends on the current status is a single UPDATE guarded
    on that status, so a concurrent transition makes the loser fail with
    ConflictError instead of overwriting the winner.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, listing_id: int) -> Listing:
        """Load a listing with owner and images, bypassing stale identity-map state"""
        stmt = (
            select(Listing)
            .where(Listing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError("Listing not found")
        return listing

    async def get_by_slug(self, slug: str, actor: Optional[Subject] = None) -> Listing:
        """
        Published listings are public; anything else only to owner or admin.
        Hidden listings look exactly like missing ones.
        """
        result = await self.db.execute(select(Listing).where(Listing.slug == slug))
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError("Listing not found")

        if listing.status == ListingStatus.PUBLISHED:
            return listing
        if actor is not None and (actor.is_admin or actor.subject_id == listing.owner_id):
            return listing
        raise NotFoundError("Listing not found")

    async def _paginate(self, stmt, count_stmt, skip: int, limit: int) -> Tuple[int, List[Listing]]:
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return total, list(result.scalars().all())

    async def list_published(self, skip: int = 0, limit: int = 50, **filters) -> Tuple[int, List[Listing]]:
        """Public browse: PUBLISHED only, newest publication first"""
        count_stmt = _apply_listing_filters(
            select(func.count()).select_from(Listing), ListingStatus.PUBLISHED, **filters
        )
        stmt = _apply_listing_filters(
            select(Listing).order_by(Listing.published_at.desc(), Listing.id.desc()),
            ListingStatus.PUBLISHED,
            **filters,
        )
        return await self._paginate(stmt, count_stmt, skip, limit)

    async def list_for_owner(
        self,
        actor: Subject,
        status_filter: Optional[ListingStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[int, List[Listing]]:
        """All of the caller's listings regardless of status"""
        base = select(Listing).where(Listing.owner_id == actor.subject_id)
        count_base = select(func.count()).select_from(Listing).where(Listing.owner_id == actor.subject_id)
        stmt = _apply_listing_filters(base.order_by(Listing.updated_at.desc(), Listing.id.desc()), status_filter)
        count_stmt = _apply_listing_filters(count_base, status_filter)
        return await self._paginate(stmt, count_stmt, skip, limit)

    async def list_all(
        self,
        status_filter: Optional[ListingStatus] = None,
        q: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[int, List[Listing]]:
        """Admin console: every listing, any status"""
        stmt = _apply_listing_filters(
            select(Listing).order_by(Listing.created_at.desc(), Listing.id.desc()), status_filter, q
        )
        count_stmt = _apply_listing_filters(select(func.count()).select_from(Listing), status_filter, q)
        return await self._paginate(stmt, count_stmt, skip, limit)

    async def status_counts(self) -> Dict[str, int]:
        result = await self.db.execute(
            select(Listing.status, func.count()).group_by(Listing.status)
        )
        counts = {status.value: 0 for status in ListingStatus}
        for status, count in result.all():
            counts[ListingStatus(status).value] = count
        counts["total"] = sum(counts.values())
        return counts

    # ------------------------------------------------------------------
    # Owner edits
    # ------------------------------------------------------------------

    async def create_listing(self, actor: Subject, listing_in: ListingCreate) -> Listing:
        """Create a DRAFT listing owned by the caller, with a unique slug"""
        listing_data = listing_in.model_dump(exclude={'images'})
        listing_data.update(normalize_address_fields(
            **{key: listing_data.get(key) for key in _ADDRESS_FIELDS}
        ))
        images_in = listing_in.images or []
        positions = _assign_positions(images_in, existing=[])

        base_slug = build_base_slug(listing_data['title'], listing_data.get('city'), listing_data.get('county'))

        for attempt in range(settings.SLUG_MAX_ATTEMPTS):
            slug = await generate_unique_slug(self.db, base_slug)
            new_listing = Listing(
                **listing_data,
                owner_id=actor.subject_id,
                slug=slug,
                status=ListingStatus.DRAFT,
            )
            for img_data, position in zip(images_in, positions):
                new_listing.images.append(_build_image(img_data, position))

            self.db.add(new_listing)
            try:
                await self.db.commit()
            except IntegrityError:
                # Another request took the same slug between check and insert
                await self.db.rollback()
                logger.warning(f"Slug '{slug}' taken concurrently, retrying (attempt {attempt + 1})")
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Failed to create listing for user {actor.subject_id}: {e}")
                raise ServerError("Failed to create listing") from e

            logger.info(f"Created listing {new_listing.id} '{slug}' for user {actor.subject_id}")
            return await self.get(new_listing.id)

        raise ServerError("Could not allocate a unique slug")

    async def _get_editable(self, listing_id: int, actor: Subject) -> Listing:
        listing = await self.get(listing_id)
        if listing.owner_id != actor.subject_id:
            raise UnauthorizedError("You can only edit your own listings")
        if listing.status not in EDITABLE_STATUSES:
            raise ConflictError(
                f"Listing can't be edited while {listing.status.value}",
                details={"status": listing.status.value},
            )
        return listing

    async def update_listing(self, listing_id: int, actor: Subject, listing_in: ListingUpdate) -> Listing:
        """Update content fields while DRAFT or REJECTED; the slug never changes"""
        listing = await self._get_editable(listing_id, actor)

        update_data = listing_in.model_dump(exclude_unset=True)
        for key in _NON_NULLABLE_FIELDS:
            if key in update_data and update_data[key] is None:
                update_data.pop(key)

        address_keys = [key for key in _ADDRESS_FIELDS if key in update_data]
        if address_keys:
            normalized = normalize_address_fields(**{key: update_data.get(key) for key in _ADDRESS_FIELDS})
            for key in address_keys:
                update_data[key] = normalized[key]

        if not update_data:
            return listing

        stmt = (
            update(Listing)
            .where(Listing.id == listing_id, Listing.status == listing.status)
            .values(**update_data)
            .execution_options(synchronize_session=False)
        )
        await self._execute_guarded(stmt, listing_id, action="update")
        return await self.get(listing_id)

    async def add_image(self, listing_id: int, actor: Subject, image_in: ListingImageCreate) -> Listing:
        """Record an image URL returned by the image host"""
        listing = await self._get_editable(listing_id, actor)
        if len(listing.images) >= settings.MAX_IMAGES_PER_LISTING:
            raise ValidationError(f"A listing can have at most {settings.MAX_IMAGES_PER_LISTING} images")

        [position] = _assign_positions([image_in], existing=[img.position for img in listing.images])
        image = _build_image(image_in, position)
        image.listing_id = listing.id

        await self._lock_editable(listing, action="add an image to")
        self.db.add(image)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"Image position {position} already taken") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ServerError("Failed to add image") from e

        return await self.get(listing_id)

    async def remove_image(self, listing_id: int, image_id: int, actor: Subject) -> Listing:
        listing = await self._get_editable(listing_id, actor)
        image = next((img for img in listing.images if img.id == image_id), None)
        if image is None:
            raise NotFoundError("Image not found")

        await self._lock_editable(listing, action="remove an image from")
        await self.db.delete(image)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise ServerError("Failed to remove image") from e

        return await self.get(listing_id)

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def transition(
        self,
        listing_id: int,
        event: TransitionEvent,
        actor: Subject,
        *,
        reason: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> Tuple[Listing, Notification]:
        """
        Fire a workflow event on a listing

        Returns:
            The updated listing and the notification to dispatch. The state
            change is committed before this returns.

        Raises:
            NotFoundError, UnauthorizedError, EmailNotVerifiedError,
            ValidationError, ConflictError, ServerError
        """
        listing = await self.get(listing_id)
        authorize_transition(event, listing, actor)

        slug = None
        if event == TransitionEvent.APPROVE and not listing.slug:
            slug = await generate_unique_slug(
                self.db, build_base_slug(listing.title, listing.city, listing.county)
            )

        plan = plan_transition(event, listing, actor, reason=reason, outcome=outcome, slug=slug)
        await self._apply_plan(plan)

        updated = await self.get(listing_id)
        logger.info(
            f"Listing {listing_id}: {plan.event.value} {plan.from_status.value} -> "
            f"{plan.to_status.value} by user {actor.subject_id}"
        )
        return updated, build_transition_notification(plan, updated)

    async def _apply_plan(self, plan: TransitionPlan) -> None:
        stmt = (
            update(Listing)
            .where(Listing.id == plan.listing_id, Listing.status == plan.from_status)
            .values(status=plan.to_status, **plan.values)
            .execution_options(synchronize_session=False)
        )
        unchanged_error = None
        if plan.event == TransitionEvent.SUBMIT:
            # Images may have been removed since the plan was made
            stmt = stmt.where(select(ListingImage.id).where(ListingImage.listing_id == Listing.id).exists())
            unchanged_error = ValidationError("At least one image required")

        await self._execute_guarded(
            stmt,
            plan.listing_id,
            action=plan.event.value.lower(),
            expected_status=plan.from_status,
            unchanged_error=unchanged_error,
        )

    async def _lock_editable(self, listing: Listing, action: str) -> None:
        """
        Touch the listing with an UPDATE guarded on the status read by
        _get_editable, inside the caller's transaction. Image writes are
        committed together with it, so they can't land after a SUBMIT.
        """
        stmt = (
            update(Listing)
            .where(Listing.id == listing.id, Listing.status == listing.status)
            .values(updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._execute_guarded(stmt, listing.id, action=action, commit=False)

    async def _execute_guarded(
        self,
        stmt,
        listing_id: int,
        action: str,
        *,
        commit: bool = True,
        expected_status: Optional[ListingStatus] = None,
        unchanged_error: Optional[MarketplaceError] = None,
    ) -> None:
        """
        Run a status-guarded UPDATE and (by default) commit it.
        Zero affected rows means the status moved underneath us, or, when the
        status is still ``expected_status``, that an extra guard failed and
        ``unchanged_error`` is raised instead.
        """
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                current = await self._current_status(listing_id)
                if current is None:
                    raise NotFoundError("Listing not found")
                if unchanged_error is not None and current == expected_status:
                    raise unchanged_error
                raise ConflictError(
                    f"Cannot {action} a listing that is {current.value}",
                    details={"status": current.value},
                )
            if commit:
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during {action} of listing {listing_id}: {e}")
            raise ServerError(f"Failed to {action} listing") from e

    async def _current_status(self, listing_id: int) -> Optional[ListingStatus]:
        result = await self.db.execute(select(Listing.status).where(Listing.id == listing_id))
        return result.scalar_one_or_none()


def _assign_positions(images_in: List[ListingImageCreate], existing: List[int]) -> List[int]:
    """
    Resolve sort positions for new images: explicit positions are kept,
    the rest are appended after the current maximum. Gaps are allowed,
    duplicates are not.
    """
    taken = set(existing)
    explicit = [img.position for img in images_in if img.position is not None]
    if len(explicit) != len(set(explicit)) or taken.intersection(explicit):
        raise ValidationError("Image positions must be unique per listing")

    taken.update(explicit)
    next_position = max(taken) + 1 if taken else 0
    positions = []
    for img in images_in:
        if img.position is not None:
            positions.append(img.position)
        else:
            positions.append(next_position)
            next_position += 1
    return positions


def _build_image(image_in: ListingImageCreate, position: int) -> ListingImage:
    return ListingImage(
        url=image_in.url,
        alt_text=image_in.alt_text,
        public_id=image_in.public_id,
        width=image_in.width,
        height=image_in.height,
        position=position,
    )

"""
Listing Workflow Engine

Pure state-machine logic for listing moderation. Nothing here touches the
database: callers pass in the current listing and the acting subject, and get
back a TransitionPlan describing the columns to write. The caller applies it
with an UPDATE guarded on ``plan.from_status``.

    DRAFT -----SUBMIT----> SUBMITTED --APPROVE--> PUBLISHED --CLOSE--> CLOSED
      REJECTED --SUBMIT--^     |                      ^                  |
          ^                    |                      +-----REOPEN-------+
          +------REJECT--------+
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from marketplace.core.exceptions import (
    ConflictError,
    EmailNotVerifiedError,
    UnauthorizedError,
    ValidationError,
)
from marketplace.core.security import Subject
from marketplace.models.listing import Listing, ListingStatus, MarketStatus


class TransitionEvent(str, enum.Enum):
    """Moderation events"""
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CLOSE = "CLOSE"
    REOPEN = "REOPEN"


@dataclass(frozen=True)
class TransitionRule:
    event: TransitionEvent
    sources: FrozenSet[ListingStatus]
    target: ListingStatus
    admin_only: bool
    owner_only: bool
    requires_verified_email: bool
    notification_kind: str


TRANSITIONS: Dict[TransitionEvent, TransitionRule] = {
    TransitionEvent.SUBMIT: TransitionRule(
        event=TransitionEvent.SUBMIT,
        sources=frozenset({ListingStatus.DRAFT, ListingStatus.REJECTED}),
        target=ListingStatus.SUBMITTED,
        admin_only=False,
        owner_only=True,
        requires_verified_email=True,
        notification_kind="listing_submitted",
    ),
    TransitionEvent.APPROVE: TransitionRule(
        event=TransitionEvent.APPROVE,
        sources=frozenset({ListingStatus.SUBMITTED}),
        target=ListingStatus.PUBLISHED,
        admin_only=True,
        owner_only=False,
        requires_verified_email=False,
        notification_kind="listing_approved",
    ),
    TransitionEvent.REJECT: TransitionRule(
        event=TransitionEvent.REJECT,
        sources=frozenset({ListingStatus.SUBMITTED}),
        target=ListingStatus.REJECTED,
        admin_only=True,
        owner_only=False,
        requires_verified_email=False,
        notification_kind="listing_rejected",
    ),
    TransitionEvent.CLOSE: TransitionRule(
        event=TransitionEvent.CLOSE,
        sources=frozenset({ListingStatus.PUBLISHED}),
        target=ListingStatus.CLOSED,
        admin_only=True,
        owner_only=False,
        requires_verified_email=False,
        notification_kind="listing_closed",
    ),
    TransitionEvent.REOPEN: TransitionRule(
        event=TransitionEvent.REOPEN,
        sources=frozenset({ListingStatus.CLOSED}),
        target=ListingStatus.PUBLISHED,
        admin_only=True,
        owner_only=False,
        requires_verified_email=False,
        notification_kind="listing_reopened",
    ),
}

# Statuses in which the owner may still edit content
EDITABLE_STATUSES: FrozenSet[ListingStatus] = frozenset({ListingStatus.DRAFT, ListingStatus.REJECTED})


@dataclass
class TransitionPlan:
    """Result of planning a transition: what to write and whom to tell"""
    event: TransitionEvent
    listing_id: int
    from_status: ListingStatus
    to_status: ListingStatus
    values: Dict[str, Any] = field(default_factory=dict)
    notification_kind: Optional[str] = None


def authorize_transition(event: TransitionEvent, listing: Listing, actor: Subject) -> None:
    """
    Check the actor may fire ``event`` on ``listing``

    Raises:
        UnauthorizedError: Role or ownership mismatch
        EmailNotVerifiedError: Owner has not verified their email (admins exempt)
    """
    rule = TRANSITIONS[event]

    if rule.admin_only and not actor.is_admin:
        raise UnauthorizedError(f"Only admins can {event.value.lower()} listings")

    if rule.owner_only and listing.owner_id != actor.subject_id:
        raise UnauthorizedError(f"Only the listing owner can {event.value.lower()} this listing")

    if rule.requires_verified_email and not actor.is_admin and not actor.email_verified:
        raise EmailNotVerifiedError("Please verify your email to continue.")


def plan_transition(
    event: TransitionEvent,
    listing: Listing,
    actor: Subject,
    *,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
    outcome: Optional[MarketStatus] = None,
    slug: Optional[str] = None,
) -> TransitionPlan:
    """
    Validate a transition and compute the column values it writes

    Args:
        event: Event to fire
        listing: Current listing row (status, timestamps, images)
        actor: Caller
        now: Transition timestamp (defaults to utcnow)
        reason: Rejection reason, required for REJECT
        outcome: Close outcome, required for CLOSE
        slug: Slug to assign on APPROVE when the listing has none

    Returns:
        TransitionPlan; ``values`` excludes ``status`` itself

    Raises:
        UnauthorizedError / EmailNotVerifiedError: see authorize_transition
        ValidationError: Missing or invalid input, or no images on SUBMIT
        ConflictError: Event not allowed from the listing's current status
    """
    rule = TRANSITIONS[event]
    now = now or datetime.utcnow()

    authorize_transition(event, listing, actor)

    if event == TransitionEvent.REJECT:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason required")

    if event == TransitionEvent.CLOSE:
        outcome = _coerce_outcome(outcome)

    current = ListingStatus(listing.status)
    if current not in rule.sources:
        raise ConflictError(
            f"Cannot {event.value.lower()} a listing that is {current.value}",
            details={"status": current.value, "event": event.value},
        )

    values: Dict[str, Any] = {}

    if event == TransitionEvent.SUBMIT:
        if not listing.images:
            raise ValidationError("At least one image required")
        values["submitted_at"] = now

    elif event == TransitionEvent.APPROVE:
        if not listing.slug and slug:
            values["slug"] = slug
        values["published_at"] = listing.published_at or now
        values["approved_at"] = now
        values["approved_by_id"] = actor.subject_id
        values["rejected_at"] = None
        values["rejected_by_id"] = None
        values["rejected_reason"] = None

    elif event == TransitionEvent.REJECT:
        values["rejected_at"] = now
        values["rejected_by_id"] = actor.subject_id
        values["rejected_reason"] = reason

    elif event == TransitionEvent.CLOSE:
        values["archived_at"] = now
        values["market_status"] = outcome

    elif event == TransitionEvent.REOPEN:
        values["archived_at"] = None
        values["market_status"] = None
        values["published_at"] = listing.published_at or now

    return TransitionPlan(
        event=event,
        listing_id=listing.id,
        from_status=current,
        to_status=rule.target,
        values=values,
        notification_kind=rule.notification_kind,
    )


def _coerce_outcome(outcome: Any) -> MarketStatus:
    if isinstance(outcome, MarketStatus):
        return outcome
    try:
        return MarketStatus(str(outcome or "").strip().upper())
    except ValueError:
        valid = ", ".join(m.value for m in MarketStatus)
        raise ValidationError(f"Invalid close outcome: {outcome!r}. Valid values: {valid}")

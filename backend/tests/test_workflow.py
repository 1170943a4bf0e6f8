"""Workflow engine: pure transition planning, no database."""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from marketplace.core.exceptions import (
    ConflictError,
    EmailNotVerifiedError,
    UnauthorizedError,
    ValidationError,
)
from marketplace.core.security import Subject
from marketplace.models.listing import ListingStatus, MarketStatus
from marketplace.services.workflow import (
    TRANSITIONS,
    TransitionEvent,
    plan_transition,
)

NOW = datetime(2026, 3, 14, 9, 30)
OWNER = Subject(subject_id=1, role="user", email_verified=True)
STRANGER = Subject(subject_id=2, role="user", email_verified=True)
UNVERIFIED_OWNER = Subject(subject_id=1, role="user", email_verified=False)
ADMIN = Subject(subject_id=99, role="admin", email_verified=False)


def make_listing(status=ListingStatus.DRAFT, **kwargs):
    defaults = dict(
        id=10,
        owner_id=OWNER.subject_id,
        status=status,
        slug="cottage-dingle-kerry",
        images=[SimpleNamespace(url="https://img.example.com/1.jpg")],
        published_at=None,
        rejected_reason=None,
    )
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def test_state_graph_sources():
    assert TRANSITIONS[TransitionEvent.SUBMIT].sources == {ListingStatus.DRAFT, ListingStatus.REJECTED}
    assert TRANSITIONS[TransitionEvent.APPROVE].sources == {ListingStatus.SUBMITTED}
    assert TRANSITIONS[TransitionEvent.REJECT].sources == {ListingStatus.SUBMITTED}
    assert TRANSITIONS[TransitionEvent.CLOSE].sources == {ListingStatus.PUBLISHED}
    assert TRANSITIONS[TransitionEvent.REOPEN].sources == {ListingStatus.CLOSED}


@pytest.mark.parametrize(
    "status, event",
    [(status, event) for event, rule in TRANSITIONS.items() for status in ListingStatus if status not in rule.sources],
)
def test_disallowed_sources_conflict(status, event):
    actor = OWNER if event == TransitionEvent.SUBMIT else ADMIN

    with pytest.raises(ConflictError) as exc_info:
        plan_transition(event, make_listing(status), actor, reason="r", outcome="SOLD", now=NOW)

    assert exc_info.value.details["status"] == status.value


def test_submit_sets_submitted_at():
    plan = plan_transition(TransitionEvent.SUBMIT, make_listing(), OWNER, now=NOW)

    assert plan.from_status == ListingStatus.DRAFT
    assert plan.to_status == ListingStatus.SUBMITTED
    assert plan.values == {"submitted_at": NOW}
    assert plan.notification_kind == "listing_submitted"


def test_submit_without_images_fails():
    with pytest.raises(ValidationError, match="image"):
        plan_transition(TransitionEvent.SUBMIT, make_listing(images=[]), OWNER, now=NOW)


def test_submit_requires_verified_owner():
    with pytest.raises(EmailNotVerifiedError):
        plan_transition(TransitionEvent.SUBMIT, make_listing(), UNVERIFIED_OWNER, now=NOW)
    with pytest.raises(UnauthorizedError):
        plan_transition(TransitionEvent.SUBMIT, make_listing(), STRANGER, now=NOW)


def test_resubmit_keeps_rejection_reason():
    listing = make_listing(ListingStatus.REJECTED, rejected_reason="poor photos")

    plan = plan_transition(TransitionEvent.SUBMIT, listing, OWNER, now=NOW)

    assert "rejected_reason" not in plan.values


def test_approve_publishes_and_clears_rejection():
    plan = plan_transition(TransitionEvent.APPROVE, make_listing(ListingStatus.SUBMITTED), ADMIN, now=NOW)

    assert plan.to_status == ListingStatus.PUBLISHED
    assert plan.values["published_at"] == NOW
    assert plan.values["approved_at"] == NOW
    assert plan.values["approved_by_id"] == ADMIN.subject_id
    assert plan.values["rejected_reason"] is None
    assert plan.values["rejected_at"] is None
    assert "slug" not in plan.values


def test_approve_assigns_slug_only_when_missing():
    with_slug = plan_transition(
        TransitionEvent.APPROVE, make_listing(ListingStatus.SUBMITTED), ADMIN, now=NOW, slug="other"
    )
    without_slug = plan_transition(
        TransitionEvent.APPROVE, make_listing(ListingStatus.SUBMITTED, slug=None), ADMIN, now=NOW, slug="fresh"
    )

    assert "slug" not in with_slug.values
    assert without_slug.values["slug"] == "fresh"


def test_approve_keeps_first_publication_time():
    first = NOW - timedelta(days=30)
    listing = make_listing(ListingStatus.SUBMITTED, published_at=first)

    plan = plan_transition(TransitionEvent.APPROVE, listing, ADMIN, now=NOW)

    assert plan.values["published_at"] == first


@pytest.mark.parametrize("event", [
    TransitionEvent.APPROVE,
    TransitionEvent.REJECT,
    TransitionEvent.CLOSE,
    TransitionEvent.REOPEN,
])
def test_moderation_is_admin_only(event):
    with pytest.raises(UnauthorizedError):
        plan_transition(event, make_listing(ListingStatus.SUBMITTED), OWNER, reason="r", outcome="SOLD")


@pytest.mark.parametrize("reason", [None, "", "   \n"])
def test_reject_requires_reason(reason):
    with pytest.raises(ValidationError):
        plan_transition(TransitionEvent.REJECT, make_listing(ListingStatus.SUBMITTED), ADMIN, reason=reason)


def test_reject_records_trimmed_reason():
    plan = plan_transition(
        TransitionEvent.REJECT, make_listing(ListingStatus.SUBMITTED), ADMIN, now=NOW, reason=" blurry photos "
    )

    assert plan.to_status == ListingStatus.REJECTED
    assert plan.values == {
        "rejected_at": NOW,
        "rejected_by_id": ADMIN.subject_id,
        "rejected_reason": "blurry photos",
    }


@pytest.mark.parametrize("outcome", [None, "", "DEMOLISHED", 3])
def test_close_rejects_unknown_outcomes(outcome):
    with pytest.raises(ValidationError):
        plan_transition(TransitionEvent.CLOSE, make_listing(ListingStatus.PUBLISHED), ADMIN, outcome=outcome)


@pytest.mark.parametrize("outcome, expected", [
    ("sold", MarketStatus.SOLD),
    (" Rented ", MarketStatus.RENTED),
    (MarketStatus.CANCELLED, MarketStatus.CANCELLED),
])
def test_close_sets_archive_fields(outcome, expected):
    plan = plan_transition(
        TransitionEvent.CLOSE, make_listing(ListingStatus.PUBLISHED), ADMIN, now=NOW, outcome=outcome
    )

    assert plan.to_status == ListingStatus.CLOSED
    assert plan.values == {"archived_at": NOW, "market_status": expected}


def test_reopen_clears_archive_and_restores_publication():
    first = NOW - timedelta(days=3)
    listing = make_listing(ListingStatus.CLOSED, published_at=first)

    plan = plan_transition(TransitionEvent.REOPEN, listing, ADMIN, now=NOW)

    assert plan.to_status == ListingStatus.PUBLISHED
    assert plan.values == {"archived_at": None, "market_status": None, "published_at": first}
    assert plan.notification_kind == "listing_reopened"


def test_validation_precedes_state_check():
    # A bad reason on a listing in the wrong state is still a validation error
    with pytest.raises(ValidationError):
        plan_transition(TransitionEvent.REJECT, make_listing(ListingStatus.DRAFT), ADMIN, reason="")

"""Notification building, dispatch and the email transport."""

import logging
from types import SimpleNamespace

import httpx
import pytest

from marketplace.core.config import settings
from marketplace.core.security import Subject
from marketplace.models.listing import ListingStatus
from marketplace.services import mailer
from marketplace.services.mailer import EmailSender, render
from marketplace.services.notifications import (
    Notification,
    NotificationDispatcher,
    build_transition_notification,
)
from marketplace.services.workflow import TransitionEvent, plan_transition
from marketplace.tasks.notifications import send_notification

ADMIN = Subject(subject_id=9, role="admin", email_verified=True)


def make_listing(status, **kwargs):
    defaults = dict(
        id=5,
        owner_id=1,
        owner=SimpleNamespace(email="owner@example.com"),
        status=status,
        title="Seaside bungalow",
        slug="seaside-bungalow-dingle",
        images=[object()],
        published_at=None,
        rejected_reason=None,
        market_status=None,
    )
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def test_rejection_notification_goes_to_owner_with_reason():
    listing = make_listing(ListingStatus.SUBMITTED)
    plan = plan_transition(TransitionEvent.REJECT, listing, ADMIN, reason="blurry")
    listing.rejected_reason = "blurry"

    notification = build_transition_notification(plan, listing)

    assert notification.recipient == "owner@example.com"
    assert notification.kind == "listing_rejected"
    assert notification.data["reason"] == "blurry"
    assert notification.data["edit_url"].endswith("id=5")


def test_submit_notification_goes_to_moderation_inbox(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_NOTIFY_EMAIL", "mods@example.com")
    owner = Subject(subject_id=1, role="user", email_verified=True)
    listing = make_listing(ListingStatus.DRAFT)

    notification = build_transition_notification(
        plan_transition(TransitionEvent.SUBMIT, listing, owner), listing
    )

    assert notification.recipient == "mods@example.com"
    assert notification.kind == "listing_submitted"


def test_dispatch_enqueues_task(monkeypatch):
    calls = []
    monkeypatch.setattr(send_notification, "delay", lambda *args: calls.append(args))

    ok = NotificationDispatcher().dispatch(Notification("a@example.com", "listing_closed", {"title": "x"}))

    assert ok is True
    assert calls == [("a@example.com", "listing_closed", {"title": "x"})]


def test_dispatch_failure_is_logged_not_raised(monkeypatch, caplog):
    def broken(*args):
        raise ConnectionError("broker down")

    monkeypatch.setattr(send_notification, "delay", broken)

    with caplog.at_level(logging.ERROR, logger="marketplace.services.notifications"):
        ok = NotificationDispatcher().dispatch(Notification("a@example.com", "listing_closed", {}))

    assert ok is False
    assert "broker down" in caplog.text


def test_dispatch_without_recipient_is_skipped(monkeypatch):
    monkeypatch.setattr(send_notification, "delay", lambda *args: pytest.fail("should not enqueue"))

    assert NotificationDispatcher().dispatch(Notification(None, "listing_submitted", {})) is False


def test_sender_is_noop_when_unconfigured(monkeypatch):
    monkeypatch.setattr(mailer.httpx, "post", lambda *a, **kw: pytest.fail("should not send"))

    sender = EmailSender(api_key="", from_email="")

    assert sender.configured is False
    assert sender.send("a@example.com", "listing_approved", {"title": "x"}) is False


def test_sender_posts_rendered_email(monkeypatch):
    captured = {}

    def fake_post(url, json, headers, timeout):
        captured.update(url=url, json=json, headers=headers)
        return httpx.Response(200, request=httpx.Request("POST", url), json={"id": "msg_1"})

    monkeypatch.setattr(mailer.httpx, "post", fake_post)
    sender = EmailSender(api_key="re_test", from_email="Homes <noreply@example.com>", api_url="https://mail.test/emails")

    ok = sender.send("owner@example.com", "listing_rejected", {"title": "<b>Flat</b>", "reason": "dark"})

    assert ok is True
    assert captured["url"] == "https://mail.test/emails"
    assert captured["headers"]["Authorization"] == "Bearer re_test"
    assert captured["json"]["to"] == ["owner@example.com"]
    assert captured["json"]["subject"] == "Your listing needs changes"
    assert "&lt;b&gt;Flat&lt;/b&gt;" in captured["json"]["html"]


def test_sender_reports_provider_errors(monkeypatch):
    def fake_post(url, **kwargs):
        return httpx.Response(500, request=httpx.Request("POST", url))

    monkeypatch.setattr(mailer.httpx, "post", fake_post)
    sender = EmailSender(api_key="re_test", from_email="noreply@example.com")

    assert sender.send("owner@example.com", "listing_closed", {"outcome": "SOLD"}) is False


def test_task_swallows_template_errors(monkeypatch):
    monkeypatch.setattr(mailer.EmailSender, "configured", property(lambda self: True))

    assert send_notification.run("owner@example.com", "no_such_template", {}) is False


def test_render_unknown_template():
    with pytest.raises(ValueError):
        render("no_such_template", {})

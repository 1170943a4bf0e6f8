"""
Notification Dispatcher

Turns workflow transitions and auth flows into outbound email notifications.
Dispatch is fire-and-forget: handlers schedule it with FastAPI BackgroundTasks
so it runs after the response is sent, and the actual send happens on a
Celery worker. Nothing here raises back into the request.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

from marketplace.core.config import settings
from marketplace.models.listing import Listing
from marketplace.services.workflow import TransitionPlan

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    recipient: Optional[str]
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


def listing_public_url(slug: Optional[str]) -> str:
    return f"{settings.SITE_URL}/property.html?slug={quote(slug or '')}"


def listing_edit_url(listing_id: int) -> str:
    return f"{settings.SITE_URL}/property-upload.html?id={listing_id}"


def listing_admin_url(listing_id: int) -> str:
    return f"{settings.SITE_URL}/admin.html?id={listing_id}"


def build_transition_notification(plan: TransitionPlan, listing: Listing) -> Notification:
    """
    Build the single notification a committed transition sends

    SUBMIT goes to the moderation inbox, every other event to the owner.
    """
    data: Dict[str, Any] = {
        "listing_id": listing.id,
        "title": listing.title,
        "slug": listing.slug,
        "status": plan.to_status.value,
    }

    if plan.notification_kind == "listing_submitted":
        data["admin_url"] = listing_admin_url(listing.id)
        return Notification(settings.ADMIN_NOTIFY_EMAIL, plan.notification_kind, data)

    if plan.notification_kind in ("listing_approved", "listing_reopened"):
        data["public_url"] = listing_public_url(listing.slug)
    elif plan.notification_kind == "listing_rejected":
        data["reason"] = listing.rejected_reason
        data["edit_url"] = listing_edit_url(listing.id)
    elif plan.notification_kind == "listing_closed":
        data["outcome"] = listing.market_status.value if listing.market_status else None

    owner_email = listing.owner.email if listing.owner is not None else None
    return Notification(owner_email, plan.notification_kind, data)


class NotificationDispatcher:
    """Enqueues notifications on the Celery worker"""

    def dispatch(self, notification: Notification) -> bool:
        """
        Enqueue one notification

        Returns:
            True if it was handed to the queue. Missing recipients and
            enqueue failures are logged and return False.
        """
        if not notification.recipient:
            logger.warning(f"No recipient for {notification.kind} notification, skipping")
            return False

        # Deferred: importing the task module configures Celery
        from marketplace.tasks.notifications import send_notification

        try:
            send_notification.delay(notification.recipient, notification.kind, notification.data)
        except Exception as e:
            logger.error(
                f"Failed to enqueue {notification.kind} notification for {notification.recipient}: {e}",
                exc_info=True,
            )
            return False

        logger.info(f"Queued {notification.kind} notification for {notification.recipient}")
        return True


notification_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency; overridden in tests"""
    return notification_dispatcher

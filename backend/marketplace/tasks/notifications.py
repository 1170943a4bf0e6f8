"""
Notification Celery tasks
"""
import logging
from typing import Any, Dict

from marketplace.services.mailer import EmailSender
from marketplace.tasks import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="send_notification")
def send_notification(recipient: str, template_kind: str, template_data: Dict[str, Any]) -> bool:
    """Send one notification email; failures are logged and reported as False"""
    try:
        return EmailSender().send(recipient, template_kind, template_data)
    except Exception as e:
        logger.error(f"Notification {template_kind} to {recipient} failed: {e}", exc_info=True)
        return False

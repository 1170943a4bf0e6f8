"""
Email transport

Implements the email collaborator contract
``send(recipient, template_kind, template_data) -> bool`` on top of the
Resend HTTP API. When Resend isn't configured every send is a logged no-op.
"""
import html
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from marketplace.core.config import settings

logger = logging.getLogger(__name__)


def _button(url: str, label: str) -> str:
    return (
        f'<p style="margin:16px 0"><a href="{html.escape(url, quote=True)}" '
        f'style="display:inline-block;padding:10px 14px;border-radius:10px;'
        f'background:#2563eb;color:#fff;text-decoration:none;font-weight:700">'
        f'{html.escape(label)}</a></p>'
    )


def _listing_submitted(data: Dict[str, Any]) -> Tuple[str, str]:
    title = html.escape(data.get("title") or "A listing")
    body = (
        f"<h2>New listing submitted</h2>"
        f"<p><strong>{title}</strong> (ID {data.get('listing_id')}) is awaiting moderation.</p>"
    )
    if data.get("admin_url"):
        body += _button(data["admin_url"], "Open in admin")
    return f"New listing submitted: {data.get('title') or 'A listing'}", body


def _listing_approved(data: Dict[str, Any]) -> Tuple[str, str]:
    title = html.escape(data.get("title") or "Your listing")
    body = f"<h2>Your listing is approved</h2><p><strong>{title}</strong> is now live.</p>"
    if data.get("public_url"):
        body += _button(data["public_url"], "View listing")
    return "Your listing is now live", body


def _listing_rejected(data: Dict[str, Any]) -> Tuple[str, str]:
    title = html.escape(data.get("title") or "Your listing")
    reason = html.escape(data.get("reason") or "No reason was provided.")
    body = (
        f"<h2>Your listing was not approved</h2>"
        f"<p><strong>{title}</strong> requires changes before it can go live.</p>"
        f"<p><strong>Reason:</strong> {reason}</p>"
    )
    if data.get("edit_url"):
        body += _button(data["edit_url"], "Edit & resubmit")
    return "Your listing needs changes", body


def _listing_closed(data: Dict[str, Any]) -> Tuple[str, str]:
    title = html.escape(data.get("title") or "Your listing")
    outcome = html.escape(str(data.get("outcome") or "OTHER"))
    body = f"<h2>Your listing was closed</h2><p><strong>{title}</strong> has been closed ({outcome}).</p>"
    return "Your listing has been closed", body


def _listing_reopened(data: Dict[str, Any]) -> Tuple[str, str]:
    title = html.escape(data.get("title") or "Your listing")
    body = f"<h2>Your listing is live again</h2><p><strong>{title}</strong> has been reopened.</p>"
    if data.get("public_url"):
        body += _button(data["public_url"], "View listing")
    return "Your listing has been reopened", body


def _verify_email(data: Dict[str, Any]) -> Tuple[str, str]:
    body = "<h2>Confirm your email</h2><p>Click the button below to verify your email address.</p>"
    body += _button(data["verify_url"], "Verify email")
    return "Verify your email", body


def _password_reset(data: Dict[str, Any]) -> Tuple[str, str]:
    body = (
        "<h2>Reset your password</h2>"
        "<p>Someone asked to reset your password. If it wasn't you, ignore this email.</p>"
    )
    body += _button(data["reset_url"], "Reset password")
    return "Reset your password", body


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    "listing_submitted": _listing_submitted,
    "listing_approved": _listing_approved,
    "listing_rejected": _listing_rejected,
    "listing_closed": _listing_closed,
    "listing_reopened": _listing_reopened,
    "verify_email": _verify_email,
    "password_reset": _password_reset,
}


def render(template_kind: str, template_data: Dict[str, Any]) -> Tuple[str, str]:
    """Return (subject, html) for a template kind"""
    try:
        renderer = TEMPLATES[template_kind]
    except KeyError:
        raise ValueError(f"Unknown email template: {template_kind}")
    return renderer(template_data)


class EmailSender:
    """Resend-backed sender"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email if from_email is not None else settings.MAIL_FROM
        self.api_url = api_url or settings.RESEND_API_URL
        self.timeout = timeout or settings.MAIL_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    def send(self, recipient: str, template_kind: str, template_data: Dict[str, Any]) -> bool:
        """
        Send one email

        Returns:
            True if the provider accepted the message, False otherwise.
            Never raises for transport or provider errors.
        """
        if not self.configured:
            logger.info(f"[mail] Resend not configured, skipping {template_kind} to {recipient}")
            return False

        subject, body = render(template_kind, template_data)
        payload = {
            "from": self.from_email,
            "to": [recipient],
            "subject": subject,
            "html": body,
        }

        try:
            response = httpx.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"[mail] Failed to send {template_kind} to {recipient}: {e}")
            return False

        logger.info(f"[mail] Sent {template_kind} to {recipient}")
        return True

"""Notification email rendering, dispatch through the mailer, and delivery logging."""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from flask import current_app, render_template

from extensions import db
from models import EmailLog, Notification, User
from utils.email_formatter import (
    format_certificate_expiry_markdown,
    format_notification_markdown,
    markdown_to_email_html,
    markdown_to_plaintext,
)
from utils.mailer import Mailer, get_mailer

EMAIL_TYPE_BY_NOTIFICATION = {
    "certificate_expiring": "CERTIFICATE_EXPIRY",
    "registration_expiring": "REGISTRATION_EXPIRY",
    "hmo_expiring": "HMO_EXPIRY",
    "assessment_due": "ASSESSMENT_DUE",
    "system": "SYSTEM",
}

# Only certificate expiry has a dedicated layout; everything else uses the generic one.
TEMPLATES = {
    "CERTIFICATE_EXPIRY": "email/certificate_expiry.html",
}
GENERIC_TEMPLATE = "email/notification.html"

PREHEADERS = {
    "CERTIFICATE_EXPIRY": "A compliance certificate needs renewing.",
    "REGISTRATION_EXPIRY": "Your landlord registration is due for renewal.",
    "HMO_EXPIRY": "Your HMO licence is due for renewal.",
    "ASSESSMENT_DUE": "Repairing standard items need attention.",
    "SYSTEM": "Update from ScotComply.",
}


@dataclass
class EmailOutcome:
    """Result of the best-effort email step that follows a committed notification."""

    attempted: bool
    success: bool = False
    error: Optional[str] = None
    email_log_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "attempted": self.attempted,
            "success": self.success,
            "error": self.error,
            "email_log_id": self.email_log_id,
        }


def _base_url() -> str:
    return (current_app.config.get("APP_BASE_URL") or "http://localhost:5000").rstrip("/")


def _display_date(value) -> str:
    if not value:
        return "soon"
    try:
        parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    except ValueError:
        return str(value)
    return parsed.strftime("%d %B %Y")


def build_template_context(email_type: str, user: User, notification: Notification) -> Dict:
    metadata = notification.extra_metadata or {}
    context: Dict = {
        "dashboard_url": f"{_base_url()}/dashboard",
        "landlord_name": user.name,
    }
    if email_type == "CERTIFICATE_EXPIRY":
        context.update(
            {
                "property_address": metadata.get("property_address") or "your property",
                "certificate_type": metadata.get("certificate_type") or "Certificate",
                "expiry_date": _display_date(metadata.get("expiry_date")),
                "days_until_expiry": int(metadata.get("days_until_expiry") or 0),
            }
        )
    else:
        context.update(
            {
                "message": notification.message,
                "link_url": f"{_base_url()}{notification.link}" if notification.link else None,
                "details": {
                    "priority": notification.priority,
                    "days_until_expiry": metadata.get("days_until_expiry"),
                    "days_overdue": metadata.get("days_overdue"),
                },
            }
        )
    return context


def render_notification_email(email_type: str, subject: str, context: Dict) -> Tuple[str, str]:
    """Return plaintext and HTML bodies from a shared markdown source."""
    if email_type == "CERTIFICATE_EXPIRY":
        markdown_body = format_certificate_expiry_markdown(context)
    else:
        markdown_body = format_notification_markdown(context)
    template = TEMPLATES.get(email_type, GENERIC_TEMPLATE)
    text_body = markdown_to_plaintext(markdown_body)
    html_body = render_template(
        template,
        subject=subject,
        preheader=PREHEADERS.get(email_type, ""),
        content_html=markdown_to_email_html(markdown_body),
        **context,
    )
    return text_body, html_body


def record_email(
    user: User,
    *,
    subject: str,
    body: str,
    html_body: str,
    email_type: str,
    status: str,
    notification: Optional[Notification] = None,
    provider_message_id: Optional[str] = None,
    error: Optional[str] = None,
    metadata: Optional[Dict] = None,
) -> EmailLog:
    log = EmailLog(
        user_id=user.id,
        notification_id=notification.id if notification else None,
        to_address=user.email,
        from_address=current_app.config.get("MAIL_DEFAULT_SENDER") or "noreply@scotcomply.com",
        subject=subject,
        body=body,
        html_body=html_body,
        type=email_type,
        status=status,
        provider_message_id=provider_message_id,
        error_message=error,
        extra_metadata=metadata,
    )
    db.session.add(log)
    return log


def send_notification_email(notification: Notification, user: User, mailer: Optional[Mailer] = None) -> EmailOutcome:
    email_type = EMAIL_TYPE_BY_NOTIFICATION.get(notification.type, "SYSTEM")
    subject = notification.title
    context = build_template_context(email_type, user, notification)
    text_body, html_body = render_notification_email(email_type, subject, context)

    result = (mailer or get_mailer()).send(user.email, subject, html_body, text=text_body)
    status = "SENT" if result.success else "FAILED"
    log = record_email(
        user,
        subject=subject,
        body=notification.message,
        html_body=html_body,
        email_type=email_type,
        status=status,
        notification=notification,
        provider_message_id=result.message_id,
        error=result.error,
        metadata={k: v for k, v in context.items() if k != "details"},
    )
    if result.success:
        user.last_notification_sent = datetime.utcnow()
    db.session.commit()

    if result.success:
        current_app.logger.info(
            "Notification email sent",
            extra={"notification_id": notification.id, "email_type": email_type, "message_id": result.message_id},
        )
    else:
        current_app.logger.warning(
            "Notification email failed",
            extra={"notification_id": notification.id, "email_type": email_type, "error": result.error},
        )
    return EmailOutcome(attempted=True, success=result.success, error=result.error, email_log_id=log.id)


def email_history(user_id: str, limit: int = 50) -> list:
    logs = (
        EmailLog.query.filter(EmailLog.user_id == user_id)
        .order_by(EmailLog.sent_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": log.id,
            "to": log.to_address,
            "subject": log.subject,
            "type": log.type,
            "status": log.status,
            "error": log.error_message,
            "sent_at": log.sent_at.isoformat() if log.sent_at else None,
        }
        for log in logs
    ]

"""SMTP mail transport that reports failures instead of raising."""
from __future__ import annotations

import smtplib
import ssl
import time
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import List, Optional, Union

from flask import current_app


@dataclass
class MailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"success": self.success}
        if self.message_id:
            payload["data"] = {"id": self.message_id}
        if self.error:
            payload["error"] = self.error
        return payload


def _normalize_recipients(to: Union[str, List[str], None]) -> List[str]:
    if not to:
        return []
    if isinstance(to, str):
        to = [to]
    return [address.strip() for address in to if address and address.strip()]


class Mailer:
    """Flask extension wrapping smtplib; bound per app in create_app."""

    def __init__(self, app=None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions["mailer"] = self

    @property
    def is_configured(self) -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    def send(self, to: Union[str, List[str]], subject: str, html: str, text: Optional[str] = None) -> MailResult:
        recipients = _normalize_recipients(to)
        if not recipients:
            return MailResult(success=False, error="No recipients resolved for email dispatch")

        if not self.is_configured:
            # Development fallback: preview in the log and report success.
            current_app.logger.info(
                "Email preview (MAIL_SERVER not configured)",
                extra={"to": recipients, "subject": subject, "html_preview": (html or "")[:200]},
            )
            return MailResult(success=True, message_id=f"dev-email-{int(time.time() * 1000)}")

        sender = current_app.config.get("MAIL_DEFAULT_SENDER") or ""
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Date"] = formatdate(localtime=True)
        message_id = make_msgid()
        msg["Message-ID"] = message_id
        msg.set_content(text or subject)
        msg.add_alternative(html or "", subtype="html")

        host = current_app.config.get("MAIL_SERVER")
        port = int(current_app.config.get("MAIL_PORT", 25))
        username = current_app.config.get("MAIL_USERNAME")
        password = current_app.config.get("MAIL_PASSWORD")
        use_tls = bool(current_app.config.get("MAIL_USE_TLS"))
        use_ssl = bool(current_app.config.get("MAIL_USE_SSL"))

        try:
            if use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(host, port, context=context) as server:
                    if username and password:
                        server.login(username, password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(host, port) as server:
                    server.ehlo()
                    if use_tls:
                        server.starttls(context=ssl.create_default_context())
                    if username and password:
                        server.login(username, password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - external I/O
            current_app.logger.warning("SMTP dispatch failed", extra={"to": recipients, "error": str(exc)})
            return MailResult(success=False, error=str(exc))

        return MailResult(success=True, message_id=message_id)


def get_mailer() -> Mailer:
    return current_app.extensions["mailer"]

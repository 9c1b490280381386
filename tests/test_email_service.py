from datetime import timedelta

from models import EmailLog
from utils import notification_service
from utils.email_formatter import markdown_to_email_html, markdown_to_plaintext
from utils.email_service import email_history, render_notification_email


def test_markdown_html_is_sanitised():
    html = markdown_to_email_html("**Renew** now <script>alert(1)</script>")
    assert "<strong>Renew</strong>" in html
    assert "<script>" not in html


def test_plaintext_strips_markup():
    assert markdown_to_plaintext("## Heading\n\n- **bold** item") == "Heading bold item"


def test_certificate_expiry_email_mentions_days_and_address(app):
    context = {
        "dashboard_url": "http://localhost:5000/dashboard",
        "landlord_name": "Morag",
        "property_address": "12 Leith Walk",
        "certificate_type": "GAS SAFETY",
        "expiry_date": "06 March 2025",
        "days_until_expiry": 5,
    }

    text, html = render_notification_email("CERTIFICATE_EXPIRY", "GAS SAFETY Certificate Expiring Soon", context)

    assert "expires in 5 days" in text
    assert "12 Leith Walk" in html
    assert "http://localhost:5000/dashboard" in html


def test_sent_email_is_logged_and_listed(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=2))

    notification_service.check_expiring_certificates(now=now, mailer=mailer)

    log = EmailLog.query.filter_by(user_id=user.id).one()
    assert log.status == "SENT"
    assert log.type == "CERTIFICATE_EXPIRY"
    assert log.provider_message_id == "fake-1"
    assert user.last_notification_sent is not None
    history = email_history(user.id)
    assert history[0]["subject"] == "GAS SAFETY Certificate Expiring Soon"


def test_generic_template_used_for_other_types(make, user, now, mailer):
    prop = make.property(user)
    make.registration(prop, now + timedelta(days=5))

    notification_service.check_expiring_registrations(now=now, mailer=mailer)

    assert mailer.sent[0]["subject"] == "Landlord Registration Expiring Soon"
    assert EmailLog.query.filter_by(user_id=user.id).one().type == "REGISTRATION_EXPIRY"

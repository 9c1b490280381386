from datetime import timedelta

import pytest

from models import EmailLog, Notification, NotificationPreference
from utils import notification_service
from utils.errors import NotFoundError, ValidationError
from tests.conftest import FakeMailer


def _notifications(user_id, type_=None):
    query = Notification.query.filter_by(user_id=user_id)
    if type_:
        query = query.filter_by(type=type_)
    return query.all()


def test_certificate_inside_window_gets_one_critical_notification(make, user, now, mailer):
    prop = make.property(user)
    cert = make.certificate(prop, now + timedelta(days=5))

    summary = notification_service.check_expiring_certificates(now=now, mailer=mailer)

    assert summary == {"checked": 1, "notifications_created": 1}
    (notification,) = _notifications(user.id, "certificate_expiring")
    assert notification.priority == "critical"
    assert notification.extra_metadata["certificate_id"] == cert.id
    assert notification.extra_metadata["days_until_expiry"] == 5
    assert "expires in 5 days" in notification.message
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == user.email


def test_sweep_is_suppressed_inside_dedup_window(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=5))

    notification_service.check_expiring_certificates(now=now, mailer=mailer)
    again = notification_service.check_expiring_certificates(now=now + timedelta(hours=6), mailer=mailer)

    assert again["notifications_created"] == 0
    assert len(_notifications(user.id)) == 1


def test_sweep_repeats_after_dedup_window(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=5))

    notification_service.check_expiring_certificates(now=now, mailer=mailer)
    later = notification_service.check_expiring_certificates(now=now + timedelta(hours=25), mailer=mailer)

    assert later["notifications_created"] == 1
    assert len(_notifications(user.id)) == 2


def test_dedup_window_excludes_its_end(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=5))

    notification_service.check_expiring_certificates(now=now, mailer=mailer)
    boundary = notification_service.check_expiring_certificates(now=now + timedelta(hours=24), mailer=mailer)

    assert boundary["notifications_created"] == 1


def test_expired_and_distant_certificates_are_skipped(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now - timedelta(days=1))
    make.certificate(prop, now + timedelta(days=31))

    summary = notification_service.check_expiring_certificates(now=now, mailer=mailer)

    assert summary == {"checked": 0, "notifications_created": 0}


def test_normal_priority_does_not_email(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=20))

    notification_service.check_expiring_certificates(now=now, mailer=mailer)

    (notification,) = _notifications(user.id)
    assert notification.priority == "normal"
    assert mailer.sent == []


def test_mailer_failure_keeps_notification_and_logs_failure(make, user, now):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=3))
    failing = FakeMailer(fail=True)

    summary = notification_service.check_expiring_certificates(now=now, mailer=failing)

    assert summary["notifications_created"] == 1
    assert len(_notifications(user.id)) == 1
    log = EmailLog.query.filter_by(user_id=user.id).one()
    assert log.status == "FAILED"
    assert log.error_message == "SMTP unavailable"


def test_mailer_exception_does_not_undo_notification(db, user):
    exploding = FakeMailer(raises=True)

    result = notification_service.create_notification(
        user.id, "system", "Heads up", "Something needs attention", priority="high", mailer=exploding
    )

    assert result.email.attempted and not result.email.success
    db.session.expire_all()
    assert db.session.get(Notification, result.notification.id) is not None


def test_email_suppressed_when_user_opted_out(make, now, mailer):
    user = make.user(email_notifications_enabled=False)

    result = notification_service.create_notification(
        user.id, "system", "Heads up", "Something needs attention", priority="critical", mailer=mailer
    )

    assert not result.email.attempted
    assert mailer.sent == []


def test_disabled_type_preference_skips_sweep(db, make, user, now, mailer):
    db.session.add(NotificationPreference(user_id=user.id, certificate_expiry_enabled=False))
    db.session.commit()
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=5))

    summary = notification_service.check_expiring_certificates(now=now, mailer=mailer)

    assert summary == {"checked": 1, "notifications_created": 0}


def test_hmo_and_registration_sweeps_use_sixty_day_window(make, user, now, mailer):
    prop = make.property(user, is_hmo=True)
    hmo = make.hmo(prop, now + timedelta(days=45))
    registration = make.registration(prop, now + timedelta(days=10))

    assert notification_service.check_expiring_hmo_licenses(now=now, mailer=mailer)["notifications_created"] == 1
    assert notification_service.check_expiring_registrations(now=now, mailer=mailer)["notifications_created"] == 1

    (hmo_note,) = _notifications(user.id, "hmo_expiring")
    assert hmo_note.extra_metadata["license_id"] == hmo.id
    assert hmo_note.priority == "normal"
    (reg_note,) = _notifications(user.id, "registration_expiring")
    assert reg_note.extra_metadata["registration_id"] == registration.id
    assert reg_note.priority == "critical"


def test_overdue_assessment_notified_once_per_week(make, user, now, mailer):
    prop = make.property(user)
    assessment = make.assessment(prop, ["non_compliant", "pending", "compliant"], created_at=now - timedelta(days=65))

    first = notification_service.check_overdue_assessments(now=now, mailer=mailer)
    repeat = notification_service.check_overdue_assessments(now=now + timedelta(days=3), mailer=mailer)
    next_week = notification_service.check_overdue_assessments(now=now + timedelta(days=8), mailer=mailer)

    assert first["notifications_created"] == 1
    assert repeat["notifications_created"] == 0
    assert next_week["notifications_created"] == 1
    notification = _notifications(user.id, "assessment_due")[0]
    assert notification.extra_metadata["assessment_id"] == assessment.id
    assert notification.extra_metadata["non_compliant_count"] == 2
    assert notification.priority == "high"


def test_recent_assessment_is_not_overdue(make, user, now, mailer):
    prop = make.property(user)
    make.assessment(prop, ["non_compliant"], created_at=now - timedelta(days=10))

    assert notification_service.check_overdue_assessments(now=now, mailer=mailer)["checked"] == 0


def test_run_notification_checks_totals_every_sweep(make, user, now, mailer):
    prop = make.property(user)
    make.certificate(prop, now + timedelta(days=5))
    make.registration(prop, now + timedelta(days=40))

    summary = notification_service.run_notification_checks(now=now, mailer=mailer)

    assert summary["success"] is True
    assert summary["total_notifications"] == 2
    assert set(summary["details"]) == {"certificates", "hmo_licenses", "registrations", "assessments"}
    assert summary["timestamp"] == now.isoformat()


def test_failing_item_does_not_abort_the_batch(make, user, now, mailer, monkeypatch):
    prop = make.property(user)
    broken = make.certificate(prop, now + timedelta(days=5))
    make.certificate(prop, now + timedelta(days=10))
    describe = notification_service._describe_certificate

    def flaky_describe(cert, days):
        if cert.id == broken.id:
            raise RuntimeError("template data missing")
        return describe(cert, days)

    monkeypatch.setattr(notification_service, "_describe_certificate", flaky_describe)

    summary = notification_service.run_notification_checks(now=now, mailer=mailer)

    assert summary["success"] is True
    assert summary["details"]["certificates"] == {"checked": 2, "notifications_created": 1}
    (notification,) = _notifications(user.id, "certificate_expiring")
    assert notification.extra_metadata["certificate_id"] != broken.id


def test_create_notification_rejects_unknown_type(user):
    with pytest.raises(ValidationError):
        notification_service.create_notification(user.id, "gossip", "Hi", "Hello")


def test_inbox_management(make, user):
    other = make.user()
    for i in range(3):
        notification_service.create_notification(user.id, "system", f"Note {i}", "Body")
    foreign = notification_service.create_notification(other.id, "system", "Theirs", "Body").notification

    assert notification_service.unread_count(user.id) == 3
    page = notification_service.list_notifications(user.id, limit=2)
    assert len(page["items"]) == 2 and page["next_cursor"]
    rest = notification_service.list_notifications(user.id, limit=2, cursor=page["next_cursor"])
    assert len(rest["items"]) == 1 and rest["next_cursor"] is None

    notification_service.mark_as_read(user.id, page["items"][0]["id"])
    assert notification_service.unread_count(user.id) == 2
    assert notification_service.mark_all_as_read(user.id) == 2
    assert notification_service.delete_all_read(user.id) == 3
    with pytest.raises(NotFoundError):
        notification_service.delete_notification(user.id, foreign.id)


def test_preferences_are_created_lazily_and_validated(user):
    pref = notification_service.get_preferences(user.id)
    assert pref.email_enabled is True

    updated = notification_service.update_preferences(user.id, {"hmo_expiry_enabled": False, "email_frequency": "weekly"})
    assert updated.hmo_expiry_enabled is False
    assert updated.email_frequency == "weekly"

    with pytest.raises(ValidationError):
        notification_service.update_preferences(user.id, {"email_enabled": "yes"})
    with pytest.raises(ValidationError):
        notification_service.update_preferences(user.id, {"favourite_colour": "green"})

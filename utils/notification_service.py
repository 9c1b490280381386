"""Deadline sweeps, suppression-window deduplication and in-app notification management."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.orm import joinedload

from extensions import db
from models import (
    EMAIL_FREQUENCIES,
    NOTIFICATION_PRIORITIES,
    NOTIFICATION_TYPES,
    Certificate,
    HMOLicense,
    LandlordRegistration,
    Notification,
    NotificationPreference,
    RepairItem,
    RepairingStandardAssessment,
    User,
)
from utils.email_service import EmailOutcome, send_notification_email
from utils.errors import NotFoundError, ValidationError
from utils.mailer import Mailer
from utils.risk_evaluator import (
    ASSESSMENT_OVERDUE_THRESHOLDS,
    CERTIFICATE_THRESHOLDS,
    HMO_THRESHOLDS,
    REGISTRATION_THRESHOLDS,
    ExpiryThresholds,
    Priority,
    days_since,
    days_until,
    priority_for_days_overdue,
    priority_for_days_remaining,
)

EMAIL_PRIORITIES = (Priority.HIGH.value, Priority.CRITICAL.value)

PREFERENCE_FLAGS = (
    "email_enabled",
    "in_app_enabled",
    "certificate_expiry_enabled",
    "assessment_due_enabled",
    "hmo_expiry_enabled",
    "registration_expiry_enabled",
    "system_alerts_enabled",
)


@dataclass
class NotificationResult:
    notification: Notification
    email: EmailOutcome

    def to_dict(self) -> Dict:
        return {"notification": self.notification.to_dict(), "email": self.email.to_dict()}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _email_allowed(user: Optional[User]) -> bool:
    if not user or not user.email or not user.email_notifications_enabled:
        return False
    if user.email_frequency == "disabled":
        return False
    pref = user.notification_preference
    return pref is None or pref.email_enabled


def create_notification(
    user_id: str,
    type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
    priority: str = "normal",
    metadata: Optional[Dict] = None,
    *,
    created_at: Optional[datetime] = None,
    mailer: Optional[Mailer] = None,
) -> NotificationResult:
    """Persist a notification, then attempt an email for high/critical priority.

    The notification is committed before the email step. Email failures are
    recorded on the returned outcome and in the email log, never raised.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type}")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValidationError(f"Unknown notification priority: {priority}")

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        priority=priority,
        extra_metadata=metadata,
    )
    if created_at is not None:
        notification.created_at = created_at
    db.session.add(notification)
    db.session.commit()
    current_app.logger.info(
        "Notification created",
        extra={"notification_id": notification.id, "type": type, "priority": priority, "user_id": user_id},
    )

    outcome = EmailOutcome(attempted=False)
    if priority in EMAIL_PRIORITIES:
        user = db.session.get(User, user_id)
        if _email_allowed(user):
            try:
                outcome = send_notification_email(notification, user, mailer=mailer)
            except Exception as exc:
                db.session.rollback()
                current_app.logger.exception(
                    "Notification email step failed", extra={"notification_id": notification.id}
                )
                outcome = EmailOutcome(attempted=True, success=False, error=str(exc))
    return NotificationResult(notification=notification, email=outcome)


def find_recent_notification(
    user_id: str, type: str, metadata_key: str, entity_id: str, since: datetime
) -> Optional[Notification]:
    return Notification.query.filter(
        Notification.user_id == user_id,
        Notification.type == type,
        Notification.extra_metadata[metadata_key].as_string() == str(entity_id),
        Notification.created_at > since,
    ).first()


def _preference_allows(user_id: str, notification_type: str) -> bool:
    pref = NotificationPreference.query.filter_by(user_id=user_id).first()
    return pref is None or pref.allows(notification_type)


Describer = Callable[[object, int], Tuple[str, str, str, Dict]]


def _describe_certificate(cert: Certificate, days: int) -> Tuple[str, str, str, Dict]:
    address = cert.property.address
    return (
        f"{cert.type_label()} Certificate Expiring Soon",
        f"Your {cert.type_label()} certificate for {address} expires in {_plural(days, 'day')}. "
        "Please renew to stay compliant.",
        f"/dashboard/certificates/{cert.id}",
        {
            "certificate_id": cert.id,
            "property_id": cert.property_id,
            "property_address": address,
            "certificate_type": cert.type_label(),
            "expiry_date": cert.expiry_date.isoformat(),
            "days_until_expiry": days,
        },
    )


def _describe_hmo(hmo: HMOLicense, days: int) -> Tuple[str, str, str, Dict]:
    return (
        "HMO License Expiring Soon",
        f"Your HMO license for {hmo.property.address} expires in {_plural(days, 'day')}. "
        "Renew to avoid penalties.",
        f"/dashboard/hmo/{hmo.id}",
        {
            "license_id": hmo.id,
            "property_id": hmo.property_id,
            "expiry_date": hmo.expiry_date.isoformat(),
            "days_until_expiry": days,
        },
    )


def _describe_registration(registration: LandlordRegistration, days: int) -> Tuple[str, str, str, Dict]:
    return (
        "Landlord Registration Expiring Soon",
        f"Your landlord registration for {registration.property.address} expires in {_plural(days, 'day')}. "
        "Renew to stay compliant.",
        f"/dashboard/registrations/{registration.id}",
        {
            "registration_id": registration.id,
            "property_id": registration.property_id,
            "expiry_date": registration.expiry_date.isoformat(),
            "days_until_expiry": days,
        },
    )


def _sweep_expiring(
    model,
    *,
    thresholds: ExpiryThresholds,
    notification_type: str,
    metadata_key: str,
    describe: Describer,
    now: datetime,
    mailer: Optional[Mailer],
) -> Dict[str, int]:
    horizon = now + timedelta(days=thresholds.window_days)
    since = now - timedelta(hours=int(current_app.config.get("NOTIFICATION_DEDUP_HOURS", 24)))
    # Forward-looking only: items already past expiry are not part of this sweep.
    entities = (
        model.query.options(joinedload(model.property))
        .filter(model.expiry_date >= now, model.expiry_date <= horizon)
        .all()
    )

    created = 0
    for entity in entities:
        entity_id = entity.id
        try:
            owner_id = entity.property.owner_id
            if not _preference_allows(owner_id, notification_type):
                continue
            if find_recent_notification(owner_id, notification_type, metadata_key, entity_id, since):
                continue
            days = days_until(entity.expiry_date, now)
            priority = priority_for_days_remaining(days, thresholds)
            title, message, link, metadata = describe(entity, days)
            create_notification(
                owner_id,
                notification_type,
                title,
                message,
                link=link,
                priority=priority.value,
                metadata=metadata,
                created_at=now,
                mailer=mailer,
            )
            created += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Expiry sweep item failed", extra={"type": notification_type, "entity_id": entity_id}
            )
            continue

    current_app.logger.info(
        "Expiry sweep finished",
        extra={"type": notification_type, "checked": len(entities), "notifications_created": created},
    )
    return {"checked": len(entities), "notifications_created": created}


def check_expiring_certificates(now: Optional[datetime] = None, mailer: Optional[Mailer] = None) -> Dict[str, int]:
    return _sweep_expiring(
        Certificate,
        thresholds=CERTIFICATE_THRESHOLDS,
        notification_type="certificate_expiring",
        metadata_key="certificate_id",
        describe=_describe_certificate,
        now=now or datetime.utcnow(),
        mailer=mailer,
    )


def check_expiring_hmo_licenses(now: Optional[datetime] = None, mailer: Optional[Mailer] = None) -> Dict[str, int]:
    return _sweep_expiring(
        HMOLicense,
        thresholds=HMO_THRESHOLDS,
        notification_type="hmo_expiring",
        metadata_key="license_id",
        describe=_describe_hmo,
        now=now or datetime.utcnow(),
        mailer=mailer,
    )


def check_expiring_registrations(now: Optional[datetime] = None, mailer: Optional[Mailer] = None) -> Dict[str, int]:
    return _sweep_expiring(
        LandlordRegistration,
        thresholds=REGISTRATION_THRESHOLDS,
        notification_type="registration_expiring",
        metadata_key="registration_id",
        describe=_describe_registration,
        now=now or datetime.utcnow(),
        mailer=mailer,
    )


def _is_open_item(item: RepairItem) -> bool:
    return item.status != "compliant" and item.completed_date is None


def check_overdue_assessments(now: Optional[datetime] = None, mailer: Optional[Mailer] = None) -> Dict[str, int]:
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=ASSESSMENT_OVERDUE_THRESHOLDS.minimum_age_days)
    since = now - timedelta(days=int(current_app.config.get("ASSESSMENT_DEDUP_DAYS", 7)))
    assessments = (
        RepairingStandardAssessment.query.options(joinedload(RepairingStandardAssessment.property))
        .filter(
            RepairingStandardAssessment.created_at <= cutoff,
            RepairingStandardAssessment.items.any(
                and_(RepairItem.status != "compliant", RepairItem.completed_date.is_(None))
            ),
        )
        .all()
    )

    created = 0
    for assessment in assessments:
        assessment_id = assessment.id
        try:
            owner_id = assessment.property.owner_id
            if not _preference_allows(owner_id, "assessment_due"):
                continue
            if find_recent_notification(owner_id, "assessment_due", "assessment_id", assessment_id, since):
                continue
            days_overdue = days_since(assessment.created_at, now)
            open_count = sum(1 for item in assessment.items if _is_open_item(item))
            verb = "is" if open_count == 1 else "are"
            create_notification(
                owner_id,
                "assessment_due",
                "Repairing Standard Action Required",
                f"Your property at {assessment.property.address} has {_plural(open_count, 'non-compliant item')} "
                f"that {verb} {days_overdue} days overdue. Take action now.",
                link=f"/dashboard/repairing-standard/{assessment_id}",
                priority=priority_for_days_overdue(days_overdue).value,
                metadata={
                    "assessment_id": assessment_id,
                    "property_id": assessment.property_id,
                    "days_overdue": days_overdue,
                    "non_compliant_count": open_count,
                },
                created_at=now,
                mailer=mailer,
            )
            created += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Assessment sweep item failed", extra={"assessment_id": assessment_id})
            continue

    current_app.logger.info(
        "Assessment sweep finished", extra={"checked": len(assessments), "notifications_created": created}
    )
    return {"checked": len(assessments), "notifications_created": created}


def run_notification_checks(now: Optional[datetime] = None, mailer: Optional[Mailer] = None) -> Dict:
    """Daily batch entrypoint; sweeps run sequentially and write disjoint rows."""
    now = now or datetime.utcnow()
    details = {
        "certificates": check_expiring_certificates(now, mailer),
        "hmo_licenses": check_expiring_hmo_licenses(now, mailer),
        "registrations": check_expiring_registrations(now, mailer),
        "assessments": check_overdue_assessments(now, mailer),
    }
    total = sum(result["notifications_created"] for result in details.values())
    current_app.logger.info("Notification checks completed", extra={"total": total})
    return {
        "success": True,
        "timestamp": now.isoformat(),
        "total_notifications": total,
        "details": details,
    }


def _owned_notification(user_id: str, notification_id: str) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    return notification


def list_notifications(
    user_id: str,
    *,
    limit: int = 20,
    cursor: Optional[str] = None,
    unread_only: bool = False,
    type: Optional[str] = None,
) -> Dict:
    limit = max(1, min(int(limit), 100))
    query = Notification.query.filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    if type:
        query = query.filter(Notification.type == type)
    if cursor:
        anchor = _owned_notification(user_id, cursor)
        query = query.filter(
            or_(
                Notification.created_at < anchor.created_at,
                and_(Notification.created_at == anchor.created_at, Notification.id < anchor.id),
            )
        )
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit + 1).all()
    next_cursor = rows[limit - 1].id if len(rows) > limit else None
    return {"items": [n.to_dict() for n in rows[:limit]], "next_cursor": next_cursor}


def unread_count(user_id: str) -> int:
    return Notification.query.filter(Notification.user_id == user_id, Notification.read.is_(False)).count()


def recent_notifications(user_id: str, limit: int = 5) -> list:
    rows = (
        Notification.query.filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .all()
    )
    return [n.to_dict() for n in rows]


def mark_as_read(user_id: str, notification_id: str) -> Notification:
    notification = _owned_notification(user_id, notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.utcnow()
        db.session.commit()
    return notification


def mark_all_as_read(user_id: str) -> int:
    updated = Notification.query.filter(
        Notification.user_id == user_id, Notification.read.is_(False)
    ).update({"read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    db.session.commit()
    return updated


def delete_notification(user_id: str, notification_id: str) -> None:
    notification = _owned_notification(user_id, notification_id)
    db.session.delete(notification)
    db.session.commit()


def delete_all_read(user_id: str) -> int:
    deleted = Notification.query.filter(
        Notification.user_id == user_id, Notification.read.is_(True)
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def get_preferences(user_id: str) -> NotificationPreference:
    pref = NotificationPreference.query.filter_by(user_id=user_id).first()
    if pref is None:
        pref = NotificationPreference(user_id=user_id)
        db.session.add(pref)
        db.session.commit()
    return pref


def update_preferences(user_id: str, changes: Dict) -> NotificationPreference:
    unknown = set(changes) - set(PREFERENCE_FLAGS) - {"email_frequency"}
    if unknown:
        raise ValidationError(f"Unknown preference fields: {', '.join(sorted(unknown))}")
    frequency = changes.get("email_frequency")
    if frequency is not None and (frequency not in EMAIL_FREQUENCIES or frequency == "disabled"):
        raise ValidationError("email_frequency must be immediate, daily or weekly")
    for flag in PREFERENCE_FLAGS:
        if flag in changes and not isinstance(changes[flag], bool):
            raise ValidationError(f"{flag} must be a boolean")

    pref = get_preferences(user_id)
    for key, value in changes.items():
        setattr(pref, key, value)
    db.session.commit()
    current_app.logger.info("Notification preferences updated", extra={"user_id": user_id, "fields": sorted(changes)})
    return pref

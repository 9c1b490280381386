"""Per-user dashboard snapshot: counts, compliance score, deadlines, activity and critical issues."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func

from extensions import db
from models import (
    AMLScreening,
    Certificate,
    HMOLicense,
    LandlordRegistration,
    Lease,
    MaintenanceRequest,
    Notification,
    Property,
    RepairingStandardAssessment,
    Transaction,
)
from utils.errors import ValidationError
from utils.risk_evaluator import (
    CERTIFICATE_THRESHOLDS,
    HMO_THRESHOLDS,
    REGISTRATION_THRESHOLDS,
    classify_urgency,
    severity_rank,
)

OPEN_MAINTENANCE = ("SUBMITTED", "SCHEDULED", "IN_PROGRESS")
ACTIVE_MAINTENANCE = ("SUBMITTED", "IN_PROGRESS")
URGENT_MAINTENANCE = ("HIGH", "EMERGENCY")
ASSESSMENT_PASS_SCORE = 80


def _owned(model, user_id: str):
    return model.query.join(Property, model.property_id == Property.id).filter(Property.owner_id == user_id)


def _plural(count: int, singular: str, plural: Optional[str] = None) -> str:
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _pending_aml_reviews(user_id: str) -> int:
    return AMLScreening.query.filter(
        AMLScreening.user_id == user_id,
        db.or_(
            AMLScreening.status == "REQUIRES_REVIEW",
            db.and_(AMLScreening.status == "COMPLETED", AMLScreening.review_status == "PENDING"),
        ),
    ).count()


def _lease_counts(user_id: str) -> Dict[str, int]:
    rows = (
        db.session.query(Lease.status, func.count(Lease.id))
        .join(Property, Lease.property_id == Property.id)
        .filter(Property.owner_id == user_id)
        .group_by(Lease.status)
        .all()
    )
    by_status = dict(rows)
    return {
        "total": sum(by_status.values()),
        "active": by_status.get("ACTIVE", 0),
        "expiring": by_status.get("EXPIRING_SOON", 0),
        "expired": by_status.get("EXPIRED", 0),
    }


def _month_finances(user_id: str, now: datetime) -> Dict:
    """Completed income and expenses for the calendar month containing `now`."""
    month_start = datetime(now.year, now.month, 1)
    month_end = datetime(now.year + 1, 1, 1) if now.month == 12 else datetime(now.year, now.month + 1, 1)
    transactions = _owned(Transaction, user_id).filter(
        Transaction.status == "COMPLETED", Transaction.date >= month_start, Transaction.date < month_end
    )
    income = sum(t.amount for t in transactions if t.type == "INCOME")
    expenses = sum(t.amount for t in transactions if t.type == "EXPENSE")
    return {
        "income": income,
        "expenses": expenses,
        "net": income - expenses,
        "pending_transactions": _owned(Transaction, user_id).filter(Transaction.status == "PENDING").count(),
    }


def get_overview(user_id: str, now: Optional[datetime] = None) -> Dict:
    """Expiry state is always recomputed from expiry dates, never the stored status columns."""
    now = now or datetime.utcnow()
    cert_horizon = now + timedelta(days=CERTIFICATE_THRESHOLDS.window_days)
    reg_horizon = now + timedelta(days=REGISTRATION_THRESHOLDS.window_days)
    hmo_horizon = now + timedelta(days=HMO_THRESHOLDS.window_days)

    properties_count = Property.query.filter(Property.owner_id == user_id).count()
    recent_properties = (
        Property.query.filter(Property.owner_id == user_id).order_by(Property.created_at.desc()).limit(5).all()
    )

    certificates = _owned(Certificate, user_id)
    total_certificates = certificates.count()
    expired_certificates = certificates.filter(Certificate.expiry_date < now).count()
    expiring_certificates = certificates.filter(
        Certificate.expiry_date >= now, Certificate.expiry_date <= cert_horizon
    ).count()

    registrations = _owned(LandlordRegistration, user_id).filter(LandlordRegistration.status == "approved")
    active_registrations = registrations.count()
    expired_registrations = registrations.filter(LandlordRegistration.expiry_date < now).count()
    expiring_registrations = registrations.filter(
        LandlordRegistration.expiry_date >= now, LandlordRegistration.expiry_date <= reg_horizon
    ).count()

    hmo = _owned(HMOLicense, user_id)
    total_hmo = hmo.count()
    expired_hmo = hmo.filter(HMOLicense.expiry_date < now).count()
    expiring_hmo = hmo.filter(HMOLicense.expiry_date >= now, HMOLicense.expiry_date <= hmo_horizon).count()

    assessments = _owned(RepairingStandardAssessment, user_id)
    total_assessments = assessments.count()
    failing_assessments = assessments.filter(RepairingStandardAssessment.score < ASSESSMENT_PASS_SCORE).count()

    maintenance = _owned(MaintenanceRequest, user_id)
    open_maintenance = maintenance.filter(MaintenanceRequest.status.in_(OPEN_MAINTENANCE)).count()
    urgent_maintenance = maintenance.filter(
        MaintenanceRequest.status.in_(ACTIVE_MAINTENANCE), MaintenanceRequest.priority.in_(URGENT_MAINTENANCE)
    ).count()

    total_items = total_certificates + active_registrations + total_hmo + total_assessments
    compliant_items = (
        (total_certificates - expired_certificates)
        + (active_registrations - expired_registrations - expiring_registrations)
        + (total_hmo - expired_hmo - expiring_hmo)
        + (total_assessments - failing_assessments)
    )
    score = int(compliant_items * 100 / total_items + 0.5) if total_items else 100

    return {
        "overview": {
            "properties_count": properties_count,
            "score": score,
            "total_items": total_items,
            "compliant_items": compliant_items,
        },
        "properties": {
            "total": properties_count,
            "recent": [p.to_dict() for p in recent_properties],
        },
        "certificates": {
            "total": total_certificates,
            "expired": expired_certificates,
            "expiring_soon": expiring_certificates,
        },
        "registrations": {
            "active": active_registrations,
            "expired": expired_registrations,
            "expiring_soon": expiring_registrations,
        },
        "hmo": {"total": total_hmo, "expired": expired_hmo, "expiring_soon": expiring_hmo},
        "assessments": {"total": total_assessments, "non_compliant": failing_assessments},
        "maintenance": {"open": open_maintenance, "urgent": urgent_maintenance},
        "leases": _lease_counts(user_id),
        "finances": _month_finances(user_id, now),
        "aml": {
            "total": AMLScreening.query.filter(AMLScreening.user_id == user_id).count(),
            "pending_review": _pending_aml_reviews(user_id),
        },
        "notifications": {
            "unread": Notification.query.filter(Notification.user_id == user_id, Notification.read.is_(False)).count()
        },
    }


def get_upcoming_deadlines(user_id: str, days: int = 30, limit: int = 10, now: Optional[datetime] = None) -> List[Dict]:
    if not 1 <= int(days) <= 365:
        raise ValidationError("days must be between 1 and 365")
    if not 1 <= int(limit) <= 50:
        raise ValidationError("limit must be between 1 and 50")
    now = now or datetime.utcnow()
    horizon = now + timedelta(days=int(days))

    deadlines: List[Dict] = []
    for cert in _owned(Certificate, user_id).filter(Certificate.expiry_date >= now, Certificate.expiry_date <= horizon):
        deadlines.append(
            {
                "id": cert.id,
                "type": "certificate",
                "title": f"{cert.type_label()} Certificate",
                "date": cert.expiry_date,
                "property_id": cert.property_id,
                "property_address": cert.property.address,
            }
        )
    for reg in _owned(LandlordRegistration, user_id).filter(
        LandlordRegistration.expiry_date >= now, LandlordRegistration.expiry_date <= horizon
    ):
        deadlines.append(
            {
                "id": reg.id,
                "type": "registration",
                "title": f"Landlord Registration {reg.registration_number}",
                "date": reg.expiry_date,
                "property_id": reg.property_id,
                "property_address": reg.property.address,
            }
        )
    for lic in _owned(HMOLicense, user_id).filter(HMOLicense.expiry_date >= now, HMOLicense.expiry_date <= horizon):
        deadlines.append(
            {
                "id": lic.id,
                "type": "hmo",
                "title": f"HMO License {lic.license_number}",
                "date": lic.expiry_date,
                "property_id": lic.property_id,
                "property_address": lic.property.address,
            }
        )

    deadlines.sort(key=lambda d: d["date"])
    for deadline in deadlines:
        deadline["urgency"] = classify_urgency(deadline["date"], now).value
        deadline["date"] = _iso(deadline["date"])
    return deadlines[: int(limit)]


def get_recent_activity(user_id: str, limit: int = 20) -> List[Dict]:
    activities: List[Dict] = []

    for prop in Property.query.filter(Property.owner_id == user_id).order_by(Property.created_at.desc()).limit(5):
        activities.append({"id": prop.id, "type": "property", "title": f"Added property: {prop.address}", "timestamp": prop.created_at})
    for cert in _owned(Certificate, user_id).order_by(Certificate.created_at.desc()).limit(5):
        activities.append(
            {
                "id": cert.id,
                "type": "certificate",
                "title": f"Uploaded {cert.type_label()} for {cert.property.address}",
                "timestamp": cert.created_at,
            }
        )
    for reg in _owned(LandlordRegistration, user_id).order_by(LandlordRegistration.created_at.desc()).limit(5):
        activities.append(
            {"id": reg.id, "type": "registration", "title": f"Registered {reg.property.address}", "timestamp": reg.created_at}
        )
    for req in _owned(MaintenanceRequest, user_id).order_by(MaintenanceRequest.created_at.desc()).limit(5):
        activities.append(
            {"id": req.id, "type": "maintenance", "title": f"New maintenance: {req.title}", "timestamp": req.created_at}
        )
    for assessment in (
        _owned(RepairingStandardAssessment, user_id).order_by(RepairingStandardAssessment.created_at.desc()).limit(5)
    ):
        activities.append(
            {
                "id": assessment.id,
                "type": "assessment",
                "title": f"Started assessment for {assessment.property.address}",
                "timestamp": assessment.created_at,
            }
        )
    for screening in (
        AMLScreening.query.filter(AMLScreening.user_id == user_id).order_by(AMLScreening.created_at.desc()).limit(5)
    ):
        activities.append(
            {
                "id": screening.id,
                "type": "aml",
                "title": f"AML screening: {screening.subject_name}",
                "timestamp": screening.created_at,
            }
        )

    activities.sort(key=lambda a: a["timestamp"], reverse=True)
    for activity in activities:
        activity["timestamp"] = _iso(activity["timestamp"])
    return activities[:limit]


def _issue(issue_type: str, severity: str, count: int, message: str, action: str, link: str) -> Dict:
    return {
        "type": issue_type,
        "severity": severity,
        "count": count,
        "message": message,
        "action": action,
        "link": link,
    }


def get_critical_issues(user_id: str, now: Optional[datetime] = None) -> List[Dict]:
    """Issues ranked critical > high > medium > low, stable within a tier."""
    now = now or datetime.utcnow()
    issues: List[Dict] = []

    expired_certs = _owned(Certificate, user_id).filter(Certificate.expiry_date < now).count()
    if expired_certs:
        issues.append(
            _issue(
                "expired_certificates", "critical", expired_certs,
                f"{_plural(expired_certs, 'certificate')} expired", "Renew immediately", "/dashboard/certificates",
            )
        )

    expired_regs = _owned(LandlordRegistration, user_id).filter(LandlordRegistration.expiry_date < now).count()
    if expired_regs:
        issues.append(
            _issue(
                "expired_registrations", "critical", expired_regs,
                f"{_plural(expired_regs, 'landlord registration')} expired", "Renew registration",
                "/dashboard/registrations",
            )
        )

    expired_hmo = _owned(HMOLicense, user_id).filter(HMOLicense.expiry_date < now).count()
    if expired_hmo:
        issues.append(
            _issue(
                "expired_hmo_licenses", "critical", expired_hmo,
                f"{_plural(expired_hmo, 'HMO license')} expired", "Renew licence", "/dashboard/hmo",
            )
        )

    pending_aml = _pending_aml_reviews(user_id)
    if pending_aml:
        verb = "requires" if pending_aml == 1 else "require"
        issues.append(
            _issue(
                "pending_aml_review", "high", pending_aml,
                f"{_plural(pending_aml, 'AML screening')} {verb} review", "Review matches", "/dashboard/aml",
            )
        )

    emergency = _owned(MaintenanceRequest, user_id).filter(
        MaintenanceRequest.priority == "EMERGENCY", MaintenanceRequest.status.in_(ACTIVE_MAINTENANCE)
    ).count()
    if emergency:
        issues.append(
            _issue(
                "critical_maintenance", "critical", emergency,
                f"{_plural(emergency, 'critical maintenance request')}", "Address immediately",
                "/dashboard/maintenance",
            )
        )

    failing = _owned(RepairingStandardAssessment, user_id).filter(
        RepairingStandardAssessment.score < ASSESSMENT_PASS_SCORE
    ).count()
    if failing:
        issues.append(
            _issue(
                "non_compliant_assessment", "high", failing,
                f"{_plural(failing, 'property', 'properties')} below repairing standard", "Resolve issues",
                "/dashboard/repairing-standard",
            )
        )

    fire_safety = _owned(HMOLicense, user_id).filter(HMOLicense.fire_safety_compliant.is_(False)).count()
    if fire_safety:
        issues.append(
            _issue(
                "hmo_fire_safety", "critical", fire_safety,
                f"{_plural(fire_safety, 'HMO')} failing fire safety", "Arrange inspection", "/dashboard/hmo",
            )
        )

    expiring_certs = _owned(Certificate, user_id).filter(
        Certificate.expiry_date >= now,
        Certificate.expiry_date <= now + timedelta(days=CERTIFICATE_THRESHOLDS.window_days),
    ).count()
    if expiring_certs:
        issues.append(
            _issue(
                "expiring_certificates", "medium", expiring_certs,
                f"{_plural(expiring_certs, 'certificate')} expiring within 30 days", "Schedule renewal",
                "/dashboard/certificates",
            )
        )

    # sorted() is stable, so insertion order holds within a tier
    return sorted(issues, key=lambda issue: severity_rank(issue["severity"]))


def get_portfolio_summary(user_id: str) -> Dict:
    property_types = (
        db.session.query(Property.property_type, func.count(Property.id))
        .filter(Property.owner_id == user_id)
        .group_by(Property.property_type)
        .all()
    )
    councils = (
        db.session.query(Property.council_area, func.count(Property.id))
        .filter(Property.owner_id == user_id)
        .group_by(Property.council_area)
        .all()
    )
    certificate_types = (
        db.session.query(Certificate.certificate_type, func.count(Certificate.id))
        .join(Property, Certificate.property_id == Property.id)
        .filter(Property.owner_id == user_id)
        .group_by(Certificate.certificate_type)
        .all()
    )
    return {
        "total_properties": Property.query.filter(Property.owner_id == user_id).count(),
        "property_types": [{"type": t, "count": c} for t, c in property_types],
        "council_distribution": [{"council": area, "count": c} for area, c in councils],
        "certificate_stats": [{"type": t, "count": c} for t, c in certificate_types],
    }

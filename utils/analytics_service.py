"""Portfolio analytics: statistics, risk assessment, expiry timeline, costs and trends."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from extensions import db
from models import Certificate, HMOLicense, LandlordRegistration, Property
from utils.risk_evaluator import (
    CERTIFICATE_THRESHOLDS,
    HMO_THRESHOLDS,
    REGISTRATION_THRESHOLDS,
    PortfolioCounts,
    days_until,
    derive_certificate_status,
    portfolio_risk_score,
)

TIMELINE_DAYS = 90
TREND_MONTHS = 6


def _month_windows(now: datetime, count: int = TREND_MONTHS) -> List[Tuple[str, datetime, datetime]]:
    """(label, start, end) for the last `count` calendar months, oldest first; end is exclusive."""
    windows: List[Tuple[str, datetime, datetime]] = []
    year, month = now.year, now.month
    for _ in range(count):
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
        windows.append((start.strftime("%b %Y"), start, end))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(windows))


def _expiring(query, model, now: datetime, days: int):
    return query.filter(model.expiry_date >= now, model.expiry_date <= now + timedelta(days=days))


def get_portfolio_stats(user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    certificates = Certificate.query.filter(Certificate.user_id == user_id)
    registrations = LandlordRegistration.query.filter(LandlordRegistration.user_id == user_id)
    hmo = HMOLicense.query.filter(HMOLicense.user_id == user_id)

    total_certificates = certificates.count()
    total_registrations = registrations.count()
    total_hmo = hmo.count()
    expiring_certificates = _expiring(certificates, Certificate, now, CERTIFICATE_THRESHOLDS.window_days).count()
    expiring_registrations = _expiring(
        registrations, LandlordRegistration, now, REGISTRATION_THRESHOLDS.window_days
    ).count()
    expiring_hmo = _expiring(hmo, HMOLicense, now, HMO_THRESHOLDS.window_days).count()

    return {
        "total_properties": Property.query.filter(Property.owner_id == user_id).count(),
        "total_certificates": total_certificates,
        "total_registrations": total_registrations,
        "total_hmo_licenses": total_hmo,
        "expiring_certificates": expiring_certificates,
        "expiring_registrations": expiring_registrations,
        "expiring_hmo_licenses": expiring_hmo,
        "total_compliance": total_certificates + total_registrations + total_hmo,
        "total_expiring": expiring_certificates + expiring_registrations + expiring_hmo,
    }


def collect_portfolio_counts(user_id: str, now: datetime) -> PortfolioCounts:
    certificates = Certificate.query.filter(Certificate.user_id == user_id)
    registrations = LandlordRegistration.query.filter(LandlordRegistration.user_id == user_id)
    hmo = HMOLicense.query.filter(HMOLicense.user_id == user_id)
    return PortfolioCounts(
        expired_certificates=certificates.filter(Certificate.expiry_date < now).count(),
        expired_registrations=registrations.filter(LandlordRegistration.expiry_date < now).count(),
        expired_hmo_licenses=hmo.filter(HMOLicense.expiry_date < now).count(),
        fire_safety_noncompliant_hmo=hmo.filter(HMOLicense.fire_safety_compliant.is_(False)).count(),
        expiring_certificates=_expiring(certificates, Certificate, now, CERTIFICATE_THRESHOLDS.window_days).count(),
        expiring_registrations=_expiring(
            registrations, LandlordRegistration, now, REGISTRATION_THRESHOLDS.window_days
        ).count(),
        expiring_hmo_licenses=_expiring(hmo, HMOLicense, now, HMO_THRESHOLDS.window_days).count(),
    )


def get_risk_assessment(user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    counts = collect_portfolio_counts(user_id, now)
    assessment = portfolio_risk_score(counts)
    return {
        **assessment.to_dict(),
        "total_properties": Property.query.filter(Property.owner_id == user_id).count(),
        "summary": {
            "expired_certificates": counts.expired_certificates,
            "expired_registrations": counts.expired_registrations,
            "expired_hmo_licenses": counts.expired_hmo_licenses,
            "expiring_certificates": counts.expiring_certificates,
            "expiring_registrations": counts.expiring_registrations,
            "expiring_hmo_licenses": counts.expiring_hmo_licenses,
            "non_compliant_hmos": counts.fire_safety_noncompliant_hmo,
        },
    }


def get_expiry_timeline(user_id: str, now: Optional[datetime] = None) -> List[Dict]:
    now = now or datetime.utcnow()
    timeline: List[Dict] = []

    for cert in _expiring(Certificate.query.filter(Certificate.user_id == user_id), Certificate, now, TIMELINE_DAYS):
        timeline.append(
            {
                "id": cert.id,
                "type": "certificate",
                "title": cert.type_label(),
                "property_address": cert.property.address,
                "expiry_date": cert.expiry_date,
                "status": derive_certificate_status(cert.expiry_date, now),
            }
        )
    for reg in _expiring(
        LandlordRegistration.query.filter(LandlordRegistration.user_id == user_id), LandlordRegistration, now, TIMELINE_DAYS
    ):
        timeline.append(
            {
                "id": reg.id,
                "type": "registration",
                "title": f"Landlord Registration - {reg.council_area}",
                "property_address": reg.property.address,
                "expiry_date": reg.expiry_date,
                "status": reg.status,
            }
        )
    for lic in _expiring(HMOLicense.query.filter(HMOLicense.user_id == user_id), HMOLicense, now, TIMELINE_DAYS):
        timeline.append(
            {
                "id": lic.id,
                "type": "hmo",
                "title": f"HMO License - {lic.council_area}",
                "property_address": lic.property.address,
                "expiry_date": lic.expiry_date,
                "status": lic.status,
            }
        )

    for entry in timeline:
        entry["days_until_expiry"] = days_until(entry["expiry_date"], now)
        entry["expiry_date"] = entry["expiry_date"].isoformat()
    timeline.sort(key=lambda entry: entry["days_until_expiry"])
    return timeline


def get_cost_summary(user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    registrations = LandlordRegistration.query.filter(LandlordRegistration.user_id == user_id).all()
    licenses = HMOLicense.query.filter(HMOLicense.user_id == user_id).all()

    registration_total = sum(r.renewal_fee or 0 for r in registrations)
    hmo_total = sum(h.annual_fee or 0 for h in licenses)

    by_council: Dict[str, float] = defaultdict(float)
    for reg in registrations:
        by_council[reg.council_area] += reg.renewal_fee or 0
    for lic in licenses:
        by_council[lic.council_area] += lic.annual_fee or 0

    monthly = []
    for label, start, end in _month_windows(now):
        registration_cost = sum(r.renewal_fee or 0 for r in registrations if start <= r.created_at < end)
        hmo_cost = sum(h.annual_fee or 0 for h in licenses if start <= h.created_at < end)
        monthly.append(
            {
                "month": label,
                "registration_cost": registration_cost,
                "hmo_cost": hmo_cost,
                "total": registration_cost + hmo_cost,
            }
        )

    return {
        "total_costs": registration_total + hmo_total,
        "total_registration_fees": registration_total,
        "total_hmo_fees": hmo_total,
        "average_registration_fee": registration_total / len(registrations) if registrations else 0,
        "average_hmo_fee": hmo_total / len(licenses) if licenses else 0,
        "costs_by_council": [{"council": council, "cost": cost} for council, cost in by_council.items()],
        "monthly_breakdown": monthly,
    }


def get_compliance_trends(user_id: str, now: Optional[datetime] = None) -> List[Dict]:
    now = now or datetime.utcnow()
    trends = []
    for label, start, end in _month_windows(now):
        counts = {}
        for key, model in (
            ("certificates", Certificate),
            ("registrations", LandlordRegistration),
            ("hmo_licenses", HMOLicense),
        ):
            counts[key] = model.query.filter(
                model.user_id == user_id, model.created_at >= start, model.created_at < end
            ).count()
        trends.append({"month": label, **counts, "total": sum(counts.values())})
    return trends


def get_certificate_breakdown(user_id: str) -> List[Dict]:
    rows = (
        db.session.query(Certificate.certificate_type, func.count(Certificate.id))
        .filter(Certificate.user_id == user_id)
        .group_by(Certificate.certificate_type)
        .all()
    )
    return [{"type": cert_type.upper().replace("_", " "), "count": count} for cert_type, count in rows]

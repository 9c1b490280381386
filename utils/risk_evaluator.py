"""Deterministic expiry, urgency and portfolio risk rules shared by sweeps and dashboards."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

SECONDS_PER_DAY = 86400


class Urgency(str, enum.Enum):
    OVERDUE = "overdue"
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


class Priority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ExpiryThresholds:
    """Day limits for one entity type; comparisons are inclusive of the tighter bucket."""

    critical_days: int
    high_days: int
    window_days: int


CERTIFICATE_THRESHOLDS = ExpiryThresholds(critical_days=7, high_days=14, window_days=30)
HMO_THRESHOLDS = ExpiryThresholds(critical_days=14, high_days=30, window_days=60)
REGISTRATION_THRESHOLDS = ExpiryThresholds(critical_days=14, high_days=30, window_days=60)


@dataclass(frozen=True)
class OverdueThresholds:
    critical_after_days: int
    high_after_days: int
    minimum_age_days: int


ASSESSMENT_OVERDUE_THRESHOLDS = OverdueThresholds(critical_after_days=90, high_after_days=60, minimum_age_days=30)

URGENCY_CRITICAL_DAYS = 7
URGENCY_WARNING_DAYS = 30

SEVERITY_ORDER: Dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}

# Portfolio risk weights
EXPIRED_ITEM_POINTS = 30
FIRE_SAFETY_POINTS = 25
EXPIRING_ITEM_POINTS = 10


def days_until(target: datetime, now: datetime) -> int:
    """Whole days from now to target, rounded up; negative once the target has passed."""
    delta = (target - now).total_seconds()
    return math.ceil(delta / SECONDS_PER_DAY)


def days_since(reference: datetime, now: datetime) -> int:
    return math.ceil((now - reference).total_seconds() / SECONDS_PER_DAY)


def classify_urgency(target: datetime, now: datetime) -> Urgency:
    days = days_until(target, now)
    if days < 0:
        return Urgency.OVERDUE
    if days <= URGENCY_CRITICAL_DAYS:
        return Urgency.CRITICAL
    if days <= URGENCY_WARNING_DAYS:
        return Urgency.WARNING
    return Urgency.NORMAL


def priority_for_days_remaining(days: int, thresholds: ExpiryThresholds) -> Priority:
    if days < 0 or days <= thresholds.critical_days:
        return Priority.CRITICAL
    if days <= thresholds.high_days:
        return Priority.HIGH
    return Priority.NORMAL


def priority_for_days_overdue(days: int, thresholds: OverdueThresholds = ASSESSMENT_OVERDUE_THRESHOLDS) -> Priority:
    if days > thresholds.critical_after_days:
        return Priority.CRITICAL
    if days > thresholds.high_after_days:
        return Priority.HIGH
    return Priority.NORMAL


def is_expired(expiry: Optional[datetime], now: datetime) -> bool:
    return expiry is not None and expiry < now


def is_expiring_within(expiry: Optional[datetime], now: datetime, days: int) -> bool:
    if expiry is None:
        return False
    return now <= expiry <= now + timedelta(days=days)


def derive_certificate_status(expiry: datetime, now: datetime) -> str:
    if is_expired(expiry, now):
        return "expired"
    if is_expiring_within(expiry, now, CERTIFICATE_THRESHOLDS.window_days):
        return "expiring"
    return "valid"


def severity_rank(severity: str) -> int:
    return SEVERITY_ORDER.get((severity or "").lower(), len(SEVERITY_ORDER))


@dataclass
class RiskFactor:
    name: str
    count: int
    severity: str
    points: int

    def to_dict(self) -> Dict:
        return {"name": self.name, "count": self.count, "severity": self.severity, "points": self.points}


@dataclass
class PortfolioCounts:
    expired_certificates: int = 0
    expired_registrations: int = 0
    expired_hmo_licenses: int = 0
    fire_safety_noncompliant_hmo: int = 0
    expiring_certificates: int = 0
    expiring_registrations: int = 0
    expiring_hmo_licenses: int = 0


@dataclass
class RiskAssessment:
    score: int
    level: RiskLevel
    factors: List[RiskFactor] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "risk_score": self.score,
            "risk_level": self.level.value,
            "risk_factors": [f.to_dict() for f in self.factors],
        }


def risk_level_for_score(score: int) -> RiskLevel:
    if score <= 0:
        return RiskLevel.LOW
    if score <= 25:
        return RiskLevel.MEDIUM
    if score <= 50:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def portfolio_risk_score(counts: PortfolioCounts) -> RiskAssessment:
    """Additive severity alarm: weighted points per problem item, clamped to 100."""
    candidates = [
        ("Expired Certificates", counts.expired_certificates, "critical", EXPIRED_ITEM_POINTS),
        ("Expired Registrations", counts.expired_registrations, "critical", EXPIRED_ITEM_POINTS),
        ("Expired HMO Licenses", counts.expired_hmo_licenses, "critical", EXPIRED_ITEM_POINTS),
        ("Fire Safety Non-Compliance", counts.fire_safety_noncompliant_hmo, "critical", FIRE_SAFETY_POINTS),
        ("Expiring Certificates (30 days)", counts.expiring_certificates, "high", EXPIRING_ITEM_POINTS),
        ("Expiring Registrations (60 days)", counts.expiring_registrations, "high", EXPIRING_ITEM_POINTS),
        ("Expiring HMO Licenses (60 days)", counts.expiring_hmo_licenses, "high", EXPIRING_ITEM_POINTS),
    ]
    factors: List[RiskFactor] = []
    total = 0
    for name, count, severity, weight in candidates:
        if count <= 0:
            continue
        points = count * weight
        total += points
        factors.append(RiskFactor(name=name, count=count, severity=severity, points=points))
    score = min(100, total)
    return RiskAssessment(score=score, level=risk_level_for_score(score), factors=factors)

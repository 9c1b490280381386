"""AML screening workflow: initiation, provider screening, match review, EDD and annual review."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import func

from extensions import db
from models import (
    MATCH_DECISIONS,
    REVIEW_STATUSES,
    RISK_LEVELS,
    SCREENING_STATUSES,
    SUBJECT_TYPES,
    AMLAudit,
    AMLMatch,
    AMLScreening,
)
from utils.aml_scoring import calculate_risk
from utils.errors import InvalidTransitionError, NotFoundError, ValidationError
from utils.screening_provider import ScreeningProvider, ScreeningSubject, get_screening_provider

SYSTEM_ACTOR = "SYSTEM"
EDD_NOTES_MIN_LENGTH = 10
SUBJECT_NAME_MIN_LENGTH = 2


def _audit(
    screening_id: str,
    action: str,
    performed_by: str,
    description: str,
    old_value: Optional[Dict] = None,
    new_value: Optional[Dict] = None,
) -> None:
    db.session.add(
        AMLAudit(
            screening_id=screening_id,
            action=action,
            performed_by=performed_by,
            description=description[:500],
            old_value=old_value,
            new_value=new_value,
        )
    )


def _owned_screening(user_id: str, screening_id: str) -> AMLScreening:
    screening = db.session.get(AMLScreening, screening_id)
    if not screening or screening.user_id != user_id:
        raise NotFoundError("Screening not found")
    return screening


def _parse_date(value) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValidationError("date_of_birth must be an ISO date") from exc


def create_screening(user_id: str, data: Dict) -> AMLScreening:
    subject_type = (data.get("subject_type") or "").upper()
    if subject_type not in SUBJECT_TYPES:
        raise ValidationError("subject_type must be INDIVIDUAL or COMPANY")
    subject_name = (data.get("subject_name") or "").strip()
    if len(subject_name) < SUBJECT_NAME_MIN_LENGTH:
        raise ValidationError("subject_name must be at least 2 characters")

    screening = AMLScreening(
        user_id=user_id,
        subject_type=subject_type,
        subject_name=subject_name,
        subject_email=data.get("subject_email") or None,
        subject_phone=data.get("subject_phone") or None,
        date_of_birth=_parse_date(data.get("date_of_birth")),
        nationality=data.get("nationality") or None,
        company_number=data.get("company_number") or None,
        notes=data.get("notes") or None,
        status="PENDING",
        review_status="PENDING",
    )
    db.session.add(screening)
    db.session.flush()
    _audit(
        screening.id,
        "SCREENING_INITIATED",
        user_id,
        f"AML screening initiated for {subject_type}: {subject_name}",
        new_value={"subject_type": subject_type, "subject_name": subject_name},
    )
    db.session.commit()
    current_app.logger.info("AML screening created", extra={"screening_id": screening.id, "user_id": user_id})
    return screening


def _subject_for(screening: AMLScreening) -> ScreeningSubject:
    return ScreeningSubject(
        subject_type=screening.subject_type,
        name=screening.subject_name,
        date_of_birth=screening.date_of_birth.isoformat() if screening.date_of_birth else None,
        nationality=screening.nationality,
        company_number=screening.company_number,
    )


def perform_screening(
    user_id: str, screening_id: str, provider: Optional[ScreeningProvider] = None, now: Optional[datetime] = None
) -> AMLScreening:
    """Run a PENDING screening through the provider and derive its risk fields.

    Provider failures leave the screening FAILED with the error in metadata,
    and the FAILED screening is returned to the caller.
    """
    screening = _owned_screening(user_id, screening_id)
    if screening.status != "PENDING":
        raise InvalidTransitionError("Screening already processed")

    now = now or datetime.utcnow()
    screening.status = "IN_PROGRESS"
    db.session.commit()

    try:
        candidates = (provider or get_screening_provider()).screen(_subject_for(screening))
    except Exception as exc:
        db.session.rollback()
        screening.status = "FAILED"
        screening.extra_metadata = {**(screening.extra_metadata or {}), "error": str(exc)}
        _audit(screening.id, "SCREENING_FAILED", SYSTEM_ACTOR, f"Screening failed: {exc}")
        db.session.commit()
        current_app.logger.warning("AML screening failed", extra={"screening_id": screening.id, "error": str(exc)})
        return screening

    result = calculate_risk(candidates)
    match_types = {c.match_type for c in candidates}
    for candidate in candidates:
        db.session.add(
            AMLMatch(
                screening_id=screening.id,
                match_type=candidate.match_type,
                entity_name=candidate.entity_name or screening.subject_name,
                match_score=candidate.match_score,
                list_name=candidate.list_name,
                list_type=candidate.list_type,
                aliases=candidate.aliases,
                nationality=candidate.nationality,
                positions=candidate.positions,
                review_status="PENDING",
            )
        )

    screening.status = "COMPLETED"
    screening.risk_score = result.risk_score
    screening.risk_level = result.risk_level
    screening.match_found = bool(candidates)
    screening.sanctions_match = "SANCTIONS" in match_types
    screening.pep_match = "PEP" in match_types
    screening.adverse_media = "ADVERSE_MEDIA" in match_types
    screening.review_status = "PENDING" if candidates else "APPROVED"
    screening.edd_required = result.edd_required
    review_days = int(current_app.config.get("AML_REVIEW_INTERVAL_DAYS", 365))
    screening.next_review_date = now + timedelta(days=review_days)
    _audit(
        screening.id,
        "SCREENING_COMPLETED",
        SYSTEM_ACTOR,
        f"Screening completed. Risk: {result.risk_level}, Matches: {len(candidates)}",
        new_value={"risk_score": result.risk_score, "risk_level": result.risk_level, "match_count": len(candidates)},
    )
    db.session.commit()
    current_app.logger.info(
        "AML screening completed",
        extra={"screening_id": screening.id, "risk_level": result.risk_level, "match_count": len(candidates)},
    )
    return screening


def update_review_status(user_id: str, screening_id: str, review_status: str, review_notes: Optional[str] = None) -> AMLScreening:
    if review_status not in REVIEW_STATUSES:
        raise ValidationError(f"Invalid review status: {review_status}")
    screening = _owned_screening(user_id, screening_id)
    previous = screening.review_status
    screening.review_status = review_status
    screening.reviewed_at = datetime.utcnow()
    screening.reviewed_by = user_id
    suffix = f": {review_notes}" if review_notes else ""
    _audit(
        screening.id,
        "REVIEW_STATUS_UPDATED",
        user_id,
        f"Review status changed to {review_status}{suffix}",
        old_value={"review_status": previous},
        new_value={"review_status": review_status},
    )
    db.session.commit()
    return screening


def review_match(user_id: str, match_id: str, decision: str, review_notes: Optional[str] = None) -> AMLMatch:
    if decision not in MATCH_DECISIONS:
        raise ValidationError("decision must be ACCEPT or REJECT")
    match = db.session.get(AMLMatch, match_id)
    if not match or match.screening.user_id != user_id:
        raise NotFoundError("Match not found")

    now = datetime.utcnow()
    match.decision = decision
    match.review_status = "APPROVED"
    match.reviewed_at = now
    match.review_notes = review_notes
    _audit(
        match.screening_id,
        "MATCH_REVIEWED",
        user_id,
        f'Match "{match.entity_name}" marked as {decision}',
        new_value={"match_id": match.id, "decision": decision},
    )
    db.session.flush()

    pending = AMLMatch.query.filter(
        AMLMatch.screening_id == match.screening_id, AMLMatch.review_status == "PENDING"
    ).count()
    if pending == 0:
        screening = match.screening
        screening.review_status = "APPROVED"
        screening.reviewed_at = now
        screening.reviewed_by = user_id
    db.session.commit()
    return match


def complete_edd(user_id: str, screening_id: str, edd_notes: str) -> AMLScreening:
    notes = (edd_notes or "").strip()
    if len(notes) < EDD_NOTES_MIN_LENGTH:
        raise ValidationError("EDD notes must be at least 10 characters")
    screening = _owned_screening(user_id, screening_id)
    if not screening.edd_required:
        raise InvalidTransitionError("EDD not required for this screening")
    if screening.edd_completed:
        raise InvalidTransitionError("EDD already completed for this screening")

    screening.edd_completed = True
    screening.edd_notes = notes
    _audit(screening.id, "EDD_COMPLETED", user_id, "Enhanced Due Diligence completed", new_value={"edd_notes": notes})
    db.session.commit()
    current_app.logger.info("EDD completed", extra={"screening_id": screening.id, "user_id": user_id})
    return screening


def schedule_annual_review(user_id: str, screening_id: str, review_date: datetime) -> AMLScreening:
    if not isinstance(review_date, datetime):
        raise ValidationError("review_date must be a datetime")
    screening = _owned_screening(user_id, screening_id)
    previous = screening.next_review_date
    screening.next_review_date = review_date
    _audit(
        screening.id,
        "ANNUAL_REVIEW_SCHEDULED",
        user_id,
        f"Annual review scheduled for {review_date.strftime('%d %B %Y')}",
        old_value={"next_review_date": previous.isoformat() if previous else None},
        new_value={"next_review_date": review_date.isoformat()},
    )
    db.session.commit()
    return screening


def list_screenings(
    user_id: str,
    *,
    status: Optional[str] = None,
    risk_level: Optional[str] = None,
    review_status: Optional[str] = None,
    limit: int = 20,
    cursor: Optional[str] = None,
) -> Dict:
    if status and status not in SCREENING_STATUSES:
        raise ValidationError(f"Invalid status filter: {status}")
    if risk_level and risk_level not in RISK_LEVELS:
        raise ValidationError(f"Invalid risk level filter: {risk_level}")
    if review_status and review_status not in REVIEW_STATUSES:
        raise ValidationError(f"Invalid review status filter: {review_status}")

    limit = max(1, min(int(limit), 100))
    query = AMLScreening.query.filter(AMLScreening.user_id == user_id)
    if status:
        query = query.filter(AMLScreening.status == status)
    if risk_level:
        query = query.filter(AMLScreening.risk_level == risk_level)
    if review_status:
        query = query.filter(AMLScreening.review_status == review_status)
    if cursor:
        anchor = _owned_screening(user_id, cursor)
        query = query.filter(
            db.or_(
                AMLScreening.created_at < anchor.created_at,
                db.and_(AMLScreening.created_at == anchor.created_at, AMLScreening.id <= anchor.id),
            )
        )
    rows = query.order_by(AMLScreening.created_at.desc(), AMLScreening.id.desc()).limit(limit + 1).all()
    next_cursor = rows.pop().id if len(rows) > limit else None
    return {"screenings": [s.to_dict() for s in rows], "next_cursor": next_cursor}


def get_screening(user_id: str, screening_id: str) -> AMLScreening:
    return _owned_screening(user_id, screening_id)


def screening_stats(user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    base = AMLScreening.query.filter(AMLScreening.user_id == user_id)
    by_status = (
        db.session.query(AMLScreening.status, func.count(AMLScreening.id))
        .filter(AMLScreening.user_id == user_id)
        .group_by(AMLScreening.status)
        .all()
    )
    by_risk = (
        db.session.query(AMLScreening.risk_level, func.count(AMLScreening.id))
        .filter(AMLScreening.user_id == user_id, AMLScreening.risk_level.isnot(None))
        .group_by(AMLScreening.risk_level)
        .all()
    )
    return {
        "total_screenings": base.count(),
        "pending_review": base.filter(AMLScreening.review_status == "PENDING").count(),
        "high_risk": base.filter(AMLScreening.risk_level.in_(["HIGH", "CRITICAL"])).count(),
        "edd_required": base.filter(AMLScreening.edd_required.is_(True), AMLScreening.edd_completed.is_(False)).count(),
        "due_for_review": base.filter(AMLScreening.next_review_date <= now + timedelta(days=30)).count(),
        "by_status": {status: count for status, count in by_status},
        "by_risk": {level: count for level, count in by_risk},
    }


def due_for_review(user_id: str, days_ahead: int = 30, now: Optional[datetime] = None) -> List[AMLScreening]:
    if not 1 <= int(days_ahead) <= 365:
        raise ValidationError("days_ahead must be between 1 and 365")
    due_date = (now or datetime.utcnow()) + timedelta(days=int(days_ahead))
    return (
        AMLScreening.query.filter(AMLScreening.user_id == user_id, AMLScreening.next_review_date <= due_date)
        .order_by(AMLScreening.next_review_date.asc())
        .all()
    )


def delete_screening(user_id: str, screening_id: str) -> None:
    screening = _owned_screening(user_id, screening_id)
    db.session.delete(screening)
    db.session.commit()
    current_app.logger.info("AML screening deleted", extra={"screening_id": screening_id, "user_id": user_id})


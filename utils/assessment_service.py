"""Repairing standard assessments: 21-point checklist, item updates and score recompute."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app

from extensions import db
from models import (
    REPAIR_ITEM_PRIORITIES,
    REPAIR_ITEM_STATUSES,
    Property,
    RepairItem,
    RepairingStandardAssessment,
)
from utils.errors import NotFoundError, ValidationError
from utils.risk_evaluator import is_expired

CATEGORIES = {
    "STRUCTURE": "Structure and Exterior",
    "DAMPNESS": "Dampness and Weather Protection",
    "HEATING": "Heating and Hot Water",
    "SAFETY": "Safety Systems",
    "FACILITIES": "Facilities and Services",
    "COMMON_AREAS": "Common Areas",
}

CHECKPOINTS = (
    ("STRUCTURE", "Roof Structure", "Roof is structurally stable and watertight"),
    ("STRUCTURE", "Walls Structure", "External walls are structurally stable and weatherproof"),
    ("STRUCTURE", "Windows and Doors", "Windows and external doors are secure and in good repair"),
    ("STRUCTURE", "Chimney and Flues", "Chimneys, flues, and ventilation are in good condition"),
    ("STRUCTURE", "Gutters and Downpipes", "Rainwater drainage systems are functioning properly"),
    ("DAMPNESS", "Rising Damp", "No evidence of rising damp in walls or floors"),
    ("DAMPNESS", "Penetrating Damp", "No penetrating damp from roof, walls, or windows"),
    ("DAMPNESS", "Condensation", "Adequate ventilation to prevent condensation and mold"),
    ("HEATING", "Central Heating", "Fixed heating system capable of heating all rooms"),
    ("HEATING", "Hot Water Supply", "Adequate supply of hot water at reasonable cost"),
    ("HEATING", "Boiler Safety", "Heating equipment is safe and in good working order"),
    ("SAFETY", "Smoke Alarms", "Interlinked smoke alarms on each floor (living areas)"),
    ("SAFETY", "Carbon Monoxide Alarms", "CO alarms in rooms with fuel-burning appliances"),
    ("SAFETY", "Electrical Safety", "Electrical installation is safe (EICR compliant)"),
    ("SAFETY", "Gas Safety", "Gas appliances are safe and have valid certificate"),
    ("SAFETY", "Structural Safety", "Stairs, balconies, and railings are safe and secure"),
    ("FACILITIES", "Kitchen Facilities", "Adequate kitchen facilities including sink and food preparation area"),
    ("FACILITIES", "Bathroom Facilities", "Functioning bath or shower, wash basin, and toilet"),
    ("FACILITIES", "Water Supply", "Adequate supply of clean cold and hot water"),
    ("COMMON_AREAS", "Common Area Safety", "Common stairs, passages, and lifts are safe and lit"),
    ("COMMON_AREAS", "Common Area Maintenance", "Common areas are maintained and kept clear"),
)

# Certificate type -> keywords matched against item descriptions
CERTIFICATE_KEYWORDS = {
    "gas_safety": ("gas", "boiler", "carbon monoxide"),
    "eicr": ("electrical",),
    "epc": ("heating", "hot water"),
    "pat": ("electrical",),
    "legionella": ("water supply",),
}

SATISFIED_STATUSES = ("compliant", "completed")
EDITABLE_ITEM_FIELDS = ("status", "priority", "notes", "evidence_url", "due_date", "cost", "description")


def recalculate_assessment(assessment: RepairingStandardAssessment) -> RepairingStandardAssessment:
    """Refresh the cached score and overall status from the current items."""
    items = list(assessment.items)
    total = len(items)
    satisfied = sum(1 for item in items if item.status in SATISFIED_STATUSES)
    score = int(satisfied * 100 / total + 0.5) if total else 0

    if score == 100:
        status = "compliant"
    elif score == 0:
        status = "pending"
    elif any(item.status == "non_compliant" for item in items):
        status = "non_compliant"
    else:
        status = "in_progress"

    assessment.score = score
    assessment.overall_status = status
    return assessment


def _owned_assessment(user_id: str, assessment_id: str) -> RepairingStandardAssessment:
    assessment = db.session.get(RepairingStandardAssessment, assessment_id)
    if not assessment or assessment.user_id != user_id:
        raise NotFoundError("Assessment not found or access denied")
    return assessment


def _owned_item(user_id: str, item_id: str) -> RepairItem:
    item = db.session.get(RepairItem, item_id)
    if not item or item.assessment.user_id != user_id:
        raise NotFoundError("Repair item not found or access denied")
    return item


def _parse_datetime(value, field: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO-8601 date") from exc


def create_assessment(
    user_id: str, property_id: str, assessment_date: Optional[datetime] = None, notes: Optional[str] = None
) -> RepairingStandardAssessment:
    prop = db.session.get(Property, property_id)
    if not prop or prop.owner_id != user_id:
        raise NotFoundError("Property not found or access denied")

    assessment = RepairingStandardAssessment(
        user_id=user_id,
        property_id=property_id,
        assessment_date=assessment_date or datetime.utcnow(),
        notes=notes,
        overall_status="pending",
        score=0,
    )
    assessment.items = [
        RepairItem(category=category, description=f"{title}: {description}", status="pending", priority="medium")
        for category, title, description in CHECKPOINTS
    ]
    recalculate_assessment(assessment)
    db.session.add(assessment)
    db.session.commit()
    current_app.logger.info(
        "Repairing standard assessment created", extra={"assessment_id": assessment.id, "property_id": property_id}
    )
    return assessment


def list_assessments(user_id: str) -> List[RepairingStandardAssessment]:
    return (
        RepairingStandardAssessment.query.filter(RepairingStandardAssessment.user_id == user_id)
        .order_by(RepairingStandardAssessment.assessment_date.desc())
        .all()
    )


def get_assessment(user_id: str, assessment_id: str) -> RepairingStandardAssessment:
    return _owned_assessment(user_id, assessment_id)


def update_item(user_id: str, item_id: str, changes: Dict) -> RepairItem:
    unknown = set(changes) - set(EDITABLE_ITEM_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown item fields: {', '.join(sorted(unknown))}")
    status = changes.get("status")
    if status is not None and status not in REPAIR_ITEM_STATUSES:
        raise ValidationError(f"Invalid item status: {status}")
    priority = changes.get("priority")
    if priority is not None and priority not in REPAIR_ITEM_PRIORITIES:
        raise ValidationError(f"Invalid item priority: {priority}")
    due_date = _parse_datetime(changes.get("due_date"), "due_date") if "due_date" in changes else None

    item = _owned_item(user_id, item_id)
    for key, value in changes.items():
        if key == "due_date":
            value = due_date
        setattr(item, key, value)
    if status == "completed":
        item.completed_date = datetime.utcnow()
    recalculate_assessment(item.assessment)
    db.session.commit()
    return item


def add_item(user_id: str, assessment_id: str, data: Dict) -> RepairItem:
    category = (data.get("category") or "").upper()
    if category not in CATEGORIES:
        raise ValidationError(f"Invalid category: {category or 'missing'}")
    description = (data.get("description") or "").strip()
    if not description:
        raise ValidationError("description is required")
    status = data.get("status") or "pending"
    priority = data.get("priority") or "medium"
    if status not in REPAIR_ITEM_STATUSES:
        raise ValidationError(f"Invalid item status: {status}")
    if priority not in REPAIR_ITEM_PRIORITIES:
        raise ValidationError(f"Invalid item priority: {priority}")

    assessment = _owned_assessment(user_id, assessment_id)
    item = RepairItem(
        category=category,
        description=description,
        status=status,
        priority=priority,
        notes=data.get("notes"),
        due_date=_parse_datetime(data.get("due_date"), "due_date"),
    )
    assessment.items.append(item)
    recalculate_assessment(assessment)
    db.session.commit()
    return item


def delete_item(user_id: str, item_id: str) -> RepairingStandardAssessment:
    item = _owned_item(user_id, item_id)
    assessment = item.assessment
    assessment.items.remove(item)
    recalculate_assessment(assessment)
    db.session.commit()
    return assessment


def compliance_breakdown(user_id: str, assessment_id: str) -> Dict:
    assessment = _owned_assessment(user_id, assessment_id)
    items = list(assessment.items)
    by_category: Dict[str, Dict[str, int]] = {}
    for item in items:
        bucket = by_category.setdefault(item.category, {"total": 0, "compliant": 0, "non_compliant": 0, "pending": 0})
        bucket["total"] += 1
        if item.status in SATISFIED_STATUSES:
            bucket["compliant"] += 1
        elif item.status == "non_compliant":
            bucket["non_compliant"] += 1
        else:
            bucket["pending"] += 1

    compliant = sum(b["compliant"] for b in by_category.values())
    return {
        "total_items": len(items),
        "compliant_items": compliant,
        "non_compliant_items": sum(b["non_compliant"] for b in by_category.values()),
        "pending_items": sum(1 for item in items if item.status in ("pending", "in_progress")),
        "compliance_percentage": int(compliant * 100 / len(items) + 0.5) if items else 0,
        "overall_status": assessment.overall_status,
        "by_category": by_category,
    }


def assessment_stats(user_id: str) -> Dict:
    base = RepairingStandardAssessment.query.filter(RepairingStandardAssessment.user_id == user_id)
    return {
        "total_assessments": base.count(),
        "compliant_assessments": base.filter(RepairingStandardAssessment.overall_status == "compliant").count(),
        "non_compliant_assessments": base.filter(RepairingStandardAssessment.overall_status == "non_compliant").count(),
        "pending_assessments": base.filter(
            RepairingStandardAssessment.overall_status.in_(["pending", "in_progress"])
        ).count(),
    }


def sync_certificates(user_id: str, assessment_id: str, now: Optional[datetime] = None) -> RepairingStandardAssessment:
    """Set checklist items from the property's certificates by description keyword."""
    now = now or datetime.utcnow()
    assessment = _owned_assessment(user_id, assessment_id)
    certificates = sorted(assessment.property.certificates, key=lambda c: c.expiry_date, reverse=True)

    changed = 0
    for cert in certificates:
        keywords = CERTIFICATE_KEYWORDS.get(cert.certificate_type, ())
        expired = is_expired(cert.expiry_date, now)
        new_status = "non_compliant" if expired else "compliant"
        expiry_label = cert.expiry_date.strftime("%d/%m/%Y")
        note = (
            f"{cert.type_label()} certificate expired on {expiry_label}"
            if expired
            else f"{cert.type_label()} certificate valid until {expiry_label}"
        )
        for item in assessment.items:
            description = item.description.lower()
            if not any(keyword in description for keyword in keywords):
                continue
            if item.status != new_status:
                item.status = new_status
                item.notes = note
                changed += 1

    recalculate_assessment(assessment)
    db.session.commit()
    current_app.logger.info(
        "Certificates synced to assessment", extra={"assessment_id": assessment.id, "items_changed": changed}
    )
    return assessment

"""Repairing standard assessment endpoints."""
from flask import Blueprint, jsonify
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import REPAIR_ITEM_PRIORITIES, REPAIR_ITEM_STATUSES
from utils import assessment_service
from .common import json_body, parse_datetime, validate_form

assessments_bp = Blueprint("assessments", __name__, url_prefix="/api/assessments")


class AssessmentForm(FlaskForm):
    property_id = StringField("Property", validators=[DataRequired(), Length(max=36)])
    assessment_date = StringField("Assessment Date", validators=[Optional(), Length(max=32)])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class RepairItemForm(FlaskForm):
    category = SelectField(
        "Category", choices=[(c, label) for c, label in assessment_service.CATEGORIES.items()], validators=[DataRequired()]
    )
    description = TextAreaField("Description", validators=[DataRequired(), Length(max=1000)])
    status = SelectField("Status", choices=[(s, s) for s in REPAIR_ITEM_STATUSES], default="pending")
    priority = SelectField("Priority", choices=[(p, p) for p in REPAIR_ITEM_PRIORITIES], default="medium")
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])
    due_date = StringField("Due Date", validators=[Optional(), Length(max=32)])


@assessments_bp.route("", methods=["GET"])
@login_required
def list_assessments():
    assessments = assessment_service.list_assessments(current_user.id)
    return jsonify({"assessments": [a.to_dict() for a in assessments]})


@assessments_bp.route("", methods=["POST"])
@login_required
def create_assessment():
    data = validate_form(AssessmentForm())
    assessment_date = parse_datetime(data["assessment_date"], "assessment_date") if data.get("assessment_date") else None
    assessment = assessment_service.create_assessment(
        current_user.id, data["property_id"], assessment_date=assessment_date, notes=data.get("notes") or None
    )
    return jsonify(assessment.to_dict(include_items=True)), 201


@assessments_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    return jsonify(assessment_service.assessment_stats(current_user.id))


@assessments_bp.route("/<string:assessment_id>", methods=["GET"])
@login_required
def get_assessment(assessment_id):
    assessment = assessment_service.get_assessment(current_user.id, assessment_id)
    return jsonify(assessment.to_dict(include_items=True))


@assessments_bp.route("/<string:assessment_id>/score", methods=["GET"])
@login_required
def score(assessment_id):
    return jsonify(assessment_service.compliance_breakdown(current_user.id, assessment_id))


@assessments_bp.route("/<string:assessment_id>/items", methods=["POST"])
@login_required
def add_item(assessment_id):
    data = validate_form(RepairItemForm())
    item = assessment_service.add_item(current_user.id, assessment_id, data)
    return jsonify(item.to_dict()), 201


@assessments_bp.route("/items/<string:item_id>", methods=["PATCH"])
@login_required
def update_item(item_id):
    item = assessment_service.update_item(current_user.id, item_id, json_body())
    return jsonify({"item": item.to_dict(), "assessment": item.assessment.to_dict()})


@assessments_bp.route("/items/<string:item_id>", methods=["DELETE"])
@login_required
def delete_item(item_id):
    assessment = assessment_service.delete_item(current_user.id, item_id)
    return jsonify(assessment.to_dict())


@assessments_bp.route("/<string:assessment_id>/sync-certificates", methods=["POST"])
@login_required
def sync_certificates(assessment_id):
    assessment = assessment_service.sync_certificates(current_user.id, assessment_id)
    return jsonify(assessment.to_dict(include_items=True))

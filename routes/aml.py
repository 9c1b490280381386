"""AML screening workflow endpoints: intake, screening, match review, EDD and annual review."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import MATCH_DECISIONS, REVIEW_STATUSES, SUBJECT_TYPES
from utils import aml_service
from .common import int_arg, json_body, parse_datetime, validate_form

aml_bp = Blueprint("aml", __name__, url_prefix="/api/aml")


class ScreeningForm(FlaskForm):
    subject_type = SelectField("Subject Type", choices=[(s, s) for s in SUBJECT_TYPES], validators=[DataRequired()])
    subject_name = StringField("Subject Name", validators=[DataRequired(), Length(min=2, max=255)])
    subject_email = StringField("Email", validators=[Optional(), Length(max=255)])
    subject_phone = StringField("Phone", validators=[Optional(), Length(max=50)])
    date_of_birth = StringField("Date of Birth", validators=[Optional(), Length(max=32)])
    nationality = StringField("Nationality", validators=[Optional(), Length(max=100)])
    company_number = StringField("Company Number", validators=[Optional(), Length(max=50)])
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class MatchReviewForm(FlaskForm):
    decision = SelectField("Decision", choices=[(d, d) for d in MATCH_DECISIONS], validators=[DataRequired()])
    review_notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class ReviewStatusForm(FlaskForm):
    review_status = SelectField("Review Status", choices=[(r, r) for r in REVIEW_STATUSES], validators=[DataRequired()])
    review_notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])


class EDDForm(FlaskForm):
    edd_notes = TextAreaField(
        "EDD Notes",
        validators=[DataRequired(), Length(min=10, message="EDD notes must be at least 10 characters")],
    )


@aml_bp.route("/screenings", methods=["GET"])
@login_required
def list_screenings():
    page = aml_service.list_screenings(
        current_user.id,
        status=request.args.get("status") or None,
        risk_level=request.args.get("risk_level") or None,
        review_status=request.args.get("review_status") or None,
        limit=int_arg("limit", 20, 1, 100),
        cursor=request.args.get("cursor") or None,
    )
    return jsonify(page)


@aml_bp.route("/screenings", methods=["POST"])
@login_required
def create_screening():
    data = validate_form(ScreeningForm())
    screening = aml_service.create_screening(current_user.id, data)
    return jsonify(screening.to_dict()), 201


@aml_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    return jsonify(aml_service.screening_stats(current_user.id))


@aml_bp.route("/due", methods=["GET"])
@login_required
def due():
    days_ahead = int_arg("days_ahead", 30, 1, 365)
    screenings = aml_service.due_for_review(current_user.id, days_ahead=days_ahead)
    return jsonify({"screenings": [s.to_dict() for s in screenings]})


@aml_bp.route("/screenings/<string:screening_id>", methods=["GET"])
@login_required
def get_screening(screening_id):
    screening = aml_service.get_screening(current_user.id, screening_id)
    return jsonify(screening.to_dict(include_matches=True))


@aml_bp.route("/screenings/<string:screening_id>", methods=["DELETE"])
@login_required
def delete_screening(screening_id):
    aml_service.delete_screening(current_user.id, screening_id)
    return jsonify({"success": True})


@aml_bp.route("/screenings/<string:screening_id>/screen", methods=["POST"])
@login_required
def perform_screening(screening_id):
    current_app.logger.info("AML screening requested", extra={"screening_id": screening_id, "user_id": current_user.id})
    screening = aml_service.perform_screening(current_user.id, screening_id)
    return jsonify(screening.to_dict(include_matches=True))


@aml_bp.route("/screenings/<string:screening_id>/review-status", methods=["POST"])
@login_required
def update_review_status(screening_id):
    data = validate_form(ReviewStatusForm())
    screening = aml_service.update_review_status(
        current_user.id, screening_id, data["review_status"], data.get("review_notes") or None
    )
    return jsonify(screening.to_dict())


@aml_bp.route("/matches/<string:match_id>/review", methods=["POST"])
@login_required
def review_match(match_id):
    data = validate_form(MatchReviewForm())
    match = aml_service.review_match(current_user.id, match_id, data["decision"], data.get("review_notes") or None)
    return jsonify(match.to_dict())


@aml_bp.route("/screenings/<string:screening_id>/edd", methods=["POST"])
@login_required
def complete_edd(screening_id):
    data = validate_form(EDDForm())
    screening = aml_service.complete_edd(current_user.id, screening_id, data["edd_notes"])
    return jsonify(screening.to_dict())


@aml_bp.route("/screenings/<string:screening_id>/annual-review", methods=["POST"])
@login_required
def schedule_annual_review(screening_id):
    review_date = parse_datetime(json_body().get("review_date"), "review_date")
    screening = aml_service.schedule_annual_review(current_user.id, screening_id, review_date)
    return jsonify(screening.to_dict())

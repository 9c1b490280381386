"""In-app notification inbox, preferences and email history."""
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES
from utils import notification_service
from utils.email_service import email_history
from utils.errors import ValidationError
from .common import bool_arg, int_arg, json_body, validate_form

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


class NotificationForm(FlaskForm):
    type = SelectField("Type", choices=[(t, t) for t in NOTIFICATION_TYPES], validators=[DataRequired()])
    title = StringField("Title", validators=[DataRequired(), Length(max=200)])
    message = TextAreaField("Message", validators=[DataRequired(), Length(max=2000)])
    link = StringField("Link", validators=[Optional(), Length(max=500)])
    priority = SelectField("Priority", choices=[(p, p) for p in NOTIFICATION_PRIORITIES], default="normal")


@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    type_filter = request.args.get("type") or None
    if type_filter and type_filter not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type_filter}")
    page = notification_service.list_notifications(
        current_user.id,
        limit=int_arg("limit", 20, 1, 100),
        cursor=request.args.get("cursor") or None,
        unread_only=bool_arg("unread_only"),
        type=type_filter,
    )
    return jsonify(page)


@notifications_bp.route("", methods=["POST"])
@login_required
def create_notification():
    form = NotificationForm()
    data = validate_form(form)
    metadata = json_body().get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")
    result = notification_service.create_notification(
        current_user.id,
        data["type"],
        data["title"],
        data["message"],
        link=data.get("link") or None,
        priority=data.get("priority") or "normal",
        metadata=metadata,
    )
    return jsonify(result.to_dict()), 201


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    return jsonify({"count": notification_service.unread_count(current_user.id)})


@notifications_bp.route("/recent", methods=["GET"])
@login_required
def recent():
    limit = int_arg("limit", 5, 1, 50)
    return jsonify({"items": notification_service.recent_notifications(current_user.id, limit=limit)})


@notifications_bp.route("/<string:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    notification = notification_service.mark_as_read(current_user.id, notification_id)
    return jsonify(notification.to_dict())


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read():
    return jsonify({"updated": notification_service.mark_all_as_read(current_user.id)})


@notifications_bp.route("/read", methods=["DELETE"])
@login_required
def delete_read():
    return jsonify({"deleted": notification_service.delete_all_read(current_user.id)})


@notifications_bp.route("/<string:notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id):
    notification_service.delete_notification(current_user.id, notification_id)
    return jsonify({"success": True})


@notifications_bp.route("/preferences", methods=["GET"])
@login_required
def get_preferences():
    return jsonify(notification_service.get_preferences(current_user.id).to_dict())


@notifications_bp.route("/preferences", methods=["PATCH"])
@login_required
def update_preferences():
    pref = notification_service.update_preferences(current_user.id, json_body())
    return jsonify(pref.to_dict())


@notifications_bp.route("/emails", methods=["GET"])
@login_required
def emails():
    limit = int_arg("limit", 50, 1, 200)
    return jsonify({"emails": email_history(current_user.id, limit=limit)})

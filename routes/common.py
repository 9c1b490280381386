"""Request parsing shared by the JSON blueprints."""
from datetime import datetime
from typing import Optional

from flask import request
from flask_wtf import FlaskForm

from utils.errors import ValidationError


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def int_arg(name: str, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise ValidationError(f"{name} must be between {minimum} and {maximum}")
    return value


def bool_arg(name: str) -> bool:
    return (request.args.get(name) or "").lower() in ("1", "true", "yes")


def parse_datetime(value, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an ISO-8601 date") from exc


def validate_form(form: FlaskForm) -> dict:
    """Validate a FlaskForm (JSON bodies are accepted) and return its data without the CSRF token."""
    if not form.validate_on_submit():
        field, messages = next(iter(form.errors.items()))
        raise ValidationError(f"{field}: {messages[0]}")
    data = dict(form.data)
    data.pop("csrf_token", None)
    return data

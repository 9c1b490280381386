"""Access decorators for JSON endpoints."""
from functools import wraps

from flask import current_app, jsonify, request

from utils.security import bearer_token, secrets_match


def cron_secret_required(view_func):
    """Guard scheduler-only endpoints with `Authorization: Bearer <CRON_SECRET>`."""

    @wraps(view_func)
    def wrapped(*args, **kwargs):
        expected = current_app.config.get("CRON_SECRET") or ""
        if not expected:
            current_app.logger.error("CRON_SECRET is not configured", extra={"path": request.path})
            return jsonify({"error": "Cron secret not configured"}), 500

        token = bearer_token(request.headers.get("Authorization"))
        if not secrets_match(token, expected):
            current_app.logger.warning(
                "Unauthorized cron attempt",
                extra={"path": request.path, "remote_addr": request.remote_addr},
            )
            return jsonify({"error": "Unauthorized"}), 401
        return view_func(*args, **kwargs)

    return wrapped

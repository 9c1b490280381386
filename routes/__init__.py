"""Blueprint registry and service health endpoint."""
from datetime import datetime

from flask import Blueprint, jsonify
from sqlalchemy import text

from extensions import db
from .aml import aml_bp
from .assessments import assessments_bp
from .cron import cron_bp
from .dashboard import analytics_bp, dashboard_bp
from .notifications import notifications_bp

main_bp = Blueprint("main", __name__)

BLUEPRINTS = (main_bp, dashboard_bp, analytics_bp, notifications_bp, aml_bp, assessments_bp, cron_bp)


@main_bp.route("/health", methods=["GET"])
def health():
    db.session.execute(text("SELECT 1"))
    return jsonify({"status": "ok", "timestamp": datetime.utcnow().isoformat()})

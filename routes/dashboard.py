"""Dashboard and analytics JSON endpoints for the signed-in landlord."""
from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from utils import analytics_service, dashboard_service
from .common import int_arg

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")
analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@dashboard_bp.route("/overview", methods=["GET"])
@login_required
def overview():
    return jsonify(dashboard_service.get_overview(current_user.id))


@dashboard_bp.route("/deadlines", methods=["GET"])
@login_required
def deadlines():
    days = int_arg("days", 30, 1, 365)
    limit = int_arg("limit", 10, 1, 50)
    return jsonify({"deadlines": dashboard_service.get_upcoming_deadlines(current_user.id, days=days, limit=limit)})


@dashboard_bp.route("/activity", methods=["GET"])
@login_required
def activity():
    limit = int_arg("limit", 20, 1, 100)
    return jsonify({"activity": dashboard_service.get_recent_activity(current_user.id, limit=limit)})


@dashboard_bp.route("/critical-issues", methods=["GET"])
@login_required
def critical_issues():
    return jsonify({"issues": dashboard_service.get_critical_issues(current_user.id)})


@dashboard_bp.route("/portfolio", methods=["GET"])
@login_required
def portfolio():
    return jsonify(dashboard_service.get_portfolio_summary(current_user.id))


@analytics_bp.route("/portfolio", methods=["GET"])
@login_required
def portfolio_stats():
    return jsonify(analytics_service.get_portfolio_stats(current_user.id))


@analytics_bp.route("/risk", methods=["GET"])
@login_required
def risk():
    return jsonify(analytics_service.get_risk_assessment(current_user.id))


@analytics_bp.route("/timeline", methods=["GET"])
@login_required
def timeline():
    return jsonify({"timeline": analytics_service.get_expiry_timeline(current_user.id)})


@analytics_bp.route("/costs", methods=["GET"])
@login_required
def costs():
    return jsonify(analytics_service.get_cost_summary(current_user.id))


@analytics_bp.route("/trends", methods=["GET"])
@login_required
def trends():
    return jsonify({"trends": analytics_service.get_compliance_trends(current_user.id)})


@analytics_bp.route("/certificates", methods=["GET"])
@login_required
def certificates():
    return jsonify({"breakdown": analytics_service.get_certificate_breakdown(current_user.id)})

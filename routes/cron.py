"""Scheduler entrypoint for the daily notification sweep."""
from flask import Blueprint, current_app, jsonify

from extensions import csrf
from utils.decorators import cron_secret_required
from utils.notification_service import run_notification_checks

cron_bp = Blueprint("cron", __name__, url_prefix="/cron")


@cron_bp.route("/notifications", methods=["POST"])
@csrf.exempt
@cron_secret_required
def notifications():
    current_app.logger.info("Cron notification sweep triggered")
    return jsonify(run_notification_checks())

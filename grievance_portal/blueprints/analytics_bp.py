"""
Grievance Portal
Analytics blueprint — dashboards over the full grievance collection.

Endpoints (all GET, prefix /api/v1/analytics):
    /snapshot            — AnalyticsSnapshot
    /insights            — InsightAlerts for the current snapshot
    /resolution-times    — per-category resolution-time metrics
    /sentiment-trends    — daily sentiment tallies over the last 30 days
    /escalations         — escalation counters
    /predictions         — active-case resolution predictions (?limit=10)
    /compare             — last N days vs the N days before (?days=30)
"""

import logging
from datetime import timedelta

from flask import Blueprint, jsonify, request

from grievance_portal.blueprints import query_number
from grievance_portal.models.domain import utcnow
from grievance_portal.services.analytics_engine import AnalyticsEngine
from grievance_portal.services.insights import InsightGenerator
from grievance_portal.services.prediction import predict_active
from grievance_portal.services.record_store import RecordStore
from grievance_portal.services.workflow_engine import WorkflowEngine
from grievance_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/v1/analytics")

DEFAULT_PREDICTION_LIMIT = 10
DEFAULT_COMPARE_DAYS = 30


@analytics_bp.route("/snapshot", methods=["GET"])
def snapshot():
    store = RecordStore()
    snap = AnalyticsEngine.generate_snapshot(store.list_grievances(), store.list_users())
    return jsonify(snap.to_dict()), 200


@analytics_bp.route("/insights", methods=["GET"])
def insights():
    store = RecordStore()
    now = utcnow()
    snap = AnalyticsEngine.generate_snapshot(store.list_grievances(), store.list_users(), now=now)
    alerts = InsightGenerator.generate(snap, now=now)
    return jsonify({"items": [a.to_dict() for a in alerts], "total": len(alerts)}), 200


@analytics_bp.route("/resolution-times", methods=["GET"])
def resolution_times():
    metrics = AnalyticsEngine.resolution_time_metrics(RecordStore().list_grievances())
    return jsonify({"items": [m.to_dict() for m in metrics]}), 200


@analytics_bp.route("/sentiment-trends", methods=["GET"])
def sentiment_trends():
    trends = AnalyticsEngine.sentiment_trends(RecordStore().list_grievances())
    return jsonify({"items": [t.to_dict() for t in trends]}), 200


@analytics_bp.route("/escalations", methods=["GET"])
def escalations():
    return jsonify(WorkflowEngine.escalation_metrics(RecordStore().list_grievances())), 200


@analytics_bp.route("/predictions", methods=["GET"])
def predictions():
    limit = request.args.get("limit", DEFAULT_PREDICTION_LIMIT, type=int)
    if limit is None or limit < 0:
        return api_error(E.VALIDATION_INVALID, "limit must be a non-negative integer")
    items = predict_active(RecordStore().list_grievances(), limit=limit)
    return jsonify({"items": [p.to_dict() for p in items], "total": len(items)}), 200


@analytics_bp.route("/compare", methods=["GET"])
def compare():
    """Snapshot of grievances created in the last ``days`` against the window before it."""
    days = query_number("days", DEFAULT_COMPARE_DAYS, minimum=1)
    if days is None:
        return api_error(E.VALIDATION_INVALID, "days must be a number >= 1")

    store = RecordStore()
    grievances = store.list_grievances()
    users = store.list_users()
    now = utcnow()
    window = timedelta(days=days)
    current_start = now - window
    previous_start = current_start - window

    current = [g for g in grievances if current_start <= g.created_at <= now]
    previous = [g for g in grievances if previous_start <= g.created_at < current_start]
    before = AnalyticsEngine.generate_snapshot(previous, users, now=current_start)
    after = AnalyticsEngine.generate_snapshot(current, users, now=now)

    return jsonify({
        "days": days,
        "before": before.to_dict(),
        "after": after.to_dict(),
        "changes": AnalyticsEngine.compare(before, after),
    }), 200

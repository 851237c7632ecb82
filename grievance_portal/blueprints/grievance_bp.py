"""
Grievance Portal
Grievance blueprint — intake, lifecycle and per-grievance advisory endpoints.

Endpoints summary:
    GRIEVANCE  /api/v1/grievances                          GET, POST
               /api/v1/grievances/<id>                     GET
               /api/v1/grievances/<id>/status              PATCH
               /api/v1/grievances/<id>/replies             POST
               /api/v1/grievances/<id>/feedback            POST  (Resolved only)
               /api/v1/grievances/overdue                  GET   (?sla_hours=)

    WORKFLOW   /api/v1/grievances/<id>/workflow            POST  (?skip_applied=)

    ADVISORY   /api/v1/grievances/<id>/prediction          GET
               /api/v1/grievances/<id>/assignees           GET
               /api/v1/grievances/<id>/draft-response      GET

Service layer owns all writes and commits.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from grievance_portal import limiter
from grievance_portal.blueprints import json_body, query_flag, query_number
from grievance_portal.models.domain import CATEGORY_VALUES, STATUS_VALUES
from grievance_portal.services import grievance_service
from grievance_portal.services.assignment import AssignmentAdvisor
from grievance_portal.services.prediction import predict_resolution_time
from grievance_portal.services.record_store import RecordStore
from grievance_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

grievance_bp = Blueprint("grievances", __name__, url_prefix="/api/v1/grievances")


def _submit_limit() -> str:
    return current_app.config["SUBMIT_RATE_LIMIT"]


def _skip_applied() -> bool:
    return query_flag("skip_applied", current_app.config["WORKFLOW_SKIP_APPLIED_RULES"])


# ═══════════════════════════════════════════════════════════════════════════
#  INTAKE & LISTING
# ═══════════════════════════════════════════════════════════════════════════

@grievance_bp.route("", methods=["POST"])
@limiter.limit(_submit_limit)
def submit_grievance():
    """Submit a grievance.

    Body: {userId, subject, description, userName?, userRole?, category?, attachments?}
    Returns: {grievance, notifications, appliedRuleIds} (201).
    """
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")

    result = grievance_service.submit_grievance(
        data,
        current_app.extensions["grievance_classifier"],
        skip_applied=_skip_applied(),
    )
    return jsonify({
        "grievance": result.grievance.to_dict(),
        "notifications": [n.to_dict() for n in result.notifications],
        "appliedRuleIds": result.applied_rule_ids,
    }), 201


@grievance_bp.route("", methods=["GET"])
def list_grievances():
    """List grievances. Query params: status, category."""
    status = request.args.get("status")
    category = request.args.get("category")
    if status and status not in STATUS_VALUES:
        return api_error(E.VALIDATION_INVALID, f"Unknown status '{status}'")
    if category and category not in CATEGORY_VALUES:
        return api_error(E.VALIDATION_INVALID, f"Unknown category '{category}'")

    items = RecordStore().list_grievances(status=status, category=category)
    return jsonify({"items": [g.to_dict() for g in items], "total": len(items)}), 200


@grievance_bp.route("/overdue", methods=["GET"])
def list_overdue():
    """Open grievances waiting longer than the SLA (default GRIEVANCE_SLA_HOURS)."""
    sla_hours = query_number("sla_hours", current_app.config["GRIEVANCE_SLA_HOURS"])
    if sla_hours is None:
        return api_error(E.VALIDATION_INVALID, "sla_hours must be a non-negative number")

    overdue = AssignmentAdvisor.overdue(RecordStore().list_grievances(), sla_hours)
    return jsonify({
        "slaHours": sla_hours,
        "items": [g.to_dict() for g in overdue],
        "total": len(overdue),
    }), 200


@grievance_bp.route("/<grievance_id>", methods=["GET"])
def get_grievance(grievance_id):
    return jsonify(RecordStore().get_grievance(grievance_id).to_dict()), 200


# ═══════════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════

@grievance_bp.route("/<grievance_id>/status", methods=["PATCH"])
def update_status(grievance_id):
    """Body: {status}. Returns: {grievance, notification}."""
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    grievance, notification = grievance_service.update_status(grievance_id, status)
    return jsonify({
        "grievance": grievance.to_dict(),
        "notification": notification.to_dict() if notification else None,
    }), 200


@grievance_bp.route("/<grievance_id>/replies", methods=["POST"])
def add_reply(grievance_id):
    """Body: {text, authorId?, authorName?, authorRole?, attachments?, isAiGenerated?}.

    Returns: {grievance, reply, notification} (201).
    """
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")

    grievance, reply, notification = grievance_service.add_reply(grievance_id, data)
    return jsonify({
        "grievance": grievance.to_dict(),
        "reply": reply,
        "notification": notification.to_dict() if notification else None,
    }), 201


@grievance_bp.route("/<grievance_id>/feedback", methods=["POST"])
def add_feedback(grievance_id):
    """Body: {rating, feedback?}. Resolved grievances only."""
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if data.get("rating") is None:
        return api_error(E.VALIDATION_REQUIRED, "rating is required")

    grievance = grievance_service.add_feedback(grievance_id, data["rating"], data.get("feedback"))
    return jsonify(grievance.to_dict()), 200


@grievance_bp.route("/<grievance_id>/workflow", methods=["POST"])
def run_workflow(grievance_id):
    """Re-apply the stored rules to a grievance and persist the outcome."""
    result = grievance_service.run_workflow(grievance_id, skip_applied=_skip_applied())
    return jsonify(result.to_dict()), 200


# ═══════════════════════════════════════════════════════════════════════════
#  ADVISORY
# ═══════════════════════════════════════════════════════════════════════════

@grievance_bp.route("/<grievance_id>/prediction", methods=["GET"])
def get_prediction(grievance_id):
    store = RecordStore()
    grievance = store.get_grievance(grievance_id)
    prediction = predict_resolution_time(grievance, store.list_grievances())
    return jsonify(prediction.to_dict()), 200


@grievance_bp.route("/<grievance_id>/assignees", methods=["GET"])
def get_assignees(grievance_id):
    """Eligible staff for the grievance plus the least busy of them."""
    store = RecordStore()
    grievance = store.get_grievance(grievance_id)
    users = store.list_users()
    grievances = store.list_grievances()

    eligible = AssignmentAdvisor.eligible_assignees(grievance, users)
    least_busy = AssignmentAdvisor.least_busy_member(eligible, grievances)
    return jsonify({
        "eligible": [
            {**u.to_dict(), "workload": AssignmentAdvisor.workload(u, grievances)}
            for u in eligible
        ],
        "leastBusy": least_busy.to_dict() if least_busy else None,
    }), 200


@grievance_bp.route("/<grievance_id>/draft-response", methods=["GET"])
def get_draft_response(grievance_id):
    grievance = RecordStore().get_grievance(grievance_id)
    classifier = current_app.extensions["grievance_classifier"]
    return jsonify({"grievanceId": grievance.id, "draft": classifier.draft_response(grievance)}), 200

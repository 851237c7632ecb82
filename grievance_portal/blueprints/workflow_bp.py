"""
Grievance Portal
Workflow blueprint — rule set inspection, editing and dry-run evaluation.

Endpoints:
    GET  /api/v1/workflow/rules       — stored rules, ascending priority
    POST /api/v1/workflow/rules       — create or replace one rule
    POST /api/v1/workflow/evaluate    — dry run, nothing is persisted
"""

import logging

from flask import Blueprint, jsonify

from grievance_portal.blueprints import json_body
from grievance_portal.models.domain import Grievance, User, WorkflowRule, parse_timestamp, utcnow
from grievance_portal.services.record_store import RecordStore
from grievance_portal.services.workflow_engine import WorkflowEngine
from grievance_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflow")


@workflow_bp.route("/rules", methods=["GET"])
def list_rules():
    rules = RecordStore().list_rules()
    return jsonify({"items": [r.to_dict() for r in rules], "total": len(rules)}), 200


@workflow_bp.route("/rules", methods=["POST"])
def save_rule():
    """Body: a workflow rule document. Replaces any rule with the same id."""
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")

    now = utcnow()
    store = RecordStore()
    rule = WorkflowRule.from_dict(data)
    rule.created_at = rule.created_at or now
    rule.updated_at = now
    store.save_rule(rule)
    store.commit()
    logger.info("Workflow rule %s saved (priority=%d enabled=%s)",
                rule.id, rule.priority, rule.enabled, extra={"rule_id": rule.id})
    return jsonify(rule.to_dict()), 200


@workflow_bp.route("/evaluate", methods=["POST"])
def evaluate():
    """Dry-run the rules against a supplied grievance.

    Body: {grievance, rules?, users?, now?, skipApplied?}
          rules / users default to the stored collections.
    Returns: WorkflowResult plus the ids of the matching rules.
    """
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not isinstance(data.get("grievance"), dict):
        return api_error(E.VALIDATION_REQUIRED, "grievance is required")

    store = RecordStore()
    grievance = Grievance.from_dict(data["grievance"])
    rules = ([WorkflowRule.from_dict(r) for r in data["rules"]]
             if isinstance(data.get("rules"), list) else store.list_rules())
    users = ([User.from_dict(u) for u in data["users"]]
             if isinstance(data.get("users"), list) else store.list_users())
    now = parse_timestamp(data["now"], "now") if data.get("now") else utcnow()
    skip_applied = bool(data.get("skipApplied", False))

    matched = WorkflowEngine.find_matching_rules(rules, grievance, users, now=now,
                                                 skip_applied=skip_applied)
    result = WorkflowEngine.apply(rules, grievance, users, now=now, skip_applied=skip_applied)
    return jsonify({**result.to_dict(), "matchedRuleIds": [r.id for r in matched]}), 200

"""
Default workflow rules seeded into a fresh store.

Editable afterwards once staff have been added to the dedicated cells.
"""

from __future__ import annotations

from grievance_portal.models.domain import WorkflowRule

DEFAULT_WORKFLOW_RULES: list[dict] = [
    {
        "id": "rule-academic-general",
        "name": "Academic Cases - Auto Assign to Faculty",
        "description": "Automatically assign general academic grievances to academic cell leads",
        "priority": 1,
        "conditions": [{"field": "category", "operator": "equals", "value": "Academic"}],
        "actions": [{"type": "notify", "notifyEmail": True}],
    },
    {
        "id": "rule-infrastructure-urgent",
        "name": "Infrastructure Cases - Priority Assignment",
        "description": "Escalate high-priority infrastructure issues for immediate action",
        "priority": 2,
        "conditions": [
            {"field": "category", "operator": "equals", "value": "Infrastructure"},
            {"field": "priority", "operator": "equals", "value": "High"},
        ],
        "actions": [
            {"type": "setPriority", "value": "High"},
            {"type": "addTag", "value": "urgent-infrastructure"},
            {"type": "notify", "notifyEmail": True},
        ],
    },
    {
        "id": "rule-hostel-support",
        "name": "Hostel Cases - Support Team Assignment",
        "description": "Route hostel-related grievances to student support team",
        "priority": 3,
        "conditions": [{"field": "category", "operator": "equals", "value": "Hostel"}],
        "actions": [
            {"type": "addTag", "value": "hostel-support"},
            {"type": "notify", "notifyEmail": True},
        ],
    },
    {
        "id": "rule-financial-escalate",
        "name": "Financial Cases - Escalate to Admin",
        "description": "Financial grievances escalated to administrative staff for processing",
        "priority": 4,
        "conditions": [{"field": "category", "operator": "equals", "value": "Financial"}],
        "actions": [
            {"type": "escalate", "targetRole": "Department Administrator"},
            {"type": "notify", "notifyEmail": True},
        ],
    },
    {
        "id": "rule-escalate-unresolved",
        "name": "Escalate Stalled Cases",
        "description": "Auto-escalate grievances unresolved for 3+ days to HOD",
        "priority": 5,
        "conditions": [{"field": "daysUnresolved", "operator": "greaterThan", "value": "3"}],
        "actions": [
            {"type": "escalate", "targetRole": "HOD"},
            {"type": "addTag", "value": "escalated-stalled"},
            {"type": "notify", "notifyEmail": True},
        ],
    },
    {
        "id": "rule-high-priority-all",
        "name": "High Priority Cases - Fast Track",
        "description": "All high-priority grievances tagged for priority handling",
        "priority": 6,
        "conditions": [{"field": "priority", "operator": "equals", "value": "High"}],
        "actions": [{"type": "addTag", "value": "priority-fast-track"}],
    },
    {
        "id": "rule-administrative-tracking",
        "name": "Administrative Cases - Tracking",
        "description": "Administrative grievances tracked for quick resolution",
        "priority": 7,
        "conditions": [{"field": "category", "operator": "equals", "value": "Administrative"}],
        "actions": [
            {"type": "addTag", "value": "admin-case"},
            {"type": "notify", "notifyEmail": True},
        ],
    },
]


def default_rules() -> list[WorkflowRule]:
    return [
        WorkflowRule.from_dict({**doc, "enabled": True, "createdBy": "system"})
        for doc in DEFAULT_WORKFLOW_RULES
    ]

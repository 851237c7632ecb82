"""
Workflow Automation Engine

Declarative condition → action rules applied to grievances.

    - Conditions are AND-combined; there is no OR and no nesting.
    - Matching rules run in ascending ``priority`` order (stable for ties).
    - Each rule's output grievance/assignee feeds the next rule; notifications
      accumulate across the whole pass.
    - Lookup misses (unknown user, no escalation target) are silent no-ops.

Matching is computed once per ``apply()`` call against the grievance as it
was passed in. A rule whose condition depends on an earlier rule's effect
(e.g. a ``setPriority``) only fires on the next ``apply()`` call.

Usage:
    from grievance_portal.services.workflow_engine import WorkflowEngine
    result = WorkflowEngine.apply(rules, grievance, users)
    # -> WorkflowResult(grievance=..., assigned_to=..., notifications=[...])
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from grievance_portal.models.domain import (
    AppNotification,
    AssigneeRef,
    Grievance,
    RuleAction,
    RuleCondition,
    User,
    UserRole,
    WorkflowRule,
    utcnow,
)
from grievance_portal.utils.helpers import round_half_up

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class WorkflowResult:
    """Outcome of executing one rule, or a full orchestration pass."""
    grievance: Grievance
    assigned_to: AssigneeRef | None = None
    notifications: list[AppNotification] = field(default_factory=list)
    applied_rule_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "grievance": self.grievance.to_dict(),
            "assignedTo": self.assigned_to.to_dict() if self.assigned_to else None,
            "notifications": [n.to_dict() for n in self.notifications],
            "appliedRuleIds": list(self.applied_rule_ids),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Condition evaluation
# ═════════════════════════════════════════════════════════════════════════════

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value) -> int | None:
    """Leading-integer parse; None when the value carries no number.

    JSON numbers are floored; strings use their leading integer ("3 days" -> 3).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return math.floor(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    m = _LEADING_INT.match(value)
    return int(m.group(1)) if m else None


def _find_user(users: Iterable[User], user_id: str | None) -> User | None:
    if not user_id:
        return None
    return next((u for u in users if u.id == user_id), None)


def _cond_category(cond: RuleCondition, g: Grievance, users, now) -> bool:
    return cond.operator == "equals" and g.category == cond.value


def _cond_priority(cond: RuleCondition, g: Grievance, users, now) -> bool:
    return cond.operator == "equals" and g.priority == cond.value


def _cond_department(cond: RuleCondition, g: Grievance, users, now) -> bool:
    submitter = _find_user(users, g.user_id)
    if submitter is None or cond.operator != "equals":
        return False
    return submitter.department == cond.value


def _cond_user_role(cond: RuleCondition, g: Grievance, users, now) -> bool:
    submitter = _find_user(users, g.user_id)
    if submitter is None:
        return False
    if cond.operator == "equals":
        return submitter.role == cond.value
    if cond.operator == "includes":
        roles = cond.value if isinstance(cond.value, list) else [cond.value]
        return submitter.role in roles
    return False


def _cond_days_unresolved(cond: RuleCondition, g: Grievance, users, now) -> bool:
    threshold = _parse_int(cond.value)
    if threshold is None:
        return False
    # timedelta.days floors, matching whole elapsed days
    days = (now - g.created_at).days
    if cond.operator == "greaterThan":
        return days > threshold
    if cond.operator == "lessThan":
        return days < threshold
    if cond.operator == "equals":
        return days == threshold
    return False


_CONDITION_EVALUATORS: dict[str, Callable[..., bool]] = {
    "category": _cond_category,
    "priority": _cond_priority,
    "department": _cond_department,
    "userRole": _cond_user_role,
    "daysUnresolved": _cond_days_unresolved,
}


# ═════════════════════════════════════════════════════════════════════════════
# Action execution
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class _ExecutionState:
    rule: WorkflowRule
    source: Grievance        # grievance as handed to execute(); used for messages
    grievance: Grievance     # working copy mutated by actions
    users: list[User]
    now: datetime
    assignee: AssigneeRef | None
    notifications: list[AppNotification] = field(default_factory=list)


def _notify(state: _ExecutionState, user_id: str, message: str) -> None:
    state.notifications.append(AppNotification(
        user_id=user_id,
        message=message,
        type="status_change",
        grievance_id=state.source.id,
        timestamp=state.now,
    ))


def _action_assign(state: _ExecutionState, action: RuleAction) -> None:
    target = _find_user(state.users, action.target_user_id)
    if target is None:
        logger.debug("Rule %s: assign target %s not found, skipped",
                     state.rule.id, action.target_user_id)
        return
    state.assignee = AssigneeRef.from_user(target)
    state.grievance.assigned_to = state.assignee


def _action_escalate(state: _ExecutionState, action: RuleAction) -> None:
    target = next(
        (u for u in state.users
         if u.role == action.target_role and u.role != UserRole.STUDENT.value),
        None,
    )
    if target is None:
        logger.debug("Rule %s: no user with role %r to escalate to, skipped",
                     state.rule.id, action.target_role)
        return
    state.assignee = AssigneeRef.from_user(target)
    g = state.grievance
    g.assigned_to = state.assignee
    g.escalation_count += 1
    g.last_escalated_at = state.now
    _notify(state, target.id, f'Grievance "{state.source.subject}" has been escalated to you')
    logger.info(
        "Grievance %s escalated to %s (%s) by rule %s",
        g.id, target.id, target.role, state.rule.id,
        extra={"grievance_id": g.id, "rule_id": state.rule.id},
    )


def _action_notify(state: _ExecutionState, action: RuleAction) -> None:
    if state.assignee is None:
        return
    _notify(state, state.assignee.id,
            f'Rule "{state.rule.name}" triggered for grievance "{state.source.subject}"')


def _action_set_priority(state: _ExecutionState, action: RuleAction) -> None:
    if action.value:
        state.grievance.priority = action.value


def _action_add_tag(state: _ExecutionState, action: RuleAction) -> None:
    # Appends without dedupe; repeated passes can repeat a tag.
    if action.value:
        state.grievance.tags.append(action.value)


_ACTION_HANDLERS: dict[str, Callable[[_ExecutionState, RuleAction], None]] = {
    "assign": _action_assign,
    "escalate": _action_escalate,
    "notify": _action_notify,
    "setPriority": _action_set_priority,
    "addTag": _action_add_tag,
}


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════

class WorkflowEngine:
    """Rule evaluator, executor and orchestrator."""

    @staticmethod
    def evaluate_condition(
        condition: RuleCondition,
        grievance: Grievance,
        users: list[User],
        *,
        now: datetime | None = None,
    ) -> bool:
        """Evaluate a single condition. Unknown field/operator → False."""
        evaluator = _CONDITION_EVALUATORS.get(condition.field)
        if evaluator is None:
            return False
        return evaluator(condition, grievance, users, now or utcnow())

    @staticmethod
    def matches(
        rule: WorkflowRule,
        grievance: Grievance,
        users: list[User],
        *,
        now: datetime | None = None,
    ) -> bool:
        """True iff the rule is enabled and every condition holds."""
        if not rule.enabled:
            return False
        now = now or utcnow()
        return all(
            WorkflowEngine.evaluate_condition(c, grievance, users, now=now)
            for c in rule.conditions
        )

    @staticmethod
    def find_matching_rules(
        rules: list[WorkflowRule],
        grievance: Grievance,
        users: list[User],
        *,
        now: datetime | None = None,
        skip_applied: bool = False,
    ) -> list[WorkflowRule]:
        """Matching rules sorted by ascending priority (stable for ties)."""
        now = now or utcnow()
        matched = [
            r for r in rules
            if WorkflowEngine.matches(r, grievance, users, now=now)
            and not (skip_applied and r.id in grievance.applied_rules)
        ]
        return sorted(matched, key=lambda r: r.priority)

    @staticmethod
    def execute(
        rule: WorkflowRule,
        grievance: Grievance,
        users: list[User],
        carried_assignee: AssigneeRef | None = None,
        *,
        now: datetime | None = None,
    ) -> WorkflowResult:
        """Apply one rule's actions in declaration order.

        The input grievance is not modified; the result carries an updated
        copy with ``rule.id`` appended to ``appliedRules``.
        """
        state = _ExecutionState(
            rule=rule,
            source=grievance,
            grievance=grievance.copy(),
            users=users,
            now=now or utcnow(),
            assignee=carried_assignee,
        )
        for action in rule.actions:
            handler = _ACTION_HANDLERS.get(action.type)
            if handler is None:
                logger.debug("Rule %s: unknown action type %r ignored", rule.id, action.type)
                continue
            handler(state, action)

        state.grievance.applied_rules.append(rule.id)
        return WorkflowResult(
            grievance=state.grievance,
            assigned_to=state.assignee,
            notifications=state.notifications,
            applied_rule_ids=[rule.id],
        )

    @staticmethod
    def apply(
        rules: list[WorkflowRule],
        grievance: Grievance,
        users: list[User],
        *,
        now: datetime | None = None,
        skip_applied: bool = False,
    ) -> WorkflowResult:
        """Fold every matching rule over the grievance in priority order.

        Args:
            rules: Full rule set (disabled rules are ignored).
            grievance: Grievance to route; not modified.
            users: User directory for submitter lookup and action targets.
            now: Evaluation instant (defaults to current UTC time).
            skip_applied: When True, rules already listed in
                ``grievance.appliedRules`` are not re-applied. Default False
                re-fires every matching rule on every call.

        Returns:
            WorkflowResult with the cumulative grievance, the last assignee
            set by an ``assign``/``escalate`` action (None if none fired) and
            all notifications in evaluation order.
        """
        now = now or utcnow()
        matched = WorkflowEngine.find_matching_rules(
            rules, grievance, users, now=now, skip_applied=skip_applied,
        )
        result = WorkflowResult(grievance=grievance.copy())
        for rule in matched:
            step = WorkflowEngine.execute(rule, result.grievance, users, result.assigned_to, now=now)
            result.grievance = step.grievance
            result.assigned_to = step.assigned_to
            result.notifications.extend(step.notifications)
            result.applied_rule_ids.append(rule.id)

        if matched:
            logger.debug(
                "Grievance %s: applied %d rule(s) %s",
                grievance.id, len(matched), result.applied_rule_ids,
                extra={"grievance_id": grievance.id},
            )
        return result

    @staticmethod
    def escalation_metrics(grievances: list[Grievance]) -> dict:
        """Escalation counters for dashboards."""
        escalated = sum(1 for g in grievances if g.escalation_count > 0)
        total = sum(g.escalation_count for g in grievances)
        average = round_half_up(total / len(grievances), 2) if grievances else 0
        return {
            "escalatedCount": escalated,
            "totalEscalations": total,
            "averageEscalationsPerGrievance": average,
        }

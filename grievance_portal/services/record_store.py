"""
Record store adapter.

Loads grievances, users and workflow rules from the document tables as
domain dataclasses and writes updated documents back.  The engines only
receive the plain collections returned here; callers persist engine output
through ``save_*``.

Usage:
    from grievance_portal.services.record_store import RecordStore
    store = RecordStore()
    result = WorkflowEngine.apply(store.list_rules(), store.get_grievance(gid), store.list_users())
    store.save_grievance(result.grievance)
    store.commit()
"""

from __future__ import annotations

import logging

from grievance_portal.core.exceptions import ConflictError, NotFoundError
from grievance_portal.models import db
from grievance_portal.models.domain import Grievance, RoleRegistry, User, WorkflowRule
from grievance_portal.models.records import GrievanceRecord, UserRecord, WorkflowRuleRecord
from grievance_portal.services.default_rules import default_rules

logger = logging.getLogger(__name__)


class RecordStore:

    def __init__(self, session=None):
        self.session = session or db.session

    # ── Grievances ────────────────────────────────────────────────────────

    def list_grievances(self, *, status: str | None = None, category: str | None = None) -> list[Grievance]:
        q = self.session.query(GrievanceRecord)
        if status:
            q = q.filter(GrievanceRecord.status == status)
        if category:
            q = q.filter(GrievanceRecord.category == category)
        return [Grievance.from_dict(r.data) for r in q.order_by(GrievanceRecord.created_at).all()]

    def get_grievance(self, grievance_id: str) -> Grievance:
        rec = self.session.get(GrievanceRecord, grievance_id)
        if rec is None:
            raise NotFoundError(resource="Grievance", resource_id=grievance_id)
        return Grievance.from_dict(rec.data)

    def create_grievance(self, grievance: Grievance) -> Grievance:
        if self.session.get(GrievanceRecord, grievance.id) is not None:
            raise ConflictError(resource="Grievance", field="id", value=grievance.id)
        return self.save_grievance(grievance)

    def save_grievance(self, grievance: Grievance) -> Grievance:
        rec = self.session.get(GrievanceRecord, grievance.id)
        if rec is None:
            rec = GrievanceRecord(id=grievance.id, created_at=grievance.created_at)
            self.session.add(rec)
        rec.user_id = grievance.user_id
        rec.category = grievance.category
        rec.status = grievance.status
        rec.assignee_id = grievance.assigned_to.id if grievance.assigned_to else None
        rec.data = grievance.to_dict()
        return grievance

    # ── Users ─────────────────────────────────────────────────────────────

    def list_users(self) -> list[User]:
        return [User.from_dict(r.data) for r in self.session.query(UserRecord).all()]

    def get_user(self, user_id: str) -> User:
        rec = self.session.get(UserRecord, user_id)
        if rec is None:
            raise NotFoundError(resource="User", resource_id=user_id)
        return User.from_dict(rec.data)

    def save_user(self, user: User) -> User:
        RoleRegistry.register(user.role)
        rec = self.session.get(UserRecord, user.id)
        if rec is None:
            rec = UserRecord(id=user.id)
            self.session.add(rec)
        rec.role = user.role
        rec.department = user.department
        rec.data = user.to_dict()
        return user

    # ── Workflow rules ────────────────────────────────────────────────────

    def list_rules(self) -> list[WorkflowRule]:
        q = self.session.query(WorkflowRuleRecord).order_by(WorkflowRuleRecord.priority)
        return [WorkflowRule.from_dict(r.data) for r in q.all()]

    def save_rule(self, rule: WorkflowRule) -> WorkflowRule:
        rec = self.session.get(WorkflowRuleRecord, rule.id)
        if rec is None:
            rec = WorkflowRuleRecord(id=rule.id)
            self.session.add(rec)
        rec.priority = rule.priority
        rec.enabled = rule.enabled
        rec.data = rule.to_dict()
        return rule

    def seed_default_rules(self) -> int:
        """Insert the default rule set; rules already present are left untouched."""
        created = 0
        for rule in default_rules():
            if self.session.get(WorkflowRuleRecord, rule.id) is None:
                self.save_rule(rule)
                created += 1
        if created:
            logger.info("Seeded %d default workflow rule(s)", created)
        return created

    # ── Transaction ───────────────────────────────────────────────────────

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

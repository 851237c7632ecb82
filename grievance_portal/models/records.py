"""
Grievance Portal
Document tables backing the record store.

Models:
    - GrievanceRecord: one grievance document + indexed lookup columns
    - UserRecord: one user document
    - WorkflowRuleRecord: one workflow rule document

The camelCase document lives in ``data``; scalar columns duplicate the
fields used for filtering and are refreshed on every save.
"""

from datetime import datetime, timezone

from grievance_portal.models import db


def _now():
    return datetime.now(timezone.utc)


class GrievanceRecord(db.Model):
    __tablename__ = "grievances"

    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    category = db.Column(db.String(50), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, index=True)
    assignee_id = db.Column(db.String(64), nullable=True, index=True)
    data = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self):
        return f"<GrievanceRecord {self.id} [{self.status}]>"


class UserRecord(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(64), primary_key=True)
    role = db.Column(db.String(100), nullable=False, index=True)
    department = db.Column(db.String(100), default="")
    data = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self):
        return f"<UserRecord {self.id} ({self.role})>"


class WorkflowRuleRecord(db.Model):
    __tablename__ = "workflow_rules"

    id = db.Column(db.String(64), primary_key=True)
    priority = db.Column(db.Integer, nullable=False, default=0)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    data = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    def __repr__(self):
        return f"<WorkflowRuleRecord {self.id} p={self.priority}>"

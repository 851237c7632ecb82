"""
Shared pytest fixtures for the Grievance Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - store: RecordStore bound to the test session
    - make_grievance / make_user / make_rule: domain object factories
    - now: fixed evaluation instant (NOW) for engine tests
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from grievance_portal import create_app
from grievance_portal.models import db as _db
from grievance_portal.models.domain import (
    AiInsights,
    AssigneeRef,
    Grievance,
    RoleRegistry,
    User,
    WorkflowRule,
)
from grievance_portal.services.record_store import RecordStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

_seq = itertools.count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
        RoleRegistry.reset_custom()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def store():
    return RecordStore()


# ── Factories ────────────────────────────────────────────────────────────


def _grievance(
    *,
    age_days: float = 0,
    resolved_after_days: float | None = None,
    sentiment: str | None = None,
    assignee: User | None = None,
    now: datetime = NOW,
    **overrides,
) -> Grievance:
    """Build a Grievance created ``age_days`` before ``now``.

    ``resolved_after_days`` sets updatedAt = createdAt + N days.
    """
    created_at = now - timedelta(days=age_days)
    updated_at = created_at + timedelta(days=resolved_after_days or 0)
    fields = {
        "id": f"g-{next(_seq)}",
        "user_id": "std-1",
        "user_name": "Test Student",
        "subject": "Test grievance",
        "description": "Something went wrong",
        "created_at": created_at,
        "updated_at": updated_at,
        "assigned_to": AssigneeRef.from_user(assignee) if assignee else None,
        "ai_insights": AiInsights(sentiment=sentiment) if sentiment else None,
    }
    fields.update(overrides)
    return Grievance(**fields)


def _user(user_id: str, role: str = "Faculty", **overrides) -> User:
    fields = {
        "id": user_id,
        "name": f"User {user_id}",
        "role": role,
        "email": f"{user_id}@asmedu.org",
        "department": "Computer Engineering",
    }
    fields.update(overrides)
    return User(**fields)


def _rule(rule_id: str, conditions=(), actions=(), priority: int = 1, enabled: bool = True,
          name: str | None = None) -> WorkflowRule:
    return WorkflowRule.from_dict({
        "id": rule_id,
        "name": name or f"Rule {rule_id}",
        "priority": priority,
        "enabled": enabled,
        "conditions": list(conditions),
        "actions": list(actions),
    })


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def make_grievance():
    return _grievance


@pytest.fixture()
def make_user():
    return _user


@pytest.fixture()
def make_rule():
    return _rule

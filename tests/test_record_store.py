"""
pytest for the record store adapter.
"""

import pytest

from grievance_portal.core.exceptions import ConflictError, NotFoundError
from grievance_portal.models.domain import RoleRegistry
from grievance_portal.services.default_rules import DEFAULT_WORKFLOW_RULES


class TestGrievances:

    def test_create_and_get(self, store, make_grievance):
        g = make_grievance(id="g-1", tags=["x"])
        store.create_grievance(g)
        store.commit()
        loaded = store.get_grievance("g-1")
        assert loaded.to_dict() == g.to_dict()

    def test_duplicate_create(self, store, make_grievance):
        store.create_grievance(make_grievance(id="g-1"))
        store.commit()
        with pytest.raises(ConflictError):
            store.create_grievance(make_grievance(id="g-1"))

    def test_missing(self, store):
        with pytest.raises(NotFoundError):
            store.get_grievance("nope")

    def test_save_updates_index_columns(self, store, make_grievance):
        g = make_grievance(id="g-1", status="Pending")
        store.save_grievance(g)
        store.commit()
        g.status = "In Progress"
        store.save_grievance(g)
        store.commit()
        assert [x.id for x in store.list_grievances(status="In Progress")] == ["g-1"]
        assert store.list_grievances(status="Pending") == []

    def test_listed_oldest_first(self, store, make_grievance):
        store.save_grievance(make_grievance(id="g-new", age_days=1))
        store.save_grievance(make_grievance(id="g-old", age_days=5))
        store.commit()
        assert [g.id for g in store.list_grievances()] == ["g-old", "g-new"]


class TestUsersAndRules:

    def test_save_user_registers_custom_role(self, store, make_user):
        store.save_user(make_user("w-1", role="Hostel Warden"))
        store.commit()
        assert RoleRegistry.is_known("Hostel Warden")
        assert store.get_user("w-1").role == "Hostel Warden"

    def test_missing_user(self, store):
        with pytest.raises(NotFoundError):
            store.get_user("ghost")

    def test_seed_default_rules_is_idempotent(self, store, make_rule):
        store.save_rule(make_rule("rule-hostel-support", priority=99, name="Edited"))
        store.commit()
        assert store.seed_default_rules() == len(DEFAULT_WORKFLOW_RULES) - 1
        store.commit()
        assert store.seed_default_rules() == 0
        edited = next(r for r in store.list_rules() if r.id == "rule-hostel-support")
        assert edited.name == "Edited"

    def test_rules_ordered_by_priority(self, store, make_rule):
        store.save_rule(make_rule("b", priority=5))
        store.save_rule(make_rule("a", priority=2))
        store.commit()
        assert [r.id for r in store.list_rules()] == ["a", "b"]

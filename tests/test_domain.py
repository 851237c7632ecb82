"""
pytest for the domain model: role registry, document parsing and
wire-format serialisation.
"""

from datetime import timedelta

import pytest

from grievance_portal.core.exceptions import ValidationError
from grievance_portal.models.domain import (
    AppNotification,
    Grievance,
    RoleRegistry,
    User,
    WorkflowRule,
    isoformat,
    parse_timestamp,
)


def _doc(**overrides):
    doc = {
        "id": "g-1",
        "userId": "std-1",
        "userName": "Asha",
        "subject": "WiFi down",
        "description": "No wifi in block B",
        "category": "Infrastructure",
        "priority": "High",
        "status": "Pending",
        "createdAt": "2025-02-20T10:00:00Z",
        "updatedAt": "2025-02-21T10:00:00Z",
    }
    doc.update(overrides)
    return doc


class TestRoleRegistry:

    def test_builtin_roles_known(self):
        assert RoleRegistry.is_known("Registrar")
        assert not RoleRegistry.is_known("Warden")

    def test_register_custom_role(self):
        assert RoleRegistry.register("  Hostel   Warden ") == "Hostel Warden"
        assert RoleRegistry.is_known("Hostel Warden")
        assert RoleRegistry.all_roles()[-1] == "Hostel Warden"

    def test_builtin_not_duplicated_as_custom(self):
        RoleRegistry.register("Dean")
        assert RoleRegistry.all_roles().count("Dean") == 1

    @pytest.mark.parametrize("bad", ["", "   ", None, 7])
    def test_validate_rejects_empty(self, bad):
        with pytest.raises(ValidationError):
            RoleRegistry.validate(bad)

    def test_only_students_are_not_staff(self):
        assert not RoleRegistry.is_staff("Student")
        assert RoleRegistry.is_staff("Hostel Warden")


class TestTimestamps:

    def test_z_suffix_parsed_as_utc(self):
        dt = parse_timestamp("2025-03-01T12:00:00Z")
        assert dt.utcoffset() == timedelta(0)
        assert isoformat(dt) == "2025-03-01T12:00:00Z"

    def test_offsets_normalised(self):
        assert isoformat(parse_timestamp("2025-03-01T17:30:00+05:30")) == "2025-03-01T12:00:00Z"

    def test_naive_taken_as_utc(self):
        assert isoformat(parse_timestamp("2025-03-01T12:00:00")) == "2025-03-01T12:00:00Z"

    @pytest.mark.parametrize("bad", ["yesterday", "", None])
    def test_invalid(self, bad):
        with pytest.raises(ValidationError):
            parse_timestamp(bad, "createdAt")


class TestGrievanceDocument:

    def test_round_trip(self):
        doc = _doc(assignedTo={"id": "fac-1", "name": "Dr. Rao"},
                   aiInsights={"sentiment": "Negative", "summary": "s", "suggestedAction": "a"},
                   tags=["urgent"])
        g = Grievance.from_dict(doc)
        out = g.to_dict()
        for key in ("id", "userId", "category", "priority", "status", "createdAt", "updatedAt", "tags"):
            assert out[key] == doc[key]
        assert out["assignedTo"] == {"id": "fac-1", "name": "Dr. Rao"}
        assert g.sentiment == "Negative"

    def test_defaults(self):
        g = Grievance.from_dict({"id": "g-2", "userId": "u", "createdAt": "2025-03-01T00:00:00Z"})
        assert (g.status, g.priority, g.category, g.user_role) == \
            ("Pending", "Medium", "General", "Student")
        assert g.updated_at == g.created_at
        assert g.escalation_count == 0
        assert g.sentiment is None

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            Grievance.from_dict(_doc(status="Closed"))

    def test_unknown_priority_rejected(self):
        with pytest.raises(ValidationError):
            Grievance.from_dict(_doc(priority="Critical"))

    def test_updated_before_created_rejected(self):
        with pytest.raises(ValidationError):
            Grievance.from_dict(_doc(updatedAt="2025-02-19T10:00:00Z"))

    def test_missing_user_id_rejected(self):
        doc = _doc()
        del doc["userId"]
        with pytest.raises(ValidationError):
            Grievance.from_dict(doc)

    def test_copy_detaches_lists(self, make_grievance):
        g = make_grievance(tags=["a"])
        c = g.copy()
        c.tags.append("b")
        assert g.tags == ["a"]

    def test_resolution_days(self, make_grievance):
        assert make_grievance(age_days=5, resolved_after_days=2).resolution_days() == 2


class TestUserAndRule:

    def test_user_requires_role(self):
        with pytest.raises(ValidationError):
            User.from_dict({"id": "u1", "name": "X"})

    def test_user_custom_role_accepted(self):
        u = User.from_dict({"id": "u1", "name": "X", "role": "Hostel Warden",
                            "assignedCategory": "Hostel"})
        assert u.is_staff
        assert u.to_dict()["assignedCategory"] == "Hostel"

    def test_rule_priority_coerced(self):
        rule = WorkflowRule.from_dict({"id": "r1", "name": "R", "priority": "3"})
        assert rule.priority == 3
        assert rule.enabled is True

    def test_rule_priority_must_be_integer(self):
        with pytest.raises(ValidationError):
            WorkflowRule.from_dict({"id": "r1", "priority": "high"})

    def test_rule_round_trip(self):
        doc = {
            "id": "r1", "name": "Hostel", "priority": 5, "enabled": False,
            "conditions": [{"field": "category", "operator": "equals", "value": "Hostel"}],
            "actions": [{"type": "assign", "targetRole": "Faculty", "notifyEmail": True}],
        }
        out = WorkflowRule.from_dict(doc).to_dict()
        assert out["conditions"] == doc["conditions"]
        assert out["actions"] == doc["actions"]
        assert out["enabled"] is False


class TestNotification:

    def test_wire_shape(self, now):
        n = AppNotification(user_id="std-1", message="hi", grievance_id="g-1", timestamp=now)
        d = n.to_dict()
        assert d["grievanceId"] == "g-1"
        assert d["timestamp"] == "2025-03-01T12:00:00Z"
        assert d["read"] is False
        assert "grievanceId" not in AppNotification(user_id="u", message="m").to_dict()


class TestRuleDocumentValidation:

    @pytest.mark.parametrize("raw,expected", [
        ("false", False), ("False", False), ("0", False), (0, False),
        ("true", True), (1, True), (None, True), (False, False),
    ])
    def test_enabled_spellings(self, raw, expected):
        doc = {"id": "r1", "priority": 1}
        if raw is not None:
            doc["enabled"] = raw
        assert WorkflowRule.from_dict(doc).enabled is expected

    @pytest.mark.parametrize("raw", ["maybe", 2, [True]])
    def test_enabled_rejects_non_boolean(self, raw):
        with pytest.raises(ValidationError):
            WorkflowRule.from_dict({"id": "r1", "priority": 1, "enabled": raw})

    def test_notify_email_string_false(self):
        rule = WorkflowRule.from_dict({"id": "r1", "priority": 1,
                                       "actions": [{"type": "notify", "notifyEmail": "false"}]})
        assert rule.actions[0].notify_email is False

    @pytest.mark.parametrize("key,value", [
        ("conditions", ["category"]),
        ("conditions", {"field": "category"}),
        ("actions", [None]),
        ("actions", "assign"),
    ])
    def test_non_object_entries_rejected(self, key, value):
        with pytest.raises(ValidationError):
            WorkflowRule.from_dict({"id": "r1", "priority": 1, key: value})

"""
pytest for the grievance, workflow and health HTTP endpoints.

Runs against the testing config: in-memory SQLite, rate limits off and no
GEMINI_API_KEY, so submissions go through the keyword classifier.
"""

import pytest

from grievance_portal.services.default_rules import default_rules


def _submit(client, **overrides):
    body = {
        "userId": "std-1",
        "subject": "Hostel mess",
        "description": "The mess food is the worst this week",
    }
    body.update(overrides)
    return client.post("/api/v1/grievances", json=body)


@pytest.fixture()
def seeded(store, make_user):
    """Default rules plus a small directory of users."""
    store.seed_default_rules()
    store.save_user(make_user("std-1", role="Student", name="Asha", department="Civil"))
    store.save_user(make_user("adm-1", role="Department Administrator", name="Meera"))
    store.save_user(make_user("fac-hostel", assigned_category="Hostel"))
    store.commit()
    return store


# ═══════════════════════════════════════════════════════════════════════════
# 1 · Submission
# ═══════════════════════════════════════════════════════════════════════════

class TestSubmit:

    def test_keyword_classification(self, client):
        res = _submit(client, userName="Walk-in")
        assert res.status_code == 201
        data = res.get_json()
        g = data["grievance"]
        assert g["status"] == "Pending"
        assert g["category"] == "Hostel"
        assert g["userName"] == "Walk-in"
        assert g["userRole"] == "Student"
        assert g["aiInsights"]["sentiment"] == "Negative"
        assert data["appliedRuleIds"] == []

    def test_persisted(self, client):
        gid = _submit(client).get_json()["grievance"]["id"]
        res = client.get(f"/api/v1/grievances/{gid}")
        assert res.status_code == 200
        assert res.get_json()["subject"] == "Hostel mess"

    def test_known_user_and_escalation_rule(self, client, seeded):
        res = _submit(client, subject="Refund", description="My fee refund is still pending")
        data = res.get_json()
        g = data["grievance"]
        assert g["category"] == "Financial"
        assert g["userName"] == "Asha"
        assert g["assignedTo"]["id"] == "adm-1"
        assert g["escalationCount"] == 1
        assert data["appliedRuleIds"] == ["rule-financial-escalate"]
        assert [n["userId"] for n in data["notifications"]] == ["adm-1", "adm-1"]

    def test_category_override(self, client):
        g = _submit(client, category="Administrative").get_json()["grievance"]
        assert g["category"] == "Administrative"

    def test_unknown_category_override(self, client):
        res = _submit(client, category="Sports")
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"

    @pytest.mark.parametrize("missing", ["userId", "subject", "description"])
    def test_required_fields(self, client, missing):
        res = _submit(client, **{missing: "  "})
        assert res.status_code == 422
        assert missing in res.get_json()["error"]

    def test_subject_too_long(self, client):
        assert _submit(client, subject="x" * 201).status_code == 422

    def test_non_json_body(self, client):
        res = client.post("/api/v1/grievances", data="hello", content_type="text/plain")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


# ═══════════════════════════════════════════════════════════════════════════
# 2 · Listing & lookup
# ═══════════════════════════════════════════════════════════════════════════

class TestListing:

    def test_filters(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-p", category="Hostel"))
        store.save_grievance(make_grievance(id="g-r", category="Academic", status="Resolved",
                                            age_days=3, resolved_after_days=1))
        store.commit()

        assert client.get("/api/v1/grievances").get_json()["total"] == 2
        pending = client.get("/api/v1/grievances?status=Pending").get_json()
        assert [g["id"] for g in pending["items"]] == ["g-p"]
        academic = client.get("/api/v1/grievances?category=Academic").get_json()
        assert [g["id"] for g in academic["items"]] == ["g-r"]

    def test_unknown_filter_value(self, client):
        assert client.get("/api/v1/grievances?status=Closed").status_code == 400

    def test_not_found_envelope(self, client):
        res = client.get("/api/v1/grievances/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_unknown_route_envelope(self, client):
        res = client.get("/api/v1/nothing-here")
        assert res.status_code == 404
        assert res.get_json()["details"] == {"path": "/api/v1/nothing-here"}

    def test_overdue(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-late"))
        store.save_grievance(make_grievance(id="g-done", status="Resolved", resolved_after_days=1))
        store.commit()
        data = client.get("/api/v1/grievances/overdue").get_json()
        assert data["slaHours"] == 24
        assert [g["id"] for g in data["items"]] == ["g-late"]

    def test_overdue_bad_sla(self, client):
        assert client.get("/api/v1/grievances/overdue?sla_hours=-1").status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# 3 · Lifecycle & workflow
# ═══════════════════════════════════════════════════════════════════════════

class TestStatus:

    @pytest.fixture()
    def gid(self, store, make_grievance):
        store.save_grievance(make_grievance(id="g-1", subject="Broken fan"))
        store.commit()
        return "g-1"

    def test_status_change_notifies_submitter(self, client, gid):
        res = client.patch(f"/api/v1/grievances/{gid}/status", json={"status": "In Progress"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["grievance"]["status"] == "In Progress"
        assert data["notification"]["userId"] == "std-1"
        assert data["notification"]["message"] == 'Your grievance "Broken fan" is now In Progress'

    def test_unchanged_status_has_no_notification(self, client, gid):
        res = client.patch(f"/api/v1/grievances/{gid}/status", json={"status": "Pending"})
        assert res.get_json()["notification"] is None

    def test_unknown_status(self, client, gid):
        assert client.patch(f"/api/v1/grievances/{gid}/status",
                            json={"status": "Closed"}).status_code == 422

    def test_missing_status(self, client, gid):
        assert client.patch(f"/api/v1/grievances/{gid}/status", json={}).status_code == 400

    def test_unknown_grievance(self, client):
        assert client.patch("/api/v1/grievances/nope/status",
                            json={"status": "Resolved"}).status_code == 404


class TestReplies:

    @pytest.fixture()
    def gid(self, store, make_grievance, make_user):
        store.save_user(make_user("fac-1", name="Dr. Rao"))
        store.save_grievance(make_grievance(id="g-1", subject="Broken fan", age_days=2))
        store.commit()
        return "g-1"

    def test_staff_reply_notifies_submitter(self, client, gid):
        res = client.post(f"/api/v1/grievances/{gid}/replies",
                          json={"text": "Electrician booked", "authorId": "fac-1"})
        assert res.status_code == 201
        data = res.get_json()
        assert data["reply"]["authorName"] == "Dr. Rao"
        assert data["reply"]["authorRole"] == "Faculty"
        assert data["notification"]["type"] == "reply"
        assert data["notification"]["userId"] == "std-1"
        assert data["notification"]["grievanceId"] == gid

        stored = client.get(f"/api/v1/grievances/{gid}").get_json()
        assert [r["text"] for r in stored["replies"]] == ["Electrician booked"]
        assert stored["updatedAt"] > stored["createdAt"]

    def test_anonymous_author_defaults(self, client, gid):
        reply = client.post(f"/api/v1/grievances/{gid}/replies",
                            json={"text": "Noted"}).get_json()["reply"]
        assert (reply["authorName"], reply["authorRole"]) == ("System", "Staff")

    def test_submitter_reply_has_no_notification(self, client, gid):
        data = client.post(f"/api/v1/grievances/{gid}/replies",
                           json={"text": "Still broken", "authorId": "std-1"}).get_json()
        assert data["notification"] is None

    def test_replies_accumulate(self, client, gid):
        for text in ("first", "second"):
            client.post(f"/api/v1/grievances/{gid}/replies", json={"text": text})
        stored = client.get(f"/api/v1/grievances/{gid}").get_json()
        assert [r["text"] for r in stored["replies"]] == ["first", "second"]

    def test_text_required(self, client, gid):
        res = client.post(f"/api/v1/grievances/{gid}/replies", json={"text": " "})
        assert res.status_code == 422

    def test_unknown_grievance(self, client):
        assert client.post("/api/v1/grievances/nope/replies",
                           json={"text": "hi"}).status_code == 404


class TestFeedback:

    def test_rating_on_resolved(self, client, store, make_grievance):
        g = make_grievance(id="g-r", status="Resolved", age_days=5, resolved_after_days=2)
        store.save_grievance(g)
        store.commit()
        res = client.post("/api/v1/grievances/g-r/feedback",
                          json={"rating": 4, "feedback": " Quick fix "})
        assert res.status_code == 200
        data = res.get_json()
        assert (data["rating"], data["feedback"]) == (4, "Quick fix")
        assert data["updatedAt"] == g.to_dict()["updatedAt"]

    def test_rejected_unless_resolved(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-p"))
        store.commit()
        res = client.post("/api/v1/grievances/g-p/feedback", json={"rating": 5})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"status": "Pending"}

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "5", True])
    def test_rating_range(self, client, store, make_grievance, rating):
        store.save_grievance(make_grievance(id="g-r", status="Resolved", resolved_after_days=1))
        store.commit()
        res = client.post("/api/v1/grievances/g-r/feedback", json={"rating": rating})
        assert res.status_code == 422

    def test_rating_required(self, client):
        assert client.post("/api/v1/grievances/g-r/feedback", json={}).status_code == 400


class TestWorkflowRerun:

    def test_rerun_persists_and_repeats(self, client, seeded, make_grievance):
        seeded.save_grievance(make_grievance(id="g-h", category="Hostel"))
        seeded.commit()

        first = client.post("/api/v1/grievances/g-h/workflow").get_json()
        assert "rule-hostel-support" in first["appliedRuleIds"]
        stored = client.get("/api/v1/grievances/g-h").get_json()
        assert stored["tags"].count("hostel-support") == 1

        client.post("/api/v1/grievances/g-h/workflow")
        stored = client.get("/api/v1/grievances/g-h").get_json()
        assert stored["tags"].count("hostel-support") == 2

    def test_skip_applied(self, client, seeded, make_grievance):
        seeded.save_grievance(make_grievance(id="g-h", category="Hostel"))
        seeded.commit()
        client.post("/api/v1/grievances/g-h/workflow")
        again = client.post("/api/v1/grievances/g-h/workflow?skip_applied=true").get_json()
        assert again["appliedRuleIds"] == []


# ═══════════════════════════════════════════════════════════════════════════
# 4 · Advisory endpoints
# ═══════════════════════════════════════════════════════════════════════════

class TestAdvisory:

    def test_prediction(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-1", priority="High"))
        store.commit()
        data = client.get("/api/v1/grievances/g-1/prediction").get_json()
        assert data["grievanceId"] == "g-1"
        assert data["factors"]["priorityFactor"] == 0.7

    def test_assignees(self, client, seeded, make_grievance):
        seeded.save_grievance(make_grievance(id="g-h", category="Hostel"))
        seeded.commit()
        data = client.get("/api/v1/grievances/g-h/assignees").get_json()
        assert [u["id"] for u in data["eligible"]] == ["fac-hostel"]
        assert data["eligible"][0]["workload"] == 0
        assert data["leastBusy"]["id"] == "fac-hostel"

    def test_draft_response_template(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-1", user_name="Ravi"))
        store.commit()
        data = client.get("/api/v1/grievances/g-1/draft-response").get_json()
        assert data["grievanceId"] == "g-1"
        assert data["draft"].startswith("Dear Ravi,")


# ═══════════════════════════════════════════════════════════════════════════
# 5 · Workflow rules
# ═══════════════════════════════════════════════════════════════════════════

class TestRules:

    def test_list_sorted_by_priority(self, client, seeded):
        data = client.get("/api/v1/workflow/rules").get_json()
        assert data["total"] == len(default_rules())
        priorities = [r["priority"] for r in data["items"]]
        assert priorities == sorted(priorities)

    def test_save_rule(self, client):
        rule = {
            "id": "rule-custom", "name": "Custom", "priority": 9,
            "conditions": [{"field": "category", "operator": "equals", "value": "General"}],
            "actions": [{"type": "addTag", "value": "general"}],
        }
        res = client.post("/api/v1/workflow/rules", json=rule)
        assert res.status_code == 200
        assert res.get_json()["createdAt"] is not None
        items = client.get("/api/v1/workflow/rules").get_json()["items"]
        assert [r["id"] for r in items] == ["rule-custom"]

    def test_save_rule_replaces(self, client):
        client.post("/api/v1/workflow/rules", json={"id": "r1", "name": "A", "priority": 1})
        client.post("/api/v1/workflow/rules", json={"id": "r1", "name": "B", "priority": 2})
        items = client.get("/api/v1/workflow/rules").get_json()["items"]
        assert [(r["id"], r["name"]) for r in items] == [("r1", "B")]

    def test_invalid_priority(self, client):
        res = client.post("/api/v1/workflow/rules", json={"id": "r1", "priority": "high"})
        assert res.status_code == 422

    def test_non_object_condition(self, client):
        res = client.post("/api/v1/workflow/rules",
                          json={"id": "r1", "priority": 1, "conditions": ["category"]})
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"

    def test_string_false_disables_rule(self, client):
        client.post("/api/v1/workflow/rules", json={"id": "r1", "priority": 1, "enabled": "false"})
        assert client.get("/api/v1/workflow/rules").get_json()["items"][0]["enabled"] is False

    def test_numeric_days_threshold_fires(self, client, store, make_grievance):
        store.save_grievance(make_grievance(id="g-old", age_days=5))
        store.commit()
        client.post("/api/v1/workflow/rules", json={
            "id": "r-stalled", "priority": 1,
            "conditions": [{"field": "daysUnresolved", "operator": "greaterThan", "value": 3}],
            "actions": [{"type": "addTag", "value": "stalled"}],
        })
        data = client.post("/api/v1/grievances/g-old/workflow").get_json()
        assert data["appliedRuleIds"] == ["r-stalled"]
        assert data["grievance"]["tags"] == ["stalled"]


class TestEvaluate:

    def _grievance(self):
        return {
            "id": "g-x", "userId": "std-1", "category": "Hostel", "priority": "High",
            "createdAt": "2025-03-01T10:00:00Z",
        }

    def test_dry_run_with_supplied_rules(self, client):
        body = {
            "grievance": self._grievance(),
            "now": "2025-03-01T12:00:00Z",
            "rules": [
                {"id": "b", "name": "B", "priority": 2,
                 "conditions": [{"field": "priority", "operator": "equals", "value": "High"}],
                 "actions": [{"type": "addTag", "value": "fast"}]},
                {"id": "a", "name": "A", "priority": 1,
                 "conditions": [{"field": "category", "operator": "equals", "value": "Hostel"}],
                 "actions": [{"type": "addTag", "value": "hostel"}]},
            ],
            "users": [],
        }
        data = client.post("/api/v1/workflow/evaluate", json=body).get_json()
        assert data["matchedRuleIds"] == ["a", "b"]
        assert data["grievance"]["tags"] == ["hostel", "fast"]
        assert data["assignedTo"] is None
        assert client.get("/api/v1/grievances/g-x").status_code == 404

    def test_defaults_to_stored_rules(self, client, seeded):
        body = {"grievance": self._grievance(), "now": "2025-03-01T12:00:00Z"}
        data = client.post("/api/v1/workflow/evaluate", json=body).get_json()
        assert data["matchedRuleIds"] == ["rule-hostel-support", "rule-high-priority-all"]

    def test_missing_grievance(self, client):
        res = client.post("/api/v1/workflow/evaluate", json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_invalid_grievance(self, client):
        body = {"grievance": {**self._grievance(), "status": "Closed"}}
        assert client.post("/api/v1/workflow/evaluate", json=body).status_code == 422


# ═══════════════════════════════════════════════════════════════════════════
# 6 · Health
# ═══════════════════════════════════════════════════════════════════════════

class TestHealth:

    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        data = client.get("/api/v1/health/live").get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["classifier"]["status"] == "keyword"

    def test_request_id_header(self, client):
        res = client.get("/api/v1/grievances", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers

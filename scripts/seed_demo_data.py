#!/usr/bin/env python3
"""
Grievance Portal — Demo Data Seed Script.

Institution: ASM Nextgen Technical Campus
Seeds the default workflow rules, a small staff directory and a handful of
grievances spread across categories and statuses so the analytics
dashboards have something to show.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --append
    python scripts/seed_demo_data.py --verbose
"""

import argparse
import sys
from datetime import timedelta

sys.path.insert(0, ".")

from grievance_portal import create_app
from grievance_portal.models import db
from grievance_portal.models.domain import AiInsights, AssigneeRef, Grievance, User, utcnow
from grievance_portal.models.records import GrievanceRecord, UserRecord, WorkflowRuleRecord
from grievance_portal.services.record_store import RecordStore

USERS = [
    {"id": "std-d39qj", "name": "Yogesh Shepal", "email": "yogesh@asmedu.org", "role": "Student",
     "department": "Computer Engineering", "studentClass": "TE-A"},
    {"id": "std-k21pa", "name": "Ananya Rao", "email": "ananya@asmedu.org", "role": "Student",
     "department": "Mechanical Engineering", "studentClass": "SE-B"},
    {"id": "faculty-001", "name": "Infrastructure Cell Lead", "email": "infra@asmedu.org",
     "role": "Faculty", "department": "Administration", "assignedCategory": "Infrastructure"},
    {"id": "faculty-002", "name": "Academic Cell Lead", "email": "academic@asmedu.org",
     "role": "Faculty", "department": "Computer Engineering", "assignedCategory": "Academic"},
    {"id": "hod-ce", "name": "HOD Computer Engineering", "email": "hod.ce@asmedu.org",
     "role": "HOD", "department": "Computer Engineering"},
    {"id": "admin-fin", "name": "Accounts Office", "email": "accounts@asmedu.org",
     "role": "Department Administrator", "department": "Administration", "assignedCategory": "Financial"},
]

# (id, user, subject, category, priority, status, sentiment, age_days, resolved_after_days, assignee)
GRIEVANCES = [
    ("g-demo-01", "std-d39qj", "Canteen cleanliness concern", "Infrastructure", "Medium",
     "Pending", "Negative", 1, None, "faculty-001"),
    ("g-demo-02", "std-d39qj", "Exam marks not updated on ERP", "Academic", "High",
     "In Progress", "Negative", 5, None, "faculty-002"),
    ("g-demo-03", "std-k21pa", "Scholarship refund delayed", "Financial", "High",
     "Resolved", "Neutral", 20, 6, "admin-fin"),
    ("g-demo-04", "std-k21pa", "Hostel room fan not working", "Hostel", "Low",
     "Resolved", "Neutral", 12, 2, None),
    ("g-demo-05", "std-d39qj", "Bonafide certificate request", "Administrative", "Medium",
     "Rejected", "Positive", 9, 1, None),
    ("g-demo-06", "std-k21pa", "Lab computers very slow", "Infrastructure", "Medium",
     "Resolved", "Negative", 15, 4, "faculty-001"),
]


def _build_grievance(row, users_by_id, now) -> Grievance:
    gid, uid, subject, category, priority, status, sentiment, age, resolved_after, assignee = row
    user = users_by_id[uid]
    created = now - timedelta(days=age)
    updated = created + timedelta(days=resolved_after) if resolved_after is not None else created
    return Grievance(
        id=gid,
        user_id=uid,
        user_name=user.name,
        user_role=user.role,
        subject=subject,
        description=subject,
        category=category,
        priority=priority,
        status=status,
        created_at=created,
        updated_at=updated,
        assigned_to=AssigneeRef.from_user(users_by_id[assignee]) if assignee else None,
        ai_insights=AiInsights(sentiment=sentiment, summary=subject[:60],
                               suggested_action=f"Review and address the {category.lower()} concern promptly."),
    )


def seed_all(app, append=False, verbose=False):
    with app.app_context():
        if not append:
            print("🗑️  Clearing existing data...")
            for model in (GrievanceRecord, UserRecord, WorkflowRuleRecord):
                db.session.query(model).delete()
            db.session.commit()

        store = RecordStore()
        now = utcnow()

        rule_count = store.seed_default_rules()
        print(f"   ✅ {rule_count} workflow rules")

        users = [User.from_dict(u) for u in USERS]
        for user in users:
            store.save_user(user)
            if verbose:
                print(f"      {user.id:<12} {user.role}")
        print(f"   ✅ {len(users)} users")

        users_by_id = {u.id: u for u in users}
        for row in GRIEVANCES:
            store.save_grievance(_build_grievance(row, users_by_id, now))
        print(f"   ✅ {len(GRIEVANCES)} grievances")

        store.commit()

        total = rule_count + len(users) + len(GRIEVANCES)
        print(f"\n{'='*60}")
        print(f"🎉 DEMO DATA SEED COMPLETE — {total} records")
        print(f"{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--append", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"🎯 DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        db.create_all()
    seed_all(app, append=args.append, verbose=args.verbose)


if __name__ == "__main__":
    main()

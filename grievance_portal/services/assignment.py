"""
Assignment Advisor

Stateless helpers for routing a grievance to staff: workload balancing,
eligible-assignee resolution and the SLA escalation check.

Usage:
    from grievance_portal.services.assignment import AssignmentAdvisor
    candidates = AssignmentAdvisor.eligible_assignees(grievance, users)
    lead = AssignmentAdvisor.least_busy_member(candidates, grievances)
"""

from __future__ import annotations

from datetime import datetime

from grievance_portal.models.domain import (
    CLOSED_STATUSES,
    Grievance,
    User,
    utcnow,
)

DEFAULT_SLA_HOURS = 24


class AssignmentAdvisor:

    @staticmethod
    def workload(member: User, grievances: list[Grievance]) -> int:
        """Active (Pending / In Progress) grievances assigned to the member."""
        return sum(
            1 for g in grievances
            if g.assigned_to is not None and g.assigned_to.id == member.id and g.is_active
        )

    @staticmethod
    def least_busy_member(candidates: list[User], grievances: list[Grievance]) -> User | None:
        """Candidate with the fewest active assignments; first one wins ties."""
        best: User | None = None
        best_count = 0
        for member in candidates:
            count = AssignmentAdvisor.workload(member, grievances)
            if best is None or count < best_count:
                best, best_count = member, count
        return best

    @staticmethod
    def eligible_assignees(grievance: Grievance, users: list[User]) -> list[User]:
        """Staff eligible for a grievance.

        Fallback order:
            1. staff owning the grievance's category cell
            2. staff in the submitter's department
            3. all staff
        """
        staff = [u for u in users if u.is_staff]

        by_category = [u for u in staff if u.assigned_category == grievance.category]
        if by_category:
            return by_category

        submitter = next((u for u in users if u.id == grievance.user_id), None)
        if submitter is not None:
            by_department = [u for u in staff if u.department == submitter.department]
            if by_department:
                return by_department

        return staff

    @staticmethod
    def needs_escalation(
        grievance: Grievance,
        sla_hours: float = DEFAULT_SLA_HOURS,
        *,
        now: datetime | None = None,
    ) -> bool:
        """True when an open grievance has been waiting longer than the SLA."""
        if grievance.status in CLOSED_STATUSES:
            return False
        elapsed_hours = ((now or utcnow()) - grievance.created_at).total_seconds() / 3600
        return elapsed_hours > sla_hours

    @staticmethod
    def overdue(
        grievances: list[Grievance],
        sla_hours: float = DEFAULT_SLA_HOURS,
        *,
        now: datetime | None = None,
    ) -> list[Grievance]:
        now = now or utcnow()
        return [g for g in grievances if AssignmentAdvisor.needs_escalation(g, sla_hours, now=now)]

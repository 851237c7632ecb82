"""Grievance intake and lifecycle service layer.

Submission, status changes, replies, feedback and workflow re-runs.
Loads the collections the engines need from the record store, runs the
pure engines, and writes the result back.

Rules:
  - store.commit() happens only in this file.
  - Classification never blocks a submission (see GrievanceClassifier).
"""

from __future__ import annotations

import logging
from datetime import datetime

from grievance_portal.ai.classifier import GrievanceClassifier
from grievance_portal.core.exceptions import NotFoundError, ValidationError
from grievance_portal.models.domain import (
    CATEGORY_VALUES,
    STATUS_VALUES,
    AiInsights,
    AppNotification,
    Grievance,
    GrievanceStatus,
    UserRole,
    isoformat,
    new_id,
    utcnow,
)
from grievance_portal.services.record_store import RecordStore
from grievance_portal.services.workflow_engine import WorkflowEngine, WorkflowResult

logger = logging.getLogger(__name__)

SUBJECT_MAX_LEN = 200


def _required_text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required", details={key: value})
    return value.strip()


# ── Submission ────────────────────────────────────────────────────────────────


def submit_grievance(
    data: dict,
    classifier: GrievanceClassifier,
    *,
    store: RecordStore | None = None,
    skip_applied: bool = False,
    now: datetime | None = None,
) -> WorkflowResult:
    """Create a grievance, enrich it, route it through the workflow rules.

    Args:
        data: Request body with keys: userId, subject, description,
              userName?, userRole?, category?, attachments?.
              A known userId fills userName/userRole from the user record.
        classifier: Category / priority / sentiment enrichment.
        skip_applied: Forwarded to WorkflowEngine.apply().

    Returns:
        WorkflowResult with the persisted grievance and the notifications
        produced by the rules.

    Raises:
        ValidationError: Missing userId / subject / description, or an
                         unknown category override.
    """
    store = store or RecordStore()
    now = now or utcnow()

    user_id = _required_text(data, "userId")
    subject = _required_text(data, "subject")
    description = _required_text(data, "description")
    if len(subject) > SUBJECT_MAX_LEN:
        raise ValidationError(f"subject must be at most {SUBJECT_MAX_LEN} characters",
                              details={"subject": len(subject)})

    category_override = data.get("category")
    if category_override and category_override not in CATEGORY_VALUES:
        raise ValidationError(f"Unknown category '{category_override}'",
                              details={"category": category_override})

    try:
        submitter = store.get_user(user_id)
        user_name, user_role = submitter.name, submitter.role
    except NotFoundError:
        user_name = data.get("userName") or ""
        user_role = data.get("userRole") or UserRole.STUDENT.value

    analysis = classifier.analyze(subject, description)

    grievance = Grievance(
        id=data.get("id") or new_id(),
        user_id=user_id,
        user_name=user_name,
        user_role=user_role,
        subject=subject,
        description=description,
        category=category_override or analysis["category"],
        priority=analysis["priority"],
        status=GrievanceStatus.PENDING.value,
        created_at=now,
        updated_at=now,
        attachments=list(data.get("attachments") or []),
        ai_insights=AiInsights(
            sentiment=analysis["sentiment"],
            summary=analysis["summary"],
            suggested_action=analysis["suggestedAction"],
        ),
    )

    result = WorkflowEngine.apply(
        store.list_rules(), grievance, store.list_users(), now=now, skip_applied=skip_applied,
    )
    store.create_grievance(result.grievance)
    store.commit()

    logger.info(
        "Grievance %s submitted: category=%s priority=%s rules=%s",
        grievance.id, result.grievance.category, result.grievance.priority,
        result.applied_rule_ids,
        extra={"grievance_id": grievance.id},
    )
    return result


# ── Lifecycle ─────────────────────────────────────────────────────────────────


def update_status(
    grievance_id: str,
    status: str,
    *,
    store: RecordStore | None = None,
    now: datetime | None = None,
) -> tuple[Grievance, AppNotification | None]:
    """Move a grievance to a new status and notify the submitter.

    Returns the saved grievance and the submitter notification, or None
    when the status did not change.
    """
    store = store or RecordStore()
    now = now or utcnow()

    if status not in STATUS_VALUES:
        raise ValidationError(f"status must be one of: {', '.join(STATUS_VALUES)}",
                              details={"status": status})

    grievance = store.get_grievance(grievance_id)
    if grievance.status == status:
        return grievance, None

    previous = grievance.status
    grievance.status = status
    grievance.updated_at = max(now, grievance.created_at)
    store.save_grievance(grievance)
    store.commit()

    logger.info("Grievance %s status %s -> %s", grievance.id, previous, status,
                extra={"grievance_id": grievance.id})
    notification = AppNotification(
        user_id=grievance.user_id,
        message=f'Your grievance "{grievance.subject}" is now {status}',
        type="status_change",
        grievance_id=grievance.id,
        timestamp=now,
    )
    return grievance, notification


def add_reply(
    grievance_id: str,
    data: dict,
    *,
    store: RecordStore | None = None,
    now: datetime | None = None,
) -> tuple[Grievance, dict, AppNotification | None]:
    """Append a reply to the grievance thread and notify the submitter.

    Args:
        data: Request body with keys: text, authorId?, authorName?,
              authorRole?, attachments?, isAiGenerated?.
              A known authorId fills authorName/authorRole from the user record.

    Returns:
        The saved grievance, the stored reply document and the submitter
        notification (None when the submitter replied to their own grievance).
    """
    store = store or RecordStore()
    now = now or utcnow()

    text = _required_text(data, "text")
    grievance = store.get_grievance(grievance_id)

    author_id = data.get("authorId")
    author_name = data.get("authorName") or "System"
    author_role = data.get("authorRole") or "Staff"
    if author_id:
        try:
            author = store.get_user(author_id)
            author_name, author_role = author.name, author.role
        except NotFoundError:
            pass

    reply = {
        "id": new_id(),
        "authorName": author_name,
        "authorRole": author_role,
        "text": text,
        "timestamp": isoformat(now),
        "attachments": list(data.get("attachments") or []),
    }
    if data.get("isAiGenerated"):
        reply["isAiGenerated"] = True

    grievance.replies.append(reply)
    grievance.updated_at = max(now, grievance.created_at)
    store.save_grievance(grievance)
    store.commit()

    logger.info("Grievance %s reply added by %s (%s)", grievance.id, author_name, author_role,
                extra={"grievance_id": grievance.id})

    if author_id and author_id == grievance.user_id:
        return grievance, reply, None
    notification = AppNotification(
        user_id=grievance.user_id,
        message=f'New reply on your grievance "{grievance.subject}"',
        type="reply",
        grievance_id=grievance.id,
        timestamp=now,
    )
    return grievance, reply, notification


RATING_MIN, RATING_MAX = 1, 5


def add_feedback(
    grievance_id: str,
    rating,
    feedback: str | None = None,
    *,
    store: RecordStore | None = None,
) -> Grievance:
    """Record the submitter's rating (1-5) and comment on a Resolved grievance.

    updatedAt is left alone so resolution-time metrics are unaffected.

    Raises:
        ValidationError: rating outside 1-5, non-string feedback, or the
                         grievance is not Resolved.
    """
    store = store or RecordStore()

    if isinstance(rating, bool) or not isinstance(rating, int) or not RATING_MIN <= rating <= RATING_MAX:
        raise ValidationError(f"rating must be an integer between {RATING_MIN} and {RATING_MAX}",
                              details={"rating": rating})
    if feedback is not None and not isinstance(feedback, str):
        raise ValidationError("feedback must be a string", details={"feedback": feedback})

    grievance = store.get_grievance(grievance_id)
    if grievance.status != GrievanceStatus.RESOLVED.value:
        raise ValidationError("Feedback is only accepted on Resolved grievances",
                              details={"status": grievance.status})

    grievance.rating = rating
    grievance.feedback = (feedback or "").strip() or None
    store.save_grievance(grievance)
    store.commit()

    logger.info("Grievance %s rated %d", grievance.id, rating, extra={"grievance_id": grievance.id})
    return grievance


def run_workflow(
    grievance_id: str,
    *,
    store: RecordStore | None = None,
    skip_applied: bool = False,
    now: datetime | None = None,
) -> WorkflowResult:
    """Re-apply the stored rule set to an existing grievance and persist it."""
    store = store or RecordStore()
    grievance = store.get_grievance(grievance_id)
    result = WorkflowEngine.apply(
        store.list_rules(), grievance, store.list_users(), now=now, skip_applied=skip_applied,
    )
    store.save_grievance(result.grievance)
    store.commit()
    return result

"""
Grievance Portal
Domain model — plain dataclasses shared by the engines and the record store.

The wire format is the camelCase document shape kept in the record store
(``userId``, ``createdAt``, ``assignedTo`` ...).  Every dataclass exposes
``from_dict()`` / ``to_dict()`` for that shape; engines only ever see the
dataclasses.

Usage:
    from grievance_portal.models.domain import Grievance, User, WorkflowRule
    g = Grievance.from_dict(doc)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from grievance_portal.core.exceptions import ValidationError


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class GrievanceCategory(str, Enum):
    ACADEMIC = "Academic"
    INFRASTRUCTURE = "Infrastructure"
    FINANCIAL = "Financial"
    ADMINISTRATIVE = "Administrative"
    HOSTEL = "Hostel"
    GENERAL = "General"


class GrievanceStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class GrievancePriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class UserRole(str, Enum):
    """Built-in roles. User.role stays an open string (see RoleRegistry)."""
    STUDENT = "Student"
    FACULTY = "Faculty"  # cell lead
    HOD = "HOD"
    DEAN = "Dean"
    DEPT_ADMIN = "Department Administrator"
    REGISTRAR = "Registrar"
    PRINCIPAL = "Principal"
    PRESIDENT = "President"
    ADMIN = "Admin"


CATEGORY_VALUES = tuple(c.value for c in GrievanceCategory)
STATUS_VALUES = tuple(s.value for s in GrievanceStatus)
PRIORITY_VALUES = tuple(p.value for p in GrievancePriority)
SENTIMENT_VALUES = tuple(s.value for s in Sentiment)
ACTIVE_STATUSES = (GrievanceStatus.PENDING.value, GrievanceStatus.IN_PROGRESS.value)
CLOSED_STATUSES = (GrievanceStatus.RESOLVED.value, GrievanceStatus.REJECTED.value)

NOTIFICATION_TYPES = {"status_change", "reply", "new_submission"}


# ═════════════════════════════════════════════════════════════════════════════
# Role registry: built-in roles plus admin-defined custom roles
# ═════════════════════════════════════════════════════════════════════════════

class RoleRegistry:
    """Known roles: the built-in set plus custom roles registered at runtime."""

    _builtin: frozenset[str] = frozenset(r.value for r in UserRole)
    _custom: set[str] = set()

    @classmethod
    def validate(cls, name: Any) -> str:
        """Normalise a role name. Unknown non-empty names are allowed (custom roles)."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("role must be a non-empty string", details={"role": name})
        return " ".join(name.split())

    @classmethod
    def register(cls, name: str) -> str:
        role = cls.validate(name)
        if role not in cls._builtin:
            cls._custom.add(role)
        return role

    @classmethod
    def is_known(cls, name: str) -> bool:
        return name in cls._builtin or name in cls._custom

    @classmethod
    def is_staff(cls, name: str) -> bool:
        return name != UserRole.STUDENT.value

    @classmethod
    def all_roles(cls) -> list[str]:
        return [r.value for r in UserRole] + sorted(cls._custom)

    @classmethod
    def reset_custom(cls) -> None:
        cls._custom.clear()


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field_name} is not a valid ISO-8601 timestamp",
                                  details={field_name: value})
    else:
        raise ValidationError(f"{field_name} is required", details={field_name: value})
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_optional_timestamp(value: Any, field_name: str) -> datetime | None:
    if value in (None, ""):
        return None
    return parse_timestamp(value, field_name)


def isoformat(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required", details={key: value})
    return value


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _parse_bool(value: Any, field_name: str, default: bool) -> bool:
    """JSON booleans, 0/1 and the usual string spellings ("false" is False)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ValidationError(f"{field_name} must be a boolean", details={field_name: value})


def _object_list(data: dict, key: str) -> list[dict]:
    items = data.get(key) or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ValidationError(f"{key} must be a list of objects", details={key: items})
    return items


# ═════════════════════════════════════════════════════════════════════════════
# Grievance
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class AssigneeRef:
    """Denormalised assignee triple stored on the grievance."""
    id: str
    name: str
    email: str | None = None

    @classmethod
    def from_user(cls, user: "User") -> "AssigneeRef":
        return cls(id=user.id, name=user.name, email=user.email)

    @classmethod
    def from_dict(cls, data: dict | None) -> "AssigneeRef | None":
        if not data:
            return None
        return cls(id=_require_str(data, "id"), name=data.get("name", ""), email=data.get("email"))

    def to_dict(self) -> dict:
        d = {"id": self.id, "name": self.name}
        if self.email is not None:
            d["email"] = self.email
        return d


@dataclass
class AiInsights:
    sentiment: str = Sentiment.NEUTRAL.value
    summary: str = ""
    suggested_action: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "AiInsights | None":
        if not data:
            return None
        return cls(
            sentiment=data.get("sentiment") or "",
            summary=data.get("summary", ""),
            suggested_action=data.get("suggestedAction", ""),
        )

    def to_dict(self) -> dict:
        return {
            "sentiment": self.sentiment,
            "summary": self.summary,
            "suggestedAction": self.suggested_action,
        }


@dataclass
class Grievance:
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime
    user_name: str = ""
    user_role: str = UserRole.STUDENT.value
    subject: str = ""
    description: str = ""
    category: str = GrievanceCategory.GENERAL.value
    priority: str = GrievancePriority.MEDIUM.value
    status: str = GrievanceStatus.PENDING.value
    assigned_to: AssigneeRef | None = None
    replies: list[dict] = field(default_factory=list)
    attachments: list[dict] = field(default_factory=list)
    rating: int | None = None
    feedback: str | None = None
    ai_insights: AiInsights | None = None
    escalation_count: int = 0
    last_escalated_at: datetime | None = None
    applied_rules: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.updated_at < self.created_at:
            raise ValidationError(
                "updatedAt must not be earlier than createdAt",
                details={"id": self.id},
            )
        if self.escalation_count < 0:
            raise ValidationError("escalationCount must be non-negative", details={"id": self.id})

    @property
    def sentiment(self) -> str | None:
        """AI-supplied sentiment, or None when the grievance carries none."""
        if self.ai_insights and self.ai_insights.sentiment:
            return self.ai_insights.sentiment
        return None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def resolution_days(self) -> float:
        return (self.updated_at - self.created_at).total_seconds() / 86400

    def copy(self) -> "Grievance":
        """Copy with fresh mutable containers; nested value objects are shared."""
        return replace(
            self,
            replies=list(self.replies),
            attachments=list(self.attachments),
            applied_rules=list(self.applied_rules),
            tags=list(self.tags),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Grievance":
        if not isinstance(data, dict):
            raise ValidationError("grievance must be an object")
        status = data.get("status") or GrievanceStatus.PENDING.value
        if status not in STATUS_VALUES:
            raise ValidationError(f"Unknown status '{status}'", details={"status": status})
        priority = data.get("priority") or GrievancePriority.MEDIUM.value
        if priority not in PRIORITY_VALUES:
            raise ValidationError(f"Unknown priority '{priority}'", details={"priority": priority})
        created_at = parse_timestamp(data.get("createdAt"), "createdAt")
        updated_at = _parse_optional_timestamp(data.get("updatedAt"), "updatedAt") or created_at
        try:
            escalation_count = int(data.get("escalationCount") or 0)
        except (TypeError, ValueError):
            raise ValidationError("escalationCount must be an integer",
                                  details={"escalationCount": data.get("escalationCount")})

        return cls(
            id=_require_str(data, "id"),
            user_id=_require_str(data, "userId"),
            user_name=data.get("userName", ""),
            user_role=data.get("userRole") or UserRole.STUDENT.value,
            subject=data.get("subject", ""),
            description=data.get("description", ""),
            category=data.get("category") or GrievanceCategory.GENERAL.value,
            priority=priority,
            status=status,
            created_at=created_at,
            updated_at=updated_at,
            assigned_to=AssigneeRef.from_dict(data.get("assignedTo")),
            replies=list(data.get("replies") or []),
            attachments=list(data.get("attachments") or []),
            rating=data.get("rating"),
            feedback=data.get("feedback"),
            ai_insights=AiInsights.from_dict(data.get("aiInsights")),
            escalation_count=escalation_count,
            last_escalated_at=_parse_optional_timestamp(data.get("lastEscalatedAt"), "lastEscalatedAt"),
            applied_rules=list(data.get("appliedRules") or []),
            tags=list(data.get("tags") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userRole": self.user_role,
            "subject": self.subject,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "assignedTo": self.assigned_to.to_dict() if self.assigned_to else None,
            "replies": list(self.replies),
            "attachments": list(self.attachments),
            "rating": self.rating,
            "feedback": self.feedback,
            "aiInsights": self.ai_insights.to_dict() if self.ai_insights else None,
            "escalationCount": self.escalation_count,
            "lastEscalatedAt": isoformat(self.last_escalated_at),
            "appliedRules": list(self.applied_rules),
            "tags": list(self.tags),
        }


# ═════════════════════════════════════════════════════════════════════════════
# User
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class User:
    id: str
    name: str
    role: str
    department: str = ""
    email: str | None = None
    assigned_category: str | None = None
    student_class: str | None = None

    @property
    def is_staff(self) -> bool:
        return RoleRegistry.is_staff(self.role)

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        if not isinstance(data, dict):
            raise ValidationError("user must be an object")
        return cls(
            id=_require_str(data, "id"),
            name=data.get("name", ""),
            email=data.get("email"),
            role=RoleRegistry.validate(data.get("role")),
            department=data.get("department", ""),
            assigned_category=data.get("assignedCategory") or None,
            student_class=data.get("studentClass") or None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
            "assignedCategory": self.assigned_category,
            "studentClass": self.student_class,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Workflow rules
# ═════════════════════════════════════════════════════════════════════════════

CONDITION_FIELDS = {"category", "priority", "department", "userRole", "daysUnresolved"}
CONDITION_OPERATORS = {"equals", "contains", "includes", "greaterThan", "lessThan"}
ACTION_TYPES = {"assign", "escalate", "notify", "setPriority", "addTag"}


@dataclass
class RuleCondition:
    field: str
    operator: str
    value: str | list[str] = ""

    @classmethod
    def from_dict(cls, data: dict) -> "RuleCondition":
        # Unknown field/operator pairs are kept; the evaluator fails them closed.
        return cls(
            field=data.get("field", ""),
            operator=data.get("operator", ""),
            value=data.get("value", ""),
        )

    def to_dict(self) -> dict:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass
class RuleAction:
    type: str
    target_user_id: str | None = None
    target_role: str | None = None
    value: str | None = None
    notify_email: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "RuleAction":
        return cls(
            type=data.get("type", ""),
            target_user_id=data.get("targetUserId"),
            target_role=data.get("targetRole"),
            value=data.get("value"),
            notify_email=_parse_bool(data.get("notifyEmail"), "notifyEmail", False),
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"type": self.type}
        if self.target_user_id is not None:
            d["targetUserId"] = self.target_user_id
        if self.target_role is not None:
            d["targetRole"] = self.target_role
        if self.value is not None:
            d["value"] = self.value
        if self.notify_email:
            d["notifyEmail"] = True
        return d


@dataclass
class WorkflowRule:
    id: str
    name: str
    priority: int
    enabled: bool = True
    description: str = ""
    conditions: list[RuleCondition] = field(default_factory=list)
    actions: list[RuleAction] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "WorkflowRule":
        if not isinstance(data, dict):
            raise ValidationError("rule must be an object")
        try:
            priority = int(data.get("priority", 0))
        except (TypeError, ValueError):
            raise ValidationError("rule priority must be an integer",
                                  details={"priority": data.get("priority")})
        return cls(
            id=_require_str(data, "id"),
            name=data.get("name", ""),
            description=data.get("description", ""),
            enabled=_parse_bool(data.get("enabled"), "enabled", True),
            priority=priority,
            conditions=[RuleCondition.from_dict(c) for c in _object_list(data, "conditions")],
            actions=[RuleAction.from_dict(a) for a in _object_list(data, "actions")],
            created_at=_parse_optional_timestamp(data.get("createdAt"), "createdAt"),
            updated_at=_parse_optional_timestamp(data.get("updatedAt"), "updatedAt"),
            created_by=data.get("createdBy"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "priority": self.priority,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "createdBy": self.created_by,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Notifications
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class AppNotification:
    """Outbound notification, delivered by an external toast/mailer."""
    user_id: str
    message: str
    type: str = "status_change"
    grievance_id: str | None = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    read: bool = False

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "userId": self.user_id,
            "message": self.message,
            "timestamp": isoformat(self.timestamp),
            "read": self.read,
            "type": self.type,
        }
        if self.grievance_id is not None:
            d["grievanceId"] = self.grievance_id
        return d

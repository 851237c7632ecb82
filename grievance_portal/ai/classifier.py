"""
Grievance Portal
Grievance classifier — category / priority / sentiment enrichment.

Contract:
    analyze(subject, description) -> {category, priority, summary,
                                      sentiment, suggestedAction}

The LLM call is an optional upstream enrichment.  When no provider is
configured, or the call fails, or the reply is not usable JSON, the
deterministic keyword classifier answers instead, so grievance submission
never blocks on it.
"""

from __future__ import annotations

import json
import logging

from grievance_portal.ai.gateway import LLMGateway
from grievance_portal.models.domain import (
    CATEGORY_VALUES,
    PRIORITY_VALUES,
    SENTIMENT_VALUES,
    Grievance,
    GrievanceCategory,
    GrievancePriority,
    Sentiment,
)

logger = logging.getLogger(__name__)

INSTITUTION_NAME = "ASM Nextgen Technical Campus"

# First matching row wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (GrievanceCategory.ACADEMIC.value, ("exam", "marks", "faculty", "course")),
    (GrievanceCategory.INFRASTRUCTURE.value, ("wifi", "lab", "classroom", "canteen")),
    (GrievanceCategory.FINANCIAL.value, ("fee", "scholarship", "refund")),
    (GrievanceCategory.ADMINISTRATIVE.value, ("certificate", "document", "id card")),
    (GrievanceCategory.HOSTEL.value, ("hostel", "mess", "room")),
)
URGENT_KEYWORDS = ("urgent", "critical")
NEGATIVE_KEYWORDS = ("poor", "bad", "worst")

_ANALYZE_PROMPT = """Analyze the following student/faculty grievance for {institution}.
Subject: {subject}
Description: {description}

You MUST classify this grievance into EXACTLY ONE of the following categories:
- Academic (for course content, exams, faculty issues, ERP access)
- Infrastructure (for labs, wifi, classrooms, canteen, physical facilities)
- Financial (for fees, scholarships, refunds)
- Administrative (for documents, ID cards, certificates, policy)
- Hostel (for room issues, mess food, hostel discipline)
- General (anything else)

Reply with a JSON object only, with the keys:
1. category: The exact category name from the list above.
2. priority: Low, Medium, or High based on urgency.
3. summary: A short summary (max 20 words).
4. sentiment: Positive, Neutral, or Negative.
5. suggestedAction: Immediate step for the assigned cell lead."""

_DRAFT_PROMPT = """Draft a professional, empathetic, and formal response to the following grievance \
from a {role} named {name} at {institution}.
Subject: {subject}
Description: {description}
Status update to: {status}
Assigned Cell: {category}

Ensure the tone reflects the institution's commitment to student welfare."""


def keyword_analysis(subject: str, description: str) -> dict:
    """Deterministic local classifier."""
    text = f"{(description or '').lower()} {(subject or '').lower()}"

    category = GrievanceCategory.GENERAL.value
    for candidate, keywords in CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            category = candidate
            break

    priority = (GrievancePriority.HIGH if any(k in text for k in URGENT_KEYWORDS)
                else GrievancePriority.MEDIUM).value
    sentiment = (Sentiment.NEGATIVE if any(k in text for k in NEGATIVE_KEYWORDS)
                 else Sentiment.NEUTRAL).value

    return {
        "category": category,
        "priority": priority,
        "summary": (subject or "No subject")[:60],
        "sentiment": sentiment,
        "suggestedAction": f"Review and address the {category.lower()} concern promptly.",
    }


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _coerce(parsed: dict, fallback: dict) -> dict:
    """Clamp an LLM reply onto the known value sets."""
    category = parsed.get("category")
    priority = parsed.get("priority")
    sentiment = parsed.get("sentiment")
    summary = parsed.get("summary")
    action = parsed.get("suggestedAction")
    return {
        "category": category if category in CATEGORY_VALUES else GrievanceCategory.GENERAL.value,
        "priority": priority if priority in PRIORITY_VALUES else GrievancePriority.MEDIUM.value,
        "summary": summary if isinstance(summary, str) and summary else fallback["summary"],
        "sentiment": sentiment if sentiment in SENTIMENT_VALUES else Sentiment.NEUTRAL.value,
        "suggestedAction": action if isinstance(action, str) and action else fallback["suggestedAction"],
    }


class GrievanceClassifier:

    def __init__(self, gateway: LLMGateway | None = None, *, model: str | None = None,
                 max_retries: int = 2):
        self.gateway = gateway or LLMGateway()
        self.model = model
        self.max_retries = max_retries

    @property
    def enabled(self) -> bool:
        return self.gateway.is_available(self.model)

    def analyze(self, subject: str, description: str) -> dict:
        fallback = keyword_analysis(subject, description)
        if not self.enabled:
            return fallback

        prompt = _ANALYZE_PROMPT.format(
            institution=INSTITUTION_NAME, subject=subject, description=description,
        )
        try:
            result = self.gateway.chat(
                [{"role": "user", "content": prompt}],
                self.model,
                max_retries=self.max_retries,
                json_mode=True,
            )
            parsed = json.loads(_strip_fences(result["content"]))
            if not isinstance(parsed, dict):
                raise ValueError("classifier reply is not a JSON object")
        except Exception:
            logger.warning("Grievance classification failed, using keyword classifier", exc_info=True)
            return fallback
        return _coerce(parsed, fallback)

    def draft_response(self, grievance: Grievance) -> str:
        template = (
            f"Dear {grievance.user_name},\n\n"
            "Thank you for bringing this matter to our attention. "
            f"Our {grievance.category} team is reviewing your concern regarding "
            f"\"{grievance.subject}\".\n\n"
            "We will update you shortly.\n\n"
            f"Best regards,\n{INSTITUTION_NAME}"
        )
        if not self.enabled:
            return template

        prompt = _DRAFT_PROMPT.format(
            role=grievance.user_role,
            name=grievance.user_name,
            institution=INSTITUTION_NAME,
            subject=grievance.subject,
            description=grievance.description,
            status=grievance.status,
            category=grievance.category,
        )
        try:
            result = self.gateway.chat(
                [{"role": "user", "content": prompt}],
                self.model,
                max_retries=self.max_retries,
            )
        except Exception:
            logger.warning("Response draft failed for grievance %s, using template",
                           grievance.id, exc_info=True)
            return template
        return result["content"] or template

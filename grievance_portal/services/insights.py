"""
Insight Generator

Threshold rules evaluated independently against an AnalyticsSnapshot.
Every qualifying rule fires; alerts are ephemeral and recomputed per call,
so nothing is deduplicated across calls.

Usage:
    from grievance_portal.services.insights import InsightGenerator
    alerts = InsightGenerator.generate(snapshot)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from grievance_portal.models.domain import isoformat, new_id, utcnow
from grievance_portal.services.analytics_engine import AnalyticsSnapshot


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Data Classes
# ═════════════════════════════════════════════════════════════════════════════

class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    TREND = "trend"
    ANOMALY = "anomaly"
    PREDICTION = "prediction"
    RECOMMENDATION = "recommendation"


@dataclass
class InsightAlert:
    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metadata: dict | None = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "timestamp": isoformat(self.timestamp),
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d


# ═════════════════════════════════════════════════════════════════════════════
# Threshold Configuration
# ═════════════════════════════════════════════════════════════════════════════

THRESHOLDS: dict[str, Any] = {
    "rejection_rate_pct": 20,          # rejected share above this → high
    "resolution_rate_min_pct": 30,     # resolved share below this → high
    "resolution_rate_min_total": 10,   # ...only once there are more cases than this
    "negative_sentiment_pct": 40,      # negative share above this → high
    "category_spike_pct": 50,          # 30-day growth above this → medium
    "slow_resolution_days": 14,        # category avg above this → medium
    "pending_backlog_pct": 30,         # pending share above this → medium
}


def _share_exceeds(count: int, total: int, pct: float) -> bool:
    """count/total > pct%, compared without float division."""
    return total > 0 and count * 100 > pct * total


def _pct(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


# ═════════════════════════════════════════════════════════════════════════════
# Rule Definitions
# ═════════════════════════════════════════════════════════════════════════════

def _rule_rejection_rate(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    rejected = s.status_distribution["rejected"]
    if not _share_exceeds(rejected, s.total_grievances, THRESHOLDS["rejection_rate_pct"]):
        return []
    rate = _pct(rejected, s.total_grievances)
    return [InsightAlert(
        type=AlertType.ANOMALY,
        severity=AlertSeverity.HIGH,
        title="High Rejection Rate Detected",
        description=f"{rate:.1f}% of grievances are being rejected. Review rejection criteria.",
        timestamp=now,
    )]


def _rule_low_resolution_rate(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    if s.total_grievances <= THRESHOLDS["resolution_rate_min_total"]:
        return []
    if s.resolved_count * 100 >= THRESHOLDS["resolution_rate_min_pct"] * s.total_grievances:
        return []
    return [InsightAlert(
        type=AlertType.TREND,
        severity=AlertSeverity.HIGH,
        title="Low Resolution Rate",
        description=f"Only {s.resolution_rate:.1f}% of grievances are resolved. "
                    "Increase team capacity or speed up process.",
        timestamp=now,
    )]


def _rule_negative_sentiment(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    negative = s.sentiment_distribution["negative"]
    if not _share_exceeds(negative, s.total_grievances, THRESHOLDS["negative_sentiment_pct"]):
        return []
    return [InsightAlert(
        type=AlertType.ANOMALY,
        severity=AlertSeverity.HIGH,
        title="High Negative Sentiment",
        description=f"{_pct(negative, s.total_grievances):.1f}% of grievances show negative "
                    "sentiment. Check for systemic issues.",
        timestamp=now,
    )]


def _rule_category_spikes(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    alerts = []
    for metric in s.category_metrics:
        if metric.trend == "up" and metric.percent_change > THRESHOLDS["category_spike_pct"]:
            alerts.append(InsightAlert(
                type=AlertType.TREND,
                severity=AlertSeverity.MEDIUM,
                title=f"{metric.category} Grievances Spiking",
                description=f"{metric.category} cases increased by {metric.percent_change}% "
                            "in last 30 days. Investigate root cause.",
                metadata={"category": metric.category, "percentChange": metric.percent_change},
                timestamp=now,
            ))
    return alerts


def _rule_slow_categories(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    slow = [m.category for m in s.category_metrics
            if m.avg_resolution_time > THRESHOLDS["slow_resolution_days"]]
    if not slow:
        return []
    return [InsightAlert(
        type=AlertType.RECOMMENDATION,
        severity=AlertSeverity.MEDIUM,
        title="Slow Resolution Categories Identified",
        description=f"{', '.join(slow)} cases take >{THRESHOLDS['slow_resolution_days']} days "
                    "on average. Consider process optimization.",
        metadata={"categories": slow},
        timestamp=now,
    )]


def _rule_pending_backlog(s: AnalyticsSnapshot, now: datetime) -> list[InsightAlert]:
    pending = s.status_distribution["pending"]
    if not _share_exceeds(pending, s.total_grievances, THRESHOLDS["pending_backlog_pct"]):
        return []
    return [InsightAlert(
        type=AlertType.TREND,
        severity=AlertSeverity.MEDIUM,
        title="Pending Cases Backlog",
        description=f"{_pct(pending, s.total_grievances):.1f}% of cases are still pending. "
                    "Process may be understaffed.",
        timestamp=now,
    )]


# Declaration order is the output order.
_INSIGHT_RULES: list[Callable[[AnalyticsSnapshot, datetime], list[InsightAlert]]] = [
    _rule_rejection_rate,
    _rule_low_resolution_rate,
    _rule_negative_sentiment,
    _rule_category_spikes,
    _rule_slow_categories,
    _rule_pending_backlog,
]


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════

class InsightGenerator:

    @staticmethod
    def generate(snapshot: AnalyticsSnapshot, *, now: datetime | None = None) -> list[InsightAlert]:
        now = now or utcnow()
        alerts: list[InsightAlert] = []
        for rule in _INSIGHT_RULES:
            alerts.extend(rule(snapshot, now))
        return alerts

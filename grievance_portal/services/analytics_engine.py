"""
Analytics Engine

Point-in-time aggregates over a grievance collection: rates, distributions,
category trends, resolution-time statistics, sentiment trends and
leaderboards.

Snapshots are computed fresh on every call and never persisted; regenerate
rather than update.  Every rate/average over an empty collection resolves
to 0 (or the documented neutral prior for sentiment), never NaN.

Usage:
    from grievance_portal.services.analytics_engine import AnalyticsEngine
    snapshot = AnalyticsEngine.generate_snapshot(grievances, users)
    snapshot.to_dict()
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta

from grievance_portal.models.domain import (
    CATEGORY_VALUES,
    Grievance,
    GrievancePriority,
    GrievanceStatus,
    Sentiment,
    User,
    isoformat,
    utcnow,
)
from grievance_portal.utils.helpers import round_half_up

TREND_WINDOW_DAYS = 30
NEUTRAL_SENTIMENT_PRIOR = 0.5
LEADERBOARD_SIZE = 5

_SENTIMENT_SCORES = {
    Sentiment.POSITIVE.value: 1.0,
    Sentiment.NEUTRAL.value: 0.5,
    Sentiment.NEGATIVE.value: 0.0,
}


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CategoryTrend:
    category: str
    count: int
    trend: str                  # up | down | stable
    percent_change: int
    avg_resolution_time: float
    active_count: int

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "count": self.count,
            "trend": self.trend,
            "percentChange": self.percent_change,
            "avgResolutionTime": self.avg_resolution_time,
            "activeCount": self.active_count,
        }


@dataclass(frozen=True)
class ResolutionTimeMetric:
    category: str
    avg_days: float
    min_days: float
    max_days: float
    median_days: float
    total_resolved: int

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "avgDays": self.avg_days,
            "minDays": self.min_days,
            "maxDays": self.max_days,
            "medianDays": self.median_days,
            "totalResolved": self.total_resolved,
        }


@dataclass(frozen=True)
class SentimentTrend:
    date: str
    positive: int
    neutral: int
    negative: int
    total: int

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "positive": self.positive,
            "neutral": self.neutral,
            "negative": self.negative,
            "total": self.total,
        }


@dataclass(frozen=True)
class AnalyticsSnapshot:
    timestamp: datetime
    total_grievances: int
    resolved_count: int
    resolution_rate: float
    avg_resolution_time: float
    status_distribution: dict
    priority_distribution: dict
    sentiment_distribution: dict
    average_sentiment_score: float
    category_metrics: tuple[CategoryTrend, ...]
    top_complainants: tuple[dict, ...]
    top_assignees: tuple[dict, ...]

    def to_dict(self) -> dict:
        return {
            "timestamp": isoformat(self.timestamp),
            "totalGrievances": self.total_grievances,
            "resolvedCount": self.resolved_count,
            "resolutionRate": self.resolution_rate,
            "avgResolutionTime": self.avg_resolution_time,
            "statusDistribution": dict(self.status_distribution),
            "priorityDistribution": dict(self.priority_distribution),
            "sentimentDistribution": dict(self.sentiment_distribution),
            "averageSentimentScore": self.average_sentiment_score,
            "categoryMetrics": [c.to_dict() for c in self.category_metrics],
            "topComplainants": [dict(c) for c in self.top_complainants],
            "topAssignees": [dict(a) for a in self.top_assignees],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def _safe_pct(numerator: int, denominator: int) -> float:
    """Zero-safe percentage (unrounded)."""
    return (numerator / denominator) * 100 if denominator else 0.0


def _categories(grievances: list[Grievance]) -> list[str]:
    """Built-in categories first, then any others in encounter order."""
    extra = []
    for g in grievances:
        if g.category not in CATEGORY_VALUES and g.category not in extra:
            extra.append(g.category)
    return list(CATEGORY_VALUES) + extra


def _resolved(grievances: list[Grievance]) -> list[Grievance]:
    return [g for g in grievances if g.status == GrievanceStatus.RESOLVED.value]


def _count_status(grievances: list[Grievance], status: GrievanceStatus) -> int:
    return sum(1 for g in grievances if g.status == status.value)


def _user_names(users: list[User] | None) -> dict[str, str]:
    return {u.id: u.name for u in users or []}


# ═════════════════════════════════════════════════════════════════════════════
# Core metric functions
# ═════════════════════════════════════════════════════════════════════════════

def compute_average_resolution_time(resolved: list[Grievance]) -> float:
    """Mean days from createdAt to updatedAt, 1 decimal; 0 when empty."""
    if not resolved:
        return 0
    total_days = sum(g.resolution_days() for g in resolved)
    return round_half_up(total_days / len(resolved), 1)


def compute_average_sentiment_score(grievances: list[Grievance]) -> float:
    """Mean sentiment over grievances carrying one (Positive=1, Neutral=.5, Negative=0).

    With no sentiment data the neutral prior 0.5 is returned.
    """
    scored = [g.sentiment for g in grievances if g.sentiment]
    if not scored:
        return NEUTRAL_SENTIMENT_PRIOR
    total = sum(_SENTIMENT_SCORES.get(s, NEUTRAL_SENTIMENT_PRIOR) for s in scored)
    return round_half_up(total / len(scored), 2)


def compute_category_trends(
    grievances: list[Grievance],
    *,
    now: datetime | None = None,
) -> list[CategoryTrend]:
    """Last-30-days vs. earlier volume per category."""
    cutoff = (now or utcnow()) - timedelta(days=TREND_WINDOW_DAYS)
    trends = []
    for category in _categories(grievances):
        in_category = [g for g in grievances if g.category == category]
        current = sum(1 for g in in_category if g.created_at > cutoff)
        previous = len(in_category) - current

        if current > previous:
            trend = "up"
        elif current < previous:
            trend = "down"
        else:
            trend = "stable"

        if previous > 0:
            percent_change = round_half_up((current - previous) / previous * 100)
        else:
            percent_change = 100 if current > 0 else 0

        trends.append(CategoryTrend(
            category=category,
            count=len(in_category),
            trend=trend,
            percent_change=percent_change,
            avg_resolution_time=compute_average_resolution_time(_resolved(in_category)),
            active_count=sum(1 for g in in_category if g.is_active),
        ))
    return trends


def compute_resolution_time_metrics(grievances: list[Grievance]) -> list[ResolutionTimeMetric]:
    """avg/min/max/median resolution days per category.

    The median is the element at index n // 2 of the sorted durations, i.e.
    the upper median for even n.
    """
    metrics = []
    for category in _categories(grievances):
        days = sorted(
            g.resolution_days() for g in grievances
            if g.category == category and g.status == GrievanceStatus.RESOLVED.value
        )
        if not days:
            metrics.append(ResolutionTimeMetric(category, 0, 0, 0, 0, 0))
            continue
        metrics.append(ResolutionTimeMetric(
            category=category,
            avg_days=round_half_up(sum(days) / len(days), 1),
            min_days=round_half_up(days[0], 1),
            max_days=round_half_up(days[-1], 1),
            median_days=round_half_up(days[len(days) // 2], 1),
            total_resolved=len(days),
        ))
    return metrics


def compute_sentiment_trends(
    grievances: list[Grievance],
    *,
    now: datetime | None = None,
) -> list[SentimentTrend]:
    """Daily sentiment tallies (UTC dates) for the trailing 30 days.

    Grievances without sentiment count as neutral.
    """
    cutoff = (now or utcnow()) - timedelta(days=TREND_WINDOW_DAYS)
    buckets: dict[str, dict[str, int]] = defaultdict(
        lambda: {"positive": 0, "neutral": 0, "negative": 0, "total": 0}
    )
    for g in grievances:
        if g.created_at < cutoff:
            continue
        bucket = buckets[g.created_at.date().isoformat()]
        sentiment = g.sentiment or Sentiment.NEUTRAL.value
        if sentiment == Sentiment.POSITIVE.value:
            bucket["positive"] += 1
        elif sentiment == Sentiment.NEGATIVE.value:
            bucket["negative"] += 1
        else:
            bucket["neutral"] += 1
        bucket["total"] += 1

    return [SentimentTrend(date=d, **counts) for d, counts in sorted(buckets.items())]


def compute_top_complainants(
    grievances: list[Grievance],
    limit: int = LEADERBOARD_SIZE,
    users: list[User] | None = None,
) -> list[dict]:
    """Submitters ranked by grievance count (ties keep encounter order)."""
    names = _user_names(users)
    board: dict[str, dict] = {}
    for g in grievances:
        entry = board.get(g.user_id)
        if entry is None:
            board[g.user_id] = {
                "userId": g.user_id,
                "userName": g.user_name or names.get(g.user_id, ""),
                "grievanceCount": 1,
            }
        else:
            entry["grievanceCount"] += 1
    return sorted(board.values(), key=lambda e: -e["grievanceCount"])[:limit]


def compute_top_assignees(
    grievances: list[Grievance],
    limit: int = LEADERBOARD_SIZE,
    users: list[User] | None = None,
) -> list[dict]:
    """Assignees ranked by resolved count (ties keep encounter order)."""
    names = _user_names(users)
    assigned: dict[str, tuple[str, list[Grievance]]] = {}
    for g in grievances:
        if g.assigned_to is None:
            continue
        key = g.assigned_to.id
        if key not in assigned:
            assigned[key] = (g.assigned_to.name or names.get(key, ""), [])
        assigned[key][1].append(g)

    board = []
    for user_id, (user_name, handled) in assigned.items():
        resolved = _resolved(handled)
        board.append({
            "userId": user_id,
            "userName": user_name,
            "resolvedCount": len(resolved),
            "avgResolutionTime": compute_average_resolution_time(resolved),
        })
    return sorted(board, key=lambda e: -e["resolvedCount"])[:limit]


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════

class AnalyticsEngine:
    """Snapshot, trend and leaderboard computations."""

    @staticmethod
    def generate_snapshot(
        grievances: list[Grievance],
        users: list[User] | None = None,
        *,
        now: datetime | None = None,
    ) -> AnalyticsSnapshot:
        now = now or utcnow()
        total = len(grievances)
        resolved_count = _count_status(grievances, GrievanceStatus.RESOLVED)

        status_distribution = {
            "pending": _count_status(grievances, GrievanceStatus.PENDING),
            "inProgress": _count_status(grievances, GrievanceStatus.IN_PROGRESS),
            "resolved": resolved_count,
            "rejected": _count_status(grievances, GrievanceStatus.REJECTED),
        }
        priority_distribution = {
            p.value.lower(): sum(1 for g in grievances if g.priority == p.value)
            for p in GrievancePriority
        }
        # Grievances without sentiment land in no bucket but still count in totals.
        sentiment_distribution = {
            s.value.lower(): sum(1 for g in grievances if g.sentiment == s.value)
            for s in Sentiment
        }

        return AnalyticsSnapshot(
            timestamp=now,
            total_grievances=total,
            resolved_count=resolved_count,
            resolution_rate=_safe_pct(resolved_count, total),
            avg_resolution_time=compute_average_resolution_time(_resolved(grievances)),
            status_distribution=status_distribution,
            priority_distribution=priority_distribution,
            sentiment_distribution=sentiment_distribution,
            average_sentiment_score=compute_average_sentiment_score(grievances),
            category_metrics=tuple(compute_category_trends(grievances, now=now)),
            top_complainants=tuple(compute_top_complainants(grievances, users=users)),
            top_assignees=tuple(compute_top_assignees(grievances, users=users)),
        )

    @staticmethod
    def resolution_time_metrics(grievances: list[Grievance]) -> list[ResolutionTimeMetric]:
        return compute_resolution_time_metrics(grievances)

    @staticmethod
    def sentiment_trends(grievances: list[Grievance], *, now: datetime | None = None) -> list[SentimentTrend]:
        return compute_sentiment_trends(grievances, now=now)

    @staticmethod
    def compare(before: AnalyticsSnapshot, after: AnalyticsSnapshot) -> dict:
        """Deltas between two snapshots (after - before)."""
        return {
            "resolutionRateChange": after.resolution_rate - before.resolution_rate,
            "avgTimeChange": after.avg_resolution_time - before.avg_resolution_time,
            "sentimentChange": after.average_sentiment_score - before.average_sentiment_score,
            "totalGrievanceChange": after.total_grievances - before.total_grievances,
        }

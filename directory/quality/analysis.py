"""
Improvement analysis for listings.

Turns a QualityScorer breakdown into ranked improvement actions, a staged
improvement plan, and comparisons against the listing's category and
suburb. Used for the low-quality triage queue and the per-business
detail view.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config.logging import logger
from directory.exceptions import NotFoundError, ValidationError
from directory.models import ApprovalStatus, Business, utcnow
from directory.quality.boosts import apply_business_filters
from directory.quality.config import QualityScoringConfig, load_config
from directory.quality.scorer import (
    FactorCategory,
    FactorStatus,
    QualityScoreResult,
    QualityScorer,
    quality_band,
    quality_level,
)

# factor -> (type, effort, priority weight 1-100)
ACTION_PROFILES = {
    "Business Name": ("critical", "quick", 95),
    "Phone Number": ("high", "quick", 90),
    "Email Address": ("high", "quick", 88),
    "Business Description": ("high", "moderate", 85),
    "Website URL": ("medium", "quick", 75),
    "Physical Address": ("medium", "quick", 70),
    "Business Images": ("medium", "moderate", 65),
    "ABN Verification": ("low", "significant", 60),
    "Profile Freshness": ("medium", "quick", 55),
    "Location Verification": ("low", "moderate", 50),
    "Business Hours Display": ("low", "quick", 45),
    "Customer Engagement": ("low", "significant", 40),
}

PLAN_STAGES = {"quick": "quick_wins", "moderate": "medium_effort", "significant": "long_term"}

LOW_QUALITY_SORTS = {
    "priority": "improvement_priority",
    "score": "quality_score",
    "last_updated": "last_updated",
    "potential": "potential_score_increase",
    "name": "name",
}

MAX_DAYS_REPORTED = 999
TOP_BREAKDOWN_ENTRIES = 10


@dataclass
class ImprovementAction:
    type: str
    category: str
    action: str
    expected_score_increase: int
    effort: str
    priority: int

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "category": self.category,
            "action": self.action,
            "expected_score_increase": self.expected_score_increase,
            "effort": self.effort,
            "priority": self.priority,
        }


def improvement_actions(result: QualityScoreResult) -> list[ImprovementAction]:
    """One action per factor that is short of its maximum, most important first."""
    actions = []
    for factor in result.breakdown:
        gain = factor.max_points - factor.points
        if gain <= 0:
            continue

        action_type, effort, priority = ACTION_PROFILES.get(factor.factor, ("low", "moderate", 30))
        if factor.status == FactorStatus.PARTIAL and action_type in ("critical", "high"):
            action_type = "medium"

        actions.append(ImprovementAction(
            type=action_type,
            category=factor.category.value,
            action=factor.recommendation or f"Improve {factor.factor.lower()}",
            expected_score_increase=gain,
            effort=effort,
            priority=priority,
        ))

    actions.sort(key=lambda a: a.priority, reverse=True)
    return actions


def days_since_update(business: Any, now: datetime) -> Optional[int]:
    updated_at = getattr(business, "updated_at", None)
    return (now - updated_at).days if updated_at else None


def improvement_priority(score: int, actions: list[ImprovementAction], days: Optional[int]) -> int:
    """
    How urgently a listing needs attention, 0-100.

    Lower scores, more critical or high actions, larger potential gains and
    older profiles all raise the priority.
    """
    priority = (100 - score) * 0.4
    priority += 15 * sum(1 for a in actions if a.type == "critical")
    priority += 10 * sum(1 for a in actions if a.type == "high")
    priority += 0.3 * sum(a.expected_score_increase for a in actions)

    days = 365 if days is None else days
    if days > 180:
        priority += 20
    elif days > 90:
        priority += 10
    elif days > 30:
        priority += 5

    return min(100, round(priority))


def engagement_level(interactions: int) -> str:
    if interactions >= 10:
        return "high"
    if interactions >= 5:
        return "medium"
    if interactions >= 1:
        return "low"
    return "none"


def _recent_inquiry_count(business: Business, now: datetime, window_days: int) -> int:
    window_start = now - timedelta(days=window_days)
    return sum(
        1 for inquiry in business.inquiries
        if inquiry.created_at is None or inquiry.created_at >= window_start
    )


def improvement_plan(actions: list[ImprovementAction], score: int) -> dict:
    """Actions staged by effort, with the achievable gain capped at 100."""
    plan = {stage: [] for stage in PLAN_STAGES.values()}
    for action in actions:
        stage = PLAN_STAGES.get(action.effort, "medium_effort")
        plan[stage].append(f"{action.action} (+{action.expected_score_increase} points)")

    plan["estimated_score_increase"] = min(
        sum(a.expected_score_increase for a in actions), 100 - score
    )
    return plan


def _breakdown_by(rows: list[dict], key: str) -> list[dict]:
    groups: dict[str, list[int]] = {}
    for row in rows:
        groups.setdefault(row[key] or "Uncategorized", []).append(row["quality_score"])

    breakdown = [
        {key: name, "count": len(scores), "average_score": round(sum(scores) / len(scores))}
        for name, scores in groups.items()
    ]
    breakdown.sort(key=lambda entry: entry["count"], reverse=True)
    return breakdown[:TOP_BREAKDOWN_ENTRIES]


def low_quality_stats(rows: list[dict]) -> dict:
    """Counts per band, the most common improvement actions, and where the listings are."""
    issues: dict[str, list[int]] = {}
    for row in rows:
        for action in row["improvement_actions"]:
            issues.setdefault(action["action"], []).append(action["expected_score_increase"])

    most_common = [
        {
            "issue": issue,
            "business_count": len(gains),
            "average_score_increase": round(sum(gains) / len(gains)),
        }
        for issue, gains in issues.items()
    ]
    most_common.sort(key=lambda entry: entry["business_count"], reverse=True)

    total = len(rows)
    return {
        "total_count": total,
        "critical_count": sum(1 for r in rows if r["quality_level"] == "critical"),
        "low_count": sum(1 for r in rows if r["quality_level"] == "low"),
        "medium_count": sum(1 for r in rows if r["quality_level"] == "medium"),
        "average_score": round(sum(r["quality_score"] for r in rows) / total) if total else 0,
        "most_common_issues": most_common[:TOP_BREAKDOWN_ENTRIES],
        "suburb_breakdown": _breakdown_by(rows, "suburb"),
        "category_breakdown": _breakdown_by(rows, "category"),
    }


class QualityAnalyzer:
    """
    Read-only improvement analysis over stored listings.

    Usage:
        analyzer = QualityAnalyzer(db)
        queue = analyzer.low_quality(max_score=49, include_stats=True)
        detail = analyzer.analyze(business_id)
    """

    def __init__(self, db: Session, config: Optional[QualityScoringConfig] = None):
        self.db = db
        self.config = config or load_config(db)
        self.scorer = QualityScorer(self.config)

    def triage(self, business: Business, now: Optional[datetime] = None) -> dict:
        """Improvement summary for one listing, keyed on its stored score."""
        now = now or utcnow()
        score = business.quality_score or 0
        result = self.scorer.calculate(business, now=now)
        actions = improvement_actions(result)
        days = days_since_update(business, now)

        missing_fields = [
            factor.factor for factor in result.breakdown
            if factor.category == FactorCategory.COMPLETENESS and factor.status == FactorStatus.MISSING
        ]
        interactions = _recent_inquiry_count(
            business, now, self.config.thresholds.engagement_window_days
        )

        return {
            "id": business.id,
            "name": business.name,
            "suburb": business.suburb,
            "category": business.category or "Uncategorized",
            "quality_score": score,
            "quality_level": quality_band(score, self.config.thresholds),
            "approval_status": business.approval_status.value,
            "abn_status": business.abn_status.value,
            "created_at": business.created_at.isoformat() if business.created_at else None,
            "updated_at": business.updated_at.isoformat() if business.updated_at else None,
            "improvement_actions": [action.to_dict() for action in actions],
            "missing_fields": missing_fields,
            "potential_score_increase": min(
                sum(a.expected_score_increase for a in actions), 100 - score
            ),
            "improvement_priority": improvement_priority(score, actions, days),
            "last_updated": MAX_DAYS_REPORTED if days is None else min(days, MAX_DAYS_REPORTED),
            "engagement_level": engagement_level(interactions),
        }

    def low_quality(
        self,
        min_score: int = 0,
        max_score: Optional[int] = None,
        suburb: Optional[str] = None,
        category: Optional[str] = None,
        abn_status: Any = None,
        sort_by: str = "priority",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
        include_stats: bool = False,
    ) -> dict:
        """
        Approved listings below the high-quality threshold, with what to fix.

        max_score defaults to one below the configured high-quality threshold.

        Raises:
            ValidationError: For an unknown sort field or an inverted score range
        """
        if sort_by not in LOW_QUALITY_SORTS:
            raise ValidationError(f"Unknown sort field: {sort_by}", field="sort_by")
        if max_score is None:
            max_score = self.config.thresholds.high_quality - 1
        if min_score > max_score:
            raise ValidationError("min_score cannot exceed max_score", field="min_score")

        filters = {
            "approval_status": ApprovalStatus.APPROVED,
            "min_score": min_score,
            "max_score": max_score,
            "suburb": suburb,
            "category": category,
            "abn_status": abn_status,
        }
        businesses = (
            apply_business_filters(self.db.query(Business), filters)
            .order_by(Business.quality_score.asc())
            .all()
        )

        now = utcnow()
        rows = [self.triage(business, now) for business in businesses]
        key = LOW_QUALITY_SORTS[sort_by]
        rows.sort(
            key=lambda row: row[key].lower() if key == "name" else row[key],
            reverse=sort_order == "desc",
        )

        page = max(1, page)
        limit = min(100, max(1, limit))
        total = len(rows)
        start = (page - 1) * limit

        logger.debug(f"{total} low-quality listings between {min_score} and {max_score}")

        report = {
            "businesses": rows[start:start + limit],
            "pagination": {
                "page": page,
                "limit": limit,
                "total_count": total,
                "total_pages": (total + limit - 1) // limit,
                "has_next": page * limit < total,
                "has_previous": page > 1,
            },
            "filters": {
                "min_score": min_score,
                "max_score": max_score,
                "suburb": suburb,
                "category": category,
                "abn_status": getattr(abn_status, "value", abn_status),
            },
            "sorting": {"sort_by": sort_by, "sort_order": sort_order},
        }
        if include_stats:
            report["stats"] = low_quality_stats(rows)
        return report

    def _peer_query(self, business: Business, dimension: str):
        query = self.db.query(Business).filter(
            Business.id != business.id,
            Business.approval_status == ApprovalStatus.APPROVED,
        )
        value = getattr(business, dimension)
        if value:
            query = query.filter(getattr(Business, dimension) == value)
        return query

    def _peer_average(self, business: Business, dimension: str) -> int:
        average = (
            self._peer_query(business, dimension)
            .with_entities(func.avg(Business.quality_score))
            .scalar()
        )
        return round(average or 0)

    def _ranking(self, business: Business, dimension: str, score: int) -> tuple[int, int]:
        peers = self._peer_query(business, dimension)
        ahead = peers.filter(Business.quality_score > score).count()
        return ahead + 1, peers.count() + 1

    def analyze(self, business_id: str) -> dict:
        """
        Full quality analysis of one listing against its category and suburb.

        Raises:
            NotFoundError: If the business does not exist
        """
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if not business:
            raise NotFoundError("Business", business_id)

        result = self.scorer.calculate(business)
        score = result.score
        actions = improvement_actions(result)

        factors = {category.value: [] for category in FactorCategory}
        for factor in result.breakdown:
            factors[factor.category.value].append(factor.to_dict())

        category_average = self._peer_average(business, "category")
        suburb_average = self._peer_average(business, "suburb")
        in_category, total_in_category = self._ranking(business, "category", score)
        in_suburb, total_in_suburb = self._ranking(business, "suburb", score)

        level = quality_level(score, self.config.thresholds)
        return {
            "business": {
                "id": business.id,
                "name": business.name,
                "category": business.category,
                "suburb": business.suburb,
                "approval_status": business.approval_status.value,
                "abn_status": business.abn_status.value,
                "created_at": business.created_at.isoformat() if business.created_at else None,
                "updated_at": business.updated_at.isoformat() if business.updated_at else None,
            },
            "current_score": score,
            "stored_score": business.quality_score,
            "max_possible_score": 100,
            "level": level,
            "factors": factors,
            "overall_recommendations": self._overall_recommendations(level, score, category_average),
            "competitor_comparison": {
                "category_average": category_average,
                "suburb_average": suburb_average,
                "ranking": {
                    "in_category": in_category,
                    "total_in_category": total_in_category,
                    "in_suburb": in_suburb,
                    "total_in_suburb": total_in_suburb,
                },
            },
            "improvement_plan": improvement_plan(actions, score),
        }

    @staticmethod
    def _overall_recommendations(level: str, score: int, category_average: int) -> list[str]:
        if level == "low":
            recommendations = [
                "Priority: complete the basic business information",
                "Make sure phone and email are both provided",
            ]
        elif level == "medium":
            recommendations = [
                "Good foundation; focus on verification and content richness",
                "Consider ABN verification for maximum credibility",
            ]
        else:
            recommendations = [
                "Excellent quality score; the profile is well optimized",
                "Consider premium features to maximize visibility",
            ]

        if category_average:
            if score > category_average + 10:
                recommendations.append(
                    f"Above category average by {score - category_average} points"
                )
            elif score < category_average - 10:
                recommendations.append(
                    "Below category average; focus on improvements to compete effectively"
                )
        return recommendations

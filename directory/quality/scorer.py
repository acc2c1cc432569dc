"""
Business quality scoring.

Weighted point accumulation over four categories:
- Completeness: name, description, phone, email, website, address
- Verification: ABN status, location coordinates
- Recency: days since the profile was last edited
- Content richness: gallery images, business hours, customer engagement

The base score is clamped to [0, 100]. Manual boosts are layered on top
by BoostManager.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import SimpleNamespace
from typing import Any, Iterable, Optional

from directory.models import utcnow
from directory.quality.config import QualityScoringConfig, ScoringThresholds

MIN_SCORE = 0
MAX_SCORE = 100
MAX_NEXT_STEPS = 5

# Fields read by the scorer; used to snapshot hypothetical profiles
SCORED_FIELDS = [
    "name", "bio", "phone", "email", "website", "address",
    "abn", "abn_status", "latitude", "longitude", "updated_at",
    "gallery", "show_business_hours", "inquiries",
]


class FactorCategory(Enum):
    COMPLETENESS = "completeness"
    VERIFICATION = "verification"
    RECENCY = "recency"
    CONTENT_RICHNESS = "content_richness"


class FactorStatus(Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    MISSING = "missing"


class StepPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {StepPriority.HIGH: 3, StepPriority.MEDIUM: 2, StepPriority.LOW: 1}


def clamp_score(score: float) -> int:
    """Clamp to the valid quality score range."""
    return int(max(MIN_SCORE, min(MAX_SCORE, round(score))))


def quality_level(score: int, thresholds: Optional[ScoringThresholds] = None) -> str:
    """high / medium / low band for a score."""
    thresholds = thresholds or ScoringThresholds()
    if score >= thresholds.high_quality:
        return "high"
    if score >= thresholds.medium_quality:
        return "medium"
    return "low"


def quality_band(score: int, thresholds: Optional[ScoringThresholds] = None) -> str:
    """Like quality_level, but splits out critical listings at the bottom."""
    thresholds = thresholds or ScoringThresholds()
    if score < thresholds.critical_quality:
        return "critical"
    return quality_level(score, thresholds)


def profile_snapshot(business: Any, **overrides) -> SimpleNamespace:
    """
    Detached copy of the scored fields, with overrides applied.

    Lets callers score a hypothetical profile (e.g. a merge result)
    without touching ORM state.
    """
    values = {name: getattr(business, name, None) for name in SCORED_FIELDS}
    values["inquiries"] = list(values["inquiries"] or [])
    values.update(overrides)
    return SimpleNamespace(**values)


@dataclass
class FactorScore:
    """Points earned on one scoring factor."""
    factor: str
    category: FactorCategory
    points: int
    max_points: int
    status: FactorStatus
    current_value: Any = None
    recommendation: Optional[str] = None

    @property
    def percentage(self) -> int:
        if not self.max_points:
            return 0
        return round(self.points / self.max_points * 100)

    def to_dict(self) -> dict:
        return {
            "factor": self.factor,
            "category": self.category.value,
            "current_value": self.current_value,
            "points": self.points,
            "max_points": self.max_points,
            "percentage": self.percentage,
            "status": self.status.value,
            "recommendation": self.recommendation,
        }


@dataclass
class NextStep:
    priority: StepPriority
    action: str
    expected_score_increase: int

    def to_dict(self) -> dict:
        return {
            "priority": self.priority.value,
            "action": self.action,
            "expected_score_increase": self.expected_score_increase,
        }


@dataclass
class QualityScoreResult:
    """Outcome of a quality calculation."""
    score: int
    breakdown: list[FactorScore] = field(default_factory=list)
    level: str = "low"
    quality_level: str = "low"
    recommendations: dict[str, list[str]] = field(default_factory=dict)
    next_steps: list[NextStep] = field(default_factory=list)
    calculated_at: datetime = field(default_factory=utcnow)

    @property
    def category_scores(self) -> dict[str, int]:
        totals = {category.value: 0 for category in FactorCategory}
        for factor in self.breakdown:
            totals[factor.category.value] += factor.points
        return totals

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level,
            "quality_level": self.quality_level,
            "category_scores": self.category_scores,
            "breakdown": [factor.to_dict() for factor in self.breakdown],
            "recommendations": self.recommendations,
            "next_steps": [step.to_dict() for step in self.next_steps],
            "calculated_at": self.calculated_at.isoformat(),
        }


def _has_text(value: Any) -> bool:
    return value is not None and len(str(value).strip()) > 0


def _enum_value(value: Any) -> Optional[str]:
    return getattr(value, "value", value)


class QualityScorer:
    """
    Calculates a business's quality score with a per-factor breakdown.

    Usage:
        scorer = QualityScorer(config)
        result = scorer.calculate(business)
        result.score, result.level, result.next_steps
    """

    def __init__(self, config: Optional[QualityScoringConfig] = None):
        self.config = config or QualityScoringConfig()

    def score(self, business: Any, now: Optional[datetime] = None) -> int:
        """Base score only."""
        return self.calculate(business, now=now).score

    def calculate(self, business: Any, now: Optional[datetime] = None) -> QualityScoreResult:
        """
        Calculate the base quality score.

        Args:
            business: Business ORM object or anything exposing the same fields
            now: Reference time for recency and engagement (defaults to utcnow)

        Returns:
            QualityScoreResult with breakdown, recommendations and next steps
        """
        now = now or utcnow()

        breakdown = (
            self._completeness_factors(business)
            + self._verification_factors(business)
            + [self._recency_factor(business, now)]
            + self._content_factors(business, now)
        )

        score = clamp_score(sum(factor.points for factor in breakdown))
        thresholds = self.config.thresholds

        return QualityScoreResult(
            score=score,
            breakdown=breakdown,
            level=quality_level(score, thresholds),
            quality_level=quality_band(score, thresholds),
            recommendations=self._recommendations(breakdown),
            next_steps=self._next_steps(breakdown),
            calculated_at=now,
        )

    def _presence_factor(
        self,
        factor: str,
        value: Any,
        points: int,
        recommendation: str,
        current_value: Any = "Provided",
    ) -> FactorScore:
        present = _has_text(value)
        return FactorScore(
            factor=factor,
            category=FactorCategory.COMPLETENESS,
            points=points if present else 0,
            max_points=points,
            status=FactorStatus.COMPLETE if present else FactorStatus.MISSING,
            current_value=current_value if present else None,
            recommendation=None if present else recommendation,
        )

    def _completeness_factors(self, business: Any) -> list[FactorScore]:
        weights = self.config.weights.completeness
        min_length = self.config.thresholds.description_min_length

        name = getattr(business, "name", None)
        factors = [
            self._presence_factor(
                "Business Name", name, weights.business_name,
                "Add a clear, descriptive business name", current_value=name,
            ),
        ]

        bio = (getattr(business, "bio", None) or "").strip()
        if len(bio) >= min_length:
            points, status, recommendation = weights.description, FactorStatus.COMPLETE, None
        elif bio:
            # Short descriptions earn roughly half (8 of 15 by default)
            points = round(weights.description * 8 / 15)
            status = FactorStatus.PARTIAL
            recommendation = f"Expand description to at least {min_length} characters"
        else:
            points, status = 0, FactorStatus.MISSING
            recommendation = "Add a comprehensive business description"

        factors.append(FactorScore(
            factor="Business Description",
            category=FactorCategory.COMPLETENESS,
            points=points,
            max_points=weights.description,
            status=status,
            current_value=f"{len(bio)} characters" if bio else None,
            recommendation=recommendation,
        ))

        factors.extend([
            self._presence_factor(
                "Phone Number", getattr(business, "phone", None), weights.phone,
                "Add a valid Australian phone number",
            ),
            self._presence_factor(
                "Email Address", getattr(business, "email", None), weights.email,
                "Add a professional email address",
            ),
            self._presence_factor(
                "Website URL", getattr(business, "website", None), weights.website,
                "Add website URL for increased credibility",
            ),
            self._presence_factor(
                "Physical Address", getattr(business, "address", None), weights.address,
                "Add business address for local SEO",
            ),
        ])
        return factors

    def _verification_factors(self, business: Any) -> list[FactorScore]:
        weights = self.config.weights.verification

        abn_status = _enum_value(getattr(business, "abn_status", None))
        has_abn = _has_text(getattr(business, "abn", None))
        if abn_status == "VERIFIED":
            abn_factor = FactorScore(
                factor="ABN Verification",
                category=FactorCategory.VERIFICATION,
                points=weights.abn_verification,
                max_points=weights.abn_verification,
                status=FactorStatus.COMPLETE,
                current_value=abn_status,
            )
        else:
            abn_factor = FactorScore(
                factor="ABN Verification",
                category=FactorCategory.VERIFICATION,
                points=0,
                max_points=weights.abn_verification,
                status=FactorStatus.PARTIAL if has_abn else FactorStatus.MISSING,
                current_value=abn_status,
                recommendation=(
                    "Complete ABN verification process" if has_abn
                    else "Add and verify ABN for maximum credibility"
                ),
            )

        located = (
            getattr(business, "latitude", None) is not None
            and getattr(business, "longitude", None) is not None
        )
        location_factor = FactorScore(
            factor="Location Verification",
            category=FactorCategory.VERIFICATION,
            points=weights.location_verification if located else 0,
            max_points=weights.location_verification,
            status=FactorStatus.COMPLETE if located else FactorStatus.MISSING,
            current_value="Coordinates verified" if located else None,
            recommendation=None if located else "Verify business location coordinates",
        )
        return [abn_factor, location_factor]

    def _recency_factor(self, business: Any, now: datetime) -> FactorScore:
        weight = self.config.weights.recency.profile_freshness
        days = self.config.thresholds.recency_days

        updated_at = getattr(business, "updated_at", None)
        days_since_update = (now - updated_at).days if updated_at else None

        if days_since_update is not None and days_since_update < days.fresh:
            points, status = weight, FactorStatus.COMPLETE
        elif days_since_update is not None and days_since_update < days.stale:
            points, status = round(weight / 2), FactorStatus.PARTIAL
        else:
            points, status = 0, FactorStatus.MISSING

        if days_since_update is None or days_since_update >= days.stale:
            recommendation = "Update business profile to improve search ranking"
        elif days_since_update >= days.fresh:
            recommendation = "Consider updating profile information"
        else:
            recommendation = None

        return FactorScore(
            factor="Profile Freshness",
            category=FactorCategory.RECENCY,
            points=points,
            max_points=weight,
            status=status,
            current_value=(
                f"{days_since_update} days ago" if days_since_update is not None
                else "Never updated"
            ),
            recommendation=recommendation,
        )

    def _content_factors(self, business: Any, now: datetime) -> list[FactorScore]:
        weights = self.config.weights.content_richness

        gallery = getattr(business, "gallery", None) or []
        has_images = len(gallery) > 0

        shows_hours = bool(getattr(business, "show_business_hours", False))

        window_start = now - timedelta(days=self.config.thresholds.engagement_window_days)
        inquiries = getattr(business, "inquiries", None) or []
        # Unflushed inquiries have no created_at yet; they are new by definition
        recent = [
            inquiry for inquiry in inquiries
            if getattr(inquiry, "created_at", None) is None or inquiry.created_at >= window_start
        ]

        return [
            FactorScore(
                factor="Business Images",
                category=FactorCategory.CONTENT_RICHNESS,
                points=weights.business_images if has_images else 0,
                max_points=weights.business_images,
                status=FactorStatus.COMPLETE if has_images else FactorStatus.MISSING,
                current_value=f"{len(gallery)} in gallery" if has_images else None,
                recommendation=None if has_images else "Add business photos to gallery",
            ),
            FactorScore(
                factor="Business Hours Display",
                category=FactorCategory.CONTENT_RICHNESS,
                points=weights.business_hours if shows_hours else 0,
                max_points=weights.business_hours,
                status=FactorStatus.COMPLETE if shows_hours else FactorStatus.MISSING,
                current_value="Enabled" if shows_hours else "Disabled",
                recommendation=None if shows_hours else "Enable business hours display",
            ),
            FactorScore(
                factor="Customer Engagement",
                category=FactorCategory.CONTENT_RICHNESS,
                points=weights.customer_engagement if recent else 0,
                max_points=weights.customer_engagement,
                status=FactorStatus.COMPLETE if recent else FactorStatus.MISSING,
                current_value=(
                    f"{len(recent)} recent interactions" if recent else "No recent activity"
                ),
                recommendation=(
                    None if recent
                    else "Encourage customer inquiries through profile sharing"
                ),
            ),
        ]

    def _recommendations(self, breakdown: list[FactorScore]) -> dict[str, list[str]]:
        """Group factor recommendations by urgency."""
        immediate, short_term, long_term = [], [], []

        for factor in breakdown:
            if not factor.recommendation:
                continue
            if factor.status == FactorStatus.MISSING and factor.category == FactorCategory.COMPLETENESS:
                immediate.append(factor.recommendation)
            elif factor.category == FactorCategory.CONTENT_RICHNESS or factor.status == FactorStatus.PARTIAL:
                short_term.append(factor.recommendation)
            elif factor.category == FactorCategory.VERIFICATION:
                long_term.append(factor.recommendation)
            else:
                short_term.append(factor.recommendation)

        return {"immediate": immediate, "short_term": short_term, "long_term": long_term}

    def _next_steps(self, breakdown: list[FactorScore]) -> list[NextStep]:
        """Top prioritized actions, by priority then expected gain."""
        steps = []

        for factor in breakdown:
            gain = factor.max_points - factor.points
            if gain <= 0:
                continue

            if (
                factor.category == FactorCategory.COMPLETENESS
                and factor.status == FactorStatus.MISSING
                and factor.max_points >= 10
            ):
                priority = StepPriority.HIGH
                action = factor.recommendation or f"Complete {factor.factor}"
            elif (
                (factor.category == FactorCategory.COMPLETENESS and factor.status == FactorStatus.PARTIAL)
                or (factor.category == FactorCategory.CONTENT_RICHNESS and factor.status == FactorStatus.MISSING)
            ):
                priority = StepPriority.MEDIUM
                action = factor.recommendation or f"Improve {factor.factor}"
            elif factor.category == FactorCategory.VERIFICATION:
                priority = StepPriority.LOW
                action = factor.recommendation or f"Complete {factor.factor}"
            else:
                continue

            steps.append(NextStep(priority=priority, action=action, expected_score_increase=gain))

        steps.sort(key=lambda s: (-PRIORITY_ORDER[s.priority], -s.expected_score_increase))
        return steps[:MAX_NEXT_STEPS]


def quality_stats(
    scores: Iterable[int],
    thresholds: Optional[ScoringThresholds] = None,
) -> dict:
    """Aggregate statistics over a set of stored scores."""
    thresholds = thresholds or ScoringThresholds()
    scores = [score or 0 for score in scores]

    distribution = []
    for low in range(90, -1, -10):
        high = 100 if low == 90 else low + 9
        count = sum(1 for s in scores if low <= s <= high)
        if count:
            distribution.append({"range": f"{low}-{high}", "count": count})

    return {
        "total_businesses": len(scores),
        "average_score": round(sum(scores) / len(scores)) if scores else 0,
        "high_quality_count": sum(1 for s in scores if s >= thresholds.high_quality),
        "medium_quality_count": sum(
            1 for s in scores if thresholds.medium_quality <= s < thresholds.high_quality
        ),
        "low_quality_count": sum(1 for s in scores if s < thresholds.medium_quality),
        "critical_count": sum(1 for s in scores if s < thresholds.critical_quality),
        "score_distribution": distribution,
    }

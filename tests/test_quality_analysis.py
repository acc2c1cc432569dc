"""
Tests for improvement analysis: low-quality triage and per-listing detail.
"""

from datetime import timedelta

import pytest

from directory.exceptions import NotFoundError, ValidationError
from directory.models import AbnStatus, ApprovalStatus, utcnow
from directory.quality import QualityAnalyzer, QualityScorer
from directory.quality.analysis import (
    engagement_level,
    improvement_actions,
    improvement_plan,
    improvement_priority,
)


@pytest.fixture
def contact_only(make_business):
    """Base score 30: name, phone and email on a stale profile."""
    return make_business(
        name="Smith Plumbing",
        category="Plumbing",
        phone="0412345678",
        email="info@smith.com.au",
        quality_score=30,
        updated_at=utcnow() - timedelta(days=200),
    )


def test_actions_cover_every_missing_point(contact_only):
    result = QualityScorer().calculate(contact_only)
    actions = improvement_actions(result)

    assert sum(a.expected_score_increase for a in actions) == 100 - result.score
    assert [a.priority for a in actions] == sorted((a.priority for a in actions), reverse=True)
    assert {a.action for a in actions} >= {
        "Add a comprehensive business description",
        "Add and verify ABN for maximum credibility",
    }


def test_partial_description_is_not_high_priority(make_business):
    business = make_business(name="Smith Plumbing", bio="Plumbing.")
    actions = improvement_actions(QualityScorer().calculate(business))

    description = next(a for a in actions if a.action.startswith("Expand description"))
    assert description.type == "medium"
    assert description.expected_score_increase == 7


def test_complete_listing_has_nothing_to_do(complete_business):
    result = QualityScorer().calculate(complete_business())

    assert improvement_actions(result) == []
    assert improvement_plan([], result.score)["estimated_score_increase"] == 0


def test_improvement_priority():
    assert improvement_priority(100, [], days=0) == 0
    assert improvement_priority(0, [], days=None) == 60
    assert improvement_priority(50, [], days=45) == 25


def test_engagement_level():
    assert engagement_level(0) == "none"
    assert engagement_level(1) == "low"
    assert engagement_level(5) == "medium"
    assert engagement_level(12) == "high"


def test_improvement_plan_caps_gain(contact_only):
    result = QualityScorer().calculate(contact_only)
    plan = improvement_plan(improvement_actions(result), score=95)

    assert plan["estimated_score_increase"] == 5
    assert "Add website URL for increased credibility (+10 points)" in plan["quick_wins"]
    assert any(step.startswith("Add and verify ABN") for step in plan["long_term"])


# =============================================================================
# Low-quality triage
# =============================================================================

def test_low_quality_excludes_high_and_unapproved(db, contact_only, make_business):
    make_business(name="Great Listing", quality_score=85)
    make_business(name="Waiting Listing", quality_score=10, approval_status=ApprovalStatus.PENDING)

    report = QualityAnalyzer(db).low_quality()

    assert [b["id"] for b in report["businesses"]] == [contact_only.id]
    row = report["businesses"][0]
    assert row["quality_level"] == "low"
    assert row["missing_fields"] == ["Business Description", "Website URL", "Physical Address"]
    assert row["potential_score_increase"] == 70
    assert row["engagement_level"] == "none"
    assert row["last_updated"] == 200


def test_low_quality_sorting_and_filters(db, make_business):
    make_business(name="Beta Cafe", category="Food", quality_score=20)
    make_business(name="Alpha Cafe", category="Food", quality_score=40)
    make_business(name="Gamma Plumbing", category="Trades", quality_score=10,
                  abn_status=AbnStatus.PENDING)
    analyzer = QualityAnalyzer(db)

    by_score = analyzer.low_quality(sort_by="score", sort_order="asc")
    assert [b["name"] for b in by_score["businesses"]] == ["Gamma Plumbing", "Beta Cafe", "Alpha Cafe"]

    by_name = analyzer.low_quality(sort_by="name", sort_order="asc", category="Food")
    assert [b["name"] for b in by_name["businesses"]] == ["Alpha Cafe", "Beta Cafe"]

    pending = analyzer.low_quality(abn_status=AbnStatus.PENDING)
    assert [b["name"] for b in pending["businesses"]] == ["Gamma Plumbing"]

    with pytest.raises(ValidationError):
        analyzer.low_quality(sort_by="popularity")
    with pytest.raises(ValidationError):
        analyzer.low_quality(min_score=60, max_score=40)


def test_low_quality_stats(db, make_business):
    make_business(name="A", suburb="Richmond", category="Food", quality_score=20)
    make_business(name="B", suburb="Richmond", category="Food", quality_score=40)
    make_business(name="C", suburb="Carlton", category="Trades", quality_score=60)

    stats = QualityAnalyzer(db).low_quality(include_stats=True)["stats"]

    assert stats["total_count"] == 3
    assert stats["critical_count"] == 1
    assert stats["low_count"] == 1
    assert stats["medium_count"] == 1
    assert stats["average_score"] == 40
    assert stats["suburb_breakdown"][0] == {"suburb": "Richmond", "count": 2, "average_score": 30}
    assert stats["category_breakdown"][0]["category"] == "Food"
    assert stats["most_common_issues"][0]["business_count"] == 3


def test_low_quality_pagination(db, make_business):
    for i in range(5):
        make_business(name=f"Listing {i}", quality_score=i * 10)

    report = QualityAnalyzer(db).low_quality(page=2, limit=2)

    assert len(report["businesses"]) == 2
    assert report["pagination"]["total_count"] == 5
    assert report["pagination"]["total_pages"] == 3
    assert report["pagination"]["has_previous"] is True


# =============================================================================
# Detail analysis
# =============================================================================

def test_analyze_compares_with_peers(db, contact_only, make_business):
    make_business(name="Jones Plumbing", category="Plumbing", quality_score=60)
    make_business(name="Brown Plumbing", category="Plumbing", quality_score=20, suburb="Carlton")
    make_business(name="Richmond Cafe", category="Food", quality_score=90)

    analysis = QualityAnalyzer(db).analyze(contact_only.id)

    assert analysis["current_score"] == 30
    assert analysis["level"] == "low"
    comparison = analysis["competitor_comparison"]
    assert comparison["category_average"] == 40
    assert comparison["suburb_average"] == 75
    assert comparison["ranking"] == {
        "in_category": 2, "total_in_category": 3,
        "in_suburb": 3, "total_in_suburb": 3,
    }
    assert [f["factor"] for f in analysis["factors"]["verification"]] == [
        "ABN Verification", "Location Verification",
    ]
    assert analysis["improvement_plan"]["estimated_score_increase"] == 70
    assert "Below category average" not in " ".join(analysis["overall_recommendations"])


def test_analyze_high_listing_above_average(db, complete_business, make_business):
    business = complete_business(category="Plumbing")
    make_business(name="Jones Plumbing", category="Plumbing", quality_score=50)

    analysis = QualityAnalyzer(db).analyze(business.id)

    assert analysis["level"] == "high"
    assert "Above category average by 50 points" in analysis["overall_recommendations"]
    assert analysis["improvement_plan"]["quick_wins"] == []


def test_analyze_unknown_business(db):
    with pytest.raises(NotFoundError):
        QualityAnalyzer(db).analyze("missing-id")

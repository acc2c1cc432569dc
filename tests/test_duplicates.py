"""
Tests for duplicate matching, grouping, merge recommendations and merging.
"""

from datetime import timedelta

import pytest

from directory.duplicates import (
    BusinessMerger,
    DetectionMode,
    DuplicateDetector,
    MatchType,
    classify_pair,
    is_loose_duplicate,
    is_strict_duplicate,
    levenshtein_distance,
    similarity,
)
from directory.duplicates.matchers import name_similarity, score_pair
from directory.exceptions import NotFoundError, ValidationError
from directory.models import ApprovalStatus, Inquiry, utcnow
from directory.quality import BoostManager


# =============================================================================
# Similarity
# =============================================================================

def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("plumbing", "plumbing") == 0
    assert levenshtein_distance("", "abc") == 3


def test_similarity_bounds():
    assert similarity("richmond", "richmond") == 1.0
    assert similarity("", "richmond") == 0.0
    assert 0.0 < similarity("richmond", "richmund") < 1.0


def test_legal_suffixes_ignored_in_name_similarity():
    """'Pty Ltd' on one listing should not hide a match."""
    assert name_similarity("Smith Plumbing", "Smith Plumbing Pty Ltd") == 1.0
    assert name_similarity("Smith Plumbing", "Smith Plumbing Pty. Ltd.") == 1.0
    assert name_similarity("Green Leaf Cafe", "Green Leaf Co") < 1.0


# =============================================================================
# Classifiers
# =============================================================================

def test_same_phone_is_strict_regardless_of_other_fields():
    a = {"name": "Smith Plumbing", "suburb": "Richmond", "phone": "0412 345 678"}
    b = {"name": "Totally Different", "suburb": "Carlton", "phone": "+61 412 345 678"}
    assert is_strict_duplicate(a, b)


def test_same_website_domain_is_strict():
    a = {"name": "Smith Plumbing", "website": "www.smithplumbing.com.au"}
    b = {"name": "Smith & Sons", "website": "https://smithplumbing.com.au/contact"}
    assert is_strict_duplicate(a, b)


def test_same_name_needs_same_suburb_for_strict():
    a = {"name": "Smith Plumbing", "suburb": "Richmond"}
    assert is_strict_duplicate(a, {"name": "smith plumbing", "suburb": "RICHMOND"})
    assert not is_strict_duplicate(a, {"name": "Smith Plumbing", "suburb": "Carlton"})


def test_missing_fields_never_match():
    assert not is_strict_duplicate({"name": "A"}, {"name": "B"})
    assert not is_strict_duplicate({"name": None, "phone": None}, {"name": None, "phone": None})


def test_loose_match_with_legal_suffix():
    a = {"name": "Smith Plumbing", "suburb": "Richmond"}
    b = {"name": "Smith Plumbing Pty Ltd", "suburb": "Richmond"}
    assert is_loose_duplicate(a, b)


def test_loose_match_requires_same_suburb():
    a = {"name": "Smith Plumbing", "suburb": "Richmond"}
    b = {"name": "Smith Plumbing", "suburb": "Carlton"}
    assert not is_loose_duplicate(a, b)


def test_loose_threshold_is_configurable():
    a = {"name": "Smith Plumbing", "suburb": "Richmond"}
    b = {"name": "Smyth Plumbing", "suburb": "Richmond"}
    assert is_loose_duplicate(a, b)
    assert not is_loose_duplicate(a, b, threshold=0.99)


def test_score_pair_accumulates_signals():
    a = {"name": "Smith Plumbing", "suburb": "Richmond", "phone": "0412345678"}
    b = {"name": "Smith Plumbing", "suburb": "Richmond", "phone": "+61412345678"}
    confidence, matched_on, _ = score_pair(a, b)
    assert confidence == 60
    assert set(matched_on) == {"phone", "exact_name", "suburb"}


def test_score_pair_is_capped():
    shared = {
        "name": "Smith Plumbing", "suburb": "Richmond", "phone": "0412345678",
        "email": "info@smith.com.au", "website": "smith.com.au", "abn": "51824753556",
    }
    confidence, _, _ = score_pair(shared, dict(shared, abn="51 824 753 556"))
    assert confidence == 100


def test_classify_pair_modes():
    a = {"name": "Smith Plumbing", "suburb": "Richmond"}
    b = {"name": "Smith Plumbing Pty Ltd", "suburb": "Richmond"}

    assert classify_pair(a, b, DetectionMode.STRICT).match_type == MatchType.NO_MATCH

    result = classify_pair(a, b, DetectionMode.LOOSE)
    assert result.match_type == MatchType.LOOSE
    assert result.matched_on == ["suburb", "similar_name"]
    assert result.confidence == 30
    assert result.recommendation == "ignore"


def test_malformed_websites_never_raise_or_match():
    a = {"name": "Smith Plumbing", "suburb": "Richmond", "website": "http://[broken"}
    b = {"name": "Jones Electrical", "suburb": "Richmond", "website": "http://[broken"}
    assert not is_strict_duplicate(a, b)
    assert classify_pair(a, b, DetectionMode.LOOSE).match_type == MatchType.NO_MATCH

    same_phone = dict(b, phone="0412345678")
    assert is_strict_duplicate(dict(a, phone="+61 412 345 678"), same_phone)


# =============================================================================
# Detection
# =============================================================================

@pytest.fixture
def smith_listings(make_business):
    now = utcnow()
    older = make_business(
        name="Smith Plumbing", suburb="Richmond", phone="0412 345 678",
        quality_score=40, created_at=now - timedelta(days=10),
    )
    newer = make_business(
        name="Smith Plumbing Pty Ltd", suburb="Richmond", phone="+61412345678",
        email="info@smithplumbing.com.au", quality_score=60, created_at=now - timedelta(days=1),
    )
    other = make_business(
        name="Jones Electrical", suburb="Carlton", phone="03 9876 5432",
        created_at=now - timedelta(days=5),
    )
    return older, newer, other


def test_find_duplicates_for_one_business(db, smith_listings):
    older, newer, _ = smith_listings

    matches = DuplicateDetector(db).find_duplicates(older.id, DetectionMode.STRICT)

    assert [m.business.id for m in matches] == [newer.id]
    assert matches[0].result.match_type == MatchType.STRICT
    assert matches[0].result.confidence == 60
    assert "phone" in matches[0].result.matched_on


def test_find_duplicates_unknown_business(db):
    with pytest.raises(NotFoundError):
        DuplicateDetector(db).find_duplicates("missing-id")


def test_find_groups_suggests_highest_scoring_primary(db, smith_listings):
    older, newer, _ = smith_listings

    groups = DuplicateDetector(db).find_groups(DetectionMode.STRICT)

    assert len(groups) == 1
    group = groups[0]
    assert {b.id for b in group.businesses} == {older.id, newer.id}
    assert group.primary_business_id == newer.id
    assert group.match_type == MatchType.STRICT
    assert group.confidence == 60
    assert group.merge_recommendation.suggested
    assert group.merge_recommendation.priority == "medium"


def test_find_groups_loose_only_match(db, make_business):
    make_business(name="Green Leaf Cafe", suburb="Fitzroy")
    make_business(name="Green Leaf Cafe Pty Ltd", suburb="Fitzroy")

    detector = DuplicateDetector(db)
    assert detector.find_groups(DetectionMode.STRICT) == []

    groups = detector.find_groups(DetectionMode.LOOSE)
    assert len(groups) == 1
    assert groups[0].match_type == MatchType.LOOSE
    assert not groups[0].merge_recommendation.suggested
    assert groups[0].merge_recommendation.priority == "low"


def test_grouping_is_anchor_based_not_transitive(db, make_business):
    """Z only matches Y, and Y is already placed with the newer anchor X."""
    now = utcnow()
    x = make_business(name="Alpha Co", suburb="Kew", phone="0411111111", created_at=now)
    y = make_business(
        name="Bravo Services", suburb="Hawthorn", phone="0411111111",
        website="bravo.com.au", created_at=now - timedelta(days=1),
    )
    z = make_business(
        name="Charlie Trades", suburb="Carlton", website="www.bravo.com.au",
        created_at=now - timedelta(days=2),
    )

    groups = DuplicateDetector(db).find_groups(DetectionMode.STRICT)

    assert len(groups) == 1
    assert {b.id for b in groups[0].businesses} == {x.id, y.id}
    assert z.id not in {b.id for b in groups[0].businesses}


def test_find_groups_filters_by_suburb_and_skips_resolved(db, smith_listings, make_business):
    older, newer, _ = smith_listings
    detector = DuplicateDetector(db)

    assert detector.find_groups(DetectionMode.STRICT, suburb="Carlton") == []

    BusinessMerger(db).mark_as_duplicate(older.id, newer.id)
    assert detector.find_groups(DetectionMode.STRICT) == []
    assert len(detector.find_groups(DetectionMode.STRICT, include_resolved=True)) == 1


def test_suggest_primary_tie_breaks(db, make_business):
    now = utcnow()
    sparse = make_business(name="A", quality_score=50, created_at=now - timedelta(days=30))
    full = make_business(
        name="B", quality_score=50, phone="0412345678", email="b@b.com.au",
        created_at=now,
    )
    detector = DuplicateDetector(db)
    assert detector.suggest_primary([sparse, full]).id == full.id

    old = make_business(name="C", quality_score=50, created_at=now - timedelta(days=90))
    new = make_business(name="D", quality_score=50, created_at=now)
    assert detector.suggest_primary([new, old]).id == old.id


def test_recommend_merge_reports_conflicts_and_impact(db, make_business):
    primary = make_business(
        name="Smith Plumbing", suburb="Richmond", phone="0412345678",
        email="office@smith.com.au", quality_score=70,
    )
    make_business(
        name="Smith Plumbing", suburb="Richmond", phone="0412345678",
        email="jobs@smith.com.au", website="smithplumbing.com.au", quality_score=20,
    )

    groups = DuplicateDetector(db).find_groups(DetectionMode.STRICT)
    rec = groups[0].merge_recommendation

    assert groups[0].primary_business_id == primary.id
    assert rec.potential_data_loss == ["email"]
    assert rec.estimated_impact == 10
    assert rec.suggested
    assert "phone number" in rec.reasoning


def test_recommend_merge_ignores_formatting_differences(db, make_business):
    """Values that canonicalize to the same contact detail are not conflicts."""
    make_business(
        name="Smith Plumbing", suburb="Richmond", phone="0412 345 678",
        website="https://www.smith.com.au", email="Info@Smith.com.au",
        abn="51 824 753 556", quality_score=70,
    )
    make_business(
        name="Smith Plumbing Pty Ltd", suburb="Richmond", phone="+61412345678",
        website="smith.com.au", email="info@smith.com.au ",
        abn="51824753556", quality_score=20,
    )

    rec = DuplicateDetector(db).find_groups(DetectionMode.STRICT)[0].merge_recommendation

    assert rec.potential_data_loss == []
    assert "conflicting" not in rec.reasoning


def test_recommend_merge_still_reports_real_conflicts(db, make_business):
    make_business(
        name="Smith Plumbing", suburb="Richmond", phone="0412 345 678",
        website="https://www.smith.com.au", bio="Plumbing and gas fitting.",
        quality_score=70,
    )
    make_business(
        name="Smith Plumbing", suburb="Richmond", phone="+61412345678",
        website="smithplumbing.net", bio="Emergency plumbing.", quality_score=20,
    )

    rec = DuplicateDetector(db).find_groups(DetectionMode.STRICT)[0].merge_recommendation

    assert rec.potential_data_loss == ["website", "bio"]


# =============================================================================
# Merging
# =============================================================================

def test_merge_keep_primary(db, make_business):
    primary = make_business(name="Smith Plumbing", phone="0412345678")
    duplicate = make_business(
        name="Smith Plumbing Pty Ltd", phone="0412345678", website="smith.com.au",
        inquiries=[Inquiry(name="Jo", message="Leaking tap")],
    )

    result = BusinessMerger(db).merge(primary.id, [duplicate.id], "keep_primary")

    db.expire_all()
    assert result["inquiries_transferred"] == 1
    assert result["fields_filled"] == []
    assert len(primary.inquiries) == 1
    assert primary.website is None
    assert duplicate.duplicate_of_id == primary.id
    assert duplicate.approval_status == ApprovalStatus.REJECTED


def test_merge_data_fills_empty_fields_and_rescores(db, make_business):
    primary = make_business(name="Smith Plumbing", phone="0412345678")
    duplicate = make_business(
        name="Smith Plumbing", phone="0412345678",
        website="smith.com.au", email="info@smith.com.au",
    )

    result = BusinessMerger(db).merge(primary.id, [duplicate.id], "merge_data")

    db.expire_all()
    assert set(result["fields_filled"]) == {"email", "website"}
    assert primary.website == "smith.com.au"
    assert primary.email == "info@smith.com.au"
    assert primary.quality_score == BoostManager(db).effective_score(primary)
    assert result["new_score"] == primary.quality_score


def test_merge_validation(db, make_business):
    primary = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)

    with pytest.raises(ValidationError):
        merger.merge(primary.id, [primary.id])
    with pytest.raises(ValidationError):
        merger.merge(primary.id, [])
    with pytest.raises(ValidationError):
        merger.merge(primary.id, ["x"], strategy="squash")
    with pytest.raises(NotFoundError):
        merger.merge(primary.id, ["missing-id"])


def test_unmark_restores_listing(db, make_business):
    primary = make_business(name="Smith Plumbing")
    duplicate = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)
    merger.merge(primary.id, [duplicate.id])

    business = merger.unmark(duplicate.id, ApprovalStatus.APPROVED)

    assert business.duplicate_of_id is None
    assert business.approval_status == ApprovalStatus.APPROVED
    with pytest.raises(ValidationError):
        merger.unmark(duplicate.id)


def test_merge_into_a_marked_duplicate_is_rejected(db, make_business):
    """Merging back into a listing that is already linked away would leave no active listing."""
    a = make_business(name="Smith Plumbing")
    b = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)
    merger.mark_as_duplicate(a.id, b.id)

    with pytest.raises(ValidationError) as exc_info:
        merger.merge(a.id, [b.id])

    assert exc_info.value.details["field"] == "primary_business_id"
    db.expire_all()
    assert a.duplicate_of_id == b.id
    assert b.duplicate_of_id is None
    assert b.approval_status == ApprovalStatus.APPROVED


def test_mark_as_duplicate_requires_active_canonical(db, make_business):
    a = make_business(name="Smith Plumbing")
    b = make_business(name="Smith Plumbing")
    c = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)
    merger.mark_as_duplicate(a.id, b.id)

    with pytest.raises(ValidationError):
        merger.mark_as_duplicate(b.id, a.id)
    with pytest.raises(ValidationError):
        merger.mark_as_duplicate(c.id, a.id)
    with pytest.raises(ValidationError):
        merger.mark_as_duplicate(c.id, c.id)

    db.expire_all()
    assert b.duplicate_of_id is None
    assert c.duplicate_of_id is None


def test_bulk_merge_is_one_result(db, make_business):
    primary = make_business(name="Smith Plumbing", phone="0412345678")
    first = make_business(name="Smith Plumbing", phone="0412345678")
    second = make_business(name="Smith Plumbing Pty Ltd", phone="0412345678")

    outcome = BusinessMerger(db).bulk(
        "merge", [primary.id, first.id, second.id], primary_business_id=primary.id,
    )

    assert outcome["summary"] == {"operation": "merge", "total": 3, "successful": 1, "failed": 0}
    assert set(outcome["results"][0]["result"]["merged_business_ids"]) == {first.id, second.id}


def test_bulk_merge_failure_is_reported_not_raised(db, make_business):
    primary = make_business(name="Smith Plumbing")
    other = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)
    merger.mark_as_duplicate(other.id, primary.id)

    outcome = merger.bulk("merge", [other.id, primary.id], primary_business_id=other.id)

    assert outcome["summary"]["failed"] == 1
    assert outcome["results"][0]["success"] is False
    assert "marked as a duplicate" in outcome["results"][0]["error"]


def test_bulk_validation(db, make_business):
    business = make_business(name="Smith Plumbing")
    merger = BusinessMerger(db)

    with pytest.raises(ValidationError):
        merger.bulk("delete", [business.id])
    with pytest.raises(ValidationError):
        merger.bulk("unmark", [])
    with pytest.raises(ValidationError):
        merger.bulk("mark_as_duplicate", [business.id])
    with pytest.raises(NotFoundError):
        merger.bulk("mark_as_duplicate", [business.id], primary_business_id="missing-id")

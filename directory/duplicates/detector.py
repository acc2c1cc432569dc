"""
Duplicate Detection and Merging

Scans the directory for listings that describe the same business, groups
them around an anchor listing, recommends a primary, and merges groups
back into a single canonical listing.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from config.logging import logger
from directory.duplicates.matchers import (
    MERGE_CONFIDENCE,
    REVIEW_CONFIDENCE,
    DetectionMode,
    MatchResult,
    MatchType,
    classify_pair,
)
from directory.exceptions import DirectoryError, NotFoundError, ValidationError
from directory.models import ApprovalStatus, Business, utcnow
from directory.normalize import extract_hostname, normalize_email, normalize_phone
from directory.quality.boosts import BoostManager
from directory.quality.scorer import QualityScorer, profile_snapshot

# Fields that merge_data fills on the primary from its duplicates
MERGEABLE_FIELDS = ["phone", "email", "website", "bio", "abn", "address"]

# Fields counted when breaking ties between candidate primaries
COMPLETENESS_FIELDS = [
    "name", "bio", "phone", "email", "website", "address", "abn",
    "latitude", "longitude",
]

SIGNAL_LABELS = {
    "phone": "phone number",
    "website": "website domain",
    "email": "email address",
    "abn": "ABN",
    "exact_name": "business name",
    "similar_name": "similar business name",
    "suburb": "suburb",
}

MERGE_STRATEGIES = ("keep_primary", "merge_data")

BULK_OPERATIONS = ("merge", "unmark", "mark_as_duplicate")


def _abn_digits(abn: str) -> Optional[str]:
    return re.sub(r"\D", "", abn) or None


# Canonical forms used when checking whether two values really conflict
FIELD_COMPARATORS = {
    "phone": normalize_phone,
    "email": normalize_email,
    "website": extract_hostname,
    "abn": _abn_digits,
}


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def values_conflict(name: str, value: Any, other: Any) -> bool:
    """True when two filled values for a field differ after canonicalizing."""
    canonical = FIELD_COMPARATORS.get(name)
    if canonical is None:
        return value != other
    left, right = canonical(value), canonical(other)
    if left is None or right is None:
        return value != other
    return left != right


def filled_field_count(business: Business) -> int:
    return sum(1 for name in COMPLETENESS_FIELDS if _is_filled(getattr(business, name, None)))


def business_summary(business: Business) -> dict:
    return {
        "id": business.id,
        "name": business.name,
        "suburb": business.suburb,
        "category": business.category,
        "phone": business.phone,
        "email": business.email,
        "website": business.website,
        "abn": business.abn,
        "quality_score": business.quality_score,
        "approval_status": business.approval_status.value,
        "duplicate_of_id": business.duplicate_of_id,
        "created_at": business.created_at.isoformat() if business.created_at else None,
    }


@dataclass
class DuplicateMatch:
    """Another listing that matches a target, with the pair analysis."""
    business: Business
    result: MatchResult

    def to_dict(self) -> dict:
        return {"business": business_summary(self.business), **self.result.to_dict()}


@dataclass
class MergeRecommendation:
    suggested: bool
    priority: str
    reasoning: str
    potential_data_loss: list[str] = field(default_factory=list)
    estimated_impact: int = 0

    def to_dict(self) -> dict:
        return {
            "suggested": self.suggested,
            "priority": self.priority,
            "reasoning": self.reasoning,
            "potential_data_loss": list(self.potential_data_loss),
            "estimated_impact": self.estimated_impact,
        }


@dataclass
class DuplicateGroup:
    """An anchor listing and its direct matches."""
    id: str
    businesses: list[Business]
    primary_business_id: str
    confidence: int
    match_type: MatchType
    reasons: list[str] = field(default_factory=list)
    merge_recommendation: Optional[MergeRecommendation] = None
    resolved: bool = False

    @property
    def primary(self) -> Business:
        return next(b for b in self.businesses if b.id == self.primary_business_id)

    @property
    def duplicates(self) -> list[Business]:
        return [b for b in self.businesses if b.id != self.primary_business_id]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "businesses": [business_summary(b) for b in self.businesses],
            "primary_business_id": self.primary_business_id,
            "confidence": self.confidence,
            "match_type": self.match_type.value,
            "reasons": list(self.reasons),
            "merge_recommendation": (
                self.merge_recommendation.to_dict() if self.merge_recommendation else None
            ),
            "resolved": self.resolved,
        }


class DuplicateDetector:
    """
    Finds duplicate listings.

    Grouping is anchor-based: businesses are visited newest first, and each
    unplaced business forms a group with its direct matches. Matches of
    matches are not pulled in.

    Usage:
        detector = DuplicateDetector(db)
        groups = detector.find_groups(DetectionMode.LOOSE, suburb="Richmond")
        for group in groups:
            print(group.primary.name, group.confidence)
    """

    def __init__(self, db: Session, scorer: Optional[QualityScorer] = None):
        self.db = db
        self.scorer = scorer or QualityScorer()

    def _candidates(
        self,
        suburb: Optional[str] = None,
        category: Optional[str] = None,
        include_resolved: bool = False,
    ) -> list[Business]:
        query = self.db.query(Business)
        if suburb:
            query = query.filter(Business.suburb.ilike(f"%{suburb}%"))
        if category:
            query = query.filter(Business.category == category)
        if not include_resolved:
            query = query.filter(Business.duplicate_of_id.is_(None))
        return query.order_by(Business.created_at.desc(), Business.id).all()

    def find_duplicates(
        self,
        business_id: str,
        mode: DetectionMode = DetectionMode.STRICT,
        include_resolved: bool = False,
    ) -> list[DuplicateMatch]:
        """
        All listings matching one business, highest confidence first.

        Raises:
            NotFoundError: If the business does not exist
        """
        target = self.db.query(Business).filter(Business.id == business_id).first()
        if not target:
            raise NotFoundError("Business", business_id)

        matches = []
        for candidate in self._candidates(include_resolved=include_resolved):
            if candidate.id == target.id:
                continue
            result = classify_pair(target, candidate, mode)
            if result.is_match:
                matches.append(DuplicateMatch(business=candidate, result=result))

        matches.sort(key=lambda m: m.result.confidence, reverse=True)
        logger.debug(f"Found {len(matches)} duplicate(s) for {target.name}")
        return matches

    def find_groups(
        self,
        mode: DetectionMode = DetectionMode.STRICT,
        suburb: Optional[str] = None,
        category: Optional[str] = None,
        include_resolved: bool = False,
    ) -> list[DuplicateGroup]:
        """Group candidate listings around anchors, highest confidence first."""
        businesses = self._candidates(suburb, category, include_resolved)
        placed: set[str] = set()
        groups = []

        for anchor in businesses:
            if anchor.id in placed:
                continue

            members = [anchor]
            results = []
            for other in businesses:
                if other.id == anchor.id or other.id in placed:
                    continue
                result = classify_pair(anchor, other, mode)
                if result.is_match:
                    members.append(other)
                    results.append(result)

            if len(members) < 2:
                continue

            placed.update(b.id for b in members)
            groups.append(self._build_group(members, results))

        groups.sort(key=lambda g: g.confidence, reverse=True)
        logger.info(f"Duplicate scan ({mode.value}): {len(groups)} group(s) from {len(businesses)} listings")
        return groups

    def _build_group(self, members: list[Business], results: list[MatchResult]) -> DuplicateGroup:
        reasons: list[str] = []
        for result in results:
            for signal in result.matched_on:
                if signal not in reasons:
                    reasons.append(signal)

        match_type = (
            MatchType.STRICT
            if any(r.match_type == MatchType.STRICT for r in results)
            else MatchType.LOOSE
        )
        primary = self.suggest_primary(members)

        group = DuplicateGroup(
            id=f"group-{members[0].id}",
            businesses=members,
            primary_business_id=primary.id,
            confidence=max(r.confidence for r in results),
            match_type=match_type,
            reasons=reasons,
            resolved=all(b.duplicate_of_id for b in members if b.id != primary.id),
        )
        group.merge_recommendation = self.recommend_merge(group)
        return group

    def suggest_primary(self, businesses: list[Business]) -> Business:
        """Highest quality score, then most filled fields, then oldest."""
        unknown = datetime.max

        return min(
            businesses,
            key=lambda b: (
                -(b.quality_score or 0),
                -filled_field_count(b),
                b.created_at or unknown,
            ),
        )

    def recommend_merge(self, group: DuplicateGroup) -> MergeRecommendation:
        primary = group.primary
        duplicates = group.duplicates

        data_loss = []
        for name in MERGEABLE_FIELDS:
            primary_value = getattr(primary, name, None)
            if not _is_filled(primary_value):
                continue
            if any(
                _is_filled(getattr(dup, name, None))
                and values_conflict(name, primary_value, getattr(dup, name))
                for dup in duplicates
            ):
                data_loss.append(name)

        now = utcnow()
        current = self.scorer.score(primary, now=now)
        merged = self.scorer.score(merged_profile(primary, duplicates), now=now)
        impact = max(0, merged - current)

        confidence = group.confidence
        suggested = confidence >= MERGE_CONFIDENCE or (
            group.match_type == MatchType.STRICT and confidence >= REVIEW_CONFIDENCE
        )
        if confidence >= MERGE_CONFIDENCE:
            priority = "high"
        elif confidence >= REVIEW_CONFIDENCE:
            priority = "medium"
        else:
            priority = "low"

        signals = [SIGNAL_LABELS.get(s, s) for s in group.reasons]
        reasoning = (
            f"{len(group.businesses)} listings share {', '.join(signals) or 'no signals'} "
            f"({group.match_type.value} match, {confidence}% confidence). "
            f"Keep '{primary.name}' as the primary listing."
        )
        if data_loss:
            reasoning += f" Review conflicting {', '.join(data_loss)} before merging."

        return MergeRecommendation(
            suggested=suggested,
            priority=priority,
            reasoning=reasoning,
            potential_data_loss=data_loss,
            estimated_impact=impact,
        )


def merged_profile(primary: Business, duplicates: list[Business]):
    """Snapshot of the primary as it would look after a merge_data merge."""
    overrides = {}
    for name in MERGEABLE_FIELDS:
        if _is_filled(getattr(primary, name, None)):
            continue
        for dup in duplicates:
            value = getattr(dup, name, None)
            if _is_filled(value):
                overrides[name] = value
                break

    inquiries = list(primary.inquiries)
    for dup in duplicates:
        inquiries.extend(dup.inquiries)
    overrides["inquiries"] = inquiries
    return profile_snapshot(primary, **overrides)


class BusinessMerger:
    """
    Applies merge decisions.

    Duplicates are soft-linked to the primary and rejected rather than
    deleted, so a merge can be undone with unmark().
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, business_id: str) -> Business:
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if not business:
            raise NotFoundError("Business", business_id)
        return business

    def _check_canonical(self, canonical: Business, field_name: str):
        """Only active listings can absorb duplicates, which keeps links acyclic."""
        if canonical.duplicate_of_id:
            raise ValidationError(
                f"{canonical.name} is itself marked as a duplicate of {canonical.duplicate_of_id}",
                field=field_name,
                duplicate_of_id=canonical.duplicate_of_id,
            )

    def merge(
        self,
        primary_id: str,
        duplicate_ids: list[str],
        strategy: str = "keep_primary",
        reason: Optional[str] = None,
        admin_user_id: Optional[str] = None,
    ) -> dict:
        """
        Merge duplicates into the primary in a single transaction.

        Returns:
            Dict describing the primary's new state and what moved
        """
        if strategy not in MERGE_STRATEGIES:
            raise ValidationError(f"Unknown merge strategy: {strategy}", field="merge_strategy")
        if not duplicate_ids:
            raise ValidationError("At least one duplicate id is required", field="duplicate_business_ids")
        if primary_id in duplicate_ids:
            raise ValidationError(
                "Primary business cannot also be a duplicate",
                field="duplicate_business_ids",
            )

        primary = self.get(primary_id)
        duplicates = [self.get(dup_id) for dup_id in dict.fromkeys(duplicate_ids)]
        self._check_canonical(primary, "primary_business_id")
        previous_score = primary.quality_score

        filled_fields = []
        transferred = 0
        try:
            if strategy == "merge_data":
                for name in MERGEABLE_FIELDS:
                    if _is_filled(getattr(primary, name)):
                        continue
                    for dup in duplicates:
                        value = getattr(dup, name)
                        if _is_filled(value):
                            setattr(primary, name, value)
                            filled_fields.append(name)
                            break
                if filled_fields:
                    primary.updated_at = utcnow()

            for dup in duplicates:
                for inquiry in list(dup.inquiries):
                    inquiry.business = primary
                    transferred += 1
                dup.duplicate_of_id = primary.id
                dup.approval_status = ApprovalStatus.REJECTED

            self.db.flush()
            primary.quality_score = BoostManager(self.db).effective_score(primary)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Merged {len(duplicates)} duplicate(s) into {primary.name} "
            f"({strategy}, {transferred} inquiries moved)"
            + (f": {reason}" if reason else "")
        )

        return {
            "primary_business_id": primary.id,
            "merged_business_ids": [dup.id for dup in duplicates],
            "merge_strategy": strategy,
            "fields_filled": filled_fields,
            "inquiries_transferred": transferred,
            "previous_score": previous_score,
            "new_score": primary.quality_score,
            "merged_by": admin_user_id,
        }

    def unmark(
        self,
        business_id: str,
        restore_status: ApprovalStatus = ApprovalStatus.PENDING,
    ) -> Business:
        """Clear a duplicate marking and restore an approval status."""
        business = self.get(business_id)
        if not business.is_duplicate:
            raise ValidationError("Business is not marked as duplicate", field="business_id")

        previous = business.duplicate_of_id
        business.duplicate_of_id = None
        business.approval_status = restore_status
        self.db.commit()

        logger.info(f"Unmarked {business.name} as duplicate of {previous}")
        return business

    def mark_as_duplicate(self, duplicate_id: str, canonical_id: str) -> Business:
        """Soft-link one listing to its canonical listing."""
        if duplicate_id == canonical_id:
            raise ValidationError("A business cannot be a duplicate of itself", field="canonical_id")

        duplicate = self.get(duplicate_id)
        canonical = self.get(canonical_id)
        self._check_canonical(canonical, "canonical_id")

        duplicate.duplicate_of_id = canonical.id
        duplicate.approval_status = ApprovalStatus.REJECTED
        self.db.commit()

        logger.info(f"Marked {duplicate.name} as duplicate of {canonical.name}")
        return duplicate

    def bulk(
        self,
        operation: str,
        business_ids: list[str],
        primary_business_id: Optional[str] = None,
        strategy: str = "keep_primary",
        restore_status: ApprovalStatus = ApprovalStatus.PENDING,
        reason: Optional[str] = None,
        admin_user_id: Optional[str] = None,
    ) -> dict:
        """
        Run merge, unmark or mark_as_duplicate over a batch of listings.

        A merge is all-or-nothing and reported as a single result. unmark and
        mark_as_duplicate run per listing; failures are reported per item and
        do not stop the batch.

        Raises:
            ValidationError: For an unknown operation, an empty batch, or a
                missing primary
            NotFoundError: If the primary business does not exist
        """
        if operation not in BULK_OPERATIONS:
            raise ValidationError(f"Unknown bulk operation: {operation}", field="operation")
        if not business_ids:
            raise ValidationError("No business IDs provided", field="business_ids")
        if operation in ("merge", "mark_as_duplicate"):
            if not primary_business_id:
                raise ValidationError(
                    f"Primary business ID required for {operation} operations",
                    field="primary_business_id",
                )
            if operation == "merge" and primary_business_id not in business_ids:
                raise ValidationError(
                    "Primary business ID must be included in business IDs list",
                    field="primary_business_id",
                )
            self.get(primary_business_id)

        if operation == "merge":
            results = [self._bulk_merge(
                primary_business_id, business_ids, strategy, reason, admin_user_id
            )]
        elif operation == "unmark":
            results = [
                self._bulk_item(business_id, self.unmark, business_id, restore_status)
                for business_id in business_ids
            ]
        else:
            results = [
                self._bulk_item(business_id, self.mark_as_duplicate, business_id, primary_business_id)
                for business_id in business_ids if business_id != primary_business_id
            ]

        successful = sum(1 for result in results if result["success"])
        logger.info(
            f"Bulk {operation}: {successful} successful, {len(results) - successful} failed"
        )
        return {
            "summary": {
                "operation": operation,
                "total": len(business_ids),
                "successful": successful,
                "failed": len(results) - successful,
            },
            "results": results,
        }

    def _bulk_merge(self, primary_id, business_ids, strategy, reason, admin_user_id) -> dict:
        duplicate_ids = [business_id for business_id in business_ids if business_id != primary_id]
        try:
            result = self.merge(primary_id, duplicate_ids, strategy, reason, admin_user_id)
        except DirectoryError as e:
            logger.warning(f"Bulk merge into {primary_id} failed: {e.message}")
            return {"operation": "merge", "success": False, "error": e.message}
        return {"operation": "merge", "success": True, "result": result}

    def _bulk_item(self, business_id: str, action, *args) -> dict:
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if not business:
            return {"business_id": business_id, "success": False, "error": "Business not found"}

        original_state = _link_state(business)
        try:
            business = action(*args)
        except DirectoryError as e:
            self.db.rollback()
            logger.warning(f"Bulk update of {business_id} failed: {e.message}")
            return {"business_id": business_id, "success": False, "error": e.message}

        return {
            "business_id": business_id,
            "success": True,
            "original_state": original_state,
            "new_state": _link_state(business),
        }


def _link_state(business: Business) -> dict:
    return {
        "duplicate_of_id": business.duplicate_of_id,
        "approval_status": business.approval_status.value,
    }

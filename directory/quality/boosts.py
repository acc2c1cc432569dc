"""
Manual quality boosts and score recalculation.

The stored quality_score is always the effective score: a fresh base
calculation plus every active boost, clamped to [0, 100]. Expiring or
removing a boost recomputes from source fields rather than subtracting
the boost's delta from the stored value.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from config.logging import logger
from directory.exceptions import BoostsDisabledError, NotFoundError, ValidationError
from directory.models import (
    AbnStatus,
    ApprovalStatus,
    BoostCategory,
    Business,
    ManualQualityBoost,
    utcnow,
)
from directory.quality.config import QualityScoringConfig, load_config
from directory.quality.scorer import QualityScorer, QualityScoreResult, clamp_score

BOOST_DURATIONS = {
    "permanent": None,
    "30days": 30,
    "90days": 90,
    "365days": 365,
}

MIN_REASON_LENGTH = 10
MAX_BOOST_BATCH = 100


class BoostManager:
    """
    Applies, expires and removes manual boosts, and keeps stored scores in
    step with them.

    Usage:
        manager = BoostManager(db)
        manager.apply_boost(["biz-id"], 10, "Verified partner listing")
        manager.remove_boosts([boost_id], action="remove")
    """

    def __init__(
        self,
        db: Session,
        config: Optional[QualityScoringConfig] = None,
    ):
        self.db = db
        self.config = config or load_config(db)
        self.scorer = QualityScorer(self.config)

    def active_boosts(
        self,
        business: Business,
        now: Optional[datetime] = None,
    ) -> list[ManualQualityBoost]:
        now = now or utcnow()
        return [boost for boost in business.boosts if boost.is_active(now)]

    def effective_score(self, business: Business, now: Optional[datetime] = None) -> int:
        """Base score plus active boosts, clamped to [0, 100]."""
        now = now or utcnow()
        base = self.scorer.score(business, now=now)
        boost_total = sum(boost.boost_amount for boost in self.active_boosts(business, now))
        return clamp_score(base + boost_total)

    def apply_boost(
        self,
        business_ids: list[str],
        boost_amount: int,
        reason: str,
        category: BoostCategory = BoostCategory.OTHER,
        duration: str = "permanent",
        admin_user_id: Optional[str] = None,
    ) -> dict:
        """
        Apply the same boost to each business.

        The recorded amount is the delta that actually landed after clamping,
        so a +10 boost on a 95 listing is stored as +5.

        Returns:
            Dict with per-business results and a summary
        """
        max_boost = self.config.features.max_manual_boost
        if not self.config.features.enable_manual_boosts:
            raise BoostsDisabledError()
        if not business_ids:
            raise ValidationError("At least one business id is required", field="business_ids")
        if len(business_ids) > MAX_BOOST_BATCH:
            raise ValidationError(
                f"At most {MAX_BOOST_BATCH} businesses can be boosted at once",
                field="business_ids",
            )
        if abs(boost_amount) > max_boost:
            raise ValidationError(
                f"Boost amount exceeds maximum allowed limit of ±{max_boost}",
                field="boost_amount",
                requested=boost_amount,
                max_allowed=max_boost,
            )
        if not reason or len(reason.strip()) < MIN_REASON_LENGTH:
            raise ValidationError(
                f"Reason must be at least {MIN_REASON_LENGTH} characters",
                field="reason",
            )
        if duration not in BOOST_DURATIONS:
            raise ValidationError(f"Unknown boost duration: {duration}", field="duration")

        unique_ids = list(dict.fromkeys(business_ids))
        businesses = self.db.query(Business).filter(
            Business.id.in_(unique_ids),
            Business.approval_status == ApprovalStatus.APPROVED,
        ).all()

        found = {business.id for business in businesses}
        missing = [business_id for business_id in unique_ids if business_id not in found]
        if missing:
            raise NotFoundError("Approved business", ", ".join(missing))

        now = utcnow()
        days = BOOST_DURATIONS[duration]
        expires_at = now + timedelta(days=days) if days else None

        results = []
        try:
            for business in businesses:
                original_score = self.effective_score(business, now)
                new_score = clamp_score(original_score + boost_amount)
                actual_boost = new_score - original_score

                boost = ManualQualityBoost(
                    business=business,
                    admin_user_id=admin_user_id,
                    original_score=original_score,
                    boost_amount=actual_boost,
                    new_score=new_score,
                    reason=reason.strip(),
                    category=category,
                    expires_at=expires_at,
                )
                self.db.add(boost)
                self.db.flush()
                business.quality_score = self.effective_score(business, now)

                results.append({
                    "business_id": business.id,
                    "business_name": business.name,
                    "original_score": original_score,
                    "boost_amount": actual_boost,
                    "new_score": business.quality_score,
                    "boost_record_id": boost.id,
                })

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Applied boost {boost_amount:+d} ({category.value}, {duration}) "
            f"to {len(results)} business(es)"
        )

        return {
            "results": results,
            "summary": {
                "total_businesses": len(results),
                "average_original_score": round(
                    sum(r["original_score"] for r in results) / len(results)
                ),
                "average_new_score": round(sum(r["new_score"] for r in results) / len(results)),
                "boost_amount": boost_amount,
                "category": category.value,
                "duration": duration,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        }

    def remove_boosts(self, boost_ids: list[str], action: str = "expire") -> list[dict]:
        """
        Expire (expires_at = now) or delete boosts, then recompute each
        affected business from source fields plus its remaining boosts.
        """
        if action not in ("expire", "remove"):
            raise ValidationError(f"Unknown action: {action}", field="action")
        if not boost_ids:
            raise ValidationError("At least one boost id is required", field="boost_ids")

        boosts = self.db.query(ManualQualityBoost).filter(
            ManualQualityBoost.id.in_(boost_ids)
        ).all()
        if not boosts:
            raise NotFoundError("Boost", ", ".join(boost_ids))

        now = utcnow()
        results = []
        try:
            for boost in boosts:
                business = boost.business
                previous_score = business.quality_score

                if action == "expire":
                    boost.expires_at = now
                else:
                    business.boosts.remove(boost)
                    self.db.delete(boost)
                self.db.flush()

                business.quality_score = self.effective_score(business, now)

                results.append({
                    "boost_id": boost.id,
                    "business_id": business.id,
                    "business_name": business.name,
                    "removed_boost_amount": boost.boost_amount,
                    "previous_score": previous_score,
                    "new_score": business.quality_score,
                    "action": action,
                    "original_reason": boost.reason,
                    "original_category": boost.category.value,
                })

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"{action.capitalize()}d {len(results)} boost(s)")
        return results

    def list_boosts(
        self,
        business_id: Optional[str] = None,
        category: Optional[BoostCategory] = None,
        admin_user_id: Optional[str] = None,
        include_expired: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """Boost history, newest first, with page statistics."""
        page = max(1, page)
        limit = min(100, max(1, limit))
        now = utcnow()

        query = self.db.query(ManualQualityBoost)
        if business_id:
            query = query.filter(ManualQualityBoost.business_id == business_id)
        if category:
            query = query.filter(ManualQualityBoost.category == category)
        if admin_user_id:
            query = query.filter(ManualQualityBoost.admin_user_id == admin_user_id)
        if not include_expired:
            query = query.filter(
                (ManualQualityBoost.expires_at.is_(None)) | (ManualQualityBoost.expires_at > now)
            )

        total_count = query.count()
        boosts = (
            query.order_by(ManualQualityBoost.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        active = [boost for boost in boosts if boost.is_active(now)]
        total_amount = sum(boost.boost_amount for boost in boosts)

        category_breakdown: dict[str, int] = {}
        for boost in boosts:
            category_breakdown[boost.category.value] = category_breakdown.get(boost.category.value, 0) + 1

        return {
            "boosts": [boost_to_dict(boost, now) for boost in boosts],
            "pagination": {
                "page": page,
                "limit": limit,
                "total_count": total_count,
                "total_pages": (total_count + limit - 1) // limit,
                "has_next": page * limit < total_count,
                "has_previous": page > 1,
            },
            "statistics": {
                "total_boosts": total_count,
                "active_boosts": len(active),
                "expired_boosts": len(boosts) - len(active),
                "total_boost_amount": total_amount,
                "average_boost": round(total_amount / len(boosts), 1) if boosts else 0,
                "category_breakdown": category_breakdown,
            },
        }

    def recalculate(
        self,
        business_id: str,
        require_approved: bool = False,
    ) -> tuple[Business, int, QualityScoreResult]:
        """
        Recompute and store one business's effective score.

        Returns:
            (business, previous stored score, base calculation result)
        """
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if not business:
            raise NotFoundError("Business", business_id)
        if require_approved and business.approval_status != ApprovalStatus.APPROVED:
            raise ValidationError(
                "Cannot calculate quality score for non-approved business",
                field="approval_status",
                current_status=business.approval_status.value,
            )

        now = utcnow()
        previous_score = business.quality_score
        result = self.scorer.calculate(business, now=now)
        business.quality_score = self.effective_score(business, now)
        self.db.commit()

        logger.debug(
            f"Recalculated {business.name}: {previous_score} -> {business.quality_score}"
        )
        return business, previous_score, result

    def recalculate_many(
        self,
        business_ids: Optional[list[str]] = None,
        filters: Optional[dict[str, Any]] = None,
        recalculate_all: bool = False,
    ) -> dict:
        """
        Recalculate a batch, chosen by ids, by filters, or everything.

        Failures are recorded per business and do not stop the batch.
        """
        query = self.db.query(Business.id, Business.name)
        if recalculate_all:
            pass
        elif business_ids:
            query = query.filter(Business.id.in_(business_ids))
        elif filters:
            query = apply_business_filters(query, filters)
        else:
            raise ValidationError("Must specify business_ids, filters, or recalculate_all")

        targets = query.all()
        results = {"total": len(targets), "updated": 0, "failed": 0, "businesses": []}

        for business_id, name in targets:
            try:
                business, previous, _ = self.recalculate(business_id)
                results["updated"] += 1
                results["businesses"].append({
                    "id": business_id,
                    "name": name,
                    "success": True,
                    "previous_score": previous,
                    "new_score": business.quality_score,
                })
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to recalculate {business_id}: {e}")
                results["failed"] += 1
                results["businesses"].append({
                    "id": business_id,
                    "name": name,
                    "success": False,
                    "error": str(e),
                })

        logger.info(
            f"Recalculation complete: {results['updated']} updated, {results['failed']} failed"
        )
        return results


def apply_business_filters(query, filters: dict[str, Any]):
    """Apply the common admin listing filters to a Business query."""
    suburb = filters.get("suburb")
    if suburb:
        query = query.filter(Business.suburb.ilike(f"%{suburb}%"))
    if filters.get("category"):
        query = query.filter(Business.category == filters["category"])
    if filters.get("approval_status"):
        query = query.filter(
            Business.approval_status == ApprovalStatus(_enum_value(filters["approval_status"]))
        )
    if filters.get("abn_status"):
        query = query.filter(Business.abn_status == AbnStatus(_enum_value(filters["abn_status"])))
    if filters.get("min_score") is not None:
        query = query.filter(Business.quality_score >= filters["min_score"])
    if filters.get("max_score") is not None:
        query = query.filter(Business.quality_score <= filters["max_score"])
    return query


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def boost_to_dict(boost: ManualQualityBoost, now: Optional[datetime] = None) -> dict:
    return {
        "id": boost.id,
        "business_id": boost.business_id,
        "business_name": boost.business.name if boost.business else None,
        "admin_user_id": boost.admin_user_id,
        "original_score": boost.original_score,
        "boost_amount": boost.boost_amount,
        "new_score": boost.new_score,
        "reason": boost.reason,
        "category": boost.category.value,
        "expires_at": boost.expires_at.isoformat() if boost.expires_at else None,
        "active": boost.is_active(now),
        "created_at": boost.created_at.isoformat() if boost.created_at else None,
    }

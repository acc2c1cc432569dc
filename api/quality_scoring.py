"""
Admin quality scoring endpoints.

Listing and statistics, bulk and single recalculation, scoring
configuration, and manual boosts.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from api.dependencies import AdminContext, audited, get_db, require_admin
from api.schemas import (
    BoostRemovalRequest,
    BoostRequest,
    BusinessFilters,
    LowQualitySort,
    RecalculateRequest,
    SortField,
    SortOrder,
)
from config.logging import get_logger
from directory.audit import log_admin_action
from directory.models import (
    AbnStatus,
    ApprovalStatus,
    BoostCategory,
    Business,
    ManualQualityBoost,
    utcnow,
)
from directory.quality.analysis import QualityAnalyzer
from directory.quality.boosts import BoostManager, apply_business_filters
from directory.quality.config import QualityScoringConfig, load_config, save_config
from directory.quality.scorer import QualityScorer, quality_band, quality_level, quality_stats

logger = get_logger("api")

router = APIRouter(prefix="/api/admin/quality-scoring", tags=["quality-scoring"])


def _audit(db: Session, admin: AdminContext, audit_action: str, business_id=None, **details):
    log_admin_action(
        db,
        audit_action,
        business_id=business_id,
        admin_user_id=admin.admin_user_id,
        details=details,
        ip_address=admin.ip_address,
        user_agent=admin.user_agent,
        commit=True,
    )


@router.get("")
@audited("ADMIN_QUALITY_SCORING_ERROR")
def list_quality_scores(
    min_score: Optional[int] = Query(default=None, ge=0, le=100),
    max_score: Optional[int] = Query(default=None, ge=0, le=100),
    suburb: Optional[str] = None,
    category: Optional[str] = None,
    approval_status: Optional[ApprovalStatus] = None,
    abn_status: Optional[AbnStatus] = None,
    sort_by: SortField = SortField.QUALITY_SCORE,
    sort_order: SortOrder = SortOrder.DESC,
    include_breakdown: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Businesses with their stored scores, filtered, sorted and paginated."""
    filters = BusinessFilters(
        min_score=min_score,
        max_score=max_score,
        suburb=suburb,
        category=category,
        approval_status=approval_status,
        abn_status=abn_status,
    ).model_dump(exclude_none=True)

    query = apply_business_filters(db.query(Business), filters)
    total_count = query.count()

    column = getattr(Business, sort_by.value)
    ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()
    businesses = query.order_by(ordering).offset((page - 1) * limit).limit(limit).all()

    config = load_config(db)
    scorer = QualityScorer(config)
    thresholds = config.thresholds

    rows = []
    for business in businesses:
        row = {
            "id": business.id,
            "name": business.name,
            "suburb": business.suburb,
            "category": business.category,
            "approval_status": business.approval_status.value,
            "abn_status": business.abn_status.value,
            "quality_score": business.quality_score,
            "level": quality_level(business.quality_score, thresholds),
            "quality_level": quality_band(business.quality_score, thresholds),
            "updated_at": business.updated_at.isoformat() if business.updated_at else None,
        }
        if include_breakdown:
            row["breakdown"] = scorer.calculate(business).to_dict()
        rows.append(row)

    all_scores = [score for (score,) in query.with_entities(Business.quality_score).all()]

    _audit(
        db, admin, "ADMIN_QUALITY_SCORING_ACCESS",
        filters=filters, result_count=len(rows), page=page,
    )

    return {
        "success": True,
        "businesses": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total_count,
            "total_pages": (total_count + limit - 1) // limit,
            "has_next": page * limit < total_count,
            "has_previous": page > 1,
        },
        "stats": quality_stats(all_scores, thresholds),
    }


@router.post("")
@audited("ADMIN_QUALITY_SCORING_BULK_ERROR")
def recalculate_scores(
    request: RecalculateRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Bulk recalculation by ids, by filters, or across every business."""
    manager = BoostManager(db)
    results = manager.recalculate_many(
        business_ids=request.business_ids,
        filters=request.filters.model_dump(exclude_none=True) if request.filters else None,
        recalculate_all=request.recalculate_all,
    )

    _audit(
        db, admin, "ADMIN_QUALITY_SCORING_BULK_RECALCULATE",
        total=results["total"], updated=results["updated"], failed=results["failed"],
        recalculate_all=request.recalculate_all,
    )

    return {
        "success": True,
        "message": (
            f"Recalculated {results['updated']} of {results['total']} businesses"
            + (f" ({results['failed']} failed)" if results["failed"] else "")
        ),
        "results": results,
    }


@router.get("/stats")
@audited("ADMIN_QUALITY_STATS_ERROR")
def quality_statistics(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Score statistics over approved businesses."""
    config = load_config(db)
    scores = [
        score for (score,) in db.query(Business.quality_score)
        .filter(Business.approval_status == ApprovalStatus.APPROVED)
        .all()
    ]

    now = utcnow()
    active_boosts = db.query(func.count(ManualQualityBoost.id)).filter(
        (ManualQualityBoost.expires_at.is_(None)) | (ManualQualityBoost.expires_at > now)
    ).scalar()

    _audit(db, admin, "ADMIN_QUALITY_STATS_ACCESS")

    return {
        "success": True,
        "stats": {
            **quality_stats(scores, config.thresholds),
            "active_boosts": active_boosts,
            "thresholds": {
                "high_quality": config.thresholds.high_quality,
                "medium_quality": config.thresholds.medium_quality,
                "critical_quality": config.thresholds.critical_quality,
            },
        },
    }


@router.get("/config")
@audited("ADMIN_QUALITY_CONFIG_ERROR")
def get_scoring_config(
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    config = load_config(db)
    return {
        "success": True,
        "config": config.model_dump(),
        "total_weight": config.weights.total,
    }


@router.put("/config")
@audited("ADMIN_QUALITY_CONFIG_UPDATE_ERROR")
def update_scoring_config(
    config: QualityScoringConfig = Body(...),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Replace the scoring configuration. Stored scores are not recalculated."""
    previous = load_config(db)
    save_config(db, config, updated_by=admin.admin_user_id)

    _audit(
        db, admin, "ADMIN_QUALITY_CONFIG_UPDATE",
        previous=previous.model_dump(), updated=config.model_dump(),
    )

    return {
        "success": True,
        "message": "Quality scoring configuration updated",
        "config": config.model_dump(),
        "total_weight": config.weights.total,
    }


@router.post("/calculate/{business_id}")
@audited("ADMIN_QUALITY_CALCULATE_ERROR")
def calculate_business_score(
    business_id: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Recalculate one approved business and return the full breakdown."""
    manager = BoostManager(db)
    business, previous_score, result = manager.recalculate(business_id, require_approved=True)
    active_boosts = manager.active_boosts(business)

    _audit(
        db, admin, "ADMIN_QUALITY_CALCULATE", business_id=business.id,
        previous_score=previous_score, new_score=business.quality_score,
        base_score=result.score,
    )

    return {
        "success": True,
        "business": {"id": business.id, "name": business.name},
        "previous_score": previous_score,
        "new_score": business.quality_score,
        "score_change": business.quality_score - previous_score,
        "active_boost_total": sum(boost.boost_amount for boost in active_boosts),
        "calculation": result.to_dict(),
    }


@router.post("/boost")
@audited("ADMIN_QUALITY_BOOST_ERROR")
def apply_boost(
    request: BoostRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    manager = BoostManager(db)
    outcome = manager.apply_boost(
        business_ids=request.business_ids,
        boost_amount=request.boost_amount,
        reason=request.reason,
        category=request.category,
        duration=request.duration.value,
        admin_user_id=admin.admin_user_id,
    )

    for result in outcome["results"]:
        _audit(
            db, admin, "ADMIN_QUALITY_BOOST_APPLIED", business_id=result["business_id"],
            boost_record_id=result["boost_record_id"],
            original_score=result["original_score"],
            boost_amount=result["boost_amount"],
            new_score=result["new_score"],
            reason=request.reason,
            category=request.category.value,
            duration=request.duration.value,
        )

    return {
        "success": True,
        "message": f"Applied quality boost to {len(outcome['results'])} business(es)",
        **outcome,
    }


@router.get("/boost")
@audited("ADMIN_QUALITY_BOOST_HISTORY_ERROR")
def boost_history(
    business_id: Optional[str] = None,
    category: Optional[BoostCategory] = None,
    admin_user_id: Optional[str] = None,
    include_expired: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    manager = BoostManager(db)
    history = manager.list_boosts(
        business_id=business_id,
        category=category,
        admin_user_id=admin_user_id,
        include_expired=include_expired,
        page=page,
        limit=limit,
    )

    _audit(
        db, admin, "ADMIN_QUALITY_BOOST_HISTORY_ACCESS", business_id=business_id,
        result_count=len(history["boosts"]),
    )

    return {"success": True, **history}


@router.delete("/boost")
@audited("ADMIN_QUALITY_BOOST_REMOVAL_ERROR")
def remove_boosts(
    request: BoostRemovalRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Expire or delete boosts; scores are recomputed from source fields."""
    manager = BoostManager(db)
    results = manager.remove_boosts(request.boost_ids, action=request.action.value)

    for result in results:
        _audit(
            db, admin, "ADMIN_QUALITY_BOOST_REMOVED", business_id=result["business_id"],
            boost_id=result["boost_id"],
            action=result["action"],
            previous_score=result["previous_score"],
            new_score=result["new_score"],
            reason=request.reason,
        )

    logger.info(f"{admin.admin_user_id} removed {len(results)} boost(s): {request.reason}")

    return {
        "success": True,
        "message": f"Successfully {request.action.value}d {len(results)} quality boost(s)",
        "results": results,
    }


@router.get("/low-quality")
@audited("ADMIN_QUALITY_SCORING_LOW_QUALITY_ERROR")
def low_quality_businesses(
    min_score: int = Query(default=0, ge=0, le=100),
    max_score: Optional[int] = Query(default=None, ge=0, le=100),
    suburb: Optional[str] = None,
    category: Optional[str] = None,
    abn_status: Optional[AbnStatus] = None,
    sort_by: LowQualitySort = LowQualitySort.PRIORITY,
    sort_order: SortOrder = SortOrder.DESC,
    include_stats: bool = False,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Approved listings below the high-quality threshold, with improvement actions."""
    report = QualityAnalyzer(db).low_quality(
        min_score=min_score,
        max_score=max_score,
        suburb=suburb,
        category=category,
        abn_status=abn_status,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
        page=page,
        limit=limit,
        include_stats=include_stats,
    )

    _audit(
        db, admin, "ADMIN_QUALITY_SCORING_LOW_QUALITY_ACCESS",
        filters=report["filters"],
        sorting=report["sorting"],
        total_found=report["pagination"]["total_count"],
    )

    return {"success": True, **report}


# Registered last so the fixed paths above take precedence
@router.get("/{business_id}")
@audited("ADMIN_QUALITY_SCORING_DETAIL_ERROR")
def business_quality_detail(
    business_id: str,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Read-only analysis of one listing against its category and suburb."""
    analysis = QualityAnalyzer(db).analyze(business_id)
    comparison = analysis["competitor_comparison"]

    _audit(
        db, admin, "ADMIN_QUALITY_SCORING_DETAIL_ACCESS", business_id=business_id,
        business_name=analysis["business"]["name"],
        current_score=analysis["current_score"],
        level=analysis["level"],
        category_average=comparison["category_average"],
        suburb_average=comparison["suburb_average"],
    )

    return {"success": True, "analysis": analysis}

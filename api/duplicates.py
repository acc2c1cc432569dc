"""
Admin duplicate management endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import AdminContext, audited, get_db, require_admin
from api.schemas import BulkDuplicateRequest, MergeRequest, UnmarkRequest
from directory.audit import log_admin_action
from directory.duplicates import BusinessMerger, DetectionMode, DuplicateDetector
from directory.duplicates.detector import business_summary
from directory.quality.config import load_config
from directory.quality.scorer import QualityScorer

router = APIRouter(prefix="/api/admin/duplicates", tags=["duplicates"])


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
@audited("ADMIN_DUPLICATES_LIST_ERROR")
def list_duplicate_groups(
    mode: DetectionMode = DetectionMode.STRICT,
    suburb: Optional[str] = None,
    category: Optional[str] = None,
    include_resolved: bool = False,
    min_confidence: int = Query(default=0, ge=0, le=100),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Duplicate groups with merge recommendations, highest confidence first."""
    detector = DuplicateDetector(db, QualityScorer(load_config(db)))
    groups = [
        group for group in detector.find_groups(mode, suburb, category, include_resolved)
        if group.confidence >= min_confidence
    ]
    page = groups[offset:offset + limit]

    stats = {
        "total_groups": len(groups),
        "unresolved_groups": sum(1 for g in groups if not g.resolved),
        "strict_duplicates": sum(1 for g in groups if g.match_type.value == "strict"),
        "loose_duplicates": sum(1 for g in groups if g.match_type.value == "loose"),
        "suggested_merges": sum(
            1 for g in groups if g.merge_recommendation and g.merge_recommendation.suggested
        ),
    }

    _audit(
        db, admin, "ADMIN_DUPLICATES_LIST_ACCESS",
        filters={"mode": mode.value, "suburb": suburb, "category": category,
                 "include_resolved": include_resolved},
        result_count=len(page),
        stats=stats,
    )

    return {
        "success": True,
        "duplicate_groups": [group.to_dict() for group in page],
        "pagination": {
            "total": len(groups),
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < len(groups),
        },
        "stats": stats,
    }


@router.get("/detect/{business_id}")
@audited("ADMIN_DUPLICATE_DETECT_ERROR")
def detect_duplicates(
    business_id: str,
    mode: DetectionMode = DetectionMode.STRICT,
    include_resolved: bool = False,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Duplicates of a single business."""
    detector = DuplicateDetector(db)
    matches = detector.find_duplicates(business_id, mode, include_resolved)

    _audit(
        db, admin, "ADMIN_DUPLICATE_DETECT", business_id=business_id,
        mode=mode.value, duplicates_found=len(matches),
    )

    return {
        "success": True,
        "business_id": business_id,
        "mode": mode.value,
        "duplicates": [match.to_dict() for match in matches],
        "total": len(matches),
    }


@router.post("/merge")
@audited("ADMIN_MERGE_DUPLICATES_ERROR")
def merge_duplicates(
    request: MergeRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    merger = BusinessMerger(db)
    result = merger.merge(
        primary_id=request.primary_business_id,
        duplicate_ids=request.duplicate_business_ids,
        strategy=request.merge_strategy.value,
        reason=request.reason,
        admin_user_id=admin.admin_user_id,
    )

    _audit(
        db, admin, "ADMIN_MERGE_DUPLICATES", business_id=request.primary_business_id,
        merge_result=result, reason=request.reason,
    )

    return {
        "success": True,
        "message": (
            f"Successfully merged {len(result['merged_business_ids'])} duplicate businesses"
        ),
        "result": result,
    }


@router.post("/unmark/{business_id}")
@audited("ADMIN_UNMARK_DUPLICATE_ERROR")
def unmark_duplicate(
    business_id: str,
    request: Optional[UnmarkRequest] = None,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Remove a duplicate marking so the listing stands on its own again."""
    request = request or UnmarkRequest()
    merger = BusinessMerger(db)
    previous_primary = merger.get(business_id).duplicate_of_id
    business = merger.unmark(business_id, request.restore_approval_status)

    _audit(
        db, admin, "ADMIN_UNMARK_DUPLICATE", business_id=business.id,
        previous_duplicate_of=previous_primary,
        restored_status=business.approval_status.value,
        reason=request.reason,
    )

    return {
        "success": True,
        "message": f"{business.name} is no longer marked as a duplicate",
        "business": business_summary(business),
    }


@router.post("/bulk")
@audited("ADMIN_BULK_DUPLICATE_OPERATION_ERROR")
def bulk_duplicate_operation(
    request: BulkDuplicateRequest,
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(require_admin),
):
    """Merge, unmark or mark a batch of listings, with a result per item."""
    merger = BusinessMerger(db)
    outcome = merger.bulk(
        operation=request.operation.value,
        business_ids=request.business_ids,
        primary_business_id=request.primary_business_id,
        strategy=request.merge_strategy.value,
        restore_status=request.restore_approval_status,
        reason=request.reason,
        admin_user_id=admin.admin_user_id,
    )
    summary = outcome["summary"]

    _audit(
        db, admin, "ADMIN_BULK_DUPLICATE_OPERATION",
        operation=request.operation.value,
        business_ids=request.business_ids,
        primary_business_id=request.primary_business_id,
        reason=request.reason,
        merge_strategy=request.merge_strategy.value,
        restore_approval_status=request.restore_approval_status.value,
        results=summary,
    )

    return {
        "success": True,
        "message": (
            f"Bulk {summary['operation']} operation completed: "
            f"{summary['successful']} successful, {summary['failed']} failed"
        ),
        **outcome,
    }

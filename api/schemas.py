"""
Request schemas for the admin API.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from directory.models import AbnStatus, ApprovalStatus, BoostCategory


class BoostDuration(str, Enum):
    PERMANENT = "permanent"
    DAYS_30 = "30days"
    DAYS_90 = "90days"
    DAYS_365 = "365days"


class BoostRemovalAction(str, Enum):
    EXPIRE = "expire"
    REMOVE = "remove"


class MergeStrategy(str, Enum):
    KEEP_PRIMARY = "keep_primary"
    MERGE_DATA = "merge_data"


class BulkOperation(str, Enum):
    MERGE = "merge"
    UNMARK = "unmark"
    MARK_AS_DUPLICATE = "mark_as_duplicate"


class LowQualitySort(str, Enum):
    PRIORITY = "priority"
    SCORE = "score"
    LAST_UPDATED = "last_updated"
    POTENTIAL = "potential"
    NAME = "name"


class SortField(str, Enum):
    QUALITY_SCORE = "quality_score"
    NAME = "name"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BusinessFilters(BaseModel):
    min_score: Optional[int] = Field(default=None, ge=0, le=100)
    max_score: Optional[int] = Field(default=None, ge=0, le=100)
    suburb: Optional[str] = None
    category: Optional[str] = None
    approval_status: Optional[ApprovalStatus] = None
    abn_status: Optional[AbnStatus] = None


class RecalculateRequest(BaseModel):
    business_ids: Optional[list[str]] = Field(default=None, max_length=1000)
    filters: Optional[BusinessFilters] = None
    recalculate_all: bool = False

    @model_validator(mode="after")
    def check_target(self):
        if not (self.business_ids or self.filters or self.recalculate_all):
            raise ValueError("Must specify business_ids, filters, or recalculate_all")
        return self


class BoostRequest(BaseModel):
    business_ids: list[str] = Field(min_length=1, max_length=100)
    boost_amount: int = Field(ge=-50, le=50)
    reason: str = Field(min_length=10, max_length=500)
    duration: BoostDuration = BoostDuration.PERMANENT
    category: BoostCategory = BoostCategory.OTHER


class BoostRemovalRequest(BaseModel):
    boost_ids: list[str] = Field(min_length=1, max_length=50)
    reason: str = Field(min_length=5, max_length=200)
    action: BoostRemovalAction = BoostRemovalAction.EXPIRE


class MergeRequest(BaseModel):
    primary_business_id: str
    duplicate_business_ids: list[str] = Field(min_length=1, max_length=50)
    merge_strategy: MergeStrategy = MergeStrategy.KEEP_PRIMARY
    reason: Optional[str] = Field(default=None, max_length=500)


class UnmarkRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
    restore_approval_status: ApprovalStatus = ApprovalStatus.PENDING


class BulkDuplicateRequest(BaseModel):
    operation: BulkOperation
    business_ids: list[str] = Field(min_length=1, max_length=100)
    primary_business_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=500)
    merge_strategy: MergeStrategy = MergeStrategy.KEEP_PRIMARY
    restore_approval_status: ApprovalStatus = ApprovalStatus.PENDING

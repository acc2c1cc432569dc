"""
Quality scoring configuration.

Weights, thresholds and feature switches, persisted as a single JSON row
and validated with pydantic. Missing or invalid rows fall back to defaults.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from config.logging import logger
from config.settings import settings
from directory.models import ScoringConfig

CONFIG_KEY = "quality-scoring-config"


class CompletenessWeights(BaseModel):
    business_name: int = Field(default=10, ge=0, le=50)
    description: int = Field(default=15, ge=0, le=50)
    phone: int = Field(default=10, ge=0, le=50)
    email: int = Field(default=10, ge=0, le=50)
    website: int = Field(default=10, ge=0, le=50)
    address: int = Field(default=5, ge=0, le=50)


class VerificationWeights(BaseModel):
    abn_verification: int = Field(default=15, ge=0, le=50)
    location_verification: int = Field(default=5, ge=0, le=50)


class RecencyWeights(BaseModel):
    profile_freshness: int = Field(default=10, ge=0, le=50)


class ContentRichnessWeights(BaseModel):
    business_images: int = Field(default=5, ge=0, le=50)
    business_hours: int = Field(default=3, ge=0, le=50)
    customer_engagement: int = Field(default=2, ge=0, le=50)


class ScoringWeights(BaseModel):
    completeness: CompletenessWeights = Field(default_factory=CompletenessWeights)
    verification: VerificationWeights = Field(default_factory=VerificationWeights)
    recency: RecencyWeights = Field(default_factory=RecencyWeights)
    content_richness: ContentRichnessWeights = Field(default_factory=ContentRichnessWeights)

    @property
    def total(self) -> int:
        """Nominal maximum. Not required to be exactly 100."""
        return sum(
            sum(group.model_dump().values())
            for group in (self.completeness, self.verification, self.recency, self.content_richness)
        )


class RecencyDays(BaseModel):
    fresh: int = Field(default=30, ge=1, le=90)
    stale: int = Field(default=90, ge=31, le=365)

    @model_validator(mode="after")
    def check_order(self):
        if self.stale <= self.fresh:
            raise ValueError("stale must be greater than fresh")
        return self


class ScoringThresholds(BaseModel):
    high_quality: int = Field(default=80, ge=50, le=100)
    medium_quality: int = Field(default=50, ge=25, le=75)
    critical_quality: int = Field(default=30, ge=0, le=50)
    recency_days: RecencyDays = Field(default_factory=RecencyDays)
    description_min_length: int = Field(default=50, ge=10, le=200)
    engagement_window_days: int = Field(default=90, ge=1, le=365)


class ScoringFeatures(BaseModel):
    enable_automatic_scoring: bool = True
    enable_manual_boosts: bool = True
    max_manual_boost: int = Field(
        default_factory=lambda: settings.MAX_MANUAL_BOOST, ge=0, le=50
    )


class QualityScoringConfig(BaseModel):
    """Complete scoring configuration."""
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)
    features: ScoringFeatures = Field(default_factory=ScoringFeatures)


def load_config(db: Session) -> QualityScoringConfig:
    """Load the stored config, or defaults when none is stored."""
    record = db.query(ScoringConfig).filter(ScoringConfig.key == CONFIG_KEY).first()
    if record is None or not isinstance(record.value, dict):
        return QualityScoringConfig()

    try:
        return QualityScoringConfig.model_validate(record.value)
    except PydanticValidationError as e:
        logger.warning(f"Stored quality scoring config is invalid, using defaults: {e}")
        return QualityScoringConfig()


def save_config(
    db: Session,
    config: QualityScoringConfig,
    updated_by: Optional[str] = None,
) -> QualityScoringConfig:
    """Replace the stored config."""
    record = db.query(ScoringConfig).filter(ScoringConfig.key == CONFIG_KEY).first()
    if record is None:
        record = ScoringConfig(key=CONFIG_KEY, value=config.model_dump())
        db.add(record)
    else:
        record.value = config.model_dump()
    record.updated_by = updated_by
    db.commit()

    logger.info(f"Quality scoring config updated by {updated_by or 'unknown'}")
    return config

"""
SuburbMates Directory - Database Models

SQLAlchemy ORM models for the business directory.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Enums
class ApprovalStatus(PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AbnStatus(PyEnum):
    NOT_PROVIDED = "NOT_PROVIDED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"
    EXPIRED = "EXPIRED"


class BoostCategory(PyEnum):
    """Why an admin adjusted a business's quality score."""
    PREMIUM_LISTING = "premium_listing"
    QUALITY_EXCEPTION = "quality_exception"
    MARKETING_BOOST = "marketing_boost"
    PARTNERSHIP = "partnership"
    CORRECTION = "correction"
    SEASONAL_PROMOTION = "seasonal_promotion"
    OTHER = "other"


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what func.now() stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Business(Base):
    """
    A business listing in the directory.
    Duplicates are soft-linked to their canonical listing via duplicate_of_id.
    """

    __tablename__ = "businesses"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    slug: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    bio: Mapped[Optional[str]] = mapped_column(Text)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(120), index=True)

    # Contact details
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    website: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(Text)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    # Verification
    abn: Mapped[Optional[str]] = mapped_column(String(20))
    abn_status: Mapped[AbnStatus] = mapped_column(
        Enum(AbnStatus), default=AbnStatus.NOT_PROVIDED, nullable=False
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False, index=True
    )

    # Content
    quality_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    gallery: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    show_business_hours: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Soft link for merged duplicates
    duplicate_of_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=True, index=True
    )

    # Timestamps. updated_at tracks profile edits only; score writes leave it
    # alone so the freshness factor is not reset by recalculation.
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    # Relationships
    inquiries: Mapped[list["Inquiry"]] = relationship(
        back_populates="business", cascade="all, delete-orphan"
    )
    boosts: Mapped[list["ManualQualityBoost"]] = relationship(
        back_populates="business", cascade="all, delete-orphan"
    )
    duplicate_of: Mapped[Optional["Business"]] = relationship(
        "Business", remote_side="Business.id", foreign_keys=[duplicate_of_id]
    )

    __table_args__ = (
        Index("ix_businesses_suburb_category", "suburb", "category"),
    )

    @property
    def is_duplicate(self) -> bool:
        """Check if this business has been marked as a duplicate of another."""
        return self.duplicate_of_id is not None

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name={self.name}, suburb={self.suburb})>"


class Inquiry(Base):
    """
    Customer inquiry or lead sent to a business.
    """

    __tablename__ = "inquiries"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    message: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False, index=True
    )

    business: Mapped["Business"] = relationship(back_populates="inquiries")

    def __repr__(self) -> str:
        return f"<Inquiry(id={self.id}, business_id={self.business_id})>"


class ManualQualityBoost(Base):
    """
    Admin-applied quality score adjustment.
    A boost with expires_at = NULL is permanent.
    """

    __tablename__ = "manual_quality_boosts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    admin_user_id: Mapped[Optional[str]] = mapped_column(String(255))

    original_score: Mapped[int] = mapped_column(Integer, nullable=False)
    boost_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    new_score: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[BoostCategory] = mapped_column(
        Enum(BoostCategory), default=BoostCategory.OTHER, nullable=False, index=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    business: Mapped["Business"] = relationship(back_populates="boosts")

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """A boost counts towards the score until it expires."""
        now = now or utcnow()
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return f"<ManualQualityBoost(id={self.id}, business_id={self.business_id}, amount={self.boost_amount})>"


class ScoringConfig(Base):
    """
    Persisted quality scoring configuration (single keyed row).
    """

    __tablename__ = "scoring_config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ScoringConfig(key={self.key})>"


class AdminAuditLog(Base):
    """
    Audit trail for admin actions on businesses, boosts and merges.
    """

    __tablename__ = "admin_audit_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    business_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    admin_user_id: Mapped[Optional[str]] = mapped_column(String(255))
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<AdminAuditLog(action={self.action}, business_id={self.business_id})>"

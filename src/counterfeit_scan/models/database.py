"""
SQLAlchemy models for products, references, scan jobs, scan history and plans.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..config.database import Base
from .enums import EvaluationMode, JobStatus, ReviewVerdict, ScanStatus, ScanType, VisionOrigin


def _uuid() -> str:
    return str(uuid4())


def _enum(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=32)


class Product(Base):
    """Tenant product master record."""

    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    brand: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    metadata_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    is_global: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    references: Mapped[List["ProductReference"]] = relationship(
        "ProductReference", back_populates="product", cascade="all, delete-orphan"
    )


class ProductReference(Base):
    """Genuine reference image and its stored fingerprint."""

    __tablename__ = "product_references"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True, nullable=False)
    reference_image_path: Mapped[str] = mapped_column(Text, nullable=False)
    fingerprint: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="references")


class ScanJob(Base):
    """Asynchronous scan submission."""

    __tablename__ = "scan_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    scan_type: Mapped[ScanType] = mapped_column(_enum(ScanType), nullable=False)
    image_path: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[JobStatus] = mapped_column(_enum(JobStatus), default=JobStatus.PENDING, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ScanHistory(Base):
    """Persisted evaluation outcome, one per completed scan job."""

    __tablename__ = "scan_history"
    __table_args__ = (
        CheckConstraint("risk_score >= 0 AND risk_score <= 100", name="ck_scan_history_risk_score"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("scan_jobs.id"), unique=True, index=True, nullable=True
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    product_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    scan_type: Mapped[ScanType] = mapped_column(_enum(ScanType), nullable=False)
    image_path: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ScanStatus] = mapped_column(_enum(ScanStatus), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    used_mode: Mapped[EvaluationMode] = mapped_column(_enum(EvaluationMode), nullable=False)
    violations_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    flags_json: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)
    debug_json: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    reference_comparison: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    vision_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    vision_origin: Mapped[VisionOrigin] = mapped_column(
        _enum(VisionOrigin), default=VisionOrigin.PROVIDER, nullable=False
    )

    # Human verification
    user_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_override: Mapped[Optional[ReviewVerdict]] = mapped_column(_enum(ReviewVerdict), nullable=True)
    verification_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    verified_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Plan(Base):
    """Subscription plan with monthly scan quotas (-1 means unlimited)."""

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    local_quota_per_month: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    high_quota_per_month: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    price_per_month: Mapped[float] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class TenantPlan(Base):
    """Plan subscription of a tenant over a date range."""

    __tablename__ = "tenant_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    plan_id: Mapped[str] = mapped_column(ForeignKey("plans.id"), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    billing_cycle: Mapped[str] = mapped_column(String(16), default="MONTHLY", nullable=False)

    plan: Mapped["Plan"] = relationship("Plan", lazy="joined")


class PlanUsage(Base):
    """Scan counters of a tenant for one calendar month."""

    __tablename__ = "plan_usage"
    __table_args__ = (UniqueConstraint("tenant_id", "period_start", name="uq_plan_usage_period"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    local_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    high_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

"""
SQLAlchemy ORM models.
Table and column names match the PostgreSQL schema the front end was built against.
"""

from datetime import datetime, date, time, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Time,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Postgres stores labels as text[]; SQLite (tests) falls back to JSON.
LabelArray = ARRAY(Text).with_variant(JSON(), "sqlite")


# ────────────────────────────────────────────────────────────
# USERS
# ────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    citizen_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="customer", server_default="customer")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_citizen", "citizen_id"),
    )


# ────────────────────────────────────────────────────────────
# INSURANCE POLICIES (one insured car per policy)
# ────────────────────────────────────────────────────────────
class InsurancePolicy(Base):
    __tablename__ = "insurance_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_number: Mapped[str] = mapped_column(Text, nullable=False)
    insurance_company: Mapped[str] = mapped_column(Text, nullable=False)
    insured_name: Mapped[str] = mapped_column(Text, nullable=False)
    citizen_id: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    coverage_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    coverage_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    coverage_end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    car_brand: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    car_model: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    car_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    car_color: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    car_license_plate: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registration_province: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chassis_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    insurance_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    car_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_policies_citizen", "citizen_id"),
    )


# ────────────────────────────────────────────────────────────
# ACCIDENT DETAILS
# ────────────────────────────────────────────────────────────
class AccidentDetail(Base):
    __tablename__ = "accident_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    accident_type: Mapped[str] = mapped_column(Text, nullable=False)
    accident_date: Mapped[date] = mapped_column(Date, nullable=False)
    accident_time: Mapped[time] = mapped_column(Time, nullable=False)
    province: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    district: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    road: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    area_type: Mapped[str] = mapped_column(Text, nullable=False)
    nearby: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 6), nullable=True)
    accuracy: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    # Legacy single evidence pointer: first evidence media item only
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agreed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# CLAIM REQUESTS
# ────────────────────────────────────────────────────────────
class ClaimRequest(Base):
    __tablename__ = "claim_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    selected_car_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("insurance_policies.id"), nullable=True
    )
    accident_detail_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("accident_details.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    accident = relationship("AccidentDetail")
    policy = relationship("InsurancePolicy")
    images = relationship(
        "EvaluationImage", back_populates="claim", order_by="EvaluationImage.id"
    )
    steps = relationship(
        "ClaimRequestStep", back_populates="claim", order_by="ClaimRequestStep.step_order"
    )

    __table_args__ = (
        Index("idx_claims_user", "user_id"),
        Index("idx_claims_status", "status"),
        Index("idx_claims_accident", "accident_detail_id"),
    )


# ────────────────────────────────────────────────────────────
# EVALUATION IMAGES
# ────────────────────────────────────────────────────────────
class EvaluationImage(Base):
    __tablename__ = "evaluation_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("claim_requests.id", ondelete="CASCADE"), nullable=False
    )
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    damage_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    side: Mapped[str] = mapped_column(Text, nullable=False, default="ไม่ระบุ", server_default="ไม่ระบุ")
    is_annotated: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    claim = relationship("ClaimRequest", back_populates="images")
    annotations = relationship(
        "ImageDamageAnnotation", back_populates="image", order_by="ImageDamageAnnotation.id"
    )

    __table_args__ = (
        Index("idx_eval_images_claim", "claim_id"),
    )


# ────────────────────────────────────────────────────────────
# IMAGE DAMAGE ANNOTATIONS
# ────────────────────────────────────────────────────────────
class ImageDamageAnnotation(Base):
    __tablename__ = "image_damage_annotations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    evaluation_image_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("evaluation_images.id", ondelete="CASCADE"), nullable=False
    )
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    damage_name: Mapped[list[str]] = mapped_column(LabelArray, nullable=False, default=list)
    severity: Mapped[str] = mapped_column(Text, nullable=False, default="A", server_default="A")
    area_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Normalised box, fractions of image width/height
    x: Mapped[float] = mapped_column(Float, nullable=False)
    y: Mapped[float] = mapped_column(Float, nullable=False)
    w: Mapped[float] = mapped_column(Float, nullable=False)
    h: Mapped[float] = mapped_column(Float, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mask_iou: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="manual", server_default="manual")
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    image = relationship("EvaluationImage", back_populates="annotations")

    __table_args__ = (
        Index("idx_annotations_image", "evaluation_image_id"),
        CheckConstraint("severity IN ('A', 'B', 'C', 'D')", name="ck_annotation_severity"),
        CheckConstraint("area_percent IS NULL OR (area_percent BETWEEN 0 AND 100)", name="ck_annotation_area"),
    )


# ────────────────────────────────────────────────────────────
# CLAIM TIMELINE (append-only)
# ────────────────────────────────────────────────────────────
class ClaimRequestStep(Base):
    __tablename__ = "claim_request_steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("claim_requests.id", ondelete="CASCADE"), nullable=False
    )
    step_type: Mapped[str] = mapped_column(Text, nullable=False)
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Relationships
    claim = relationship("ClaimRequest", back_populates="steps")

    __table_args__ = (
        Index("idx_steps_claim", "claim_request_id", "step_order"),
    )

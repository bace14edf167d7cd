"""Coupon template and issued coupon models."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship

from ..core.database import Base


class DiscountKind(str, enum.Enum):
    """How a template's discount value is interpreted."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponStatus(str, enum.Enum):
    """Issued coupon lifecycle; only ACTIVE may transition."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class CouponTemplate(Base):
    """Immutable coupon definition that issued coupons point at."""

    __tablename__ = "coupon_templates"
    __table_args__ = (
        CheckConstraint("discount_value > 0", name="coupon_templates_discount_positive"),
        CheckConstraint(
            "discount_kind <> 'PERCENTAGE' OR discount_value <= 100",
            name="coupon_templates_percentage_cap",
        ),
        CheckConstraint("per_user_limit >= 1", name="coupon_templates_per_user_limit_positive"),
    )

    template_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False, unique=True)
    discount_kind = Column(SAEnum(DiscountKind, name="discount_kind"), nullable=False)
    discount_value = Column(Integer, nullable=False)
    min_purchase_amount = Column(Integer)
    max_discount_amount = Column(Integer)
    valid_from = Column(DateTime)
    valid_until = Column(DateTime)
    per_user_limit = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    issued_coupons = relationship("IssuedCoupon", back_populates="template")


class IssuedCoupon(Base):
    """A coupon held by one user; consumed at most once by a business."""

    __tablename__ = "issued_coupons"
    __table_args__ = (
        CheckConstraint(
            "(status = 'USED' AND used_at IS NOT NULL AND used_by_business IS NOT NULL "
            "AND applied_amount IS NOT NULL) "
            "OR (status <> 'USED' AND used_at IS NULL AND used_by_business IS NULL "
            "AND applied_amount IS NULL)",
            name="issued_coupons_usage_fields",
        ),
        Index("ix_issued_coupons_business_used_at", "used_by_business", "used_at"),
        Index("ix_issued_coupons_owner_status", "owner_id", "status"),
    )

    coupon_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    template_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("coupon_templates.template_id", ondelete="RESTRICT"),
        nullable=False,
    )
    owner_id = Column(Uuid(as_uuid=True), nullable=False)
    status = Column(SAEnum(CouponStatus, name="coupon_status"), nullable=False, default=CouponStatus.ACTIVE)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime)
    used_by_business = Column(Uuid(as_uuid=True))
    applied_amount = Column(Integer)

    template = relationship("CouponTemplate", back_populates="issued_coupons")

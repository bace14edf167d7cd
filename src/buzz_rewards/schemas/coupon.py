"""Pydantic schemas for coupon templates and issued coupons."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import CouponStatus, DiscountKind


class CouponTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    discount_kind: DiscountKind
    discount_value: int = Field(..., gt=0)
    min_purchase_amount: Optional[int] = Field(None, gt=0)
    max_discount_amount: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    per_user_limit: int = Field(1, ge=1)


class CouponTemplateRead(BaseModel):
    template_id: UUID
    name: str
    discount_kind: DiscountKind
    discount_value: int
    min_purchase_amount: Optional[int]
    max_discount_amount: Optional[int]
    valid_from: Optional[datetime]
    valid_until: Optional[datetime]
    per_user_limit: int

    class Config:
        from_attributes = True


class CouponIssue(BaseModel):
    template_id: UUID
    owner_id: UUID


class IssuedCouponRead(BaseModel):
    coupon_id: UUID
    template_id: UUID
    owner_id: UUID
    status: CouponStatus
    issued_at: datetime
    expires_at: datetime
    used_at: Optional[datetime]
    used_by_business: Optional[UUID]
    applied_amount: Optional[int]

    class Config:
        from_attributes = True

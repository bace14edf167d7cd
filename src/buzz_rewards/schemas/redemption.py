"""Pydantic schemas for token issuance and redemption."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..services.token_codec import TokenKind
from .mileage import MileageTransactionRead


class CouponTokenCreate(BaseModel):
    """Request a QR token for one of the user's coupons."""

    coupon_id: UUID
    owner_id: Optional[UUID] = Field(None, description="Customer presenting the coupon.")


class MileageTokenCreate(BaseModel):
    """Request a QR token to spend mileage at a business."""

    user_id: UUID
    amount: int = Field(..., gt=0, description="Mileage to spend.")


class TokenIssued(BaseModel):
    token: str
    kind: TokenKind
    subject_id: UUID
    expires_at: datetime


class RedemptionCreate(BaseModel):
    """Incoming payload from a business scanning a customer's token."""

    token: str = Field(..., min_length=1)
    business_id: UUID
    purchase_amount: Optional[int] = Field(
        None,
        gt=0,
        description="Transaction amount; required for percentage coupons.",
    )
    customer_id: Optional[UUID] = Field(None, description="Customer the business believes is presenting.")


class RedemptionReceipt(BaseModel):
    """Response returned after consuming a token."""

    kind: TokenKind
    subject_id: UUID
    business_id: UUID
    applied_amount: int = Field(..., ge=0)
    transaction: Optional[MileageTransactionRead] = None

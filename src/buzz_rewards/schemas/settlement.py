"""Pydantic schemas for settlement workflow endpoints."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import SettlementLineKind, SettlementStatus


class SettlementCreate(BaseModel):
    """Business-side request to settle one calendar date."""

    business_id: UUID
    settlement_date: date
    gross_sales: int = Field(..., ge=0, description="Point-of-sale volume reported for the date.")


class SettlementApprove(BaseModel):
    approved_by: Optional[UUID] = None
    note: Optional[str] = Field(None, max_length=500)


class SettlementPay(BaseModel):
    external_reference: str = Field(..., min_length=1, max_length=100)


class SettlementReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class SettlementLineRead(BaseModel):
    kind: SettlementLineKind
    source_ref: str
    amount: int
    occurred_at: datetime

    class Config:
        from_attributes = True


class SettlementRead(BaseModel):
    """Represents a settlement request and its captured totals."""

    settlement_id: UUID
    business_id: UUID
    settlement_date: date
    gross_sales: int
    coupon_count: int
    coupon_discount_total: int
    mileage_count: int
    mileage_used_total: int
    net_payable: int
    status: SettlementStatus
    requested_at: datetime
    approved_at: Optional[datetime]
    approved_by: Optional[UUID]
    admin_note: Optional[str]
    paid_at: Optional[datetime]
    payout_reference: Optional[str]
    rejected_at: Optional[datetime]
    rejection_reason: Optional[str]
    lines: List[SettlementLineRead] = []

    class Config:
        from_attributes = True


class SettlementStatusTotals(BaseModel):
    count: int = Field(..., ge=0)
    net_payable: int

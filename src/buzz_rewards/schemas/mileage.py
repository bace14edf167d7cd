"""Pydantic schemas for mileage ledger endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import MileageTransactionType


class MileageEarn(BaseModel):
    user_id: UUID
    amount: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=200)
    business_id: Optional[UUID] = None


class MileageUse(BaseModel):
    user_id: UUID
    amount: int = Field(..., gt=0)
    business_id: UUID
    reason: str = Field("direct_use", min_length=1, max_length=200)


class MileageAccountRead(BaseModel):
    user_id: UUID
    balance: int
    total_earned: int
    total_used: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MileageTransactionRead(BaseModel):
    transaction_id: int
    user_id: UUID
    transaction_type: MileageTransactionType
    amount: int
    balance_before: int
    balance_after: int
    business_id: Optional[UUID]
    reason: str
    created_at: datetime

    class Config:
        from_attributes = True

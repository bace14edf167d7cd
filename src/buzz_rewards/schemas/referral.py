"""Pydantic schemas for referral rewards."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models import ReferralRewardType
from ..services.referral_rewards import ReferralTier
from .coupon import IssuedCouponRead
from .mileage import MileageTransactionRead


class ReferralRecord(BaseModel):
    referrer_id: UUID


class ReferralProfileRead(BaseModel):
    user_id: UUID
    total_referrals: int = Field(..., ge=0)
    claimed_referrals: int = Field(..., ge=0)
    reward_claimed: bool

    class Config:
        from_attributes = True


class MileageRewardRead(BaseModel):
    amount: int
    base_reward: int
    tier_bonus: int


class DiscountRewardRead(BaseModel):
    percent: int
    minimum_referrals_to_next_tier: int


class RewardPreviewRead(BaseModel):
    user_id: UUID
    total_referrals: int
    unclaimed_referrals: int
    tier: ReferralTier
    mileage: MileageRewardRead
    discount: DiscountRewardRead
    reward_claimed: bool


class RewardClaim(BaseModel):
    user_id: UUID
    reward_type: ReferralRewardType


class ClaimedRewardRead(BaseModel):
    reward_type: ReferralRewardType
    referrals_claimed: int
    tier: ReferralTier
    mileage_transaction: Optional[MileageTransactionRead] = None
    coupon: Optional[IssuedCouponRead] = None

"""Referral tracking and reward claim endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import RewardsError
from ...schemas import (
    ClaimedRewardRead,
    DiscountRewardRead,
    IssuedCouponRead,
    MileageRewardRead,
    MileageTransactionRead,
    ReferralProfileRead,
    ReferralRecord,
    RewardClaim,
    RewardPreviewRead,
)
from ...services import referral_service

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.post(
    "",
    response_model=ReferralProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record a successful referral",
)
def record_referral(payload: ReferralRecord, db: Session = Depends(get_db)) -> ReferralProfileRead:
    profile = referral_service.record_referral(db, referrer_id=payload.referrer_id)
    response = ReferralProfileRead.model_validate(profile)
    db.commit()
    return response


@router.get("/{user_id}/rewards", response_model=RewardPreviewRead, summary="Available referral rewards")
def available_rewards(user_id: UUID, db: Session = Depends(get_db)) -> RewardPreviewRead:
    try:
        preview = referral_service.available_rewards(db, user_id=user_id)
    except RewardsError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

    return RewardPreviewRead(
        user_id=preview.user_id,
        total_referrals=preview.total_referrals,
        unclaimed_referrals=preview.unclaimed_referrals,
        tier=preview.tier,
        mileage=MileageRewardRead(**preview.mileage._asdict()),
        discount=DiscountRewardRead(**preview.discount._asdict()),
        reward_claimed=preview.reward_claimed,
    )


@router.post(
    "/claim",
    response_model=ClaimedRewardRead,
    summary="Claim the referral reward",
    responses={
        400: {"description": "Nothing to claim or too few referrals for a discount"},
        404: {"description": "No referral profile"},
        409: {"description": "Reward already claimed"},
    },
)
def claim_reward(payload: RewardClaim, db: Session = Depends(get_db)) -> ClaimedRewardRead:
    try:
        claimed = referral_service.claim_reward(db, user_id=payload.user_id, reward_type=payload.reward_type)
        response = ClaimedRewardRead(
            reward_type=claimed.reward_type,
            referrals_claimed=claimed.referrals_claimed,
            tier=claimed.tier,
            mileage_transaction=(
                MileageTransactionRead.model_validate(claimed.mileage_transaction)
                if claimed.mileage_transaction is not None
                else None
            ),
            coupon=IssuedCouponRead.model_validate(claimed.coupon) if claimed.coupon is not None else None,
        )
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

"""Referral bookkeeping and the one-time reward claim."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import BelowMinimumAmount, EntityNotFound, NoUnclaimedReferrals, RewardAlreadyClaimed
from ..models import DiscountKind, IssuedCoupon, MileageTransaction, ReferralProfile, ReferralRewardType
from ..utils.datetime import utcnow
from . import coupon_service, mileage_ledger, referral_rewards
from .referral_rewards import DiscountReward, MileageReward, ReferralTier

logger = logging.getLogger(__name__)

# Each claimed batch may issue another coupon from the same referral template.
REFERRAL_COUPONS_PER_USER = 1000


class RewardPreview(NamedTuple):
    user_id: UUID
    total_referrals: int
    unclaimed_referrals: int
    tier: ReferralTier
    mileage: MileageReward
    discount: DiscountReward
    reward_claimed: bool


class ClaimedReward(NamedTuple):
    reward_type: ReferralRewardType
    referrals_claimed: int
    tier: ReferralTier
    mileage_transaction: Optional[MileageTransaction] = None
    coupon: Optional[IssuedCoupon] = None


def _load_profile(session: Session, user_id: UUID) -> ReferralProfile:
    stmt = (
        select(ReferralProfile)
        .where(ReferralProfile.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    profile = session.execute(stmt).scalar_one_or_none()
    if profile is None:
        raise EntityNotFound(f"Referral profile for {user_id} not found")
    return profile


def _increment(session: Session, referrer_id: UUID) -> int:
    result = session.execute(
        update(ReferralProfile)
        .where(ReferralProfile.user_id == referrer_id)
        .values(total_referrals=ReferralProfile.total_referrals + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def record_referral(session: Session, *, referrer_id: UUID) -> ReferralProfile:
    """Count one successful referral for ``referrer_id``."""

    if _increment(session, referrer_id) == 0:
        try:
            with session.begin_nested():
                session.add(ReferralProfile(user_id=referrer_id, total_referrals=1, claimed_referrals=0))
        except IntegrityError:
            _increment(session, referrer_id)

    profile = _load_profile(session, referrer_id)
    logger.info("referral recorded: referrer=%s total=%s", referrer_id, profile.total_referrals)
    return profile


def available_rewards(session: Session, *, user_id: UUID) -> RewardPreview:
    profile = _load_profile(session, user_id)
    unclaimed = profile.total_referrals - profile.claimed_referrals
    current_tier = referral_rewards.tier(profile.total_referrals)
    return RewardPreview(
        user_id=user_id,
        total_referrals=profile.total_referrals,
        unclaimed_referrals=unclaimed,
        tier=current_tier,
        mileage=referral_rewards.mileage_reward_breakdown(unclaimed, current_tier),
        discount=referral_rewards.discount_reward(unclaimed),
        reward_claimed=profile.reward_claimed,
    )


def claim_reward(session: Session, *, user_id: UUID, reward_type: ReferralRewardType) -> ClaimedReward:
    """Pay out the referrals recorded since the previous claim.

    ``claimed_referrals`` is advanced to the observed total by a guarded
    update before any mileage is earned or coupon issued, so each batch pays
    out at most once; losing that update means another claim took the batch.
    ``reward_claimed`` only marks that the user has claimed at least once.
    """

    profile = _load_profile(session, user_id)
    total, claimed = profile.total_referrals, profile.claimed_referrals
    unclaimed = total - claimed
    if unclaimed <= 0:
        raise NoUnclaimedReferrals()

    current_tier = referral_rewards.tier(total)
    discount = referral_rewards.discount_reward(unclaimed)
    if reward_type is ReferralRewardType.DISCOUNT and discount.percent == 0:
        raise BelowMinimumAmount(
            f"{discount.minimum_referrals_to_next_tier} more referrals are needed for a discount reward."
        )

    now = utcnow()
    result = session.execute(
        update(ReferralProfile)
        .where(
            ReferralProfile.user_id == user_id,
            ReferralProfile.claimed_referrals == claimed,
        )
        .values(
            reward_claimed=True,
            reward_claimed_at=now,
            reward_type=reward_type,
            claimed_referrals=total,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("referral reward claim lost: user=%s", user_id)
        raise RewardAlreadyClaimed()

    if reward_type is ReferralRewardType.MILEAGE:
        amount = referral_rewards.mileage_reward(unclaimed, current_tier)
        transaction = mileage_ledger.earn(
            session,
            user_id=user_id,
            amount=amount,
            reason=f"referral_reward:{unclaimed}",
        )
        logger.info("referral mileage claimed: user=%s referrals=%s amount=%s", user_id, unclaimed, amount)
        return ClaimedReward(
            reward_type=reward_type,
            referrals_claimed=unclaimed,
            tier=current_tier,
            mileage_transaction=transaction,
        )

    template = coupon_service.ensure_template(
        session,
        name=f"referral-discount-{discount.percent}",
        discount_kind=DiscountKind.PERCENTAGE,
        discount_value=discount.percent,
        per_user_limit=REFERRAL_COUPONS_PER_USER,
    )
    coupon = coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=user_id)
    logger.info("referral discount claimed: user=%s percent=%s coupon=%s", user_id, discount.percent, coupon.coupon_id)
    return ClaimedReward(
        reward_type=reward_type,
        referrals_claimed=unclaimed,
        tier=current_tier,
        coupon=coupon,
    )

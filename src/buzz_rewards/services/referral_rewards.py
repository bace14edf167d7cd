"""Referral tier and reward arithmetic. Pure functions, no persistence."""

from __future__ import annotations

import enum
from typing import NamedTuple

BASE_REWARD_PER_REFERRAL = 500


class ReferralTier(str, enum.Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


# Highest floor first.
_TIER_FLOORS = (
    (50, ReferralTier.PLATINUM),
    (20, ReferralTier.GOLD),
    (10, ReferralTier.SILVER),
    (0, ReferralTier.BRONZE),
)

_TIER_BONUS_PERCENT = {
    ReferralTier.PLATINUM: 50,
    ReferralTier.GOLD: 30,
    ReferralTier.SILVER: 15,
    ReferralTier.BRONZE: 0,
}

_DISCOUNT_STEPS = (
    (10, 30),
    (5, 20),
    (3, 15),
)


class MileageReward(NamedTuple):
    amount: int
    base_reward: int
    tier_bonus: int


class DiscountReward(NamedTuple):
    percent: int
    minimum_referrals_to_next_tier: int


def _require_non_negative(value: int, name: str) -> None:
    if value < 0:
        raise ValueError(f"{name} cannot be negative")


def tier(total_referrals: int) -> ReferralTier:
    """Tier for a cumulative referral count."""

    _require_non_negative(total_referrals, "total_referrals")
    for floor, current in _TIER_FLOORS:
        if total_referrals >= floor:
            return current
    return ReferralTier.BRONZE


def mileage_reward_breakdown(unclaimed_referrals: int, current_tier: ReferralTier) -> MileageReward:
    _require_non_negative(unclaimed_referrals, "unclaimed_referrals")
    base = unclaimed_referrals * BASE_REWARD_PER_REFERRAL
    bonus = base * _TIER_BONUS_PERCENT[ReferralTier(current_tier)] // 100
    return MileageReward(amount=base + bonus, base_reward=base, tier_bonus=bonus)


def mileage_reward(unclaimed_referrals: int, current_tier: ReferralTier) -> int:
    """500 points per referral plus the tier's bonus percentage, floored."""

    return mileage_reward_breakdown(unclaimed_referrals, current_tier).amount


def discount_reward(referrals_used: int) -> DiscountReward:
    """Discount percent unlocked by ``referrals_used`` and how many more reach the next step."""

    _require_non_negative(referrals_used, "referrals_used")
    next_threshold = None
    for threshold, percent in _DISCOUNT_STEPS:
        if referrals_used >= threshold:
            missing = next_threshold - referrals_used if next_threshold is not None else 0
            return DiscountReward(percent=percent, minimum_referrals_to_next_tier=missing)
        next_threshold = threshold
    return DiscountReward(percent=0, minimum_referrals_to_next_tier=next_threshold - referrals_used)

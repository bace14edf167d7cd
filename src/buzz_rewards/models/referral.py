"""Referral progress per user."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum as SAEnum, Integer, Uuid

from ..core.database import Base


class ReferralRewardType(str, enum.Enum):
    """Reward a user chose when claiming referrals."""

    MILEAGE = "mileage"
    DISCOUNT = "discount"


class ReferralProfile(Base):
    """Referral counters and the one-time reward claim flag."""

    __tablename__ = "referral_profiles"
    __table_args__ = (
        CheckConstraint("total_referrals >= 0", name="referral_profiles_total_positive"),
        CheckConstraint(
            "claimed_referrals >= 0 AND claimed_referrals <= total_referrals",
            name="referral_profiles_claimed_bounds",
        ),
    )

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    total_referrals = Column(Integer, nullable=False, default=0)
    claimed_referrals = Column(Integer, nullable=False, default=0)
    reward_claimed = Column(Boolean, nullable=False, default=False)
    reward_claimed_at = Column(DateTime)
    reward_type = Column(SAEnum(ReferralRewardType, name="referral_reward_type"))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

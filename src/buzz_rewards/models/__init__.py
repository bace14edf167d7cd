"""SQLAlchemy models for the Buzz rewards core."""

from .coupon import CouponStatus, CouponTemplate, DiscountKind, IssuedCoupon
from .mileage import (
    MileageAccount,
    MileageTransaction,
    MileageTransactionType,
    MileageUseRequest,
    MileageUseRequestStatus,
)
from .referral import ReferralProfile, ReferralRewardType
from .settlement import SettlementLine, SettlementLineKind, SettlementRequest, SettlementStatus

__all__ = [
    "CouponStatus",
    "CouponTemplate",
    "DiscountKind",
    "IssuedCoupon",
    "MileageAccount",
    "MileageTransaction",
    "MileageTransactionType",
    "MileageUseRequest",
    "MileageUseRequestStatus",
    "ReferralProfile",
    "ReferralRewardType",
    "SettlementLine",
    "SettlementLineKind",
    "SettlementRequest",
    "SettlementStatus",
]

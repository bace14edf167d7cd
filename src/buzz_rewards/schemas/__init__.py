"""Public schema exports."""

from .coupon import CouponIssue, CouponTemplateCreate, CouponTemplateRead, IssuedCouponRead
from .mileage import MileageAccountRead, MileageEarn, MileageTransactionRead, MileageUse
from .redemption import CouponTokenCreate, MileageTokenCreate, RedemptionCreate, RedemptionReceipt, TokenIssued
from .referral import (
	ClaimedRewardRead,
	DiscountRewardRead,
	MileageRewardRead,
	ReferralProfileRead,
	ReferralRecord,
	RewardClaim,
	RewardPreviewRead,
)
from .settlement import (
	SettlementApprove,
	SettlementCreate,
	SettlementLineRead,
	SettlementPay,
	SettlementRead,
	SettlementReject,
	SettlementStatusTotals,
)

__all__ = [
	"ClaimedRewardRead",
	"CouponIssue",
	"CouponTemplateCreate",
	"CouponTemplateRead",
	"CouponTokenCreate",
	"DiscountRewardRead",
	"IssuedCouponRead",
	"MileageAccountRead",
	"MileageEarn",
	"MileageRewardRead",
	"MileageTokenCreate",
	"MileageTransactionRead",
	"MileageUse",
	"RedemptionCreate",
	"RedemptionReceipt",
	"ReferralProfileRead",
	"ReferralRecord",
	"RewardClaim",
	"RewardPreviewRead",
	"SettlementApprove",
	"SettlementCreate",
	"SettlementLineRead",
	"SettlementPay",
	"SettlementRead",
	"SettlementReject",
	"SettlementStatusTotals",
	"TokenIssued",
]

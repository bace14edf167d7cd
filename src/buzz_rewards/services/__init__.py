"""Service layer exports."""

from . import (
	coupon_service,
	expiry_service,
	mileage_ledger,
	redemption_service,
	referral_rewards,
	referral_service,
	settlement_service,
	token_codec,
)

__all__ = [
	"coupon_service",
	"expiry_service",
	"mileage_ledger",
	"redemption_service",
	"referral_rewards",
	"referral_service",
	"settlement_service",
	"token_codec",
]

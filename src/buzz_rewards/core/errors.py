"""Typed outcomes raised by the rewards core.

Every failure here is an expected result handed back to the caller. Routers
map them onto HTTP responses through ``status_code``; services never retry
a guarded write that lost its race.
"""

from __future__ import annotations


class RewardsError(Exception):
    """Base class for business rule violations."""

    status_code = 400
    default_detail = "Request could not be processed."

    def __init__(self, detail: str | None = None, status_code: int | None = None) -> None:
        detail = detail or self.default_detail
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class MalformedToken(RewardsError):
    default_detail = "Redemption token is malformed."


class TokenExpired(RewardsError):
    status_code = 410
    default_detail = "Redemption token has expired."


class TokenAlreadyUsed(RewardsError):
    status_code = 409
    default_detail = "Redemption token has already been used."


class EntityNotFound(RewardsError):
    status_code = 404
    default_detail = "Requested entity was not found."


class CustomerMismatch(RewardsError):
    status_code = 403
    default_detail = "Token does not belong to the presenting customer."


class InsufficientBalance(RewardsError):
    default_detail = "Insufficient mileage balance."

    def __init__(self, balance: int, requested: int) -> None:
        super().__init__(f"Insufficient mileage balance ({balance} available, {requested} requested).")
        self.balance = balance
        self.requested = requested


class BelowMinimumAmount(RewardsError):
    default_detail = "Amount is below the allowed minimum."


class PurchaseAmountRequired(RewardsError):
    default_detail = "A purchase amount is required to apply a percentage coupon."


class CouponNotAvailable(RewardsError):
    default_detail = "Coupon cannot be issued."


class DuplicateSettlementDate(RewardsError):
    status_code = 409
    default_detail = "A settlement for this business and date already exists."


class InvalidSettlementDate(RewardsError):
    default_detail = "Settlement date is outside the allowed window."


class InvalidStateTransition(RewardsError):
    status_code = 409
    default_detail = "Settlement cannot move to the requested state."


class RewardAlreadyClaimed(RewardsError):
    status_code = 409
    default_detail = "Referral reward has already been claimed."


class NoUnclaimedReferrals(RewardsError):
    default_detail = "No unclaimed referrals available."

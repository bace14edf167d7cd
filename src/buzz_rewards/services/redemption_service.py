"""Consume redemption tokens exactly once.

Every consumption is a single ``UPDATE`` guarded by the subject's expected
prior status; the affected row count decides who won. No read of the status
is ever trusted on its own, so concurrent instances need no shared lock.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import NamedTuple, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.errors import (
    CustomerMismatch,
    EntityNotFound,
    InsufficientBalance,
    TokenAlreadyUsed,
    TokenExpired,
)
from ..models import (
    CouponStatus,
    CouponTemplate,
    IssuedCoupon,
    MileageTransaction,
    MileageUseRequest,
    MileageUseRequestStatus,
)
from ..utils.datetime import as_naive_utc, utcnow
from . import coupon_service, mileage_ledger, token_codec
from .token_codec import TokenKind

logger = logging.getLogger(__name__)


class IssuedToken(NamedTuple):
    token: str
    kind: TokenKind
    subject_id: UUID
    expires_at: datetime


class RedemptionOutcome(NamedTuple):
    kind: TokenKind
    subject_id: UUID
    business_id: UUID
    applied_amount: int
    transaction: Optional[MileageTransaction] = None


def _issue(kind: TokenKind, subject_id: UUID, issued_at: Optional[datetime] = None) -> IssuedToken:
    token = token_codec.encode(kind, subject_id, issued_at=issued_at)
    decoded = token_codec.decode(token)
    return IssuedToken(token=token, kind=kind, subject_id=subject_id, expires_at=decoded.expires_at)


def issue_coupon_token(session: Session, *, coupon_id: UUID, owner_id: Optional[UUID] = None) -> IssuedToken:
    """Render a short-lived token for an active coupon held by ``owner_id``."""

    coupon = coupon_service.get_coupon(session, coupon_id)
    if owner_id is not None and coupon.owner_id != owner_id:
        raise CustomerMismatch("Coupon belongs to another user.")
    if coupon.status is not CouponStatus.ACTIVE or coupon.expires_at <= utcnow():
        raise TokenAlreadyUsed(f"Coupon is {coupon.status.value} and cannot be presented.")
    return _issue(TokenKind.COUPON, coupon.coupon_id)


def issue_mileage_token(session: Session, *, user_id: UUID, amount: int) -> tuple[MileageUseRequest, IssuedToken]:
    """Record a pending mileage spend and return the token that consumes it.

    Minimum amount and balance are checked here as policy; the ledger
    re-checks the balance atomically when the token is redeemed.
    """

    mileage_ledger.require_minimum_use(amount)

    account = mileage_ledger.find_account(session, user_id)
    balance = account.balance if account is not None else 0
    if amount > balance:
        raise InsufficientBalance(balance=balance, requested=amount)

    request = MileageUseRequest(
        user_id=user_id,
        amount=amount,
        status=MileageUseRequestStatus.PENDING,
        created_at=utcnow(),
    )
    session.add(request)
    session.flush()
    return request, _issue(TokenKind.MILEAGE, request.request_id, issued_at=request.created_at)


def _redeem_coupon(
    session: Session,
    decoded: token_codec.RedemptionToken,
    *,
    business_id: UUID,
    purchase_amount: Optional[int],
    customer_id: Optional[UUID],
    now: datetime,
) -> RedemptionOutcome:
    stmt = (
        select(IssuedCoupon, CouponTemplate)
        .join(CouponTemplate, CouponTemplate.template_id == IssuedCoupon.template_id)
        .where(IssuedCoupon.coupon_id == decoded.subject_id)
        .execution_options(populate_existing=True)
    )
    row = session.execute(stmt).one_or_none()
    if row is None:
        raise EntityNotFound(f"Coupon {decoded.subject_id} not found")
    coupon, template = row

    if customer_id is not None and coupon.owner_id != customer_id:
        raise CustomerMismatch()

    # The guarded update below still decides a race; this only picks the error.
    if coupon.status is not CouponStatus.ACTIVE or coupon.expires_at <= now:
        raise TokenAlreadyUsed()

    applied_amount = coupon_service.compute_discount(template, purchase_amount)

    result = session.execute(
        update(IssuedCoupon)
        .where(
            IssuedCoupon.coupon_id == decoded.subject_id,
            IssuedCoupon.status == CouponStatus.ACTIVE,
            IssuedCoupon.expires_at > now,
        )
        .values(
            status=CouponStatus.USED,
            used_at=now,
            used_by_business=business_id,
            applied_amount=applied_amount,
        )
        .execution_options(synchronize_session=False)
    )
    session.expire(coupon)
    if result.rowcount != 1:
        logger.info("coupon redemption lost: coupon=%s business=%s", decoded.subject_id, business_id)
        raise TokenAlreadyUsed()

    logger.info(
        "coupon redeemed: coupon=%s business=%s amount=%s",
        decoded.subject_id,
        business_id,
        applied_amount,
    )
    return RedemptionOutcome(
        kind=TokenKind.COUPON,
        subject_id=decoded.subject_id,
        business_id=business_id,
        applied_amount=applied_amount,
    )


def _redeem_mileage(
    session: Session,
    decoded: token_codec.RedemptionToken,
    *,
    business_id: UUID,
    customer_id: Optional[UUID],
    now: datetime,
) -> RedemptionOutcome:
    request = session.get(MileageUseRequest, decoded.subject_id)
    if request is None:
        raise EntityNotFound(f"Mileage use request {decoded.subject_id} not found")
    if customer_id is not None and request.user_id != customer_id:
        raise CustomerMismatch()

    user_id, amount = request.user_id, request.amount

    # A failed debit must leave the request pending.
    with session.begin_nested():
        result = session.execute(
            update(MileageUseRequest)
            .where(
                MileageUseRequest.request_id == decoded.subject_id,
                MileageUseRequest.status == MileageUseRequestStatus.PENDING,
            )
            .values(status=MileageUseRequestStatus.USED, used_at=now, used_by_business=business_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info("mileage redemption lost: request=%s business=%s", decoded.subject_id, business_id)
            raise TokenAlreadyUsed()

        transaction = mileage_ledger.use(
            session,
            user_id=user_id,
            amount=amount,
            business_id=business_id,
            reason="qr_payment",
        )
        session.execute(
            update(MileageUseRequest)
            .where(MileageUseRequest.request_id == decoded.subject_id)
            .values(transaction_id=transaction.transaction_id)
            .execution_options(synchronize_session=False)
        )
    session.expire(request)

    return RedemptionOutcome(
        kind=TokenKind.MILEAGE,
        subject_id=decoded.subject_id,
        business_id=business_id,
        applied_amount=amount,
        transaction=transaction,
    )


def redeem(
    session: Session,
    *,
    token: str,
    business_id: UUID,
    purchase_amount: Optional[int] = None,
    customer_id: Optional[UUID] = None,
) -> RedemptionOutcome:
    """Consume ``token`` on behalf of ``business_id``.

    Expiry is judged against the server clock only. An expired token fails
    before any entity is read or written.
    """

    decoded = token_codec.decode(token)
    now = utcnow()
    if token_codec.is_expired(decoded, now):
        logger.info("expired token presented: kind=%s subject=%s", decoded.kind.value, decoded.subject_id)
        raise TokenExpired()

    if decoded.kind is TokenKind.COUPON:
        return _redeem_coupon(
            session,
            decoded,
            business_id=business_id,
            purchase_amount=purchase_amount,
            customer_id=customer_id,
            now=now,
        )
    return _redeem_mileage(session, decoded, business_id=business_id, customer_id=customer_id, now=now)


def expire_stale_requests(session: Session, *, current_time: datetime) -> int:
    """Mark pending mileage spends whose token can no longer be valid as EXPIRED."""

    cutoff = as_naive_utc(current_time) - timedelta(seconds=get_settings().token_ttl_seconds)
    result = session.execute(
        update(MileageUseRequest)
        .where(
            MileageUseRequest.status == MileageUseRequestStatus.PENDING,
            MileageUseRequest.created_at < cutoff,
        )
        .values(status=MileageUseRequestStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount

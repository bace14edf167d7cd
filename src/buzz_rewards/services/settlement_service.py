"""Daily settlement aggregation and its approval workflow."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..core.config import get_settings
from ..core.errors import DuplicateSettlementDate, EntityNotFound, InvalidSettlementDate, InvalidStateTransition
from ..models import (
    CouponStatus,
    IssuedCoupon,
    MileageTransaction,
    MileageTransactionType,
    SettlementLine,
    SettlementLineKind,
    SettlementRequest,
    SettlementStatus,
)
from ..utils.datetime import as_naive_utc, day_window, local_date, utcnow

logger = logging.getLogger(__name__)


def _validate_date(settlement_date: date, now: datetime) -> None:
    settings = get_settings()
    today = local_date(now, settings.settlement_timezone)
    if settlement_date > today:
        raise InvalidSettlementDate("Settlement date cannot be in the future.")
    if settlement_date < today - timedelta(days=settings.settlement_lookback_days):
        raise InvalidSettlementDate(
            f"Settlement date must be within the last {settings.settlement_lookback_days} days."
        )


def _collect_lines(session: Session, business_id: UUID, settlement_date: date) -> list[SettlementLine]:
    start, end = day_window(settlement_date, get_settings().settlement_timezone)

    coupon_stmt = select(IssuedCoupon.coupon_id, IssuedCoupon.applied_amount, IssuedCoupon.used_at).where(
        IssuedCoupon.used_by_business == business_id,
        IssuedCoupon.status == CouponStatus.USED,
        IssuedCoupon.used_at >= start,
        IssuedCoupon.used_at < end,
    )
    mileage_stmt = select(
        MileageTransaction.transaction_id,
        MileageTransaction.amount,
        MileageTransaction.created_at,
    ).where(
        MileageTransaction.business_id == business_id,
        MileageTransaction.transaction_type == MileageTransactionType.USE,
        MileageTransaction.created_at >= start,
        MileageTransaction.created_at < end,
    )

    lines = [
        SettlementLine(
            kind=SettlementLineKind.COUPON,
            source_ref=str(coupon_id),
            amount=applied_amount,
            occurred_at=used_at,
        )
        for coupon_id, applied_amount, used_at in session.execute(coupon_stmt)
    ]
    lines.extend(
        SettlementLine(
            kind=SettlementLineKind.MILEAGE,
            source_ref=str(transaction_id),
            amount=abs(amount),
            occurred_at=created_at,
        )
        for transaction_id, amount, created_at in session.execute(mileage_stmt)
    )
    return lines


def request_settlement(
    session: Session,
    *,
    business_id: UUID,
    settlement_date: date,
    gross_sales: int,
    current_time: Optional[datetime] = None,
) -> SettlementRequest:
    """Aggregate one business-day of redemptions into a PENDING settlement.

    The totals are a snapshot of events durable at request time. At most one
    non-rejected request may exist per business and date; the partial unique
    index enforces it and a violation surfaces as ``DuplicateSettlementDate``.
    """

    now = as_naive_utc(current_time) if current_time else utcnow()
    _validate_date(settlement_date, now)

    lines = _collect_lines(session, business_id, settlement_date)
    coupon_lines = [line for line in lines if line.kind is SettlementLineKind.COUPON]
    mileage_lines = [line for line in lines if line.kind is SettlementLineKind.MILEAGE]
    coupon_total = sum(line.amount for line in coupon_lines)
    mileage_total = sum(line.amount for line in mileage_lines)

    settlement = SettlementRequest(
        business_id=business_id,
        settlement_date=settlement_date,
        gross_sales=gross_sales,
        coupon_count=len(coupon_lines),
        coupon_discount_total=coupon_total,
        mileage_count=len(mileage_lines),
        mileage_used_total=mileage_total,
        net_payable=gross_sales - coupon_total - mileage_total,
        status=SettlementStatus.PENDING,
        requested_at=now,
        lines=lines,
    )

    try:
        with session.begin_nested():
            session.add(settlement)
    except IntegrityError as exc:
        logger.info("duplicate settlement request: business=%s date=%s", business_id, settlement_date)
        raise DuplicateSettlementDate(
            f"Settlement for {settlement_date.isoformat()} already requested."
        ) from exc

    logger.info(
        "settlement requested: id=%s business=%s date=%s coupons=%s mileage=%s net=%s",
        settlement.settlement_id,
        business_id,
        settlement_date,
        coupon_total,
        mileage_total,
        settlement.net_payable,
    )
    return settlement


def get_settlement(session: Session, settlement_id: UUID) -> SettlementRequest:
    stmt = (
        select(SettlementRequest)
        .options(selectinload(SettlementRequest.lines))
        .where(SettlementRequest.settlement_id == settlement_id)
        .execution_options(populate_existing=True)
    )
    settlement = session.execute(stmt).scalar_one_or_none()
    if settlement is None:
        raise EntityNotFound(f"Settlement {settlement_id} not found")
    return settlement


def _transition(
    session: Session,
    settlement_id: UUID,
    *,
    expected: SettlementStatus,
    target: SettlementStatus,
    values: dict[str, Any],
) -> SettlementRequest:
    result = session.execute(
        update(SettlementRequest)
        .where(SettlementRequest.settlement_id == settlement_id, SettlementRequest.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current_stmt = select(SettlementRequest.status).where(SettlementRequest.settlement_id == settlement_id)
        current = session.execute(current_stmt).scalar_one_or_none()
        if current is None:
            raise EntityNotFound(f"Settlement {settlement_id} not found")
        raise InvalidStateTransition(
            f"Settlement is {current.value}; only {expected.value} settlements can become {target.value}."
        )

    logger.info("settlement %s: %s -> %s", settlement_id, expected.value, target.value)
    return get_settlement(session, settlement_id)


def approve(
    session: Session,
    settlement_id: UUID,
    *,
    approved_by: Optional[UUID] = None,
    note: Optional[str] = None,
) -> SettlementRequest:
    return _transition(
        session,
        settlement_id,
        expected=SettlementStatus.PENDING,
        target=SettlementStatus.APPROVED,
        values={"approved_at": utcnow(), "approved_by": approved_by, "admin_note": note},
    )


def mark_paid(session: Session, settlement_id: UUID, *, external_reference: str) -> SettlementRequest:
    return _transition(
        session,
        settlement_id,
        expected=SettlementStatus.APPROVED,
        target=SettlementStatus.PAID,
        values={"paid_at": utcnow(), "payout_reference": external_reference},
    )


def reject(session: Session, settlement_id: UUID, *, reason: str) -> SettlementRequest:
    return _transition(
        session,
        settlement_id,
        expected=SettlementStatus.PENDING,
        target=SettlementStatus.REJECTED,
        values={"rejected_at": utcnow(), "rejection_reason": reason},
    )


def list_settlements(
    session: Session,
    *,
    business_id: Optional[UUID] = None,
    status: Optional[SettlementStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[SettlementRequest]:
    """Settlement history, most recently requested first."""

    stmt = (
        select(SettlementRequest)
        .options(selectinload(SettlementRequest.lines))
        .order_by(SettlementRequest.requested_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if business_id is not None:
        stmt = stmt.where(SettlementRequest.business_id == business_id)
    if status is not None:
        stmt = stmt.where(SettlementRequest.status == status)
    return session.execute(stmt).scalars().all()


def summarize(session: Session, *, business_id: Optional[UUID] = None) -> dict[str, dict[str, int]]:
    """Count and net payable per status."""

    stmt = select(
        SettlementRequest.status,
        func.count(SettlementRequest.settlement_id),
        func.coalesce(func.sum(SettlementRequest.net_payable), 0),
    ).group_by(SettlementRequest.status)
    if business_id is not None:
        stmt = stmt.where(SettlementRequest.business_id == business_id)

    summary = {status.value: {"count": 0, "net_payable": 0} for status in SettlementStatus}
    for status, count, total in session.execute(stmt):
        summary[status.value] = {"count": int(count), "net_payable": int(total)}
    return summary

"""Coupon templates, issuance and discount computation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.errors import BelowMinimumAmount, CouponNotAvailable, EntityNotFound, PurchaseAmountRequired
from ..models import CouponStatus, CouponTemplate, DiscountKind, IssuedCoupon
from ..utils.datetime import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


def _ensure_template(session: Session, template_id: UUID) -> CouponTemplate:
    template = session.get(CouponTemplate, template_id)
    if template is None:
        raise EntityNotFound(f"Coupon template {template_id} not found")
    return template


def create_template(
    session: Session,
    *,
    name: str,
    discount_kind: DiscountKind,
    discount_value: int,
    min_purchase_amount: Optional[int] = None,
    max_discount_amount: Optional[int] = None,
    valid_from: Optional[datetime] = None,
    valid_until: Optional[datetime] = None,
    per_user_limit: int = 1,
) -> CouponTemplate:
    """Insert a new immutable coupon template."""

    if discount_kind is DiscountKind.PERCENTAGE and discount_value > 100:
        raise CouponNotAvailable("Percentage discounts cannot exceed 100%.")
    if valid_from and valid_until and as_naive_utc(valid_until) <= as_naive_utc(valid_from):
        raise CouponNotAvailable("Template validity window is empty.")

    template = CouponTemplate(
        name=name,
        discount_kind=discount_kind,
        discount_value=discount_value,
        min_purchase_amount=min_purchase_amount,
        max_discount_amount=max_discount_amount,
        valid_from=as_naive_utc(valid_from) if valid_from else None,
        valid_until=as_naive_utc(valid_until) if valid_until else None,
        per_user_limit=per_user_limit,
    )
    session.add(template)
    session.flush()
    return template


def ensure_template(
    session: Session,
    *,
    name: str,
    discount_kind: DiscountKind,
    discount_value: int,
    per_user_limit: int = 1,
) -> CouponTemplate:
    """Return the template called ``name``, creating an open-ended one if missing."""

    stmt = select(CouponTemplate).where(CouponTemplate.name == name)
    template = session.execute(stmt).scalar_one_or_none()
    if template is not None:
        return template

    try:
        with session.begin_nested():
            template = create_template(
                session,
                name=name,
                discount_kind=discount_kind,
                discount_value=discount_value,
                per_user_limit=per_user_limit,
            )
    except IntegrityError:
        template = session.execute(stmt).scalar_one()
    return template


def issue_coupon(
    session: Session,
    *,
    template_id: UUID,
    owner_id: UUID,
    current_time: Optional[datetime] = None,
) -> IssuedCoupon:
    """Issue a coupon to ``owner_id`` within the template's window and per-user limit."""

    now = as_naive_utc(current_time) if current_time else utcnow()
    template = _ensure_template(session, template_id)

    if template.valid_from and now < template.valid_from:
        raise CouponNotAvailable("Coupon is not available yet.")
    if template.valid_until and now >= template.valid_until:
        raise CouponNotAvailable("Coupon is no longer available.")

    issued_stmt = select(func.count(IssuedCoupon.coupon_id)).where(
        IssuedCoupon.template_id == template.template_id,
        IssuedCoupon.owner_id == owner_id,
    )
    already_issued = session.execute(issued_stmt).scalar_one()
    if already_issued >= template.per_user_limit:
        raise CouponNotAvailable(
            f"Issuance limit reached ({template.per_user_limit} per user)."
        )

    expires_at = now + timedelta(days=get_settings().coupon_default_validity_days)
    if template.valid_until and template.valid_until < expires_at:
        expires_at = template.valid_until

    coupon = IssuedCoupon(
        template=template,
        owner_id=owner_id,
        status=CouponStatus.ACTIVE,
        issued_at=now,
        expires_at=expires_at,
    )
    session.add(coupon)
    session.flush()
    logger.info("coupon issued: coupon=%s template=%s owner=%s", coupon.coupon_id, template.name, owner_id)
    return coupon


def compute_discount(template: CouponTemplate, purchase_amount: Optional[int]) -> int:
    """Discount a template grants for ``purchase_amount`` (whole currency units)."""

    if template.min_purchase_amount:
        if purchase_amount is None:
            raise PurchaseAmountRequired("A purchase amount is required for this coupon.")
        if purchase_amount < template.min_purchase_amount:
            raise BelowMinimumAmount(
                f"Minimum purchase amount is {template.min_purchase_amount}."
            )

    if template.discount_kind is DiscountKind.FIXED:
        discount = template.discount_value
    else:
        if purchase_amount is None:
            raise PurchaseAmountRequired()
        discount = purchase_amount * template.discount_value // 100

    if template.max_discount_amount is not None:
        discount = min(discount, template.max_discount_amount)
    if purchase_amount is not None:
        discount = min(discount, purchase_amount)
    return discount


def get_coupon(session: Session, coupon_id: UUID) -> IssuedCoupon:
    stmt = (
        select(IssuedCoupon)
        .where(IssuedCoupon.coupon_id == coupon_id)
        .execution_options(populate_existing=True)
    )
    coupon = session.execute(stmt).scalar_one_or_none()
    if coupon is None:
        raise EntityNotFound(f"Coupon {coupon_id} not found")
    return coupon


def list_coupons(
    session: Session,
    *,
    owner_id: UUID,
    status: Optional[CouponStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[IssuedCoupon]:
    """Return a user's coupons, newest first."""

    stmt = (
        select(IssuedCoupon)
        .where(IssuedCoupon.owner_id == owner_id)
        .order_by(IssuedCoupon.issued_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if status is not None:
        stmt = stmt.where(IssuedCoupon.status == status)
    return session.execute(stmt).scalars().all()


def expire_overdue(session: Session, *, current_time: datetime) -> int:
    """Flip ACTIVE coupons past their expiry to EXPIRED; returns rows changed."""

    result = session.execute(
        update(IssuedCoupon)
        .where(
            IssuedCoupon.status == CouponStatus.ACTIVE,
            IssuedCoupon.expires_at <= as_naive_utc(current_time),
        )
        .values(status=CouponStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount

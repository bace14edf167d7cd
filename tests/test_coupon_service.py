from datetime import timedelta
from uuid import uuid4

import pytest

from buzz_rewards.core.errors import BelowMinimumAmount, CouponNotAvailable, EntityNotFound, PurchaseAmountRequired
from buzz_rewards.jobs import run_sweep_once
from buzz_rewards.models import CouponStatus, CouponTemplate, DiscountKind
from buzz_rewards.services import coupon_service, expiry_service
from buzz_rewards.utils.datetime import utcnow


def _template(**fields) -> CouponTemplate:
    values = {
        "name": "welcome",
        "discount_kind": DiscountKind.FIXED,
        "discount_value": 3000,
        "min_purchase_amount": None,
        "max_discount_amount": None,
    }
    values.update(fields)
    return CouponTemplate(**values)


@pytest.mark.parametrize(
    ("template", "purchase", "expected"),
    [
        (_template(), None, 3000),
        (_template(), 2000, 2000),
        (_template(discount_kind=DiscountKind.PERCENTAGE, discount_value=10), 25000, 2500),
        (_template(discount_kind=DiscountKind.PERCENTAGE, discount_value=15), 999, 149),
        (_template(discount_kind=DiscountKind.PERCENTAGE, discount_value=50, max_discount_amount=4000), 20000, 4000),
        (_template(min_purchase_amount=10000), 10000, 3000),
    ],
)
def test_compute_discount(template, purchase, expected) -> None:
    assert coupon_service.compute_discount(template, purchase) == expected


def test_compute_discount_requirements() -> None:
    with pytest.raises(PurchaseAmountRequired):
        coupon_service.compute_discount(_template(min_purchase_amount=10000), None)
    with pytest.raises(BelowMinimumAmount):
        coupon_service.compute_discount(_template(min_purchase_amount=10000), 9999)
    with pytest.raises(PurchaseAmountRequired):
        coupon_service.compute_discount(_template(discount_kind=DiscountKind.PERCENTAGE, discount_value=10), None)


def test_issue_respects_per_user_limit(session) -> None:
    owner_id = uuid4()
    template = coupon_service.create_template(
        session, name="double", discount_kind=DiscountKind.FIXED, discount_value=1000, per_user_limit=2
    )

    coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=owner_id)
    coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=owner_id)
    with pytest.raises(CouponNotAvailable):
        coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=owner_id)

    other = coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=uuid4())
    assert other.status is CouponStatus.ACTIVE
    assert len(coupon_service.list_coupons(session, owner_id=owner_id)) == 2


def test_issue_respects_validity_window(session) -> None:
    now = utcnow()
    template = coupon_service.create_template(
        session,
        name="spring",
        discount_kind=DiscountKind.FIXED,
        discount_value=1000,
        valid_from=now + timedelta(days=1),
        valid_until=now + timedelta(days=5),
    )

    with pytest.raises(CouponNotAvailable):
        coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=uuid4())
    with pytest.raises(CouponNotAvailable):
        coupon_service.issue_coupon(
            session, template_id=template.template_id, owner_id=uuid4(), current_time=now + timedelta(days=6)
        )

    coupon = coupon_service.issue_coupon(
        session, template_id=template.template_id, owner_id=uuid4(), current_time=now + timedelta(days=2)
    )
    assert coupon.expires_at == template.valid_until


def test_issue_unknown_template(session) -> None:
    with pytest.raises(EntityNotFound):
        coupon_service.issue_coupon(session, template_id=uuid4(), owner_id=uuid4())


def test_ensure_template_reuses_existing(session) -> None:
    first = coupon_service.ensure_template(
        session, name="referral-discount-15", discount_kind=DiscountKind.PERCENTAGE, discount_value=15
    )
    second = coupon_service.ensure_template(
        session, name="referral-discount-15", discount_kind=DiscountKind.PERCENTAGE, discount_value=15
    )
    assert first.template_id == second.template_id


def test_expiry_sweep_only_touches_overdue_active_coupons(session, make_coupon) -> None:
    overdue = make_coupon(session)
    fresh = make_coupon(session)
    overdue.expires_at = utcnow() - timedelta(minutes=1)
    session.commit()

    counts = expiry_service.run_expiry_sweep(session)
    session.commit()

    assert counts == {"coupons_expired": 1, "mileage_requests_expired": 0}
    assert coupon_service.get_coupon(session, overdue.coupon_id).status is CouponStatus.EXPIRED
    assert coupon_service.get_coupon(session, fresh.coupon_id).status is CouponStatus.ACTIVE


def test_scheduled_sweep_commits_its_own_transaction(session_factory, session, make_coupon) -> None:
    overdue = make_coupon(session)
    overdue.expires_at = utcnow() - timedelta(minutes=5)
    session.commit()

    summary = run_sweep_once(session_factory)

    assert summary == {"coupons_expired": 1, "mileage_requests_expired": 0}
    assert coupon_service.get_coupon(session, overdue.coupon_id).status is CouponStatus.EXPIRED
    assert run_sweep_once(session_factory)["coupons_expired"] == 0

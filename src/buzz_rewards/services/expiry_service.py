"""Periodic expiry of unredeemed coupons and mileage spends."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from . import coupon_service, redemption_service


def run_expiry_sweep(session: Session, *, current_time: datetime | None = None) -> dict[str, int]:
    """Expire overdue coupons and stale mileage use requests.

    Both updates are guarded on the ACTIVE/PENDING status, so a row consumed
    concurrently is never overwritten. Returns summary counts for logging.
    """

    now = current_time.astimezone(timezone.utc) if current_time else datetime.now(timezone.utc)
    return {
        "coupons_expired": coupon_service.expire_overdue(session, current_time=now),
        "mileage_requests_expired": redemption_service.expire_stale_requests(session, current_time=now),
    }

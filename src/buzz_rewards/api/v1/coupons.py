"""Coupon template and issuance endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import RewardsError
from ...models import CouponStatus
from ...schemas import CouponIssue, CouponTemplateCreate, CouponTemplateRead, IssuedCouponRead
from ...services import coupon_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post(
    "/templates",
    response_model=CouponTemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a coupon template",
)
def create_template(payload: CouponTemplateCreate, db: Session = Depends(get_db)) -> CouponTemplateRead:
    try:
        template = coupon_service.create_template(db, **payload.model_dump())
        response = CouponTemplateRead.model_validate(template)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post(
    "",
    response_model=IssuedCouponRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a coupon to a user",
)
def issue_coupon(payload: CouponIssue, db: Session = Depends(get_db)) -> IssuedCouponRead:
    try:
        coupon = coupon_service.issue_coupon(db, template_id=payload.template_id, owner_id=payload.owner_id)
        response = IssuedCouponRead.model_validate(coupon)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.get("", response_model=List[IssuedCouponRead], summary="List a user's coupons")
def list_coupons(
    *,
    owner_id: UUID = Query(..., description="Coupon holder"),
    status_filter: Optional[CouponStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[IssuedCouponRead]:
    coupons = coupon_service.list_coupons(db, owner_id=owner_id, status=status_filter, limit=limit, offset=offset)
    return [IssuedCouponRead.model_validate(coupon) for coupon in coupons]

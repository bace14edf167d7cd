"""Endpoints for issuing and redeeming QR tokens."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import RewardsError
from ...schemas import (
    CouponTokenCreate,
    MileageTokenCreate,
    MileageTransactionRead,
    RedemptionCreate,
    RedemptionReceipt,
    TokenIssued,
)
from ...services import redemption_service

router = APIRouter(prefix="/redemptions", tags=["redemptions"])


@router.post(
    "/tokens/coupon",
    response_model=TokenIssued,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a coupon QR token",
)
def issue_coupon_token(payload: CouponTokenCreate, db: Session = Depends(get_db)) -> TokenIssued:
    """Render a five-minute token for an active coupon."""

    try:
        issued = redemption_service.issue_coupon_token(db, coupon_id=payload.coupon_id, owner_id=payload.owner_id)
        return TokenIssued(**issued._asdict())
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post(
    "/tokens/mileage",
    response_model=TokenIssued,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a mileage spend QR token",
)
def issue_mileage_token(payload: MileageTokenCreate, db: Session = Depends(get_db)) -> TokenIssued:
    """Record a pending spend and return the token a business scans to apply it."""

    try:
        _, issued = redemption_service.issue_mileage_token(db, user_id=payload.user_id, amount=payload.amount)
        db.commit()
        return TokenIssued(**issued._asdict())
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post(
    "",
    response_model=RedemptionReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Redeem a scanned token",
    responses={
        201: {
            "description": "Token consumed",
            "content": {
                "application/json": {
                    "example": {
                        "kind": "coupon",
                        "subject_id": "11111111-1111-1111-1111-111111111111",
                        "business_id": "22222222-2222-2222-2222-222222222222",
                        "applied_amount": 5000,
                        "transaction": None,
                    }
                }
            },
        },
        400: {"description": "Malformed token, insufficient balance or policy violation"},
        403: {"description": "Token belongs to another customer"},
        404: {"description": "Coupon or mileage request not found"},
        409: {"description": "Token already used"},
        410: {"description": "Token expired"},
    },
)
def redeem_token(payload: RedemptionCreate, db: Session = Depends(get_db)) -> RedemptionReceipt:
    """Consume a coupon or mileage token for the scanning business.

    Example request body::

        {
            "token": "eyJrIjoiY291cG9uIi...",
            "business_id": "22222222-2222-2222-2222-222222222222",
            "purchase_amount": 25000
        }
    """

    try:
        outcome = redemption_service.redeem(
            db,
            token=payload.token,
            business_id=payload.business_id,
            purchase_amount=payload.purchase_amount,
            customer_id=payload.customer_id,
        )
        transaction = (
            MileageTransactionRead.model_validate(outcome.transaction) if outcome.transaction is not None else None
        )
        db.commit()
        return RedemptionReceipt(
            kind=outcome.kind,
            subject_id=outcome.subject_id,
            business_id=outcome.business_id,
            applied_amount=outcome.applied_amount,
            transaction=transaction,
        )
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

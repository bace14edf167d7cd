"""Settlement request and approval endpoints."""

from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import RewardsError
from ...models import SettlementStatus
from ...schemas import (
    SettlementApprove,
    SettlementCreate,
    SettlementPay,
    SettlementRead,
    SettlementReject,
    SettlementStatusTotals,
)
from ...services import settlement_service

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.post(
    "",
    response_model=SettlementRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request settlement for a business day",
    responses={
        201: {
            "description": "Settlement requested",
            "content": {
                "application/json": {
                    "example": {
                        "settlement_id": "33333333-3333-3333-3333-333333333333",
                        "business_id": "22222222-2222-2222-2222-222222222222",
                        "settlement_date": "2026-10-16",
                        "gross_sales": 20000,
                        "coupon_count": 2,
                        "coupon_discount_total": 5000,
                        "mileage_count": 1,
                        "mileage_used_total": 1500,
                        "net_payable": 13500,
                        "status": "pending",
                        "requested_at": "2026-10-17T01:00:00",
                    }
                }
            },
        },
        400: {"description": "Settlement date outside the allowed window"},
        409: {"description": "Settlement already requested for this date"},
    },
)
def request_settlement(payload: SettlementCreate, db: Session = Depends(get_db)) -> SettlementRead:
    """Aggregate the day's coupon and mileage redemptions into a pending request.

    Example request body::

        {
            "business_id": "22222222-2222-2222-2222-222222222222",
            "settlement_date": "2026-10-16",
            "gross_sales": 20000
        }
    """

    try:
        settlement = settlement_service.request_settlement(
            db,
            business_id=payload.business_id,
            settlement_date=payload.settlement_date,
            gross_sales=payload.gross_sales,
        )
        response = SettlementRead.model_validate(settlement)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.get("", response_model=List[SettlementRead], summary="List settlements")
def list_settlements(
    *,
    business_id: Optional[UUID] = Query(None, description="Filter by business"),
    status_filter: Optional[SettlementStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[SettlementRead]:
    settlements = settlement_service.list_settlements(
        db,
        business_id=business_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return [SettlementRead.model_validate(item) for item in settlements]


@router.get(
    "/summary",
    response_model=Dict[str, SettlementStatusTotals],
    summary="Settlement totals per status",
)
def summarize_settlements(
    business_id: Optional[UUID] = Query(None, description="Filter by business"),
    db: Session = Depends(get_db),
) -> Dict[str, SettlementStatusTotals]:
    summary = settlement_service.summarize(db, business_id=business_id)
    return {key: SettlementStatusTotals(**value) for key, value in summary.items()}


@router.get("/{settlement_id}", response_model=SettlementRead, summary="Settlement detail")
def get_settlement(settlement_id: UUID, db: Session = Depends(get_db)) -> SettlementRead:
    try:
        return SettlementRead.model_validate(settlement_service.get_settlement(db, settlement_id))
    except RewardsError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post("/{settlement_id}/approve", response_model=SettlementRead, summary="Approve a pending settlement")
def approve_settlement(
    settlement_id: UUID,
    payload: SettlementApprove,
    db: Session = Depends(get_db),
) -> SettlementRead:
    try:
        settlement = settlement_service.approve(
            db,
            settlement_id,
            approved_by=payload.approved_by,
            note=payload.note,
        )
        response = SettlementRead.model_validate(settlement)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post("/{settlement_id}/pay", response_model=SettlementRead, summary="Mark an approved settlement paid")
def mark_settlement_paid(
    settlement_id: UUID,
    payload: SettlementPay,
    db: Session = Depends(get_db),
) -> SettlementRead:
    try:
        settlement = settlement_service.mark_paid(db, settlement_id, external_reference=payload.external_reference)
        response = SettlementRead.model_validate(settlement)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post("/{settlement_id}/reject", response_model=SettlementRead, summary="Reject a pending settlement")
def reject_settlement(
    settlement_id: UUID,
    payload: SettlementReject,
    db: Session = Depends(get_db),
) -> SettlementRead:
    try:
        settlement = settlement_service.reject(db, settlement_id, reason=payload.reason)
        response = SettlementRead.model_validate(settlement)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

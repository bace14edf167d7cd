"""Mileage ledger endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import RewardsError
from ...models import MileageTransactionType
from ...schemas import MileageAccountRead, MileageEarn, MileageTransactionRead, MileageUse
from ...services import mileage_ledger

router = APIRouter(prefix="/mileage", tags=["mileage"])


@router.get("/{user_id}", response_model=MileageAccountRead, summary="Mileage balance")
def get_account(user_id: UUID, db: Session = Depends(get_db)) -> MileageAccountRead:
    """Users who never earned anything read as a zero balance."""

    account = mileage_ledger.find_account(db, user_id)
    if account is None:
        return MileageAccountRead(user_id=user_id, balance=0, total_earned=0, total_used=0)
    return MileageAccountRead.model_validate(account)


@router.get(
    "/{user_id}/transactions",
    response_model=List[MileageTransactionRead],
    summary="Mileage history",
)
def list_transactions(
    user_id: UUID,
    *,
    transaction_type: Optional[MileageTransactionType] = Query(None, description="Filter by earn/use"),
    newest_first: bool = Query(True, description="Order newest entries first"),
    limit: int = Query(20, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[MileageTransactionRead]:
    """Return the user's ledger rows."""

    transactions = mileage_ledger.history(
        db,
        user_id=user_id,
        newest_first=newest_first,
        transaction_type=transaction_type,
        limit=limit,
        offset=offset,
    )
    return [MileageTransactionRead.model_validate(entry) for entry in transactions]


@router.post(
    "/earn",
    response_model=MileageTransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Credit mileage",
)
def earn_mileage(payload: MileageEarn, db: Session = Depends(get_db)) -> MileageTransactionRead:
    try:
        entry = mileage_ledger.earn(
            db,
            user_id=payload.user_id,
            amount=payload.amount,
            reason=payload.reason,
            business_id=payload.business_id,
        )
        response = MileageTransactionRead.model_validate(entry)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@router.post(
    "/use",
    response_model=MileageTransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Debit mileage",
    responses={400: {"description": "Insufficient balance"}},
)
def use_mileage(payload: MileageUse, db: Session = Depends(get_db)) -> MileageTransactionRead:
    try:
        mileage_ledger.require_minimum_use(payload.amount)
        entry = mileage_ledger.use(
            db,
            user_id=payload.user_id,
            amount=payload.amount,
            business_id=payload.business_id,
            reason=payload.reason,
        )
        response = MileageTransactionRead.model_validate(entry)
        db.commit()
        return response
    except RewardsError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc

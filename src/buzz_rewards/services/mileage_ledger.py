"""Append-only mileage ledger; the only writer of balance state."""

from __future__ import annotations

import logging
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.errors import BelowMinimumAmount, InsufficientBalance
from ..models import MileageAccount, MileageTransaction, MileageTransactionType
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)


def _ensure_account(session: Session, user_id: UUID) -> None:
    stmt = select(MileageAccount.user_id).where(MileageAccount.user_id == user_id)
    if session.execute(stmt).scalar_one_or_none() is not None:
        return

    try:
        with session.begin_nested():
            session.add(MileageAccount(user_id=user_id, balance=0, total_earned=0, total_used=0))
    except IntegrityError:
        # Another request opened the account first.
        logger.debug("mileage account for %s created concurrently", user_id)


def _current_balance(session: Session, user_id: UUID) -> Optional[int]:
    stmt = select(MileageAccount.balance).where(MileageAccount.user_id == user_id)
    return session.execute(stmt).scalar_one_or_none()


def _append(
    session: Session,
    *,
    user_id: UUID,
    transaction_type: MileageTransactionType,
    amount: int,
    balance_after: int,
    business_id: Optional[UUID],
    reason: str,
    created_at,
) -> MileageTransaction:
    entry = MileageTransaction(
        user_id=user_id,
        transaction_type=transaction_type,
        amount=amount,
        balance_before=balance_after - amount,
        balance_after=balance_after,
        business_id=business_id,
        reason=reason,
        created_at=created_at,
    )
    session.add(entry)
    session.flush()
    return entry


def find_account(session: Session, user_id: UUID) -> Optional[MileageAccount]:
    """Return the user's account, or ``None`` if nothing was ever earned."""

    stmt = (
        select(MileageAccount)
        .where(MileageAccount.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


def get_account(session: Session, user_id: UUID) -> MileageAccount:
    """Return the user's account, opening an empty one on first access."""

    _ensure_account(session, user_id)
    return find_account(session, user_id)


def earn(
    session: Session,
    *,
    user_id: UUID,
    amount: int,
    reason: str,
    business_id: Optional[UUID] = None,
) -> MileageTransaction:
    """Credit ``amount`` and append the matching ledger row in the same transaction."""

    if amount <= 0:
        raise BelowMinimumAmount("Earned mileage must be a positive amount.")

    now = utcnow()
    _ensure_account(session, user_id)

    session.execute(
        update(MileageAccount)
        .where(MileageAccount.user_id == user_id)
        .values(
            balance=MileageAccount.balance + amount,
            total_earned=MileageAccount.total_earned + amount,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    # The row stays locked by our update until commit, so this is our own result.
    balance_after = _current_balance(session, user_id)

    entry = _append(
        session,
        user_id=user_id,
        transaction_type=MileageTransactionType.EARN,
        amount=amount,
        balance_after=balance_after,
        business_id=business_id,
        reason=reason,
        created_at=now,
    )
    logger.info("mileage earned: user=%s amount=%s balance=%s", user_id, amount, balance_after)
    return entry


def use(
    session: Session,
    *,
    user_id: UUID,
    amount: int,
    business_id: Optional[UUID],
    reason: str,
) -> MileageTransaction:
    """Debit ``amount`` if the balance covers it, otherwise raise ``InsufficientBalance``.

    The debit is a single guarded update (``balance >= amount``); a missing
    account behaves like a zero balance.
    """

    if amount <= 0:
        raise BelowMinimumAmount("Mileage spend must be a positive amount.")

    now = utcnow()
    result = session.execute(
        update(MileageAccount)
        .where(MileageAccount.user_id == user_id, MileageAccount.balance >= amount)
        .values(
            balance=MileageAccount.balance - amount,
            total_used=MileageAccount.total_used + amount,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        balance = _current_balance(session, user_id) or 0
        logger.info("mileage use rejected: user=%s amount=%s balance=%s", user_id, amount, balance)
        raise InsufficientBalance(balance=balance, requested=amount)

    balance_after = _current_balance(session, user_id)
    entry = _append(
        session,
        user_id=user_id,
        transaction_type=MileageTransactionType.USE,
        amount=-amount,
        balance_after=balance_after,
        business_id=business_id,
        reason=reason,
        created_at=now,
    )
    logger.info(
        "mileage used: user=%s business=%s amount=%s balance=%s",
        user_id,
        business_id,
        amount,
        balance_after,
    )
    return entry


def require_minimum_use(amount: int) -> None:
    """Reject customer spends below the configured minimum."""

    minimum = get_settings().mileage_min_use_amount
    if amount < minimum:
        raise BelowMinimumAmount(f"Mileage can be used from {minimum} points.")


def history(
    session: Session,
    *,
    user_id: UUID,
    newest_first: bool = False,
    transaction_type: Optional[MileageTransactionType] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Sequence[MileageTransaction]:
    """Return the user's ledger rows in creation order (or reversed)."""

    order = MileageTransaction.transaction_id.desc() if newest_first else MileageTransaction.transaction_id.asc()
    stmt = select(MileageTransaction).where(MileageTransaction.user_id == user_id).order_by(order).offset(offset)
    if transaction_type is not None:
        stmt = stmt.where(MileageTransaction.transaction_type == transaction_type)
    if limit is not None:
        stmt = stmt.limit(limit)
    return session.execute(stmt).scalars().all()

"""Mileage account, ledger and spend-request models."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship

from ..core.database import Base


class MileageTransactionType(str, enum.Enum):
    """Ledger event classification."""

    EARN = "earn"
    USE = "use"


class MileageUseRequestStatus(str, enum.Enum):
    """State of a customer's pending mileage spend."""

    PENDING = "pending"
    USED = "used"
    EXPIRED = "expired"


class MileageAccount(Base):
    """Cached balance per user, written only together with a ledger row."""

    __tablename__ = "mileage_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="mileage_accounts_balance_non_negative"),
        CheckConstraint(
            "balance = total_earned - total_used",
            name="mileage_accounts_balance_matches_totals",
        ),
    )

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    total_used = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    transactions = relationship(
        "MileageTransaction",
        back_populates="account",
        order_by="MileageTransaction.transaction_id",
    )


class MileageTransaction(Base):
    """Immutable ledger of mileage movements for each user."""

    __tablename__ = "mileage_transactions"
    __table_args__ = (
        CheckConstraint(
            "(transaction_type = 'EARN' AND amount > 0) OR (transaction_type = 'USE' AND amount < 0)",
            name="mileage_transactions_amount_sign",
        ),
        CheckConstraint("balance_after = balance_before + amount", name="mileage_transactions_chain"),
        CheckConstraint("balance_after >= 0", name="mileage_transactions_balance_non_negative"),
        Index("ix_mileage_transactions_business_created", "business_id", "created_at"),
    )

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("mileage_accounts.user_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    transaction_type = Column(SAEnum(MileageTransactionType, name="mileage_transaction_type"), nullable=False)
    amount = Column(Integer, nullable=False)
    balance_before = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    business_id = Column(Uuid(as_uuid=True))
    reason = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    account = relationship("MileageAccount", back_populates="transactions")


class MileageUseRequest(Base):
    """A customer's intent to spend mileage, referenced by a redemption token."""

    __tablename__ = "mileage_use_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="mileage_use_requests_amount_positive"),
    )

    request_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    status = Column(
        SAEnum(MileageUseRequestStatus, name="mileage_use_request_status"),
        nullable=False,
        default=MileageUseRequestStatus.PENDING,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    used_at = Column(DateTime)
    used_by_business = Column(Uuid(as_uuid=True))
    transaction_id = Column(Integer, ForeignKey("mileage_transactions.transaction_id", ondelete="SET NULL"))

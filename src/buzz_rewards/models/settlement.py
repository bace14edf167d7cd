"""Settlement request model and its aggregated detail lines."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from ..core.database import Base

_LIVE_SETTLEMENT = text("status <> 'REJECTED'")


class SettlementStatus(str, enum.Enum):
    """Approval workflow states; PAID and REJECTED are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class SettlementLineKind(str, enum.Enum):
    """Source of an aggregated settlement line."""

    COUPON = "coupon"
    MILEAGE = "mileage"


class SettlementRequest(Base):
    """A business's reimbursement claim for one calendar date."""

    __tablename__ = "settlement_requests"
    __table_args__ = (
        Index(
            "uq_settlement_requests_live_business_date",
            "business_id",
            "settlement_date",
            unique=True,
            postgresql_where=_LIVE_SETTLEMENT,
            sqlite_where=_LIVE_SETTLEMENT,
        ),
        Index("ix_settlement_requests_status", "status"),
    )

    settlement_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid(as_uuid=True), nullable=False)
    settlement_date = Column(Date, nullable=False)
    gross_sales = Column(Integer, nullable=False)
    coupon_count = Column(Integer, nullable=False, default=0)
    coupon_discount_total = Column(Integer, nullable=False, default=0)
    mileage_count = Column(Integer, nullable=False, default=0)
    mileage_used_total = Column(Integer, nullable=False, default=0)
    net_payable = Column(Integer, nullable=False)
    status = Column(
        SAEnum(SettlementStatus, name="settlement_status"),
        nullable=False,
        default=SettlementStatus.PENDING,
    )
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime)
    approved_by = Column(Uuid(as_uuid=True))
    admin_note = Column(Text)
    paid_at = Column(DateTime)
    payout_reference = Column(String(100))
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)

    lines = relationship(
        "SettlementLine",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementLine.occurred_at",
    )


class SettlementLine(Base):
    """One coupon use or mileage spend captured into a settlement."""

    __tablename__ = "settlement_details"

    line_id = Column(Integer, primary_key=True, autoincrement=True)
    settlement_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("settlement_requests.settlement_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(SAEnum(SettlementLineKind, name="settlement_line_kind"), nullable=False)
    source_ref = Column(String(64), nullable=False)
    amount = Column(Integer, nullable=False)
    occurred_at = Column(DateTime, nullable=False)

    settlement = relationship("SettlementRequest", back_populates="lines")

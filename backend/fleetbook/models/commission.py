# backend/fleetbook/models/commission.py
"""
Commission model.

One commission per completed booking, owed by the partner to the platform.
Its payment status is independent of the booking's own payment status.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Numeric, String
import ulid

from ..database import Base


class CommissionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Commission(Base):
    """Platform fee earned on a completed booking."""

    __tablename__ = "commissions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    partner_id = Column(String(26), ForeignKey("partners.id"), nullable=False)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    rate = Column(Numeric(5, 2), nullable=False)
    status = Column(String(20), nullable=False, default=CommissionStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid')", name="ck_commissions_status"),
        CheckConstraint("amount >= 0", name="ck_commissions_amount_non_negative"),
        Index("idx_commissions_partner_status", "partner_id", "status"),
    )

    @property
    def is_paid(self) -> bool:
        return self.status == CommissionStatus.PAID.value

    def __repr__(self) -> str:
        return f"<Commission {self.id} booking={self.booking_id} {self.amount} {self.status}>"

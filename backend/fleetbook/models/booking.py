# backend/fleetbook/models/booking.py
"""
Booking model.

A booking reserves a partner's time for one tenant vehicle. Bookings store
partner, date and time data directly, and snapshot the service price and the
partner's commission rate at creation so later catalog changes do not rewrite
history. Status only changes through the booking state machine, and rows are
never hard deleted.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
import logging
from typing import Any, cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    """Tenant payment status, tracked independently of the commission."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)

# Statuses whose time interval can not be offered to anyone else.
BLOCKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
)
BLOCKING_STATUS_VALUES = tuple(s.value for s in BLOCKING_STATUSES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """Reservation of a partner service slot by a tenant."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Ownership
    partner_id = Column(String(26), ForeignKey("partners.id"), nullable=False, index=True)
    tenant_id = Column(String(26), nullable=False, index=True)
    vehicle_id = Column(String(26), ForeignKey("vehicles.id"), nullable=False)
    driver_id = Column(String(26), nullable=True)
    service_id = Column(String(26), ForeignKey("partner_services.id"), nullable=False)

    # Schedule
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # Money snapshot
    price = Column(Numeric(10, 2), nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=True)
    commission_amount = Column(Numeric(10, 2), nullable=True)

    # Notes and reasons
    customer_notes = Column(Text, nullable=True)
    partner_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_by = Column(String(26), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'rejected')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("price >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint("scheduled_time < end_time", name="ck_bookings_time_order"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: partner={self.partner_id}, tenant={self.tenant_id}, "
            f"date={self.scheduled_date}, time={self.scheduled_time}-{self.end_time}, "
            f"status={self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    @property
    def is_blocking(self) -> bool:
        return self.status_enum in BLOCKING_STATUSES and self.deleted_at is None

    @property
    def scheduled_start(self) -> datetime:
        return datetime.combine(cast(date, self.scheduled_date), cast(time, self.scheduled_time))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and exports."""
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "tenant_id": self.tenant_id,
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "service_id": self.service_id,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time.isoformat() if self.scheduled_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "payment_status": self.payment_status,
            "price": float(self.price) if self.price is not None else None,
            "commission_amount": (
                float(self.commission_amount) if self.commission_amount is not None else None
            ),
        }


# One live booking per partner start time. Overlaps with different start
# times are excluded by the calendar lock plus the in-transaction recheck.
Index(
    "uq_bookings_partner_slot_active",
    Booking.partner_id,
    Booking.scheduled_date,
    Booking.scheduled_time,
    unique=True,
    postgresql_where=(
        Booking.status.in_(BLOCKING_STATUS_VALUES) & Booking.deleted_at.is_(None)
    ),
    sqlite_where=(Booking.status.in_(BLOCKING_STATUS_VALUES) & Booking.deleted_at.is_(None)),
)

Index("ix_bookings_partner_date_status", Booking.partner_id, Booking.scheduled_date, Booking.status)

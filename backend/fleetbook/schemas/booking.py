# backend/fleetbook/schemas/booking.py
"""
Booking request and response schemas.

Request models are strict (unknown fields rejected). Reasons for cancel and
reject are optional at the schema level so that a missing reason surfaces as
the domain VALIDATION_ERROR instead of a generic request validation error.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import Field, field_validator

from ..core.ulid_helper import ULID_PATTERN
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel


class BookingCreate(StrictRequestModel):
    """Request to book a partner service slot."""

    partner_id: str = Field(..., pattern=ULID_PATTERN)
    service_id: str = Field(..., pattern=ULID_PATTERN)
    vehicle_id: str = Field(..., pattern=ULID_PATTERN)
    driver_id: Optional[str] = Field(None, pattern=ULID_PATTERN)
    scheduled_date: date
    scheduled_time: time
    customer_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("scheduled_time")
    @classmethod
    def _drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BookingReject(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BookingComplete(StrictRequestModel):
    partner_notes: Optional[str] = Field(None, max_length=2000)


class BookingReschedule(StrictRequestModel):
    scheduled_date: date
    scheduled_time: time

    @field_validator("scheduled_time")
    @classmethod
    def _drop_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class BookingNotesUpdate(StrictRequestModel):
    customer_notes: Optional[str] = Field(None, max_length=2000)
    partner_notes: Optional[str] = Field(None, max_length=2000)


class BookingPaymentStatusUpdate(StrictRequestModel):
    payment_status: PaymentStatus


class BookingListParams(StrictRequestModel):
    """Query filters for booking listings."""

    status: Optional[BookingStatus] = None
    partner_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page: int = Field(1, ge=1)
    per_page: int = Field(20, ge=1, le=100)


class BookingResponse(StandardizedModel):
    id: str
    partner_id: str
    tenant_id: str
    vehicle_id: str
    driver_id: Optional[str] = None
    service_id: str
    scheduled_date: date
    scheduled_time: time
    end_time: time
    duration_minutes: int
    status: BookingStatus
    payment_status: PaymentStatus
    price: Money
    commission_amount: Optional[Money] = None
    customer_notes: Optional[str] = None
    partner_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls.model_validate(booking)

# backend/fleetbook/models/__init__.py
"""
Database models for the booking core.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import AvailabilityWindow, Unavailability
from .booking import (
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from .catalog import Partner, PartnerService, Vehicle
from .commission import Commission, CommissionStatus
from .partner_calendar_lock import PartnerCalendarLock

__all__ = [
    "AvailabilityWindow",
    "Unavailability",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
    "Partner",
    "PartnerService",
    "Vehicle",
    "Commission",
    "CommissionStatus",
    "PartnerCalendarLock",
]

# backend/fleetbook/services/__init__.py
"""
Service layer for the booking core.

Services own transactions and business rules; repositories only query and flush.
"""

from .availability_service import AvailabilityService, SlotSummary
from .base import BaseService
from .booking_service import BookingService
from .commission_service import CommissionService, calculate_commission

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "CommissionService",
    "SlotSummary",
    "calculate_commission",
]

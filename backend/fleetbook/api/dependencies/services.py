# backend/fleetbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.commission_service import CommissionService
from .database import get_db


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_commission_service(db: Session = Depends(get_db)) -> CommissionService:
    return CommissionService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    commission_service: CommissionService = Depends(get_commission_service),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    The availability and commission services share the request session so
    slot re-validation and settlement run inside the booking transaction.
    """
    return BookingService(
        db,
        availability_service=availability_service,
        commission_service=commission_service,
    )

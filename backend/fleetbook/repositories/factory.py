# backend/fleetbook/repositories/factory.py
"""
Repository Factory

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityWindowRepository, UnavailabilityRepository
    from .booking_repository import BookingRepository
    from .catalog_repository import (
        PartnerRepository,
        PartnerServiceRepository,
        VehicleRepository,
    )
    from .commission_repository import CommissionRepository
    from .partner_calendar_lock_repository import PartnerCalendarLockRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_availability_window_repository(db: Session) -> "AvailabilityWindowRepository":
        """Create repository for weekly availability windows."""
        from .availability_repository import AvailabilityWindowRepository

        return AvailabilityWindowRepository(db)

    @staticmethod
    def create_unavailability_repository(db: Session) -> "UnavailabilityRepository":
        """Create repository for date-specific unavailabilities."""
        from .availability_repository import UnavailabilityRepository

        return UnavailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_commission_repository(db: Session) -> "CommissionRepository":
        """Create repository for the commission ledger."""
        from .commission_repository import CommissionRepository

        return CommissionRepository(db)

    @staticmethod
    def create_partner_calendar_lock_repository(db: Session) -> "PartnerCalendarLockRepository":
        """Create repository for per-partner write serialization."""
        from .partner_calendar_lock_repository import PartnerCalendarLockRepository

        return PartnerCalendarLockRepository(db)

    @staticmethod
    def create_partner_repository(db: Session) -> "PartnerRepository":
        from .catalog_repository import PartnerRepository

        return PartnerRepository(db)

    @staticmethod
    def create_partner_service_repository(db: Session) -> "PartnerServiceRepository":
        from .catalog_repository import PartnerServiceRepository

        return PartnerServiceRepository(db)

    @staticmethod
    def create_vehicle_repository(db: Session) -> "VehicleRepository":
        from .catalog_repository import VehicleRepository

        return VehicleRepository(db)

# backend/fleetbook/repositories/catalog_repository.py
"""
Read-only access to the partner/service/vehicle catalog.
"""

from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.catalog import Partner, PartnerService, Vehicle
from .base_repository import BaseRepository


class PartnerRepository(BaseRepository[Partner]):
    def __init__(self, db: Session):
        super().__init__(db, Partner)

    def count_active(self) -> int:
        """Partners currently able to take bookings."""
        try:
            return int(
                self.db.query(Partner)
                .filter(Partner.is_active.is_(True), Partner.deleted_at.is_(None))
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting active partners: {str(e)}")
            raise RepositoryException(f"Failed to count partners: {str(e)}")


class PartnerServiceRepository(BaseRepository[PartnerService]):
    def __init__(self, db: Session):
        super().__init__(db, PartnerService)

    def get_for_partner(self, service_id: str, partner_id: str) -> Optional[PartnerService]:
        """Get a service only if it belongs to ``partner_id``."""
        try:
            return cast(
                Optional[PartnerService],
                self.db.query(PartnerService)
                .filter(PartnerService.id == service_id, PartnerService.partner_id == partner_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting service {service_id}: {str(e)}")
            raise RepositoryException(f"Failed to get service: {str(e)}")


class VehicleRepository(BaseRepository[Vehicle]):
    def __init__(self, db: Session):
        super().__init__(db, Vehicle)

    def get_for_tenant(self, vehicle_id: str, tenant_id: str) -> Optional[Vehicle]:
        """Get a vehicle only if it belongs to ``tenant_id``."""
        return self.find_one_by(id=vehicle_id, tenant_id=tenant_id)

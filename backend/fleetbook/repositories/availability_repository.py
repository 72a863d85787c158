# backend/fleetbook/repositories/availability_repository.py
"""
Availability Repository

Data access for a partner's weekly windows and date-specific
unavailabilities. Windows are soft deleted; unavailabilities are removed.
"""

from datetime import date
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityWindow, Unavailability
from .base_repository import BaseRepository


class AvailabilityWindowRepository(BaseRepository[AvailabilityWindow]):
    def __init__(self, db: Session):
        super().__init__(db, AvailabilityWindow)

    def get_live_for_day(self, partner_id: str, day_of_week: int) -> Optional[AvailabilityWindow]:
        """Get the partner's non-deleted window for a weekday, active or not."""
        try:
            return cast(
                Optional[AvailabilityWindow],
                self.db.query(AvailabilityWindow)
                .filter(
                    AvailabilityWindow.partner_id == partner_id,
                    AvailabilityWindow.day_of_week == day_of_week,
                    AvailabilityWindow.deleted_at.is_(None),
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting window for day {day_of_week}: {str(e)}")
            raise RepositoryException(f"Failed to get availability window: {str(e)}")

    def get_active_for_day(self, partner_id: str, day_of_week: int) -> Optional[AvailabilityWindow]:
        window = self.get_live_for_day(partner_id, day_of_week)
        if window is None or not window.is_active:
            return None
        return window

    def get_live_for_partner(self, window_id: str, partner_id: str) -> Optional[AvailabilityWindow]:
        try:
            return cast(
                Optional[AvailabilityWindow],
                self.db.query(AvailabilityWindow)
                .filter(
                    AvailabilityWindow.id == window_id,
                    AvailabilityWindow.partner_id == partner_id,
                    AvailabilityWindow.deleted_at.is_(None),
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting window {window_id}: {str(e)}")
            raise RepositoryException(f"Failed to get availability window: {str(e)}")

    def list_for_partner(self, partner_id: str) -> List[AvailabilityWindow]:
        try:
            return cast(
                List[AvailabilityWindow],
                self.db.query(AvailabilityWindow)
                .filter(
                    AvailabilityWindow.partner_id == partner_id,
                    AvailabilityWindow.deleted_at.is_(None),
                )
                .order_by(AvailabilityWindow.day_of_week)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing windows: {str(e)}")
            raise RepositoryException(f"Failed to list availability windows: {str(e)}")


class UnavailabilityRepository(BaseRepository[Unavailability]):
    def __init__(self, db: Session):
        super().__init__(db, Unavailability)

    def list_for_date(self, partner_id: str, on_date: date) -> List[Unavailability]:
        return self.list_for_range(partner_id, on_date, on_date)

    def list_for_range(
        self,
        partner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Unavailability]:
        try:
            query = self.db.query(Unavailability).filter(Unavailability.partner_id == partner_id)
            if start_date:
                query = query.filter(Unavailability.date >= start_date)
            if end_date:
                query = query.filter(Unavailability.date <= end_date)
            return cast(
                List[Unavailability],
                query.order_by(Unavailability.date, Unavailability.start_time).all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing unavailabilities: {str(e)}")
            raise RepositoryException(f"Failed to list unavailabilities: {str(e)}")

    def get_for_partner(self, unavailability_id: str, partner_id: str) -> Optional[Unavailability]:
        return self.find_one_by(id=unavailability_id, partner_id=partner_id)

    def delete(self, entity: Unavailability) -> None:
        try:
            self.db.delete(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting unavailability {entity.id}: {str(e)}")
            raise RepositoryException(f"Failed to delete unavailability: {str(e)}")

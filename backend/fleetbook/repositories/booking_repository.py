# backend/fleetbook/repositories/booking_repository.py
"""
Booking Repository

Data access for bookings: slot occupancy checks used by the availability
engine, tenant/partner scoped listings, and the upcoming-bookings window.
Soft-deleted bookings are excluded from every query.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
import logging
from typing import Any, List, Optional, Sequence, Tuple, cast

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import BLOCKING_STATUS_VALUES, Booking
from ..models.catalog import Partner
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass
class BookingFilters:
    """Listing filters; ``None`` means unfiltered."""

    tenant_id: Optional[str] = None
    partner_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_live(self, booking_id: str) -> Optional[Booking]:
        """Get a booking unless it has been soft deleted."""
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking)
                .filter(Booking.id == booking_id, Booking.deleted_at.is_(None))
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}")

    # Slot occupancy

    def get_blocking_bookings_for_date(
        self,
        partner_id: str,
        booking_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get bookings that hold time on a partner's calendar for one date.

        Pending, confirmed, in-progress and completed bookings all block the
        interval they occupy; cancelled and rejected ones do not.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.partner_id == partner_id,
                Booking.scheduled_date == booking_date,
                Booking.status.in_(BLOCKING_STATUS_VALUES),
                Booking.deleted_at.is_(None),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.scheduled_time).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting blocking bookings: {str(e)}")
            raise RepositoryException(f"Failed to get blocking bookings: {str(e)}")

    def check_time_conflict(
        self,
        partner_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a time range overlaps any blocking booking.

        Returns:
            True if there are conflicts, False otherwise
        """
        try:
            query = self.db.query(Booking.id).filter(
                Booking.partner_id == partner_id,
                Booking.scheduled_date == booking_date,
                Booking.status.in_(BLOCKING_STATUS_VALUES),
                Booking.deleted_at.is_(None),
                Booking.scheduled_time < end_time,
                Booking.end_time > start_time,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.first() is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflicts: {str(e)}")

    # Listings

    def list_bookings(
        self, filters: BookingFilters, skip: int = 0, limit: int = 20
    ) -> Tuple[List[Booking], int]:
        """
        Filtered, paginated listing ordered by schedule, newest first.

        Returns:
            Tuple of (page of bookings, total matching count)
        """
        try:
            query = self.db.query(Booking).filter(Booking.deleted_at.is_(None))

            if filters.tenant_id:
                query = query.filter(Booking.tenant_id == filters.tenant_id)
            if filters.partner_id:
                query = query.filter(Booking.partner_id == filters.partner_id)
            if filters.vehicle_id:
                query = query.filter(Booking.vehicle_id == filters.vehicle_id)
            if filters.driver_id:
                query = query.filter(Booking.driver_id == filters.driver_id)
            if filters.status:
                query = query.filter(Booking.status == filters.status)
            if filters.start_date:
                query = query.filter(Booking.scheduled_date >= filters.start_date)
            if filters.end_date:
                query = query.filter(Booking.scheduled_date <= filters.end_date)

            total = query.count()
            items = (
                query.order_by(Booking.scheduled_date.desc(), Booking.scheduled_time.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )
            return cast(List[Booking], items), total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def get_upcoming(
        self,
        from_date: date,
        to_date: date,
        statuses: Sequence[str],
        tenant_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Booking]:
        """Bookings scheduled between two dates (inclusive), soonest first."""
        try:
            query = self.db.query(Booking).filter(
                Booking.deleted_at.is_(None),
                Booking.status.in_(list(statuses)),
                Booking.scheduled_date >= from_date,
                Booking.scheduled_date <= to_date,
            )
            if tenant_id:
                query = query.filter(Booking.tenant_id == tenant_id)
            if partner_id:
                query = query.filter(Booking.partner_id == partner_id)
            return cast(
                List[Booking],
                query.order_by(Booking.scheduled_date.asc(), Booking.scheduled_time.asc())
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting upcoming bookings: {str(e)}")
            raise RepositoryException(f"Failed to get upcoming bookings: {str(e)}")

    def revenue_between(self, start: datetime, end: datetime) -> Decimal:
        """Sum of booking prices for bookings created in ``[start, end)``."""
        try:
            total = (
                self.db.query(func.coalesce(func.sum(Booking.price), 0))
                .filter(
                    Booking.deleted_at.is_(None),
                    Booking.created_at >= start,
                    Booking.created_at < end,
                )
                .scalar()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing booking revenue: {str(e)}")
            raise RepositoryException(f"Failed to sum booking revenue: {str(e)}")
        return Decimal(str(total)).quantize(Decimal("0.01"))

    def top_partners_by_revenue(
        self, start: datetime, end: datetime, limit: int = 10
    ) -> List[Tuple[str, str, int, Decimal]]:
        """
        Partners ranked by booking revenue for bookings created in ``[start, end)``.

        Returns:
            (partner_id, company_name, bookings_count, revenue) rows, highest revenue first
        """
        revenue = func.coalesce(func.sum(Booking.price), 0)
        try:
            rows = (
                self.db.query(Partner.id, Partner.company_name, func.count(Booking.id), revenue)
                .join(Partner, Partner.id == Booking.partner_id)
                .filter(
                    Booking.deleted_at.is_(None),
                    Booking.created_at >= start,
                    Booking.created_at < end,
                )
                .group_by(Partner.id, Partner.company_name)
                .order_by(revenue.desc(), Partner.company_name.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error ranking partners by revenue: {str(e)}")
            raise RepositoryException(f"Failed to rank partners: {str(e)}")
        return [
            (partner_id, name, int(count), Decimal(str(total)).quantize(Decimal("0.01")))
            for partner_id, name, count, total in rows
        ]

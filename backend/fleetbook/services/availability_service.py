# backend/fleetbook/services/availability_service.py
"""
Availability Service

Turns a partner's weekly windows, date exceptions and existing bookings into
labeled slots, and lets the owning partner manage those windows and
exceptions.

Slot computation is read-only. BookingService calls ``compute_slots`` again
inside its write transaction, after locking the partner calendar, so the
same rules decide both what is shown and what may be written.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AvailabilityExistsException,
    BusinessRuleException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..domain.calendar import (
    BusyInterval,
    DateException,
    Slot,
    WeeklyWindow,
    day_of_week_for,
    generate_slots,
)
from ..models.availability import AvailabilityWindow, Unavailability
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import (
    AvailabilityWindowBulkSet,
    AvailabilityWindowCreate,
    AvailabilityWindowUpdate,
    UnavailabilityCreate,
    UnavailabilityUpdate,
)
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class SlotSummary:
    partner_id: str
    date: date
    duration: int
    slots: List[Slot] = field(default_factory=list)
    service_id: Optional[str] = None

    @property
    def available_count(self) -> int:
        return sum(1 for slot in self.slots if slot.available)

    @property
    def unavailable_count(self) -> int:
        return len(self.slots) - self.available_count

    def to_dict(self) -> dict:
        return {
            "partner_id": self.partner_id,
            "service_id": self.service_id,
            "date": self.date,
            "duration": self.duration,
            "slots": [slot.to_dict() for slot in self.slots],
            "available_count": self.available_count,
            "unavailable_count": self.unavailable_count,
        }


class AvailabilityService(BaseService):
    """
    Slot engine plus partner-owned schedule management.

    ``clock`` returns the current local wall-clock time; schedules are
    expressed in the partner's local time.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(db)
        self.clock = clock or datetime.now
        self.window_repository = RepositoryFactory.create_availability_window_repository(db)
        self.unavailability_repository = RepositoryFactory.create_unavailability_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.partner_repository = RepositoryFactory.create_partner_repository(db)
        self.service_repository = RepositoryFactory.create_partner_service_repository(db)

    # ------------------------------------------------------------------
    # Slot engine
    # ------------------------------------------------------------------

    @BaseService.measure_operation("compute_slots")
    def compute_slots(
        self,
        partner_id: str,
        target_date: date,
        service_duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Slot]:
        """
        Labeled slots for ``partner_id`` on ``target_date``.

        Returns an empty list for past dates, weekdays without a window and
        full-day closures. Otherwise every candidate is returned with its
        ``available`` flag; callers wanting bookable options filter on it.

        Raises:
            NotFoundException: unknown partner
            ValidationException: duration is not a positive multiple of the slot size
        """
        if self.partner_repository.get_by_id(partner_id) is None:
            raise NotFoundException("Partner not found", details={"partner_id": partner_id})

        now = self.clock()
        if target_date < now.date():
            return []

        window_row = self.window_repository.get_active_for_day(
            partner_id, day_of_week_for(target_date)
        )
        if window_row is None:
            return []

        exceptions = [
            DateException.from_model(row)
            for row in self.unavailability_repository.list_for_date(partner_id, target_date)
        ]
        if any(exc.is_full_day for exc in exceptions):
            return []

        busy = [
            BusyInterval.from_booking(booking)
            for booking in self.booking_repository.get_blocking_bookings_for_date(
                partner_id, target_date, exclude_booking_id=exclude_booking_id
            )
        ]

        return generate_slots(
            target_date,
            WeeklyWindow.from_model(window_row),
            service_duration_minutes,
            exceptions=exceptions,
            busy=busy,
            not_before=now + timedelta(hours=settings.advance_notice_hours),
        )

    @BaseService.measure_operation("get_slots")
    def get_slots(self, partner_id: str, service_id: str, target_date: date) -> SlotSummary:
        """Slots for one of the partner's services, sized by the service duration."""
        service = self.service_repository.get_for_partner(service_id, partner_id)
        if service is None:
            raise NotFoundException("Service not found", details={"service_id": service_id})
        if not service.is_bookable:
            raise BusinessRuleException(
                "Service is not available for booking",
                code="SERVICE_INACTIVE",
                details={"service_id": service.id},
            )

        slots = self.compute_slots(partner_id, target_date, service.duration_minutes)
        return SlotSummary(
            partner_id=partner_id,
            service_id=service_id,
            date=target_date,
            duration=service.duration_minutes,
            slots=slots,
        )

    # ------------------------------------------------------------------
    # Weekly windows
    # ------------------------------------------------------------------

    @BaseService.measure_operation("list_windows")
    def list_windows(self, partner_id: str) -> List[AvailabilityWindow]:
        return self.window_repository.list_for_partner(partner_id)

    @BaseService.measure_operation("set_window")
    def set_window(self, partner_id: str, data: AvailabilityWindowCreate) -> AvailabilityWindow:
        """Create the partner's window for a weekday; fails if one already exists."""
        self._validate_window(data.day_of_week, data)
        self.log_operation("set_window", partner_id=partner_id, day_of_week=data.day_of_week)

        if self.window_repository.get_live_for_day(partner_id, data.day_of_week):
            raise AvailabilityExistsException(data.day_of_week)

        try:
            with self.window_repository.transaction():
                window = self.window_repository.create(partner_id=partner_id, **data.model_dump())
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise AvailabilityExistsException(data.day_of_week) from exc
            raise
        return window

    @BaseService.measure_operation("update_window")
    def update_window(
        self, partner_id: str, window_id: str, data: AvailabilityWindowUpdate
    ) -> AvailabilityWindow:
        window = self._get_window(partner_id, window_id)
        changes = data.model_dump(exclude_unset=True)
        merged = {
            "start_time": changes.get("start_time", window.start_time),
            "end_time": changes.get("end_time", window.end_time),
            "slot_duration_minutes": changes.get(
                "slot_duration_minutes", window.slot_duration_minutes
            ),
        }
        WeeklyWindow(day_of_week=window.day_of_week, **merged)

        with self.transaction():
            for key, value in changes.items():
                setattr(window, key, value)
        self.log_operation("update_window", partner_id=partner_id, window_id=window_id)
        return window

    @BaseService.measure_operation("bulk_set_windows")
    def bulk_set_windows(
        self, partner_id: str, data: AvailabilityWindowBulkSet
    ) -> List[AvailabilityWindow]:
        """Create or replace the windows for each weekday in ``data``."""
        days = [item.day_of_week for item in data.windows]
        if len(days) != len(set(days)):
            raise ValidationException(
                "Duplicate day_of_week entries are not allowed",
                details={"days": days},
            )
        for item in data.windows:
            self._validate_window(item.day_of_week, item)

        results: List[AvailabilityWindow] = []
        with self.transaction():
            for item in data.windows:
                existing = self.window_repository.get_live_for_day(partner_id, item.day_of_week)
                if existing:
                    for key, value in item.model_dump().items():
                        setattr(existing, key, value)
                    results.append(existing)
                else:
                    results.append(
                        self.window_repository.create(partner_id=partner_id, **item.model_dump())
                    )
        self.log_operation("bulk_set_windows", partner_id=partner_id, days=days)
        return results

    @BaseService.measure_operation("remove_window")
    def remove_window(self, partner_id: str, window_id: str) -> None:
        window = self._get_window(partner_id, window_id)
        with self.transaction():
            window.deleted_at = datetime.now(timezone.utc)
        self.log_operation("remove_window", partner_id=partner_id, window_id=window_id)

    # ------------------------------------------------------------------
    # Unavailabilities
    # ------------------------------------------------------------------

    @BaseService.measure_operation("list_unavailabilities")
    def list_unavailabilities(
        self,
        partner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Unavailability]:
        return self.unavailability_repository.list_for_range(partner_id, start_date, end_date)

    @BaseService.measure_operation("add_unavailability")
    def add_unavailability(self, partner_id: str, data: UnavailabilityCreate) -> Unavailability:
        if data.date < self.clock().date():
            raise ValidationException("Cannot add unavailability for past dates")
        exception = self._to_exception(
            data.date, data.reason, data.is_full_day, data.start_time, data.end_time
        )

        with self.transaction():
            row = self.unavailability_repository.create(
                partner_id=partner_id,
                date=exception.date,
                reason=exception.reason,
                is_full_day=exception.is_full_day,
                start_time=exception.start_time,
                end_time=exception.end_time,
            )
        self.log_operation("add_unavailability", partner_id=partner_id, date=str(data.date))
        return row

    @BaseService.measure_operation("update_unavailability")
    def update_unavailability(
        self, partner_id: str, unavailability_id: str, data: UnavailabilityUpdate
    ) -> Unavailability:
        row = self._get_unavailability(partner_id, unavailability_id)
        changes = data.model_dump(exclude_unset=True)
        exception = self._to_exception(
            row.date,
            changes.get("reason", row.reason),
            changes.get("is_full_day", row.is_full_day),
            changes.get("start_time", row.start_time),
            changes.get("end_time", row.end_time),
        )

        with self.transaction():
            row.reason = exception.reason
            row.is_full_day = exception.is_full_day
            row.start_time = exception.start_time
            row.end_time = exception.end_time
        return row

    @BaseService.measure_operation("remove_unavailability")
    def remove_unavailability(self, partner_id: str, unavailability_id: str) -> None:
        row = self._get_unavailability(partner_id, unavailability_id)
        with self.transaction():
            self.unavailability_repository.delete(row)
        self.log_operation(
            "remove_unavailability", partner_id=partner_id, unavailability_id=unavailability_id
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_window(day_of_week: int, data: AvailabilityWindowCreate) -> WeeklyWindow:
        return WeeklyWindow(
            day_of_week=day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            slot_duration_minutes=data.slot_duration_minutes,
        )

    @staticmethod
    def _to_exception(on_date, reason, is_full_day, start_time, end_time) -> DateException:
        if is_full_day:
            start_time = end_time = None
        return DateException(
            date=on_date,
            reason=reason,
            is_full_day=bool(is_full_day),
            start_time=start_time,
            end_time=end_time,
        )

    def _get_window(self, partner_id: str, window_id: str) -> AvailabilityWindow:
        window = self.window_repository.get_live_for_partner(window_id, partner_id)
        if window is None:
            raise NotFoundException("Availability not found", details={"window_id": window_id})
        return window

    def _get_unavailability(self, partner_id: str, unavailability_id: str) -> Unavailability:
        row = self.unavailability_repository.get_for_partner(unavailability_id, partner_id)
        if row is None:
            raise NotFoundException(
                "Unavailability not found", details={"unavailability_id": unavailability_id}
            )
        return row

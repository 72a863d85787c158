# backend/fleetbook/services/booking_service.py
"""
Booking Service

Orchestrates bookings for the fleet marketplace: validates prerequisites,
serializes calendar writes per partner, re-validates the requested slot with
the availability engine inside the write transaction, drives the lifecycle
through the state machine, and settles the commission on completion.

Double booking is prevented twice over: every calendar write first locks the
partner's row in ``partner_calendar_locks`` and recomputes slots under that
lock, and the partial unique index on active bookings rejects anything that
slips through. Both paths surface as SlotUnavailableException.
"""

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
import logging
from time import monotonic
from typing import Any, Callable, Dict, Iterator, List, NoReturn, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.caller_context import CallerContext
from ..core.config import settings
from ..core.enums import ActorRole
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    DeadlineExceededException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
)
from ..domain.booking_state_machine import (
    TRANSITIONS,
    BookingStateMachine,
    BookingTransition,
    scheduled_time_reached,
)
from ..domain.calendar import Slot, find_slot
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..models.catalog import Partner, PartnerService
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingFilters
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import (
    BookingCreate,
    BookingListParams,
    BookingNotesUpdate,
    BookingReschedule,
)
from .availability_service import AvailabilityService
from .base import BaseService
from .commission_service import CommissionService

logger = logging.getLogger(__name__)

RESCHEDULABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
UPCOMING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.PENDING.value)

# SQLSTATEs for deadlock_detected and lock_not_available
LOCK_CONTENTION_PGCODES = frozenset({"40P01", "55P03"})
LOCK_CONTENTION_MESSAGES = (
    "deadlock detected",
    "database is locked",
    "lock timeout",
)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    ``clock`` returns the local wall-clock time used for "today" and past-date
    checks; it is shared with the availability engine so both agree.
    Deadlines are absolute ``time.monotonic()`` values.
    """

    def __init__(
        self,
        db: Session,
        availability_service: Optional[AvailabilityService] = None,
        commission_service: Optional[CommissionService] = None,
        state_machine: Optional[BookingStateMachine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db)
        self.clock = clock or datetime.now
        self.availability_service = availability_service or AvailabilityService(
            db, clock=self.clock
        )
        self.commission_service = commission_service or CommissionService(db)
        if state_machine is None:
            guard = scheduled_time_reached if settings.enforce_start_time_guard else None
            state_machine = BookingStateMachine(start_guard=guard)
        self.state_machine = state_machine

        self.repository = RepositoryFactory.create_booking_repository(db)
        self.calendar_lock_repository = RepositoryFactory.create_partner_calendar_lock_repository(
            db
        )
        self.partner_repository = RepositoryFactory.create_partner_repository(db)
        self.service_repository = RepositoryFactory.create_partner_service_repository(db)
        self.vehicle_repository = RepositoryFactory.create_vehicle_repository(db)

    @staticmethod
    def _is_lock_contention(exc: BaseException) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in LOCK_CONTENTION_PGCODES:
            return True
        message = str(exc).lower()
        return any(marker in message for marker in LOCK_CONTENTION_MESSAGES)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        caller: CallerContext,
        data: BookingCreate,
        deadline: Optional[float] = None,
    ) -> Booking:
        """
        Create a pending booking for the caller's tenant.

        Args:
            caller: Tenant user making the booking
            data: Requested partner, service, vehicle and slot start
            deadline: Optional monotonic deadline; checked before commit

        Returns:
            The committed booking

        Raises:
            NotFoundException: unknown partner, service or vehicle
            BusinessRuleException: partner or service is not bookable
            ValidationException: date in the past or incompatible duration
            SlotUnavailableException: the slot is not available at write time
            DeadlineExceededException: the deadline passed; nothing was written
        """
        tenant_id = caller.require_tenant()
        partner, service = self._validate_create_prerequisites(tenant_id, data)
        conflict_details = self._build_conflict_details(
            partner.id, data.scheduled_date, data.scheduled_time
        )

        try:
            with self.repository.transaction():
                self._lock_calendar(partner.id, deadline)
                slot = self._ensure_slot_available(
                    partner.id,
                    data.scheduled_date,
                    data.scheduled_time,
                    service.duration_minutes,
                )
                booking = self.repository.create(
                    partner_id=partner.id,
                    tenant_id=tenant_id,
                    vehicle_id=data.vehicle_id,
                    driver_id=data.driver_id,
                    service_id=service.id,
                    scheduled_date=data.scheduled_date,
                    scheduled_time=slot.start,
                    end_time=slot.end,
                    duration_minutes=service.duration_minutes,
                    status=BookingStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    price=service.price,
                    commission_rate=partner.commission_rate,
                    customer_notes=data.customer_notes,
                    created_by=caller.user_id,
                )
                self._check_deadline(deadline, "create_booking")
        except IntegrityError as exc:
            prometheus_metrics.inc_slot_conflict("constraint")
            self.logger.info(
                "Booking insert rejected by slot uniqueness for partner %s",
                partner.id,
                extra=conflict_details,
            )
            raise SlotUnavailableException(details=conflict_details) from exc
        except OperationalError as exc:
            self._raise_conflict_from_lock_error(exc, conflict_details)
        except RepositoryException as exc:
            self._raise_conflict_from_repo_error(exc, conflict_details)

        prometheus_metrics.inc_booking_created()
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            partner_id=partner.id,
            tenant_id=tenant_id,
            scheduled_date=str(booking.scheduled_date),
            scheduled_time=booking.scheduled_time.strftime("%H:%M"),
        )
        return booking

    def _validate_create_prerequisites(
        self, tenant_id: str, data: BookingCreate
    ) -> Tuple[Partner, PartnerService]:
        partner = self.partner_repository.get_by_id(data.partner_id)
        if partner is None or partner.deleted_at is not None:
            raise NotFoundException("Partner not found", details={"partner_id": data.partner_id})
        if not partner.can_offer_services:
            raise BusinessRuleException(
                "Partner is not accepting bookings",
                code="PARTNER_INACTIVE",
                details={"partner_id": partner.id},
            )

        service = self.service_repository.get_for_partner(data.service_id, partner.id)
        if service is None:
            raise NotFoundException("Service not found", details={"service_id": data.service_id})
        if not service.is_bookable:
            raise BusinessRuleException(
                "Service is not available for booking",
                code="SERVICE_INACTIVE",
                details={"service_id": service.id},
            )

        if self.vehicle_repository.get_for_tenant(data.vehicle_id, tenant_id) is None:
            raise NotFoundException("Vehicle not found", details={"vehicle_id": data.vehicle_id})

        if data.scheduled_date < self.clock().date():
            raise ValidationException(
                "Cannot create bookings for past dates",
                details={"scheduled_date": data.scheduled_date.isoformat()},
            )
        return partner, service

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        caller: CallerContext,
        booking_id: str,
        reason: Optional[str],
        deadline: Optional[float] = None,
    ) -> Booking:
        """Tenant cancels a pending or confirmed booking; the slot becomes free."""
        return self._transition(
            caller, booking_id, BookingTransition.CANCEL, reason=reason, deadline=deadline
        )

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(
        self, caller: CallerContext, booking_id: str, deadline: Optional[float] = None
    ) -> Booking:
        return self._transition(caller, booking_id, BookingTransition.CONFIRM, deadline=deadline)

    @BaseService.measure_operation("reject_booking")
    def reject_booking(
        self,
        caller: CallerContext,
        booking_id: str,
        reason: Optional[str],
        deadline: Optional[float] = None,
    ) -> Booking:
        return self._transition(
            caller, booking_id, BookingTransition.REJECT, reason=reason, deadline=deadline
        )

    @BaseService.measure_operation("start_booking")
    def start_booking(
        self, caller: CallerContext, booking_id: str, deadline: Optional[float] = None
    ) -> Booking:
        return self._transition(caller, booking_id, BookingTransition.START, deadline=deadline)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(
        self,
        caller: CallerContext,
        booking_id: str,
        partner_notes: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> Booking:
        """Partner completes an in-progress booking; its commission is settled atomically."""
        return self._transition(
            caller,
            booking_id,
            BookingTransition.COMPLETE,
            notes=partner_notes,
            deadline=deadline,
        )

    def _transition(
        self,
        caller: CallerContext,
        booking_id: str,
        transition: BookingTransition,
        *,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> Booking:
        rule = TRANSITIONS[transition]
        booking = self._get_live_booking(booking_id)
        self._authorize(caller, booking, rule.actor)

        with self._locked_booking(booking, deadline):
            self.state_machine.apply(
                booking,
                transition,
                reason=reason,
                notes=notes,
                local_now=self.clock(),
            )
            if transition is BookingTransition.COMPLETE:
                self.commission_service.settle(booking)
            self.repository.flush()
            self._check_deadline(deadline, f"{transition.value}_booking")

        prometheus_metrics.inc_booking_transition(transition.value)
        self.log_operation(
            f"{transition.value}_booking",
            booking_id=booking.id,
            status=booking.status,
            user_id=caller.user_id,
        )
        return booking

    # ------------------------------------------------------------------
    # Other writes
    # ------------------------------------------------------------------

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        caller: CallerContext,
        booking_id: str,
        data: BookingReschedule,
        deadline: Optional[float] = None,
    ) -> Booking:
        """
        Move a pending or confirmed booking to another slot on the same calendar.

        The booking's own interval is excluded when re-validating, so moving
        within an overlapping range is allowed. Status is unchanged.
        """
        booking = self._get_live_booking(booking_id)
        self._authorize(caller, booking, ActorRole.TENANT)
        self._ensure_reschedulable(booking)
        if data.scheduled_date < self.clock().date():
            raise ValidationException(
                "New scheduled date must not be in the past",
                details={"scheduled_date": data.scheduled_date.isoformat()},
            )

        conflict_details = self._build_conflict_details(
            booking.partner_id, data.scheduled_date, data.scheduled_time
        )
        previous = (booking.scheduled_date, booking.scheduled_time)
        try:
            with self.repository.transaction():
                self._lock_calendar(booking.partner_id, deadline)
                self.repository.refresh(booking)
                self._ensure_reschedulable(booking)
                slot = self._ensure_slot_available(
                    booking.partner_id,
                    data.scheduled_date,
                    data.scheduled_time,
                    booking.duration_minutes,
                    exclude_booking_id=booking.id,
                )
                booking.scheduled_date = data.scheduled_date
                booking.scheduled_time = slot.start
                booking.end_time = slot.end
                self.repository.flush()
                self._check_deadline(deadline, "reschedule_booking")
        except IntegrityError as exc:
            prometheus_metrics.inc_slot_conflict("constraint")
            raise SlotUnavailableException(details=conflict_details) from exc
        except OperationalError as exc:
            self._raise_conflict_from_lock_error(exc, conflict_details)
        except RepositoryException as exc:
            self._raise_conflict_from_repo_error(exc, conflict_details)

        self.log_operation(
            "reschedule_booking",
            booking_id=booking.id,
            from_date=str(previous[0]),
            from_time=previous[1].strftime("%H:%M"),
            to_date=str(booking.scheduled_date),
            to_time=booking.scheduled_time.strftime("%H:%M"),
        )
        return booking

    @BaseService.measure_operation("update_notes")
    def update_notes(
        self, caller: CallerContext, booking_id: str, data: BookingNotesUpdate
    ) -> Booking:
        """Tenants edit customer notes, partners edit partner notes, while the booking is live."""
        booking = self._get_visible_booking(caller, booking_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return booking

        if "customer_notes" in changes and not self._owns(caller, booking, ActorRole.TENANT):
            raise ForbiddenException("Only the booking tenant can edit customer notes")
        if "partner_notes" in changes and not self._owns(caller, booking, ActorRole.PARTNER):
            raise ForbiddenException("Only the booking partner can edit partner notes")

        with self._locked_booking(booking):
            if booking.is_terminal:
                raise BusinessRuleException(
                    f"Notes cannot be changed on a {booking.status} booking",
                    code="BOOKING_TERMINAL",
                    details={"status": booking.status},
                )
            for key, value in changes.items():
                setattr(booking, key, value)

        self.log_operation("update_notes", booking_id=booking.id, fields=sorted(changes))
        return booking

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, caller: CallerContext, booking_id: str) -> None:
        """Soft delete a finished booking. Live bookings must be cancelled first."""
        booking = self._get_live_booking(booking_id)
        self._authorize(caller, booking, ActorRole.TENANT)
        if not booking.is_terminal:
            raise BusinessRuleException(
                "Only completed, cancelled or rejected bookings can be deleted",
                code="BOOKING_NOT_TERMINAL",
                details={"status": booking.status},
            )

        with self.transaction():
            booking.deleted_at = datetime.now(timezone.utc)
        self.log_operation("delete_booking", booking_id=booking.id, user_id=caller.user_id)

    @BaseService.measure_operation("update_payment_status")
    def update_payment_status(self, booking_id: str, payment_status: PaymentStatus) -> Booking:
        """Record the tenant payment outcome reported by the payment integration."""
        booking = self._get_live_booking(booking_id)
        target = PaymentStatus(payment_status)

        with self._locked_booking(booking):
            booking.payment_status = target.value
            if target is PaymentStatus.PAID and booking.paid_at is None:
                booking.paid_at = datetime.now(timezone.utc)

        self.log_operation("update_payment_status", booking_id=booking.id, payment_status=target.value)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_booking")
    def get_booking(self, caller: CallerContext, booking_id: str) -> Booking:
        return self._get_visible_booking(caller, booking_id)

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self, caller: CallerContext, params: BookingListParams
    ) -> Tuple[List[Booking], int]:
        """
        List bookings visible to the caller, newest schedule first.

        Tenants see their own tenant's bookings, partners their own calendar,
        administrators everything.
        """
        per_page = min(params.per_page, settings.max_page_size)
        filters = BookingFilters(
            partner_id=params.partner_id,
            vehicle_id=params.vehicle_id,
            driver_id=params.driver_id,
            status=params.status.value if params.status else None,
            start_date=params.start_date,
            end_date=params.end_date,
        )
        self._apply_scope(caller, filters)
        return self.repository.list_bookings(
            filters, skip=(params.page - 1) * per_page, limit=per_page
        )

    @BaseService.measure_operation("get_upcoming")
    def get_upcoming(self, caller: CallerContext, days: Optional[int] = None) -> List[Booking]:
        """Pending and confirmed bookings from today through ``days`` ahead, soonest first."""
        window_days = settings.upcoming_window_days if days is None else days
        if window_days < 0:
            raise ValidationException("days must not be negative", details={"days": window_days})

        today = self.clock().date()
        filters = BookingFilters()
        self._apply_scope(caller, filters)
        return self.repository.get_upcoming(
            from_date=today,
            to_date=today + timedelta(days=window_days),
            statuses=UPCOMING_STATUSES,
            tenant_id=filters.tenant_id,
            partner_id=filters.partner_id,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_live_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_live(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _get_visible_booking(self, caller: CallerContext, booking_id: str) -> Booking:
        booking = self._get_live_booking(booking_id)
        if not (
            caller.is_admin
            or self._owns(caller, booking, ActorRole.TENANT)
            or self._owns(caller, booking, ActorRole.PARTNER)
        ):
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @staticmethod
    def _owns(caller: CallerContext, booking: Booking, actor: ActorRole) -> bool:
        if actor is ActorRole.TENANT:
            return bool(caller.tenant_id) and caller.tenant_id == booking.tenant_id
        if actor is ActorRole.PARTNER:
            return bool(caller.partner_id) and caller.partner_id == booking.partner_id
        return caller.is_admin

    def _authorize(self, caller: CallerContext, booking: Booking, actor: ActorRole) -> None:
        if caller.is_admin or self._owns(caller, booking, actor):
            return
        raise ForbiddenException(
            f"Only the booking {actor.value} can perform this action",
            details={"booking_id": booking.id},
        )

    @staticmethod
    def _apply_scope(caller: CallerContext, filters: BookingFilters) -> None:
        if caller.is_admin:
            return
        if caller.partner_id:
            filters.partner_id = caller.partner_id
        elif caller.tenant_id:
            filters.tenant_id = caller.tenant_id
        else:
            raise ForbiddenException("A tenant or partner account is required")

    @staticmethod
    def _ensure_reschedulable(booking: Booking) -> None:
        if booking.status_enum not in RESCHEDULABLE_STATUSES:
            raise BusinessRuleException(
                f"Booking cannot be rescheduled in status: {booking.status}",
                code="NOT_RESCHEDULABLE",
                details={"status": booking.status},
            )

    @contextmanager
    def _locked_booking(
        self, booking: Booking, deadline: Optional[float] = None
    ) -> Iterator[Booking]:
        """
        Write to ``booking`` while holding its partner's calendar lock.

        The booking is reloaded once the lock is held, so checks inside the
        block see the committed row rather than the copy read before locking.
        Commits on exit.
        """
        try:
            with self.repository.transaction():
                self._lock_calendar(booking.partner_id, deadline)
                self.repository.refresh(booking)
                if booking.deleted_at is not None:
                    raise NotFoundException(
                        "Booking not found", details={"booking_id": booking.id}
                    )
                yield booking
        except OperationalError as exc:
            if self._is_lock_contention(exc):
                raise ConflictException(
                    "Booking is being modified concurrently, please retry",
                    code="CONCURRENT_MODIFICATION",
                    details={"booking_id": booking.id},
                ) from exc
            raise ServiceException(f"Database operation failed: {exc}") from exc

    def _lock_calendar(self, partner_id: str, deadline: Optional[float]) -> None:
        lock_timeout_ms = None
        if deadline is not None:
            lock_timeout_ms = max(int((deadline - monotonic()) * 1000), 1)
        self.calendar_lock_repository.acquire(partner_id, lock_timeout_ms=lock_timeout_ms)

    def _ensure_slot_available(
        self,
        partner_id: str,
        scheduled_date: date,
        scheduled_time: Any,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> Slot:
        slots = self.availability_service.compute_slots(
            partner_id,
            scheduled_date,
            duration_minutes,
            exclude_booking_id=exclude_booking_id,
        )
        slot = find_slot(slots, scheduled_time)
        if slot is None or not slot.available:
            prometheus_metrics.inc_slot_conflict("recheck")
            details = self._build_conflict_details(partner_id, scheduled_date, scheduled_time)
            details["reason"] = slot.reason if slot else "No slot starts at the requested time"
            raise SlotUnavailableException(details=details)
        return slot

    @staticmethod
    def _check_deadline(deadline: Optional[float], operation: str) -> None:
        if deadline is not None and monotonic() >= deadline:
            raise DeadlineExceededException(operation)

    @staticmethod
    def _build_conflict_details(
        partner_id: str, scheduled_date: date, scheduled_time: Any
    ) -> Dict[str, Any]:
        return {
            "partner_id": partner_id,
            "scheduled_date": scheduled_date.isoformat(),
            "scheduled_time": scheduled_time.strftime("%H:%M"),
        }

    def _raise_conflict_from_lock_error(
        self, exc: OperationalError, conflict_details: Dict[str, Any]
    ) -> NoReturn:
        """Lost lock races are slot conflicts; any other operational error is a service failure."""
        if self._is_lock_contention(exc):
            prometheus_metrics.inc_slot_conflict("lock")
            raise SlotUnavailableException(details=conflict_details) from exc
        raise ServiceException(f"Database operation failed: {exc}") from exc

    def _raise_conflict_from_repo_error(
        self, exc: RepositoryException, conflict_details: Dict[str, Any]
    ) -> NoReturn:
        """
        Translate repository-level lock failures into slot conflicts so callers
        receive a deterministic error instead of a generic RepositoryException.
        """
        cause = exc.__cause__ or exc.__context__
        if isinstance(cause, IntegrityError) or self._is_lock_contention(exc):
            prometheus_metrics.inc_slot_conflict("lock")
            raise SlotUnavailableException(details=conflict_details) from exc
        if isinstance(cause, SQLAlchemyError):
            raise ServiceException(f"Database operation failed: {cause}") from exc
        raise exc

"""
Booking lifecycle state machine.

    pending -> confirmed -> in_progress -> completed
    pending | confirmed -> cancelled      (tenant)
    pending -> rejected                   (partner)

``completed``, ``cancelled`` and ``rejected`` are terminal. The machine only
validates and applies status changes plus their timestamp/reason fields on a
booking object; persistence and the commission side effect belong to
BookingService, which calls it inside its transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from ..core.enums import ActorRole
from ..core.exceptions import (
    BusinessRuleException,
    InvalidTransitionException,
    ValidationException,
)
from ..models.booking import BookingStatus

logger = logging.getLogger(__name__)

StartGuard = Callable[[Any, datetime], bool]


class BookingTransition(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


@dataclass(frozen=True)
class TransitionRule:
    sources: FrozenSet[BookingStatus]
    target: BookingStatus
    actor: ActorRole
    requires_reason: bool = False
    frees_slot: bool = False


TRANSITIONS: Dict[BookingTransition, TransitionRule] = {
    BookingTransition.CONFIRM: TransitionRule(
        sources=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.CONFIRMED,
        actor=ActorRole.PARTNER,
    ),
    BookingTransition.REJECT: TransitionRule(
        sources=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.REJECTED,
        actor=ActorRole.PARTNER,
        requires_reason=True,
        frees_slot=True,
    ),
    BookingTransition.START: TransitionRule(
        sources=frozenset({BookingStatus.CONFIRMED}),
        target=BookingStatus.IN_PROGRESS,
        actor=ActorRole.PARTNER,
    ),
    BookingTransition.COMPLETE: TransitionRule(
        sources=frozenset({BookingStatus.IN_PROGRESS}),
        target=BookingStatus.COMPLETED,
        actor=ActorRole.PARTNER,
    ),
    BookingTransition.CANCEL: TransitionRule(
        sources=frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        target=BookingStatus.CANCELLED,
        actor=ActorRole.TENANT,
        requires_reason=True,
        frees_slot=True,
    ),
}


def scheduled_time_reached(booking: Any, now: datetime) -> bool:
    """Start guard that refuses to start a booking before its scheduled start."""
    return now >= booking.scheduled_start


class BookingStateMachine:
    """
    Validates and applies lifecycle transitions to a booking.

    ``start_guard`` is an optional policy hook for ``confirmed -> in_progress``;
    without one a partner may start a confirmed booking at any time.
    """

    def __init__(
        self,
        start_guard: Optional[StartGuard] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.start_guard = start_guard
        self.clock = clock

    @staticmethod
    def allowed_transitions(status: BookingStatus | str) -> list[BookingTransition]:
        current = BookingStatus(status)
        return [name for name, rule in TRANSITIONS.items() if current in rule.sources]

    @staticmethod
    def can_apply(status: BookingStatus | str, transition: BookingTransition) -> bool:
        return BookingStatus(status) in TRANSITIONS[transition].sources

    def apply(
        self,
        booking: Any,
        transition: BookingTransition,
        *,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        local_now: Optional[datetime] = None,
    ) -> TransitionRule:
        """
        Apply ``transition`` to ``booking`` in place.

        Raises:
            ValidationException: a required reason is missing or blank
            InvalidTransitionException: the booking's status does not allow it
            BusinessRuleException: the start guard refused the transition
        """
        rule = TRANSITIONS[transition]
        cleaned_reason = (reason or "").strip()
        if rule.requires_reason and not cleaned_reason:
            raise ValidationException(
                f"A reason is required to {transition.value} a booking",
                details={"field": "reason"},
            )

        current = BookingStatus(booking.status)
        if current not in rule.sources:
            raise InvalidTransitionException(
                current_status=current.value,
                requested_status=rule.target.value,
                transition=transition.value,
            )

        if transition is BookingTransition.START and self.start_guard is not None:
            check_time = local_now or datetime.now()
            if not self.start_guard(booking, check_time):
                raise BusinessRuleException(
                    "Booking cannot be started before its scheduled time",
                    code="START_TOO_EARLY",
                    details={"scheduled_start": booking.scheduled_start.isoformat()},
                )

        now = self.clock()
        booking.status = rule.target.value
        if transition is BookingTransition.CONFIRM:
            booking.confirmed_at = now
        elif transition is BookingTransition.REJECT:
            booking.rejection_reason = cleaned_reason
            booking.rejected_at = now
        elif transition is BookingTransition.START:
            booking.started_at = now
        elif transition is BookingTransition.COMPLETE:
            booking.completed_at = now
            if notes is not None:
                booking.partner_notes = notes
        elif transition is BookingTransition.CANCEL:
            booking.cancellation_reason = cleaned_reason
            booking.cancelled_at = now

        logger.info(
            "Booking %s transitioned %s -> %s",
            booking.id,
            current.value,
            rule.target.value,
            extra={"booking_id": booking.id, "transition": transition.value},
        )
        return rule

"""
Calendar value types and slot generation.

Everything here is pure: the functions take plain immutable values and return
new ones, so slot computation can be repeated and run concurrently without
touching the store. Times are handled as minutes since midnight.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, List, Optional, Sequence, cast

from ..core.exceptions import ValidationException

MIN_SLOT_MINUTES = 5
MAX_SLOT_MINUTES = 120

REASON_BOOKED = "Already booked"
REASON_ADVANCE_NOTICE = "Insufficient advance notice"


def time_to_minutes(value: time) -> int:
    """Convert a time to minutes since midnight (seconds are dropped)."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Convert minutes since midnight back to a time."""
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def day_of_week_for(value: date) -> int:
    """Weekday index with Sunday as 0 and Saturday as 6."""
    return value.isoweekday() % 7


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: touching edges do not overlap."""
    return start_a < end_b and start_b < end_a


@dataclass(frozen=True)
class WeeklyWindow:
    """Recurring open hours of a partner on one weekday."""

    day_of_week: int
    start_time: time
    end_time: time
    slot_duration_minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValidationException(
                "day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                details={"day_of_week": self.day_of_week},
            )
        if self.start_time >= self.end_time:
            raise ValidationException(
                "Start time must be before end time",
                details={"start_time": str(self.start_time), "end_time": str(self.end_time)},
            )
        if not MIN_SLOT_MINUTES <= self.slot_duration_minutes <= MAX_SLOT_MINUTES:
            raise ValidationException(
                f"Slot duration must be between {MIN_SLOT_MINUTES} and {MAX_SLOT_MINUTES} minutes",
                details={"slot_duration_minutes": self.slot_duration_minutes},
            )

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    @classmethod
    def from_model(cls, window: Any) -> "WeeklyWindow":
        return cls(
            day_of_week=window.day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
            slot_duration_minutes=window.slot_duration_minutes,
        )


@dataclass(frozen=True)
class DateException:
    """One-off unavailability on a date, either the whole day or a time range."""

    date: date
    reason: str
    is_full_day: bool = True
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    def __post_init__(self) -> None:
        if self.is_full_day:
            return
        if self.start_time is None or self.end_time is None:
            raise ValidationException(
                "Start time and end time are required for partial day unavailability"
            )
        if self.start_time >= self.end_time:
            raise ValidationException("Start time must be before end time")

    def blocks(self, start_minutes: int, end_minutes: int) -> bool:
        if self.is_full_day:
            return True
        return intervals_overlap(
            time_to_minutes(cast(time, self.start_time)),
            time_to_minutes(cast(time, self.end_time)),
            start_minutes,
            end_minutes,
        )

    @classmethod
    def from_model(cls, unavailability: Any) -> "DateException":
        return cls(
            date=unavailability.date,
            reason=unavailability.reason,
            is_full_day=bool(unavailability.is_full_day),
            start_time=unavailability.start_time,
            end_time=unavailability.end_time,
        )


@dataclass(frozen=True)
class BusyInterval:
    """Time already held by a blocking booking."""

    start_minutes: int
    end_minutes: int
    booking_id: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: Any) -> "BusyInterval":
        return cls(
            start_minutes=time_to_minutes(booking.scheduled_time),
            end_minutes=time_to_minutes(booking.end_time),
            booking_id=booking.id,
        )


@dataclass(frozen=True)
class Slot:
    """A dated, fixed-length interval offered for booking."""

    start: time
    end: time
    available: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.start.strftime("%H:%M"),
            "end_time": self.end.strftime("%H:%M"),
            "available": self.available,
            "reason": self.reason,
        }


def validate_service_duration(window: WeeklyWindow, service_duration_minutes: int) -> None:
    """Reject durations that do not fill whole base slots; no implicit rounding."""
    if service_duration_minutes <= 0:
        raise ValidationException(
            "Service duration must be positive",
            details={"service_duration_minutes": service_duration_minutes},
        )
    if service_duration_minutes % window.slot_duration_minutes:
        raise ValidationException(
            f"Service duration of {service_duration_minutes} minutes is not a multiple of "
            f"the partner's {window.slot_duration_minutes} minute slots",
            details={
                "service_duration_minutes": service_duration_minutes,
                "slot_duration_minutes": window.slot_duration_minutes,
            },
        )


def generate_slots(
    target_date: date,
    window: Optional[WeeklyWindow],
    service_duration_minutes: int,
    exceptions: Sequence[DateException] = (),
    busy: Iterable[BusyInterval] = (),
    not_before: Optional[datetime] = None,
) -> List[Slot]:
    """
    Build the labeled slot sequence for one date.

    Candidates start at every slot boundary of ``window`` and span
    ``service_duration_minutes``; a candidate is only offered when it ends
    within the window. Candidates overlapping a partial exception, a busy
    interval, or starting before ``not_before`` are returned unavailable.
    """
    if window is None:
        return []
    if any(exc.is_full_day for exc in exceptions):
        return []

    validate_service_duration(window, service_duration_minutes)

    busy_intervals = list(busy)
    partial = [exc for exc in exceptions if not exc.is_full_day]
    slots: List[Slot] = []

    current = window.start_minutes
    while current + service_duration_minutes <= window.end_minutes:
        slot_end = current + service_duration_minutes
        reason: Optional[str] = None

        slot_start = datetime.combine(target_date, minutes_to_time(current))
        if not_before is not None and slot_start < not_before:
            reason = REASON_ADVANCE_NOTICE

        if reason is None:
            for exc in partial:
                if exc.blocks(current, slot_end):
                    reason = exc.reason
                    break

        if reason is None:
            for interval in busy_intervals:
                if intervals_overlap(interval.start_minutes, interval.end_minutes, current, slot_end):
                    reason = REASON_BOOKED
                    break

        slots.append(
            Slot(
                start=minutes_to_time(current),
                end=minutes_to_time(slot_end),
                available=reason is None,
                reason=reason,
            )
        )
        current += window.slot_duration_minutes

    return slots


def find_slot(slots: Sequence[Slot], start: time) -> Optional[Slot]:
    """Return the slot starting exactly at ``start``, if one was offered."""
    start_minutes = time_to_minutes(start)
    for slot in slots:
        if time_to_minutes(slot.start) == start_minutes:
            return slot
    return None

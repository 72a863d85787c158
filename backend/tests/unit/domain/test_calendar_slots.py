from datetime import date, datetime, time

import pytest

from fleetbook.core.exceptions import ValidationException
from fleetbook.domain.calendar import (
    REASON_ADVANCE_NOTICE,
    REASON_BOOKED,
    BusyInterval,
    DateException,
    WeeklyWindow,
    day_of_week_for,
    find_slot,
    generate_slots,
    intervals_overlap,
    minutes_to_time,
    time_to_minutes,
)

MONDAY = date(2025, 1, 13)


def _window(start=time(8, 0), end=time(12, 0), slot=60) -> WeeklyWindow:
    return WeeklyWindow(day_of_week=1, start_time=start, end_time=end, slot_duration_minutes=slot)


def _starts(slots) -> list[str]:
    return [slot.start.strftime("%H:%M") for slot in slots]


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week_for(date(2025, 1, 12)) == 0  # Sunday
    assert day_of_week_for(MONDAY) == 1
    assert day_of_week_for(date(2025, 1, 18)) == 6  # Saturday


def test_minutes_round_trip_and_bounds() -> None:
    assert time_to_minutes(time(9, 30, 45)) == 570
    assert minutes_to_time(570) == time(9, 30)
    with pytest.raises(ValueError):
        minutes_to_time(24 * 60)


def test_intervals_touching_edges_do_not_overlap() -> None:
    assert not intervals_overlap(480, 540, 540, 600)
    assert intervals_overlap(480, 541, 540, 600)


def test_generates_every_slot_boundary_inside_the_window() -> None:
    slots = generate_slots(MONDAY, _window(), 60)

    assert _starts(slots) == ["08:00", "09:00", "10:00", "11:00"]
    assert all(slot.available for slot in slots)
    assert slots[-1].end == time(12, 0)


def test_multi_slot_service_steps_by_base_slot_and_stays_in_window() -> None:
    slots = generate_slots(MONDAY, _window(slot=30), 90)

    assert _starts(slots) == ["08:00", "08:30", "09:00", "09:30", "10:00", "10:30"]
    assert slots[-1].end == time(12, 0)


def test_no_window_means_no_slots() -> None:
    assert generate_slots(MONDAY, None, 60) == []


def test_full_day_exception_removes_every_slot() -> None:
    closed = DateException(date=MONDAY, reason="Public holiday")

    assert generate_slots(MONDAY, _window(), 60, exceptions=[closed]) == []


def test_partial_exception_labels_overlapping_slots_with_its_reason() -> None:
    lunch = DateException(
        date=MONDAY,
        reason="Staff training",
        is_full_day=False,
        start_time=time(9, 30),
        end_time=time(10, 30),
    )

    slots = generate_slots(MONDAY, _window(), 60, exceptions=[lunch])

    by_start = {slot.start: slot for slot in slots}
    assert by_start[time(8, 0)].available
    assert not by_start[time(9, 0)].available
    assert by_start[time(9, 0)].reason == "Staff training"
    assert not by_start[time(10, 0)].available
    assert by_start[time(11, 0)].available


def test_busy_intervals_are_labeled_already_booked() -> None:
    busy = [BusyInterval(start_minutes=9 * 60, end_minutes=10 * 60)]

    slots = generate_slots(MONDAY, _window(slot=30), 60, busy=busy)

    unavailable = [slot for slot in slots if not slot.available]
    assert _starts(unavailable) == ["08:30", "09:00", "09:30"]
    assert {slot.reason for slot in unavailable} == {REASON_BOOKED}


def test_slots_before_not_before_are_insufficient_notice() -> None:
    slots = generate_slots(MONDAY, _window(), 60, not_before=datetime(2025, 1, 13, 10, 0))

    assert [slot.available for slot in slots] == [False, False, True, True]
    assert slots[0].reason == REASON_ADVANCE_NOTICE


def test_duration_must_be_a_multiple_of_the_slot_size() -> None:
    with pytest.raises(ValidationException) as exc_info:
        generate_slots(MONDAY, _window(slot=30), 45)

    assert exc_info.value.details["slot_duration_minutes"] == 30


def test_duration_must_be_positive() -> None:
    with pytest.raises(ValidationException):
        generate_slots(MONDAY, _window(), 0)


def test_service_longer_than_the_window_yields_no_slots() -> None:
    assert generate_slots(MONDAY, _window(end=time(9, 0)), 120) == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"day_of_week": 7},
        {"start_time": time(12, 0), "end_time": time(8, 0)},
        {"slot_duration_minutes": 3},
        {"slot_duration_minutes": 180},
    ],
)
def test_invalid_weekly_windows_are_rejected(kwargs) -> None:
    values = {
        "day_of_week": 1,
        "start_time": time(8, 0),
        "end_time": time(12, 0),
        "slot_duration_minutes": 60,
    }
    values.update(kwargs)
    with pytest.raises(ValidationException):
        WeeklyWindow(**values)


def test_partial_exception_requires_ordered_times() -> None:
    with pytest.raises(ValidationException):
        DateException(date=MONDAY, reason="x", is_full_day=False, start_time=time(10, 0))
    with pytest.raises(ValidationException):
        DateException(
            date=MONDAY,
            reason="x",
            is_full_day=False,
            start_time=time(10, 0),
            end_time=time(9, 0),
        )


def test_find_slot_matches_exact_start_only() -> None:
    slots = generate_slots(MONDAY, _window(), 60)

    assert find_slot(slots, time(9, 0)).end == time(10, 0)
    assert find_slot(slots, time(9, 15)) is None


def test_slot_to_dict_uses_hour_minute_strings() -> None:
    slot = generate_slots(MONDAY, _window(), 60)[0]

    assert slot.to_dict() == {
        "time": "08:00",
        "end_time": "09:00",
        "available": True,
        "reason": None,
    }

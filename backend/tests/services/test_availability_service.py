# backend/tests/services/test_availability_service.py
"""
Tests for AvailabilityService: slot computation against the store and
partner-owned window/unavailability management.

The frozen clock is Monday 2025-01-06 08:00; the catalog partner is open
Mondays 08:00-17:00 with 60 minute slots.
"""

from datetime import date, time

import pytest

from fleetbook.core.config import settings
from fleetbook.core.exceptions import (
    AvailabilityExistsException,
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from fleetbook.core.ulid_helper import generate_ulid
from fleetbook.domain.calendar import REASON_ADVANCE_NOTICE, REASON_BOOKED
from fleetbook.schemas.availability import (
    AvailabilityWindowBulkSet,
    AvailabilityWindowCreate,
    AvailabilityWindowUpdate,
    UnavailabilityCreate,
    UnavailabilityUpdate,
)

TODAY = date(2025, 1, 6)
NEXT_MONDAY = date(2025, 1, 13)
NEXT_TUESDAY = date(2025, 1, 14)


def _starts(slots, available_only: bool = False) -> list[str]:
    return [
        slot.start.strftime("%H:%M") for slot in slots if slot.available or not available_only
    ]


class TestSlotComputation:
    def test_open_day_offers_every_slot(self, availability_service, catalog) -> None:
        summary = availability_service.get_slots(
            catalog.partner.id, catalog.service.id, NEXT_MONDAY
        )

        assert summary.duration == 60
        assert _starts(summary.slots)[0] == "08:00"
        assert _starts(summary.slots)[-1] == "16:00"
        assert summary.available_count == 9
        assert summary.unavailable_count == 0

    def test_to_dict_matches_response_shape(self, availability_service, catalog) -> None:
        payload = availability_service.get_slots(
            catalog.partner.id, catalog.service.id, NEXT_MONDAY
        ).to_dict()

        assert payload["partner_id"] == catalog.partner.id
        assert payload["service_id"] == catalog.service.id
        assert payload["slots"][0] == {
            "time": "08:00",
            "end_time": "09:00",
            "available": True,
            "reason": None,
        }

    def test_past_date_returns_nothing(self, availability_service, catalog) -> None:
        assert availability_service.compute_slots(catalog.partner.id, date(2025, 1, 5), 60) == []

    def test_day_without_window_returns_nothing(self, availability_service, catalog) -> None:
        assert availability_service.compute_slots(catalog.partner.id, NEXT_TUESDAY, 60) == []

    def test_inactive_window_returns_nothing(self, availability_service, catalog, db) -> None:
        catalog.window.is_active = False
        db.commit()

        assert availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60) == []

    def test_full_day_closure_returns_nothing(
        self, availability_service, catalog, make_unavailability
    ) -> None:
        make_unavailability(catalog.partner, NEXT_MONDAY, reason="Inventory")

        assert availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60) == []

    def test_partial_closure_labels_slots(
        self, availability_service, catalog, make_unavailability
    ) -> None:
        make_unavailability(
            catalog.partner, NEXT_MONDAY, reason="Lunch", start=time(12, 0), end=time(13, 0)
        )

        slots = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)

        noon = next(slot for slot in slots if slot.start == time(12, 0))
        assert not noon.available
        assert noon.reason == "Lunch"
        assert len(slots) == 9

    def test_booked_interval_is_labeled(self, availability_service, catalog, book) -> None:
        booking = book(time(10, 0))

        slots = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)
        ten = next(slot for slot in slots if slot.start == time(10, 0))
        assert not ten.available
        assert ten.reason == REASON_BOOKED

        slots = availability_service.compute_slots(
            catalog.partner.id, NEXT_MONDAY, 60, exclude_booking_id=booking.id
        )
        assert all(slot.available for slot in slots)

    def test_advance_notice_hides_near_slots_today(
        self, availability_service, catalog, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "advance_notice_hours", 2)

        slots = availability_service.compute_slots(catalog.partner.id, TODAY, 60)

        assert [s.reason for s in slots[:2]] == [REASON_ADVANCE_NOTICE, REASON_ADVANCE_NOTICE]
        assert slots[2].start == time(10, 0)
        assert slots[2].available

    def test_incompatible_duration_is_rejected(
        self, availability_service, catalog, make_service
    ) -> None:
        odd = make_service(catalog.partner, name="Quick check", duration_minutes=45)

        with pytest.raises(ValidationException):
            availability_service.get_slots(catalog.partner.id, odd.id, NEXT_MONDAY)

    def test_unknown_partner(self, availability_service) -> None:
        with pytest.raises(NotFoundException):
            availability_service.compute_slots(generate_ulid(), NEXT_MONDAY, 60)

    def test_service_of_another_partner_is_not_found(
        self, availability_service, catalog, make_partner, make_service
    ) -> None:
        foreign = make_service(make_partner(company_name="Other"))

        with pytest.raises(NotFoundException):
            availability_service.get_slots(catalog.partner.id, foreign.id, NEXT_MONDAY)

    def test_inactive_service_is_refused(self, availability_service, catalog, make_service) -> None:
        retired = make_service(catalog.partner, is_active=False)

        with pytest.raises(BusinessRuleException) as exc_info:
            availability_service.get_slots(catalog.partner.id, retired.id, NEXT_MONDAY)

        assert exc_info.value.code == "SERVICE_INACTIVE"

    def test_repeated_computation_is_stable(
        self, availability_service, catalog, book, make_unavailability
    ) -> None:
        book(time(9, 0))
        make_unavailability(
            catalog.partner, NEXT_MONDAY, reason="Lunch", start=time(12, 0), end=time(13, 0)
        )

        first = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)
        second = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)

        assert first == second
        assert [s.reason for s in first if not s.available] == [REASON_BOOKED, "Lunch"]


class TestWeeklyWindows:
    def test_second_window_for_same_day_is_rejected(self, availability_service, catalog) -> None:
        data = AvailabilityWindowCreate(
            day_of_week=1, start_time=time(9, 0), end_time=time(12, 0)
        )

        with pytest.raises(AvailabilityExistsException) as exc_info:
            availability_service.set_window(catalog.partner.id, data)

        assert exc_info.value.status_code == 409

    def test_set_window_for_new_day(self, availability_service, catalog) -> None:
        data = AvailabilityWindowCreate(
            day_of_week=2, start_time=time(9, 0), end_time=time(12, 0), slot_duration_minutes=30
        )

        window = availability_service.set_window(catalog.partner.id, data)

        assert window.id
        assert [w.day_of_week for w in availability_service.list_windows(catalog.partner.id)] == [
            1,
            2,
        ]
        slots = availability_service.compute_slots(catalog.partner.id, NEXT_TUESDAY, 60)
        assert _starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00"]

    def test_update_window_changes_slots(self, availability_service, catalog) -> None:
        availability_service.update_window(
            catalog.partner.id, catalog.window.id, AvailabilityWindowUpdate(end_time=time(12, 0))
        )

        slots = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)
        assert _starts(slots) == ["08:00", "09:00", "10:00", "11:00"]

    def test_update_window_validates_merged_values(self, availability_service, catalog) -> None:
        with pytest.raises(ValidationException):
            availability_service.update_window(
                catalog.partner.id,
                catalog.window.id,
                AvailabilityWindowUpdate(start_time=time(18, 0)),
            )

    def test_windows_are_scoped_to_their_partner(
        self, availability_service, catalog, make_partner
    ) -> None:
        other = make_partner(company_name="Other")

        with pytest.raises(NotFoundException):
            availability_service.remove_window(other.id, catalog.window.id)

    def test_removed_window_frees_the_weekday(self, availability_service, catalog) -> None:
        availability_service.remove_window(catalog.partner.id, catalog.window.id)

        assert availability_service.list_windows(catalog.partner.id) == []
        assert availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60) == []

        replacement = availability_service.set_window(
            catalog.partner.id,
            AvailabilityWindowCreate(day_of_week=1, start_time=time(13, 0), end_time=time(15, 0)),
        )
        assert replacement.id != catalog.window.id

    def test_bulk_set_replaces_and_creates(self, availability_service, catalog) -> None:
        data = AvailabilityWindowBulkSet(
            windows=[
                AvailabilityWindowCreate(
                    day_of_week=1, start_time=time(10, 0), end_time=time(12, 0)
                ),
                AvailabilityWindowCreate(
                    day_of_week=2, start_time=time(8, 0), end_time=time(10, 0)
                ),
            ]
        )

        windows = availability_service.bulk_set_windows(catalog.partner.id, data)

        assert len(windows) == 2
        assert windows[0].id == catalog.window.id
        assert windows[0].start_time == time(10, 0)
        assert len(availability_service.list_windows(catalog.partner.id)) == 2

    def test_bulk_set_rejects_duplicate_days(self, availability_service, catalog) -> None:
        item = AvailabilityWindowCreate(day_of_week=3, start_time=time(8, 0), end_time=time(9, 0))

        with pytest.raises(ValidationException):
            availability_service.bulk_set_windows(
                catalog.partner.id, AvailabilityWindowBulkSet(windows=[item, item])
            )

        assert len(availability_service.list_windows(catalog.partner.id)) == 1


class TestUnavailabilities:
    def test_add_partial_and_list(self, availability_service, catalog) -> None:
        row = availability_service.add_unavailability(
            catalog.partner.id,
            UnavailabilityCreate(
                date=NEXT_MONDAY,
                reason="Team meeting",
                is_full_day=False,
                start_time=time(8, 0),
                end_time=time(9, 0),
            ),
        )

        assert not row.is_full_day
        listed = availability_service.list_unavailabilities(
            catalog.partner.id, NEXT_MONDAY, NEXT_MONDAY
        )
        assert [r.id for r in listed] == [row.id]
        first = availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)[0]
        assert first.reason == "Team meeting"

    def test_full_day_drops_times(self, availability_service, catalog) -> None:
        row = availability_service.add_unavailability(
            catalog.partner.id,
            UnavailabilityCreate(
                date=NEXT_MONDAY, reason="Holiday", start_time=time(8, 0), end_time=time(9, 0)
            ),
        )

        assert row.is_full_day
        assert row.start_time is None and row.end_time is None

    def test_partial_without_times_is_rejected(self, availability_service, catalog) -> None:
        with pytest.raises(ValidationException):
            availability_service.add_unavailability(
                catalog.partner.id,
                UnavailabilityCreate(date=NEXT_MONDAY, reason="Half day", is_full_day=False),
            )

    def test_past_date_is_rejected(self, availability_service, catalog) -> None:
        with pytest.raises(ValidationException):
            availability_service.add_unavailability(
                catalog.partner.id, UnavailabilityCreate(date=date(2025, 1, 1), reason="Late")
            )

    def test_update_to_full_day_then_remove(self, availability_service, catalog) -> None:
        row = availability_service.add_unavailability(
            catalog.partner.id,
            UnavailabilityCreate(
                date=NEXT_MONDAY,
                reason="Delivery",
                is_full_day=False,
                start_time=time(14, 0),
                end_time=time(15, 0),
            ),
        )

        updated = availability_service.update_unavailability(
            catalog.partner.id, row.id, UnavailabilityUpdate(is_full_day=True, reason="Closed")
        )
        assert updated.is_full_day
        assert updated.start_time is None
        assert availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60) == []

        availability_service.remove_unavailability(catalog.partner.id, row.id)
        assert availability_service.list_unavailabilities(catalog.partner.id) == []
        assert len(availability_service.compute_slots(catalog.partner.id, NEXT_MONDAY, 60)) == 9

    def test_unknown_unavailability(self, availability_service, catalog) -> None:
        with pytest.raises(NotFoundException):
            availability_service.remove_unavailability(catalog.partner.id, generate_ulid())

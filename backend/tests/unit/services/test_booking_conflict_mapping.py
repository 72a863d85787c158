from __future__ import annotations

from datetime import date, time
from time import monotonic
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from fleetbook.core.caller_context import CallerContext
from fleetbook.core.enums import ActorRole
from fleetbook.core.exceptions import (
    DeadlineExceededException,
    ForbiddenException,
    RepositoryException,
    ServiceException,
    SlotUnavailableException,
)
from fleetbook.repositories.booking_repository import BookingFilters
from fleetbook.services.booking_service import BookingService

DETAILS = {"partner_id": "p", "scheduled_date": "2025-01-13", "scheduled_time": "09:00"}


class _FakeOrig:
    def __init__(self, text: str = "", pgcode: Optional[str] = None) -> None:
        self.pgcode = pgcode
        self._text = text

    def __str__(self) -> str:
        return self._text


def _operational(text: str = "", pgcode: Optional[str] = None) -> OperationalError:
    return OperationalError("stmt", params=None, orig=_FakeOrig(text, pgcode))


def _repo_error(cause: BaseException) -> RepositoryException:
    try:
        raise RepositoryException("Integrity constraint violated") from cause
    except RepositoryException as exc:
        return exc


@pytest.mark.parametrize(
    "error",
    [
        _operational(pgcode="40P01"),
        _operational(pgcode="55P03"),
        _operational("database is locked"),
        _operational("ERROR: deadlock detected"),
        _operational("canceling statement due to lock timeout"),
    ],
)
def test_lock_contention_is_detected(error: OperationalError) -> None:
    assert BookingService._is_lock_contention(error)


def test_other_operational_errors_are_not_contention() -> None:
    assert not BookingService._is_lock_contention(_operational("disk I/O error"))


def test_lock_contention_becomes_slot_unavailable() -> None:
    service = BookingService.__new__(BookingService)

    with pytest.raises(SlotUnavailableException) as exc_info:
        service._raise_conflict_from_lock_error(_operational("database is locked"), DETAILS)

    assert exc_info.value.code == "SLOT_UNAVAILABLE"
    assert exc_info.value.details == DETAILS
    assert exc_info.value.status_code == 409


def test_unrelated_operational_error_becomes_service_error() -> None:
    service = BookingService.__new__(BookingService)

    with pytest.raises(ServiceException) as exc_info:
        service._raise_conflict_from_lock_error(_operational("disk I/O error"), DETAILS)

    assert not isinstance(exc_info.value, SlotUnavailableException)


def test_repository_integrity_error_becomes_slot_unavailable() -> None:
    service = BookingService.__new__(BookingService)
    integrity = IntegrityError("stmt", params=None, orig=_FakeOrig("UNIQUE constraint failed"))

    with pytest.raises(SlotUnavailableException):
        service._raise_conflict_from_repo_error(_repo_error(integrity), DETAILS)


def test_repository_database_error_becomes_service_error() -> None:
    service = BookingService.__new__(BookingService)

    with pytest.raises(ServiceException):
        service._raise_conflict_from_repo_error(_repo_error(_operational("disk I/O error")), DETAILS)


def test_repository_error_without_cause_is_reraised() -> None:
    service = BookingService.__new__(BookingService)
    error = RepositoryException("boom")

    with pytest.raises(RepositoryException) as exc_info:
        service._raise_conflict_from_repo_error(error, DETAILS)

    assert exc_info.value is error


def test_conflict_details_format_date_and_time() -> None:
    details = BookingService._build_conflict_details("p1", date(2025, 1, 13), time(9, 30))

    assert details == {
        "partner_id": "p1",
        "scheduled_date": "2025-01-13",
        "scheduled_time": "09:30",
    }


def test_check_deadline() -> None:
    BookingService._check_deadline(None, "create_booking")
    BookingService._check_deadline(monotonic() + 60, "create_booking")

    with pytest.raises(DeadlineExceededException) as exc_info:
        BookingService._check_deadline(monotonic() - 1, "create_booking")

    assert exc_info.value.status_code == 504
    assert exc_info.value.details == {"operation": "create_booking"}


def test_scope_for_each_role() -> None:
    admin = BookingFilters(partner_id="requested")
    BookingService._apply_scope(CallerContext(user_id="u", is_admin=True), admin)
    assert admin.partner_id == "requested" and admin.tenant_id is None

    partner = BookingFilters(partner_id="someone-else")
    BookingService._apply_scope(CallerContext(user_id="u", partner_id="p1"), partner)
    assert partner.partner_id == "p1"

    tenant = BookingFilters()
    BookingService._apply_scope(CallerContext(user_id="u", tenant_id="t1"), tenant)
    assert tenant.tenant_id == "t1"

    with pytest.raises(ForbiddenException):
        BookingService._apply_scope(CallerContext(user_id="u"), BookingFilters())


def test_ownership_checks() -> None:
    booking = SimpleNamespace(tenant_id="t1", partner_id="p1")

    assert BookingService._owns(CallerContext(user_id="u", tenant_id="t1"), booking, ActorRole.TENANT)
    assert not BookingService._owns(
        CallerContext(user_id="u", tenant_id="t2"), booking, ActorRole.TENANT
    )
    assert BookingService._owns(
        CallerContext(user_id="u", partner_id="p1"), booking, ActorRole.PARTNER
    )
    assert not BookingService._owns(
        CallerContext(user_id="u", tenant_id="t1"), booking, ActorRole.PARTNER
    )

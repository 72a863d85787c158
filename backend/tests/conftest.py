# backend/tests/conftest.py
"""
Pytest configuration for the booking core.

Every test gets a fresh in-memory SQLite database and a frozen local clock
(Monday 2025-01-06 08:00). Catalog rows are created with the ``make_*``
factory fixtures; ``catalog`` builds the usual partner/service/vehicle/window
set used by most booking tests.
"""

import os

# Settings are read at import time, so the environment must be set first.
os.environ.setdefault("FLEETBOOK_DATABASE_URL", "sqlite://")
os.environ.setdefault("FLEETBOOK_ENVIRONMENT", "test")

from datetime import date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fleetbook.api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_commission_service,
    get_db,
)
from fleetbook.core.caller_context import CallerContext
from fleetbook.core.ulid_helper import generate_ulid
from fleetbook.database import Base, build_engine
from fleetbook.main import fastapi_app as app
from fleetbook.models import (
    AvailabilityWindow,
    Booking,
    Partner,
    PartnerService,
    Unavailability,
    Vehicle,
)
from fleetbook.schemas.booking import BookingCreate
from fleetbook.services import AvailabilityService, BookingService, CommissionService

FIXED_NOW = datetime(2025, 1, 6, 8, 0)
NEXT_MONDAY = date(2025, 1, 13)
MONDAY = 1


def fixed_clock() -> datetime:
    return FIXED_NOW


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Catalog factories
# ============================================================================


@pytest.fixture
def make_partner(db: Session) -> Callable[..., Partner]:
    def _make(**overrides: Any) -> Partner:
        values: Dict[str, Any] = {
            "company_name": "Garage Nord",
            "commission_rate": Decimal("10.00"),
            "is_active": True,
        }
        values.update(overrides)
        partner = Partner(**values)
        db.add(partner)
        db.commit()
        return partner

    return _make


@pytest.fixture
def make_service(db: Session) -> Callable[..., PartnerService]:
    def _make(partner: Partner, **overrides: Any) -> PartnerService:
        values: Dict[str, Any] = {
            "partner_id": partner.id,
            "name": "Oil change",
            "price": Decimal("80.00"),
            "duration_minutes": 60,
            "is_active": True,
        }
        values.update(overrides)
        service = PartnerService(**values)
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_vehicle(db: Session) -> Callable[..., Vehicle]:
    def _make(tenant_id: str, **overrides: Any) -> Vehicle:
        vehicle = Vehicle(tenant_id=tenant_id, registration="AB-123-CD", **overrides)
        db.add(vehicle)
        db.commit()
        return vehicle

    return _make


@pytest.fixture
def make_window(db: Session) -> Callable[..., AvailabilityWindow]:
    def _make(
        partner: Partner,
        day_of_week: int = MONDAY,
        start: time = time(8, 0),
        end: time = time(17, 0),
        slot_duration_minutes: int = 60,
        **overrides: Any,
    ) -> AvailabilityWindow:
        window = AvailabilityWindow(
            partner_id=partner.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            slot_duration_minutes=slot_duration_minutes,
            **overrides,
        )
        db.add(window)
        db.commit()
        return window

    return _make


@pytest.fixture
def make_unavailability(db: Session) -> Callable[..., Unavailability]:
    def _make(
        partner: Partner,
        on_date: date = NEXT_MONDAY,
        reason: str = "Closed",
        start: Optional[time] = None,
        end: Optional[time] = None,
    ) -> Unavailability:
        row = Unavailability(
            partner_id=partner.id,
            date=on_date,
            reason=reason,
            is_full_day=start is None,
            start_time=start,
            end_time=end,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def catalog(make_partner, make_service, make_vehicle, make_window) -> SimpleNamespace:
    """A bookable partner open Mondays 08:00-17:00 and a tenant with one vehicle."""
    tenant_id = generate_ulid()
    partner = make_partner()
    return SimpleNamespace(
        tenant_id=tenant_id,
        partner=partner,
        service=make_service(partner),
        vehicle=make_vehicle(tenant_id),
        window=make_window(partner),
    )


# ============================================================================
# Callers
# ============================================================================


@pytest.fixture
def tenant_caller(catalog: SimpleNamespace) -> CallerContext:
    return CallerContext(user_id=generate_ulid(), tenant_id=catalog.tenant_id)


@pytest.fixture
def partner_caller(catalog: SimpleNamespace) -> CallerContext:
    return CallerContext(user_id=generate_ulid(), partner_id=catalog.partner.id)


@pytest.fixture
def admin_caller() -> CallerContext:
    return CallerContext(user_id=generate_ulid(), is_admin=True)


@pytest.fixture
def other_tenant_caller() -> CallerContext:
    return CallerContext(user_id=generate_ulid(), tenant_id=generate_ulid())


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def availability_service(db: Session) -> AvailabilityService:
    return AvailabilityService(db, clock=fixed_clock)


@pytest.fixture
def commission_service(db: Session) -> CommissionService:
    return CommissionService(db)


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db, clock=fixed_clock)


@pytest.fixture
def book(
    booking_service: BookingService, catalog: SimpleNamespace, tenant_caller: CallerContext
) -> Callable[..., Booking]:
    """Create a pending booking on the catalog partner."""

    def _book(
        start: time = time(9, 0),
        on_date: date = NEXT_MONDAY,
        caller: Optional[CallerContext] = None,
        **overrides: Any,
    ) -> Booking:
        values: Dict[str, Any] = {
            "partner_id": catalog.partner.id,
            "service_id": catalog.service.id,
            "vehicle_id": catalog.vehicle.id,
            "scheduled_date": on_date,
            "scheduled_time": start,
        }
        values.update(overrides)
        return booking_service.create_booking(caller or tenant_caller, BookingCreate(**values))

    return _book


# ============================================================================
# API client
# ============================================================================


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """TestClient bound to the test session and the frozen clock."""

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(
        db, clock=fixed_clock
    )
    app.dependency_overrides[get_commission_service] = lambda: CommissionService(db)
    app.dependency_overrides[get_booking_service] = lambda: BookingService(db, clock=fixed_clock)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def caller_headers(caller: CallerContext) -> Dict[str, str]:
    headers = {"X-User-Id": caller.user_id}
    if caller.tenant_id:
        headers["X-Tenant-Id"] = caller.tenant_id
    if caller.partner_id:
        headers["X-Partner-Id"] = caller.partner_id
    if caller.is_admin:
        headers["X-Admin"] = "true"
    return headers


@pytest.fixture
def tenant_headers(tenant_caller: CallerContext) -> Dict[str, str]:
    return caller_headers(tenant_caller)


@pytest.fixture
def partner_headers(partner_caller: CallerContext) -> Dict[str, str]:
    return caller_headers(partner_caller)


@pytest.fixture
def admin_headers(admin_caller: CallerContext) -> Dict[str, str]:
    return caller_headers(admin_caller)

# backend/tests/integration/test_concurrent_booking.py
"""
Concurrent booking attempts against a file-backed SQLite database.

Each thread uses its own session and connection, the way parallel API
requests do. Whatever the interleaving, exactly one writer may win a slot
and every loser must see SlotUnavailableException.
"""

from datetime import date, datetime, time
from decimal import Decimal
import threading
from types import SimpleNamespace
from typing import Iterator, List

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fleetbook.core.caller_context import CallerContext
from fleetbook.core.exceptions import SlotUnavailableException
from fleetbook.core.ulid_helper import generate_ulid
from fleetbook.database import Base, build_engine
from fleetbook.models import AvailabilityWindow, Booking, Partner, PartnerService, Vehicle
from fleetbook.schemas.booking import BookingCreate
from fleetbook.services.booking_service import BookingService

pytestmark = pytest.mark.integration

NEXT_MONDAY = date(2025, 1, 13)
THREADS = 8


def _clock() -> datetime:
    return datetime(2025, 1, 6, 8, 0)


@pytest.fixture
def file_engine(tmp_path) -> Iterator[Engine]:
    engine = build_engine(f"sqlite:///{tmp_path / 'concurrency.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine, expire_on_commit=False)


@pytest.fixture
def seeded(session_factory: sessionmaker) -> SimpleNamespace:
    tenant_id = generate_ulid()
    session = session_factory()
    try:
        partner = Partner(company_name="Garage Sud", commission_rate=Decimal("10.00"))
        session.add(partner)
        session.flush()
        short = PartnerService(
            partner_id=partner.id, name="Inspection", price=Decimal("50.00"), duration_minutes=60
        )
        long = PartnerService(
            partner_id=partner.id, name="Service", price=Decimal("150.00"), duration_minutes=120
        )
        vehicles = [Vehicle(tenant_id=tenant_id) for _ in range(THREADS)]
        session.add_all([short, long, *vehicles])
        session.add(
            AvailabilityWindow(
                partner_id=partner.id,
                day_of_week=1,
                start_time=time(8, 0),
                end_time=time(17, 0),
                slot_duration_minutes=60,
            )
        )
        session.commit()
        return SimpleNamespace(
            tenant_id=tenant_id,
            partner_id=partner.id,
            short_id=short.id,
            long_id=long.id,
            vehicle_ids=[v.id for v in vehicles],
        )
    finally:
        session.close()


def _race(session_factory: sessionmaker, seeded: SimpleNamespace, requests: List[dict]) -> list:
    """Run one create_booking per request in parallel; return booking ids or exceptions."""
    barrier = threading.Barrier(len(requests))
    outcomes: list = [None] * len(requests)

    def attempt(index: int, request: dict) -> None:
        session = session_factory()
        try:
            service = BookingService(session, clock=_clock)
            caller = CallerContext(user_id=generate_ulid(), tenant_id=seeded.tenant_id)
            data = BookingCreate(
                partner_id=seeded.partner_id,
                vehicle_id=seeded.vehicle_ids[index],
                scheduled_date=NEXT_MONDAY,
                **request,
            )
            barrier.wait(timeout=30)
            outcomes[index] = service.create_booking(caller, data).id
        except Exception as exc:  # collected for assertions
            outcomes[index] = exc
        finally:
            session.close()

    threads = [
        threading.Thread(target=attempt, args=(i, request)) for i, request in enumerate(requests)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def _count_active(session_factory: sessionmaker, partner_id: str) -> int:
    session = session_factory()
    try:
        return (
            session.query(Booking)
            .filter(Booking.partner_id == partner_id, Booking.status == "pending")
            .count()
        )
    finally:
        session.close()


def test_same_slot_race_has_exactly_one_winner(session_factory, seeded) -> None:
    requests = [{"service_id": seeded.short_id, "scheduled_time": time(9, 0)}] * THREADS

    outcomes = _race(session_factory, seeded, requests)

    winners = [o for o in outcomes if isinstance(o, str)]
    losers = [o for o in outcomes if isinstance(o, Exception)]
    assert len(winners) == 1
    assert len(losers) == THREADS - 1
    assert all(isinstance(o, SlotUnavailableException) for o in losers), losers
    assert _count_active(session_factory, seeded.partner_id) == 1


def test_overlapping_starts_race_has_exactly_one_winner(session_factory, seeded) -> None:
    # 09:00-11:00 and 10:00-11:00 overlap without sharing a start time
    requests = [
        {"service_id": seeded.long_id, "scheduled_time": time(9, 0)},
        {"service_id": seeded.short_id, "scheduled_time": time(10, 0)},
    ] * (THREADS // 2)

    outcomes = _race(session_factory, seeded, requests)

    winners = [o for o in outcomes if isinstance(o, str)]
    assert len(winners) == 1
    assert all(
        isinstance(o, SlotUnavailableException) for o in outcomes if not isinstance(o, str)
    )
    assert _count_active(session_factory, seeded.partner_id) == 1


def test_disjoint_slots_all_succeed(session_factory, seeded) -> None:
    requests = [
        {"service_id": seeded.short_id, "scheduled_time": time(8 + i, 0)} for i in range(THREADS)
    ]

    outcomes = _race(session_factory, seeded, requests)

    assert all(isinstance(o, str) for o in outcomes), outcomes
    assert _count_active(session_factory, seeded.partner_id) == THREADS

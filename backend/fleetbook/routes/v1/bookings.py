# backend/fleetbook/routes/v1/bookings.py
"""
Tenant booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Book a partner service slot
    GET /my-bookings - List the caller's bookings with filters and pagination
    GET /upcoming - Pending and confirmed bookings in the next days
    GET /{booking_id} - Full booking details
    PATCH /{booking_id}/cancel - Cancel a booking (reason required)
    PATCH /{booking_id}/reschedule - Move a booking to another slot
    PATCH /{booking_id}/notes - Edit customer or partner notes
    PATCH /{booking_id}/payment-status - Record the tenant payment outcome (admin)
    DELETE /{booking_id} - Soft delete a finished booking
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.params import Path

from ...api.dependencies import (
    get_booking_service,
    get_caller_context,
    get_request_deadline,
    require_admin,
)
from ...core.caller_context import CallerContext
from ...core.exceptions import DomainException
from ...core.ulid_helper import ULID_PATTERN
from ...models.booking import BookingStatus
from ...schemas.base_responses import PaginatedResponse
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingListParams,
    BookingNotesUpdate,
    BookingPaymentStatusUpdate,
    BookingReschedule,
    BookingResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = ULID_PATTERN


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def booking_id_path() -> str:
    return Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Partner, service or vehicle not found"},
        409: {"description": "Slot no longer available"},
        504: {"description": "Deadline exceeded; nothing was written"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Book a slot.

    The slot is re-validated under the partner's calendar lock; a 409 with
    code SLOT_UNAVAILABLE means the caller should refresh slots and retry.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking, caller, booking_data, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/my-bookings", response_model=PaginatedResponse[BookingResponse])
async def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    partner_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    vehicle_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    driver_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[BookingResponse]:
    """List bookings visible to the caller, newest schedule first."""
    params = BookingListParams(
        status=status_filter,
        partner_id=partner_id,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page,
    )
    try:
        bookings, total = await asyncio.to_thread(booking_service.list_bookings, caller, params)
        return PaginatedResponse[BookingResponse].build(
            items=[BookingResponse.from_booking(b) for b in bookings],
            total=total,
            page=page,
            per_page=per_page,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/upcoming", response_model=List[BookingResponse])
async def get_upcoming_bookings(
    days: Optional[int] = Query(None, ge=0, le=90),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """Pending and confirmed bookings from today on, soonest first."""
    try:
        bookings = await asyncio.to_thread(booking_service.get_upcoming, caller, days)
        return [BookingResponse.from_booking(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Dynamic routes (with path parameters)
# ============================================================================


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}},
)
async def get_booking_details(
    booking_id: str = booking_id_path(),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, caller, booking_id)
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    responses={
        400: {"description": "Cancellation reason missing"},
        404: {"description": "Booking not found"},
        409: {"description": "Booking can not be cancelled from its status"},
    },
)
async def cancel_booking(
    booking_id: str = booking_id_path(),
    cancel_data: BookingCancel = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking; its slot becomes available again."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, caller, booking_id, cancel_data.reason, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/reschedule",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Time conflict"}},
)
async def reschedule_booking(
    booking_id: str = booking_id_path(),
    payload: BookingReschedule = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking, caller, booking_id, payload, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/notes", response_model=BookingResponse)
async def update_booking_notes(
    booking_id: str = booking_id_path(),
    payload: BookingNotesUpdate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_notes, caller, booking_id, payload
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/payment-status",
    response_model=BookingResponse,
    dependencies=[Depends(require_admin)],
)
async def update_payment_status(
    booking_id: str = booking_id_path(),
    payload: BookingPaymentStatusUpdate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_payment_status, booking_id, payload.payment_status
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={422: {"description": "Booking is still live"}},
)
async def delete_booking(
    booking_id: str = booking_id_path(),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> Response:
    try:
        await asyncio.to_thread(booking_service.delete_booking, caller, booking_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)

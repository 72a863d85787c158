# backend/fleetbook/routes/v1/partner_bookings.py
"""
Partner booking routes - API v1

Partner-side lifecycle endpoints under /api/v1/partner-bookings. Every
action requires the caller to be the booking's partner.

Endpoints:
    GET / - The partner's bookings with filters and pagination
    PATCH /{booking_id}/confirm - pending -> confirmed
    PATCH /{booking_id}/reject - pending -> rejected (reason required)
    PATCH /{booking_id}/start - confirmed -> in_progress
    PATCH /{booking_id}/complete - in_progress -> completed, settles the commission
"""

import asyncio
from datetime import date
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ...api.dependencies import get_booking_service, get_caller_context, get_request_deadline
from ...core.caller_context import CallerContext
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...schemas.base_responses import PaginatedResponse
from ...schemas.booking import BookingComplete, BookingListParams, BookingReject, BookingResponse
from ...services.booking_service import BookingService
from .bookings import ULID_PATH_PATTERN, booking_id_path, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["partner-bookings-v1"])


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_partner_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    vehicle_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    caller: CallerContext = Depends(get_caller_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[BookingResponse]:
    try:
        caller.require_partner()
        params = BookingListParams(
            status=status_filter,
            vehicle_id=vehicle_id,
            start_date=start_date,
            end_date=end_date,
            page=page,
            per_page=per_page,
        )
        bookings, total = await asyncio.to_thread(booking_service.list_bookings, caller, params)
        return PaginatedResponse[BookingResponse].build(
            items=[BookingResponse.from_booking(b) for b in bookings],
            total=total,
            page=page,
            per_page=per_page,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str = booking_id_path(),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.confirm_booking, caller, booking_id, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: str = booking_id_path(),
    payload: BookingReject = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reject_booking, caller, booking_id, payload.reason, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/start", response_model=BookingResponse)
async def start_booking(
    booking_id: str = booking_id_path(),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.start_booking, caller, booking_id, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = booking_id_path(),
    payload: Optional[BookingComplete] = Body(None),
    caller: CallerContext = Depends(get_caller_context),
    deadline: float = Depends(get_request_deadline),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Complete the work; the platform commission is recorded in the same transaction."""
    partner_notes = payload.partner_notes if payload else None
    try:
        booking = await asyncio.to_thread(
            booking_service.complete_booking, caller, booking_id, partner_notes, deadline
        )
        return BookingResponse.from_booking(booking)
    except DomainException as e:
        handle_domain_exception(e)

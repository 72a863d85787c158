# backend/fleetbook/routes/v1/availabilities.py
"""
Availability routes - API v1

Slot lookup for tenants and schedule management for partners, under
/api/v1/availabilities. Window and unavailability endpoints always act on
the calling partner's own calendar.

Endpoints:
    GET /windows - The partner's weekly windows
    POST /windows - Create the window for one weekday
    PUT /windows/bulk - Create or replace several weekdays at once
    PATCH /windows/{window_id} - Edit a window
    DELETE /windows/{window_id} - Remove a window
    GET /unavailabilities - Date exceptions, optionally within a range
    POST /unavailabilities - Close a full day or part of a day
    PATCH /unavailabilities/{unavailability_id} - Edit an exception
    DELETE /unavailabilities/{unavailability_id} - Remove an exception
    GET /{partner_id}/slots - Labeled slots for one service on one date
    GET /{partner_id} - Any partner's weekly windows (public)
"""

import asyncio
from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from fastapi.params import Path

from ...api.dependencies import get_availability_service, get_caller_context
from ...core.caller_context import CallerContext
from ...core.exceptions import DomainException
from ...schemas.availability import (
    AvailabilityWindowBulkSet,
    AvailabilityWindowCreate,
    AvailabilityWindowResponse,
    AvailabilityWindowUpdate,
    SlotsResponse,
    UnavailabilityCreate,
    UnavailabilityResponse,
    UnavailabilityUpdate,
)
from ...services.availability_service import AvailabilityService
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availabilities-v1"])


def _ulid_path(description: str) -> str:
    return Path(..., description=description, pattern=ULID_PATH_PATTERN)


# ============================================================================
# Weekly windows
# ============================================================================


@router.get("/windows", response_model=List[AvailabilityWindowResponse])
async def list_windows(
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    try:
        partner_id = caller.require_partner()
        windows = await asyncio.to_thread(availability_service.list_windows, partner_id)
        return [AvailabilityWindowResponse.model_validate(w) for w in windows]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/windows",
    response_model=AvailabilityWindowResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "A window already exists for that weekday"}},
)
async def create_window(
    payload: AvailabilityWindowCreate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityWindowResponse:
    try:
        partner_id = caller.require_partner()
        window = await asyncio.to_thread(availability_service.set_window, partner_id, payload)
        return AvailabilityWindowResponse.model_validate(window)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/windows/bulk", response_model=List[AvailabilityWindowResponse])
async def bulk_set_windows(
    payload: AvailabilityWindowBulkSet = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    try:
        partner_id = caller.require_partner()
        windows = await asyncio.to_thread(
            availability_service.bulk_set_windows, partner_id, payload
        )
        return [AvailabilityWindowResponse.model_validate(w) for w in windows]
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/windows/{window_id}", response_model=AvailabilityWindowResponse)
async def update_window(
    window_id: str = _ulid_path("Availability window ULID"),
    payload: AvailabilityWindowUpdate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityWindowResponse:
    try:
        partner_id = caller.require_partner()
        window = await asyncio.to_thread(
            availability_service.update_window, partner_id, window_id, payload
        )
        return AvailabilityWindowResponse.model_validate(window)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/windows/{window_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response
)
async def remove_window(
    window_id: str = _ulid_path("Availability window ULID"),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        partner_id = caller.require_partner()
        await asyncio.to_thread(availability_service.remove_window, partner_id, window_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Unavailabilities
# ============================================================================


@router.get("/unavailabilities", response_model=List[UnavailabilityResponse])
async def list_unavailabilities(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[UnavailabilityResponse]:
    try:
        partner_id = caller.require_partner()
        rows = await asyncio.to_thread(
            availability_service.list_unavailabilities, partner_id, start_date, end_date
        )
        return [UnavailabilityResponse.model_validate(r) for r in rows]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/unavailabilities",
    response_model=UnavailabilityResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_unavailability(
    payload: UnavailabilityCreate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> UnavailabilityResponse:
    try:
        partner_id = caller.require_partner()
        row = await asyncio.to_thread(availability_service.add_unavailability, partner_id, payload)
        return UnavailabilityResponse.model_validate(row)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/unavailabilities/{unavailability_id}", response_model=UnavailabilityResponse)
async def update_unavailability(
    unavailability_id: str = _ulid_path("Unavailability ULID"),
    payload: UnavailabilityUpdate = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> UnavailabilityResponse:
    try:
        partner_id = caller.require_partner()
        row = await asyncio.to_thread(
            availability_service.update_unavailability, partner_id, unavailability_id, payload
        )
        return UnavailabilityResponse.model_validate(row)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/unavailabilities/{unavailability_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_unavailability(
    unavailability_id: str = _ulid_path("Unavailability ULID"),
    caller: CallerContext = Depends(get_caller_context),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        partner_id = caller.require_partner()
        await asyncio.to_thread(
            availability_service.remove_unavailability, partner_id, unavailability_id
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Slots
# ============================================================================


@router.get(
    "/{partner_id}/slots",
    response_model=SlotsResponse,
    responses={404: {"description": "Partner or service not found"}},
)
async def get_slots(
    partner_id: str = _ulid_path("Partner ULID"),
    service_id: str = Query(..., pattern=ULID_PATH_PATTERN),
    slot_date: date = Query(..., alias="date"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> SlotsResponse:
    """
    Every candidate slot for the service on ``date``, each labeled available
    or not with a reason. Past dates and closed days return no slots.
    """
    try:
        summary = await asyncio.to_thread(
            availability_service.get_slots, partner_id, service_id, slot_date
        )
        return SlotsResponse(**summary.to_dict())
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{partner_id}", response_model=List[AvailabilityWindowResponse])
async def get_partner_windows(
    partner_id: str = _ulid_path("Partner ULID"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    """A partner's weekly opening hours, readable by any caller."""
    try:
        windows = await asyncio.to_thread(availability_service.list_windows, partner_id)
        return [AvailabilityWindowResponse.model_validate(w) for w in windows]
    except DomainException as e:
        handle_domain_exception(e)

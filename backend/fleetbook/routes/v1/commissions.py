# backend/fleetbook/routes/v1/commissions.py
"""
Commission ledger routes - API v1

Endpoints under /api/v1/commissions. Partners read their own ledger;
administrators see every partner and record payouts.

Endpoints:
    GET / - Paginated ledger (partner-scoped for partners)
    GET /pending - Unpaid commissions, oldest first (admin)
    GET /stats - Platform totals, period figures, evolution and top partners (admin)
    GET /export - CSV export of the filtered ledger
    GET /partners/{partner_id}/totals - Pending and paid totals for one partner
    GET /{commission_id} - One commission
    PATCH /{commission_id}/mark-paid - Record the payout (admin)
"""

import asyncio
from datetime import datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response
from fastapi.params import Path

from ...api.dependencies import get_caller_context, get_commission_service, require_admin
from ...core.caller_context import CallerContext
from ...core.exceptions import DomainException, NotFoundException
from ...models.commission import CommissionStatus
from ...schemas.base_responses import PaginatedResponse
from ...schemas.commission import (
    CommissionMarkPaid,
    CommissionResponse,
    CommissionStatsResponse,
    CommissionTotalsResponse,
)
from ...services.commission_service import CommissionService
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["commissions-v1"])


def _scoped_partner_id(caller: CallerContext, requested: Optional[str]) -> Optional[str]:
    """Administrators may filter by any partner; partners only ever see their own."""
    if caller.is_admin:
        return requested
    return caller.require_partner()


@router.get("", response_model=PaginatedResponse[CommissionResponse])
async def list_commissions(
    partner_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    caller: CallerContext = Depends(get_caller_context),
    commission_service: CommissionService = Depends(get_commission_service),
) -> PaginatedResponse[CommissionResponse]:
    try:
        scoped = _scoped_partner_id(caller, partner_id)
        commissions, total = await asyncio.to_thread(
            commission_service.list_commissions,
            scoped,
            status_filter.value if status_filter else None,
            page,
            per_page,
        )
        return PaginatedResponse[CommissionResponse].build(
            items=[CommissionResponse.model_validate(c) for c in commissions],
            total=total,
            page=page,
            per_page=per_page,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/pending",
    response_model=List[CommissionResponse],
    dependencies=[Depends(require_admin)],
)
async def list_pending_commissions(
    commission_service: CommissionService = Depends(get_commission_service),
) -> List[CommissionResponse]:
    try:
        commissions = await asyncio.to_thread(commission_service.pending_commissions)
        return [CommissionResponse.model_validate(c) for c in commissions]
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/stats",
    response_model=CommissionStatsResponse,
    dependencies=[Depends(require_admin)],
)
async def get_commission_stats(
    start: Optional[datetime] = Query(None, description="Period start, default this month"),
    end: Optional[datetime] = Query(None, description="Period end (exclusive)"),
    commission_service: CommissionService = Depends(get_commission_service),
) -> CommissionStatsResponse:
    try:
        stats = await asyncio.to_thread(commission_service.stats, start, end)
        return CommissionStatsResponse(**stats)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/export", response_class=Response, response_model=None)
async def export_commissions(
    partner_id: Optional[str] = Query(None, pattern=ULID_PATH_PATTERN),
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    caller: CallerContext = Depends(get_caller_context),
    commission_service: CommissionService = Depends(get_commission_service),
) -> Response:
    try:
        scoped = _scoped_partner_id(caller, partner_id)
        content = await asyncio.to_thread(
            commission_service.export_csv,
            scoped,
            status_filter.value if status_filter else None,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="commissions.csv"'},
    )


@router.get("/partners/{partner_id}/totals", response_model=CommissionTotalsResponse)
async def get_partner_totals(
    partner_id: str = Path(..., description="Partner ULID", pattern=ULID_PATH_PATTERN),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    caller: CallerContext = Depends(get_caller_context),
    commission_service: CommissionService = Depends(get_commission_service),
) -> CommissionTotalsResponse:
    try:
        scoped = _scoped_partner_id(caller, partner_id)
        if scoped != partner_id:
            raise NotFoundException("Partner not found", details={"partner_id": partner_id})
        totals = await asyncio.to_thread(
            commission_service.totals_by_partner, partner_id, start, end
        )
        return CommissionTotalsResponse(**totals)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{commission_id}", response_model=CommissionResponse)
async def get_commission(
    commission_id: str = Path(..., description="Commission ULID", pattern=ULID_PATH_PATTERN),
    caller: CallerContext = Depends(get_caller_context),
    commission_service: CommissionService = Depends(get_commission_service),
) -> CommissionResponse:
    try:
        commission = await asyncio.to_thread(commission_service.get_commission, commission_id)
        if not caller.is_admin and commission.partner_id != caller.partner_id:
            raise NotFoundException(
                "Commission not found", details={"commission_id": commission_id}
            )
        return CommissionResponse.model_validate(commission)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{commission_id}/mark-paid",
    response_model=CommissionResponse,
    dependencies=[Depends(require_admin)],
)
async def mark_commission_paid(
    commission_id: str = Path(..., description="Commission ULID", pattern=ULID_PATH_PATTERN),
    payload: CommissionMarkPaid = Body(...),
    commission_service: CommissionService = Depends(get_commission_service),
) -> CommissionResponse:
    try:
        commission = await asyncio.to_thread(
            commission_service.mark_paid, commission_id, payload.payment_reference
        )
        return CommissionResponse.model_validate(commission)
    except DomainException as e:
        handle_domain_exception(e)

# backend/fleetbook/schemas/commission.py
"""
Commission ledger schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.commission import CommissionStatus
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel


class CommissionResponse(StandardizedModel):
    id: str
    partner_id: str
    booking_id: str
    amount: Money
    rate: Money
    status: CommissionStatus
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None


class CommissionMarkPaid(StrictRequestModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class StatusTotal(BaseModel):
    total: Money
    count: int


class CommissionTotalsResponse(BaseModel):
    partner_id: str
    pending: StatusTotal
    paid: StatusTotal
    total: Money
    count: int


class MonthlyCommissionPoint(BaseModel):
    month: str = Field(..., description="Calendar month as YYYY-MM")
    commissions: Money
    revenue: Money


class TopPartnerStats(BaseModel):
    rank: int
    partner_id: str
    partner_name: str
    bookings_count: int
    revenue: Money
    commissions: Money


class CommissionStatsResponse(BaseModel):
    """Ledger totals are all-time; period figures cover ``[period_start, period_end)``."""

    total_amount: Money
    pending_amount: Money
    paid_amount: Money
    total_count: int
    pending_count: int
    paid_count: int
    period_start: datetime
    period_end: datetime
    period_amount: Money
    platform_revenue: Money
    active_partners: int
    evolution: List[MonthlyCommissionPoint]
    top_partners: List[TopPartnerStats]

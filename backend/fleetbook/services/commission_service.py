# backend/fleetbook/services/commission_service.py
"""
Commission Service (ledger)

Derives the platform fee for a completed booking and tracks its payout.
``settle`` is called by BookingService inside the completion transaction and
does not commit on its own; ``mark_paid`` is a standalone payout operation.
"""

import csv
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import io
import logging
from typing import Any, Callable, Dict, List, NoReturn, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AlreadyPaidException,
    DuplicateCommissionException,
    NotFoundException,
    ValidationException,
)
from ..models.booking import Booking
from ..models.commission import Commission, CommissionStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


CENT = Decimal("0.01")
EXPORT_COLUMNS = (
    "id",
    "booking_id",
    "partner_id",
    "amount",
    "rate",
    "status",
    "payment_reference",
    "paid_at",
    "created_at",
)
EVOLUTION_MONTHS = 12
TOP_PARTNERS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _add_months(month_start: datetime, months: int) -> datetime:
    years, month_index = divmod(month_start.month - 1 + months, 12)
    return month_start.replace(year=month_start.year + years, month=month_index + 1)


def calculate_commission(price: Decimal, rate_percent: Decimal) -> Decimal:
    """``price * rate / 100`` rounded half-up to cents."""
    if rate_percent < 0 or rate_percent > 100:
        raise ValidationException(
            "Commission rate must be between 0 and 100", details={"rate": str(rate_percent)}
        )
    amount = Decimal(str(price)) * Decimal(str(rate_percent)) / Decimal("100")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class CommissionService(BaseService):
    """Owns every write to the commissions table."""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(db)
        self.repository = RepositoryFactory.create_commission_repository(db)
        self.partner_repository = RepositoryFactory.create_partner_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self._clock = clock or _utcnow

    def resolve_rate(self, booking: Booking) -> Decimal:
        """
        Rate used to settle ``booking``.

        With the default ``snapshot`` source this is the rate captured at
        booking creation; ``current`` (or a booking without a snapshot) reads
        the partner's rate at settlement time.
        """
        if settings.commission_rate_source == "snapshot" and booking.commission_rate is not None:
            return Decimal(str(booking.commission_rate))

        partner = self.partner_repository.get_by_id(booking.partner_id)
        if partner is None:
            raise NotFoundException("Partner not found", details={"partner_id": booking.partner_id})
        return Decimal(str(partner.commission_rate))

    @BaseService.measure_operation("settle")
    def settle(self, booking: Booking) -> Commission:
        """
        Create the commission for a completed booking.

        Flushes but does not commit; the caller's transaction decides.

        Raises:
            DuplicateCommissionException: the booking was already settled
        """
        if self.repository.get_by_booking_id(booking.id) is not None:
            self.logger.error(
                "Duplicate settlement attempted for booking %s",
                booking.id,
                extra={"booking_id": booking.id},
            )
            raise DuplicateCommissionException(booking.id)

        rate = self.resolve_rate(booking)
        amount = calculate_commission(Decimal(str(booking.price)), rate)
        try:
            commission = self.repository.create(
                partner_id=booking.partner_id,
                booking_id=booking.id,
                amount=amount,
                rate=rate,
                status=CommissionStatus.PENDING.value,
            )
        except IntegrityError as exc:
            self.logger.error(
                "Commission uniqueness violated for booking %s",
                booking.id,
                extra={"booking_id": booking.id},
            )
            raise DuplicateCommissionException(booking.id) from exc

        booking.commission_amount = amount
        prometheus_metrics.inc_commission_settled()
        self.log_operation(
            "settle", booking_id=booking.id, partner_id=booking.partner_id, amount=str(amount)
        )
        return commission

    @BaseService.measure_operation("mark_paid")
    def mark_paid(self, commission_id: str, payment_reference: str) -> Commission:
        """
        Record the payout of a pending commission.

        Raises:
            NotFoundException: unknown commission
            ValidationException: blank payment reference
            AlreadyPaidException: the commission was already paid
        """
        reference = (payment_reference or "").strip()
        if not reference:
            raise ValidationException("A payment reference is required")

        commission = self.get_commission(commission_id)
        if commission.is_paid:
            self._reject_second_payout(commission_id)

        # the loaded row may be stale; only the conditional update decides
        with self.transaction():
            paid = self.repository.mark_paid_if_pending(
                commission_id, reference, self._clock()
            )
            if not paid:
                self._reject_second_payout(commission_id)

        self.repository.refresh(commission)
        self.log_operation("mark_paid", commission_id=commission_id)
        return commission

    def _reject_second_payout(self, commission_id: str) -> NoReturn:
        self.logger.error(
            "Commission %s is already paid", commission_id, extra={"commission_id": commission_id}
        )
        raise AlreadyPaidException(commission_id)

    @BaseService.measure_operation("get_commission")
    def get_commission(self, commission_id: str) -> Commission:
        commission = self.repository.get_by_id(commission_id)
        if commission is None:
            raise NotFoundException(
                "Commission not found", details={"commission_id": commission_id}
            )
        return commission

    @BaseService.measure_operation("list_commissions")
    def list_commissions(
        self,
        partner_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Commission], int]:
        return self.repository.list_commissions(
            partner_id=partner_id,
            status=status,
            skip=(page - 1) * per_page,
            limit=per_page,
        )

    @BaseService.measure_operation("pending_commissions")
    def pending_commissions(self) -> List[Commission]:
        return self.repository.list_pending()

    @BaseService.measure_operation("totals_by_partner")
    def totals_by_partner(
        self,
        partner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Pending and paid sums/counts for one partner, optionally within a date range."""
        by_status = self.repository.totals_by_status(partner_id=partner_id, start=start, end=end)
        pending = by_status[CommissionStatus.PENDING.value]
        paid = by_status[CommissionStatus.PAID.value]
        return {
            "partner_id": partner_id,
            "pending": pending,
            "paid": paid,
            "total": pending["total"] + paid["total"],
            "count": pending["count"] + paid["count"],
        }

    @BaseService.measure_operation("commission_stats")
    def stats(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Platform dashboard figures.

        Ledger totals by status are all-time. Period figures cover
        ``[start, end)``, by default the current UTC month. The evolution
        series always covers the twelve months ending with the current one.

        Raises:
            ValidationException: ``start`` is not before ``end``
        """
        now = _as_utc(self._clock())
        current_month = _month_start(now)
        period_start = _as_utc(start) if start else current_month
        period_end = _as_utc(end) if end else _add_months(current_month, 1)
        if period_start >= period_end:
            raise ValidationException(
                "Stats period start must be before its end",
                details={"start": period_start.isoformat(), "end": period_end.isoformat()},
            )

        by_status = self.repository.totals_by_status()
        pending = by_status[CommissionStatus.PENDING.value]
        paid = by_status[CommissionStatus.PAID.value]
        return {
            "total_amount": pending["total"] + paid["total"],
            "pending_amount": pending["total"],
            "paid_amount": paid["total"],
            "total_count": pending["count"] + paid["count"],
            "pending_count": pending["count"],
            "paid_count": paid["count"],
            "period_start": period_start,
            "period_end": period_end,
            "period_amount": self.repository.sum_amount_between(period_start, period_end),
            "platform_revenue": self.booking_repository.revenue_between(period_start, period_end),
            "active_partners": self.partner_repository.count_active(),
            "evolution": self._evolution(current_month),
            "top_partners": self._top_partners(period_start, period_end),
        }

    def _evolution(self, current_month: datetime) -> List[Dict[str, Any]]:
        points = []
        for offset in range(-(EVOLUTION_MONTHS - 1), 1):
            month_start = _add_months(current_month, offset)
            month_end = _add_months(month_start, 1)
            points.append(
                {
                    "month": month_start.strftime("%Y-%m"),
                    "commissions": self.repository.sum_amount_between(month_start, month_end),
                    "revenue": self.booking_repository.revenue_between(month_start, month_end),
                }
            )
        return points

    def _top_partners(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        ranked = self.booking_repository.top_partners_by_revenue(start, end, limit=TOP_PARTNERS)
        return [
            {
                "rank": rank,
                "partner_id": partner_id,
                "partner_name": name,
                "bookings_count": count,
                "revenue": revenue,
                "commissions": self.repository.sum_amount_between(
                    start, end, partner_id=partner_id
                ),
            }
            for rank, (partner_id, name, count, revenue) in enumerate(ranked, start=1)
        ]

    @BaseService.measure_operation("export_csv")
    def export_csv(self, partner_id: Optional[str] = None, status: Optional[str] = None) -> str:
        """Render the filtered ledger as CSV."""
        commissions, _ = self.repository.list_commissions(
            partner_id=partner_id, status=status, skip=0, limit=10_000
        )
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS)
        for commission in commissions:
            writer.writerow(
                [
                    commission.id,
                    commission.booking_id,
                    commission.partner_id,
                    f"{Decimal(str(commission.amount)).quantize(CENT)}",
                    f"{Decimal(str(commission.rate)).quantize(CENT)}",
                    commission.status,
                    commission.payment_reference or "",
                    commission.paid_at.isoformat() if commission.paid_at else "",
                    commission.created_at.isoformat() if commission.created_at else "",
                ]
            )
        return buffer.getvalue()

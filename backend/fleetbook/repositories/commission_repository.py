# backend/fleetbook/repositories/commission_repository.py
"""
Commission Repository

Ledger queries: lookup by booking, filtered listings and per-status
aggregates for partner statements and platform stats.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, cast

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.commission import Commission, CommissionStatus
from .base_repository import BaseRepository


class CommissionRepository(BaseRepository[Commission]):
    def __init__(self, db: Session):
        super().__init__(db, Commission)

    def create(self, **kwargs: Any) -> Commission:
        """Create a commission, exposing integrity errors so duplicates are detectable."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_by_booking_id(self, booking_id: str) -> Optional[Commission]:
        return self.find_one_by(booking_id=booking_id)

    def list_commissions(
        self,
        partner_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Commission], int]:
        try:
            query = self.db.query(Commission)
            if partner_id:
                query = query.filter(Commission.partner_id == partner_id)
            if status:
                query = query.filter(Commission.status == status)
            total = query.count()
            items = query.order_by(Commission.created_at.desc()).offset(skip).limit(limit).all()
            return cast(List[Commission], items), total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing commissions: {str(e)}")
            raise RepositoryException(f"Failed to list commissions: {str(e)}")

    def list_pending(self) -> List[Commission]:
        try:
            return cast(
                List[Commission],
                self.db.query(Commission)
                .filter(Commission.status == CommissionStatus.PENDING.value)
                .order_by(Commission.created_at.asc())
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing pending commissions: {str(e)}")
            raise RepositoryException(f"Failed to list pending commissions: {str(e)}")

    def totals_by_status(
        self,
        partner_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Sum and count commissions grouped by status.

        Returns:
            {"pending": {"total": Decimal, "count": int}, "paid": {...}}
        """
        try:
            query = self.db.query(
                Commission.status,
                func.coalesce(func.sum(Commission.amount), 0),
                func.count(Commission.id),
            )
            if partner_id:
                query = query.filter(Commission.partner_id == partner_id)
            if start:
                query = query.filter(Commission.created_at >= start)
            if end:
                query = query.filter(Commission.created_at <= end)
            rows = query.group_by(Commission.status).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating commissions: {str(e)}")
            raise RepositoryException(f"Failed to aggregate commissions: {str(e)}")

        totals: Dict[str, Dict[str, Any]] = {
            status.value: {"total": Decimal("0.00"), "count": 0} for status in CommissionStatus
        }
        for status, total, count in rows:
            totals[status] = {
                "total": Decimal(str(total)).quantize(Decimal("0.01")),
                "count": int(count),
            }
        return totals

    def mark_paid_if_pending(
        self, commission_id: str, payment_reference: str, paid_at: datetime
    ) -> bool:
        """
        Flip a pending commission to paid in a single conditional UPDATE.

        Returns False when no pending row matched, i.e. another payout got
        there first. Does not commit.
        """
        try:
            result = self.db.execute(
                update(Commission)
                .where(
                    Commission.id == commission_id,
                    Commission.status == CommissionStatus.PENDING.value,
                )
                .values(
                    status=CommissionStatus.PAID.value,
                    paid_at=paid_at,
                    payment_reference=payment_reference,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking commission {commission_id} paid: {str(e)}")
            raise RepositoryException(f"Failed to mark commission paid: {str(e)}") from e
        return result.rowcount == 1

    def sum_amount_between(
        self, start: datetime, end: datetime, partner_id: Optional[str] = None
    ) -> Decimal:
        """Sum of commission amounts created in ``[start, end)``, any status."""
        try:
            query = self.db.query(func.coalesce(func.sum(Commission.amount), 0)).filter(
                Commission.created_at >= start, Commission.created_at < end
            )
            if partner_id:
                query = query.filter(Commission.partner_id == partner_id)
            total = query.scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing commissions: {str(e)}")
            raise RepositoryException(f"Failed to sum commissions: {str(e)}")
        return Decimal(str(total)).quantize(Decimal("0.01"))

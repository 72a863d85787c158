# backend/fleetbook/models/catalog.py
"""
Catalog read models.

Partners, their service offerings and tenant vehicles are owned by external
catalog modules. The booking core only reads them: commission rates and
partner status come from ``partners``, price and duration from
``partner_services``, and tenant ownership of a vehicle from ``vehicles``.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
import ulid

from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Partner(Base):
    """Service partner (garage, bodyshop) as seen by the booking core."""

    __tablename__ = "partners"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    company_name = Column(String(255), nullable=False)
    # Percentage of the booking price owed to the platform, e.g. 10.00
    commission_rate = Column(Numeric(5, 2), nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100", name="ck_partners_commission_rate"
        ),
    )

    @property
    def can_offer_services(self) -> bool:
        return bool(self.is_active) and self.deleted_at is None

    def __repr__(self) -> str:
        return f"<Partner {self.id} {self.company_name} rate={self.commission_rate}>"


class PartnerService(Base):
    """A bookable offering of a partner with its price and duration."""

    __tablename__ = "partner_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    partner_id = Column(String(26), ForeignKey("partners.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_partner_services_duration_positive"),
        CheckConstraint("price >= 0", name="ck_partner_services_price_non_negative"),
    )

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active)

    def __repr__(self) -> str:
        return f"<PartnerService {self.id} {self.name} {self.duration_minutes}min>"


class Vehicle(Base):
    """Tenant vehicle reference used to check booking ownership."""

    __tablename__ = "vehicles"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), nullable=False, index=True)
    registration = Column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Vehicle {self.id} tenant={self.tenant_id}>"

# backend/fleetbook/models/availability.py
"""
Availability models.

Classes:
    AvailabilityWindow: A partner's recurring open hours for one weekday
    Unavailability: One-off full or partial day closures
"""

from datetime import datetime, timezone
import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityWindow(Base):
    """
    Weekly recurring availability for a partner.

    ``day_of_week`` counts from Sunday (0) to Saturday (6). Only one live
    window may exist per partner and weekday; removed windows are soft deleted.
    """

    __tablename__ = "availability_windows"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    partner_id = Column(String(26), ForeignKey("partners.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=60)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_windows_day"),
        CheckConstraint(
            "slot_duration_minutes BETWEEN 5 AND 120",
            name="ck_availability_windows_slot_duration",
        ),
        CheckConstraint("start_time < end_time", name="ck_availability_windows_time_order"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityWindow partner={self.partner_id} day={self.day_of_week} "
            f"{self.start_time}-{self.end_time}/{self.slot_duration_minutes}m>"
        )


Index(
    "uq_availability_windows_partner_day_live",
    AvailabilityWindow.partner_id,
    AvailabilityWindow.day_of_week,
    unique=True,
    postgresql_where=AvailabilityWindow.deleted_at.is_(None),
    sqlite_where=AvailabilityWindow.deleted_at.is_(None),
)


class Unavailability(Base):
    """Partner closure on a specific date, either all day or for a time range."""

    __tablename__ = "unavailabilities"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    partner_id = Column(String(26), ForeignKey("partners.id"), nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=False)
    is_full_day = Column(Boolean, nullable=False, default=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "is_full_day OR (start_time IS NOT NULL AND end_time IS NOT NULL "
            "AND start_time < end_time)",
            name="ck_unavailabilities_partial_times",
        ),
        Index("idx_unavailabilities_partner_date", "partner_id", "date"),
    )

    def __repr__(self) -> str:
        span = "full day" if self.is_full_day else f"{self.start_time}-{self.end_time}"
        return f"<Unavailability {self.date} {span} - {self.reason}>"

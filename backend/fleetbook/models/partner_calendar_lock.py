"""Partner calendar lock satellite table."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ..database import Base


class PartnerCalendarLock(Base):
    """
    Serialization point for writes to one partner's calendar.

    Booking transactions bump ``version`` before re-reading availability, so
    concurrent writers for the same partner queue behind each other.
    """

    __tablename__ = "partner_calendar_locks"

    partner_id = Column(String(26), ForeignKey("partners.id"), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<PartnerCalendarLock partner={self.partner_id} version={self.version}>"

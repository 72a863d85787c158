"""
Partner calendar lock repository.

Booking writes call ``acquire`` first inside their transaction. The insert
plus version bump takes a row lock on PostgreSQL and the database write lock
on SQLite, so every later read in the same transaction sees all bookings
committed by earlier writers for that partner.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..models.partner_calendar_lock import PartnerCalendarLock
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PartnerCalendarLockRepository(BaseRepository[PartnerCalendarLock]):
    def __init__(self, db: Session):
        super().__init__(db, PartnerCalendarLock)

    def acquire(self, partner_id: str, lock_timeout_ms: Optional[int] = None) -> int:
        """
        Lock ``partner_id``'s calendar until the current transaction ends.

        Args:
            partner_id: Partner whose calendar is about to change
            lock_timeout_ms: Upper bound on waiting for the lock (PostgreSQL only)

        Returns:
            The new calendar version
        """
        dialect = self.dialect_name
        if dialect == "postgresql" and lock_timeout_ms is not None:
            self.db.execute(text(f"SET LOCAL lock_timeout = '{max(int(lock_timeout_ms), 1)}ms'"))

        if dialect == "postgresql":
            seed = pg_insert(PartnerCalendarLock).values(partner_id=partner_id, version=0)
            self.db.execute(seed.on_conflict_do_nothing(index_elements=["partner_id"]))
        elif dialect == "sqlite":
            seed = sqlite_insert(PartnerCalendarLock).values(partner_id=partner_id, version=0)
            self.db.execute(seed.on_conflict_do_nothing(index_elements=["partner_id"]))
        elif self.db.get(PartnerCalendarLock, partner_id) is None:
            self.db.add(PartnerCalendarLock(partner_id=partner_id, version=0))
            self.db.flush()

        self.db.execute(
            update(PartnerCalendarLock)
            .where(PartnerCalendarLock.partner_id == partner_id)
            .values(
                version=PartnerCalendarLock.version + 1,
                locked_at=datetime.now(timezone.utc),
            )
        )
        version = self.db.execute(
            select(PartnerCalendarLock.version).where(PartnerCalendarLock.partner_id == partner_id)
        ).scalar_one()
        self.logger.debug("Locked calendar of partner %s at version %s", partner_id, version)
        return int(version)

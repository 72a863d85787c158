# backend/fleetbook/api/dependencies/database.py
"""
Database session dependency.

Services own their transactions, so the request session is only rolled back
when a handler fails and closed afterwards; it never commits on its own.
"""

from typing import Iterator

from sqlalchemy.orm import Session

from ...database import SessionLocal


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

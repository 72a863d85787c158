# backend/fleetbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_caller_context, get_request_deadline, require_admin
from .database import get_db
from .services import get_availability_service, get_booking_service, get_commission_service

__all__ = [
    # Auth
    "get_caller_context",
    "get_request_deadline",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_commission_service",
]

# backend/fleetbook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import availabilities, bookings, commissions, health, partner_bookings, prometheus

__all__ = [
    "availabilities",
    "bookings",
    "commissions",
    "health",
    "partner_bookings",
    "prometheus",
]

# backend/fleetbook/core/enums.py
"""
Core enums shared across the booking core.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Who is driving a booking operation."""

    TENANT = "tenant"
    PARTNER = "partner"
    ADMIN = "admin"

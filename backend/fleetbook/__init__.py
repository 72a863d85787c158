"""Fleetbook: partner availability, booking lifecycle and commission ledger."""

__version__ = "0.1.0"

# tutorhub/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import (
    admin_settings,
    booking_modifications,
    bookings,
    payouts,
    prometheus,
    teachers,
    wallets,
    webhooks,
)

__all__ = [
    "admin_settings",
    "booking_modifications",
    "bookings",
    "payouts",
    "prometheus",
    "teachers",
    "wallets",
    "webhooks",
]

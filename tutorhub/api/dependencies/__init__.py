# tutorhub/api/dependencies/__init__.py
"""
FastAPI dependencies for routes: database sessions, the acting user and
service factories.
"""

from .auth import get_current_user_id, get_optional_user_id
from .database import get_db
from .services import (
    get_booking_modification_service,
    get_booking_service,
    get_config_service,
    get_conflict_checker,
    get_notification_service,
    get_payout_service,
    get_wallet_service,
    get_webhook_service,
)

__all__ = [
    "get_booking_modification_service",
    "get_booking_service",
    "get_config_service",
    "get_conflict_checker",
    "get_current_user_id",
    "get_db",
    "get_notification_service",
    "get_optional_user_id",
    "get_payout_service",
    "get_wallet_service",
    "get_webhook_service",
]

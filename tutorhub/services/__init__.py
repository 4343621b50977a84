"""Service layer: business operations over the repositories, one transaction each."""

from .base import BaseService
from .booking_modification_service import BookingModificationService
from .booking_service import BookingService
from .config_service import ConfigService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .payout_service import PayoutService
from .wallet_service import WalletService
from .webhook_service import WebhookService

__all__ = [
    "BaseService",
    "BookingModificationService",
    "BookingService",
    "ConfigService",
    "ConflictChecker",
    "NotificationService",
    "PayoutService",
    "WalletService",
    "WebhookService",
]

# tutorhub/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each factory builds its service on the request's session so that services
called together share one unit of work.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_modification_service import BookingModificationService
from ...services.booking_service import BookingService
from ...services.config_service import ConfigService
from ...services.conflict_checker import ConflictChecker
from ...services.notification_service import NotificationService
from ...services.payout_service import PayoutService
from ...services.wallet_service import WalletService
from ...services.webhook_service import WebhookService
from .database import get_db


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Process-wide notification dispatcher; it holds no session."""
    return NotificationService()


def get_config_service(db: Session = Depends(get_db)) -> ConfigService:
    return ConfigService(db)


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    return WalletService(db)


def get_conflict_checker(db: Session = Depends(get_db)) -> ConflictChecker:
    return ConflictChecker(db)


def get_payout_service(
    db: Session = Depends(get_db),
    wallet_service: WalletService = Depends(get_wallet_service),
    config_service: ConfigService = Depends(get_config_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> PayoutService:
    return PayoutService(db, wallet_service, config_service, notification_service)


def get_booking_service(
    db: Session = Depends(get_db),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
    wallet_service: WalletService = Depends(get_wallet_service),
    config_service: ConfigService = Depends(get_config_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    Returns:
        BookingService wired to the request session
    """
    return BookingService(
        db,
        conflict_checker=conflict_checker,
        wallet_service=wallet_service,
        config_service=config_service,
        notification_service=notification_service,
    )


def get_booking_modification_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
    config_service: ConfigService = Depends(get_config_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingModificationService:
    return BookingModificationService(
        db,
        booking_service=booking_service,
        config_service=config_service,
        notification_service=notification_service,
    )


def get_webhook_service(
    db: Session = Depends(get_db),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> WebhookService:
    return WebhookService(db, wallet_service)

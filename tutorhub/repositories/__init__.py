# tutorhub/repositories/__init__.py
"""
Repository Pattern Implementation for TutorHub

This package provides the repository layer for data access,
separating business logic from database queries. Repositories flush but
never commit; services own the transaction boundary.

Usage:
    from tutorhub.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_wallet_repository(db)
    wallet = repository.get_for_user(user_id, WalletType.STUDENT)
"""

from .base_repository import BaseRepository
from .booking_modification_repository import BookingModificationRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .guardian_link_repository import GuardianLinkRepository
from .payout_repository import PayoutRepository
from .platform_setting_repository import PlatformSettingRepository
from .teacher_earning_repository import TeacherEarningRepository
from .transaction_repository import TransactionRepository
from .wallet_repository import WalletRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "BaseRepository",
    "BookingModificationRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "GuardianLinkRepository",
    "PayoutRepository",
    "PlatformSettingRepository",
    "RepositoryFactory",
    "TeacherEarningRepository",
    "TransactionRepository",
    "WalletRepository",
    "WebhookEventRepository",
]

# tutorhub/repositories/factory.py
"""
Repository Factory for TutorHub

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_modification_repository import BookingModificationRepository
    from .booking_repository import BookingRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .guardian_link_repository import GuardianLinkRepository
    from .payout_repository import PayoutRepository
    from .platform_setting_repository import PlatformSettingRepository
    from .teacher_earning_repository import TeacherEarningRepository
    from .transaction_repository import TransactionRepository
    from .wallet_repository import WalletRepository
    from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_wallet_repository(db: Session) -> "WalletRepository":
        """Create repository for wallet rows of every role."""
        from .wallet_repository import WalletRepository

        return WalletRepository(db)

    @staticmethod
    def create_transaction_repository(db: Session) -> "TransactionRepository":
        """Create repository for the unified transaction log."""
        from .transaction_repository import TransactionRepository

        return TransactionRepository(db)

    @staticmethod
    def create_teacher_earning_repository(db: Session) -> "TeacherEarningRepository":
        from .teacher_earning_repository import TeacherEarningRepository

        return TeacherEarningRepository(db)

    @staticmethod
    def create_guardian_link_repository(db: Session) -> "GuardianLinkRepository":
        from .guardian_link_repository import GuardianLinkRepository

        return GuardianLinkRepository(db)

    @staticmethod
    def create_payout_repository(db: Session) -> "PayoutRepository":
        """Create repository for payout requests."""
        from .payout_repository import PayoutRepository

        return PayoutRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_booking_modification_repository(db: Session) -> "BookingModificationRepository":
        """Create repository for reschedule and rebook requests."""
        from .booking_modification_repository import BookingModificationRepository

        return BookingModificationRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> "WebhookEventRepository":
        from .webhook_event_repository import WebhookEventRepository

        return WebhookEventRepository(db)

    @staticmethod
    def create_platform_setting_repository(db: Session) -> "PlatformSettingRepository":
        from .platform_setting_repository import PlatformSettingRepository

        return PlatformSettingRepository(db)

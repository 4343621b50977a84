# tutorhub/models/__init__.py
"""
Database models for TutorHub.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import TeacherAvailability, TeacherScheduleSettings
from .booking import BLOCKING_STATUSES, BOOKING_TRANSITIONS, Booking, BookingStatus
from .booking_history import BookingHistory
from .booking_modification import (
    BookingModification,
    ModificationStatus,
    ModificationType,
)
from .guardian_link import GuardianStudentLink
from .payout import PAYOUT_TRANSITIONS, PayoutRequest, PayoutStatus
from .platform_setting import PlatformSetting
from .teacher_earning import TeacherEarning
from .transaction import (
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    UnifiedTransaction,
)
from .wallet import (
    AllowancePeriod,
    GuardianWallet,
    StudentWallet,
    TeacherWallet,
    Wallet,
    WalletType,
)
from .webhook_event import WebhookEvent, WebhookEventStatus

__all__ = [
    "AllowancePeriod",
    "BLOCKING_STATUSES",
    "BOOKING_TRANSITIONS",
    "Booking",
    "BookingHistory",
    "BookingModification",
    "BookingStatus",
    "GuardianStudentLink",
    "GuardianWallet",
    "ModificationStatus",
    "ModificationType",
    "PAYOUT_TRANSITIONS",
    "PayoutRequest",
    "PayoutStatus",
    "PlatformSetting",
    "StudentWallet",
    "TeacherAvailability",
    "TeacherEarning",
    "TeacherScheduleSettings",
    "TeacherWallet",
    "TransactionDirection",
    "TransactionStatus",
    "TransactionType",
    "UnifiedTransaction",
    "Wallet",
    "WalletType",
    "WebhookEvent",
    "WebhookEventStatus",
]

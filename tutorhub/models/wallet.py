# tutorhub/models/wallet.py
"""
Wallet models for the TutorHub ledger.

One ``wallets`` table holds every wallet; ``wallet_type`` is the explicit
discriminator that resolves a row to ``StudentWallet``, ``TeacherWallet`` or
``GuardianWallet``. Balances are never written directly by callers: every
mutation goes through ``WalletService`` so that a matching
``UnifiedTransaction`` row is appended in the same database transaction.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

ZERO = Decimal("0.00")


class WalletType(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    GUARDIAN = "guardian"


class AllowancePeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Wallet(Base):
    """Balance holder for a single user in a single role."""

    __tablename__ = "wallets"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), nullable=False, index=True)
    wallet_type = Column(String(20), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")

    balance = Column(Numeric(12, 2), nullable=False, default=ZERO)
    total_refunded = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Student
    total_spent = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Teacher
    total_earned = Column(Numeric(12, 2), nullable=False, default=ZERO)
    total_withdrawn = Column(Numeric(12, 2), nullable=False, default=ZERO)
    pending_payouts = Column(Numeric(12, 2), nullable=False, default=ZERO)
    auto_withdrawal_enabled = Column(Boolean, nullable=False, default=False)
    auto_withdrawal_threshold = Column(Numeric(12, 2), nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_details = Column(JSON, nullable=True)

    # Guardian
    total_spent_on_children = Column(Numeric(12, 2), nullable=False, default=ZERO)
    child_allowances = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transactions = relationship(
        "UnifiedTransaction",
        back_populates="wallet",
        foreign_keys="UnifiedTransaction.wallet_id",
        order_by="UnifiedTransaction.created_at",
        lazy="dynamic",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "wallet_type", name="uq_wallets_user_type"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        CheckConstraint("pending_payouts >= 0", name="ck_wallets_pending_non_negative"),
        CheckConstraint(
            "wallet_type IN ('student', 'teacher', 'guardian')", name="ck_wallets_type"
        ),
    )

    __mapper_args__ = {"polymorphic_on": wallet_type, "polymorphic_identity": "wallet"}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id} user={self.user_id} balance={self.balance}>"

    @property
    def balance_amount(self) -> Decimal:
        return Decimal(self.balance or ZERO)

    def has_sufficient_balance(self, amount: Decimal) -> bool:
        return self.balance_amount >= Decimal(amount)


class StudentWallet(Wallet):
    __mapper_args__ = {"polymorphic_identity": WalletType.STUDENT.value}


class TeacherWallet(Wallet):
    __mapper_args__ = {"polymorphic_identity": WalletType.TEACHER.value}

    def auto_payout_threshold(self, default: Decimal) -> Decimal:
        """The teacher's own threshold once they opt in with one, else ``default``."""
        if self.auto_withdrawal_enabled and self.auto_withdrawal_threshold is not None:
            return Decimal(self.auto_withdrawal_threshold)
        return Decimal(default)

    def can_auto_withdraw(self, default_threshold: Decimal) -> bool:
        threshold = self.auto_payout_threshold(default_threshold)
        return threshold > ZERO and self.balance_amount >= threshold


class GuardianWallet(Wallet):
    __mapper_args__ = {"polymorphic_identity": WalletType.GUARDIAN.value}

    def get_allowance(self, child_id: str) -> Optional[Dict[str, Any]]:
        return (self.child_allowances or {}).get(child_id)


WALLET_CLASSES = {
    WalletType.STUDENT: StudentWallet,
    WalletType.TEACHER: TeacherWallet,
    WalletType.GUARDIAN: GuardianWallet,
}


def wallet_class_for(wallet_type: WalletType) -> type:
    return WALLET_CLASSES[WalletType(wallet_type)]

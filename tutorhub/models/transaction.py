# tutorhub/models/transaction.py
"""
Unified transaction log.

Every change to a wallet balance appends exactly one row here. Rows are never
updated or deleted. ``signed_amount`` carries the balance effect of the row
(positive for credits, negative for debits, zero for settlements), so for any
wallet ``balance == SUM(signed_amount)``.

Student, teacher and guardian activity all land in this table; the per-role
views of older systems (wallet, guardian and teacher transaction lists) are
queries over ``wallet_type``.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.time_utils import utc_now
from ..database import Base


class TransactionDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    SETTLEMENT = "settlement"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    SESSION_PAYMENT = "session_payment"
    REFUND = "refund"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"
    FAMILY_TRANSFER = "family_transfer"
    SUBSCRIPTION_PAYMENT = "subscription_payment"
    FEE = "fee"
    BOOKING_PAYMENT = "booking_payment"
    PAYOUT_HOLD = "payout_hold"
    PAYOUT_RELEASE = "payout_release"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


CREDIT_TYPES = frozenset(
    {
        TransactionType.CREDIT,
        TransactionType.SESSION_PAYMENT,
        TransactionType.REFUND,
        TransactionType.BONUS,
        TransactionType.PAYOUT_RELEASE,
    }
)

DEBIT_TYPES = frozenset(
    {
        TransactionType.DEBIT,
        TransactionType.FAMILY_TRANSFER,
        TransactionType.SUBSCRIPTION_PAYMENT,
        TransactionType.FEE,
        TransactionType.BOOKING_PAYMENT,
        TransactionType.PAYOUT_HOLD,
    }
)

# Debits a caller may post directly; holds and transfers belong to their workflows.
DIRECT_DEBIT_TYPES = frozenset(
    {TransactionType.DEBIT, TransactionType.FEE, TransactionType.BOOKING_PAYMENT}
)

# Types whose direction is given by the caller.
BIDIRECTIONAL_TYPES = frozenset({TransactionType.ADJUSTMENT})

SETTLEMENT_TYPES = frozenset({TransactionType.WITHDRAWAL})


def default_direction(transaction_type: TransactionType) -> TransactionDirection:
    """Direction implied by a transaction type; adjustments have none."""
    transaction_type = TransactionType(transaction_type)
    if transaction_type in CREDIT_TYPES:
        return TransactionDirection.CREDIT
    if transaction_type in DEBIT_TYPES:
        return TransactionDirection.DEBIT
    if transaction_type in SETTLEMENT_TYPES:
        return TransactionDirection.SETTLEMENT
    raise ValueError(f"{transaction_type.value} transactions need an explicit direction")


def signed(amount: Decimal, direction: TransactionDirection) -> Decimal:
    direction = TransactionDirection(direction)
    if direction == TransactionDirection.CREDIT:
        return amount
    if direction == TransactionDirection.DEBIT:
        return -amount
    return Decimal("0.00")


class UnifiedTransaction(Base):
    """Append-only ledger row for one wallet."""

    __tablename__ = "unified_transactions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    wallet_id = Column(String(26), ForeignKey("wallets.id"), nullable=False, index=True)
    wallet_type = Column(String(20), nullable=False, index=True)
    user_id = Column(String(26), nullable=False, index=True)

    transaction_type = Column(String(30), nullable=False, index=True)
    direction = Column(String(12), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    signed_amount = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=TransactionStatus.COMPLETED.value)
    description = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    counterparty_wallet_id = Column(String(26), ForeignKey("wallets.id"), nullable=True)
    payout_request_id = Column(String(26), nullable=True, index=True)
    booking_id = Column(String(26), nullable=True, index=True)
    created_by_id = Column(String(26), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    wallet = relationship("Wallet", foreign_keys=[wallet_id], back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_unified_transactions_amount_positive"),
        CheckConstraint(
            "direction IN ('credit', 'debit', 'settlement')",
            name="ck_unified_transactions_direction",
        ),
        Index("ix_unified_transactions_wallet_created", "wallet_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UnifiedTransaction {self.id} {self.transaction_type} "
            f"{self.direction} {self.amount} wallet={self.wallet_id}>"
        )

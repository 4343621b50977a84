# tutorhub/models/payout.py
"""
Teacher payout requests.

A payout request reserves funds from the teacher wallet when it is created
and resolves the reservation exactly once: approval settles it as a
withdrawal, decline returns it to the wallet.
"""

from enum import Enum
from typing import FrozenSet, Mapping

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..core.time_utils import utc_now
from ..database import Base


class PayoutStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    PAID = "paid"


PAYOUT_TRANSITIONS: Mapping[PayoutStatus, FrozenSet[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.APPROVED, PayoutStatus.DECLINED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PAID}),
    PayoutStatus.DECLINED: frozenset(),
    PayoutStatus.PAID: frozenset(),
}

OPEN_PAYOUT_STATUSES = (PayoutStatus.PENDING.value, PayoutStatus.APPROVED.value)


class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), nullable=False, index=True)
    wallet_id = Column(String(26), ForeignKey("wallets.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String(50), nullable=False, default="bank_transfer")
    payment_details = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=PayoutStatus.PENDING.value, index=True)

    request_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    processed_by_id = Column(String(26), nullable=True)
    processed_date = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String(26), ForeignKey("unified_transactions.id"), nullable=True)
    notes = Column(Text, nullable=True)
    is_automatic = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payout_requests_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'declined', 'paid')",
            name="ck_payout_requests_status",
        ),
        Index("ix_payout_requests_teacher_status", "teacher_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<PayoutRequest {self.id} teacher={self.teacher_id} {self.amount} {self.status}>"

    def can_transition_to(self, target: PayoutStatus) -> bool:
        return PayoutStatus(target) in PAYOUT_TRANSITIONS[PayoutStatus(self.status)]

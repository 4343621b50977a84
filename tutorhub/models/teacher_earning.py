"""Denormalised per-teacher earnings summary mirrored from the teacher wallet."""

from decimal import Decimal

from sqlalchemy import Column, DateTime, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class TeacherEarning(Base):
    __tablename__ = "teacher_earnings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), nullable=False, unique=True, index=True)
    wallet_balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_earned = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_withdrawn = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    pending_payouts = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<TeacherEarning teacher={self.teacher_id} balance={self.wallet_balance}>"

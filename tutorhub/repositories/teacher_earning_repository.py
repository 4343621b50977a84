"""Repository for the per-teacher earnings summary."""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models.teacher_earning import TeacherEarning
from ..models.wallet import TeacherWallet
from .base_repository import BaseRepository


class TeacherEarningRepository(BaseRepository[TeacherEarning]):
    def __init__(self, db: Session):
        super().__init__(db, TeacherEarning)

    def get_for_teacher(self, teacher_id: str) -> Optional[TeacherEarning]:
        return self.find_one_by(teacher_id=teacher_id)

    def sync_from_wallet(self, wallet: TeacherWallet, synced_at: datetime) -> TeacherEarning:
        """Upsert the summary row from the wallet's current totals."""
        earning = self.get_for_teacher(wallet.user_id)
        if earning is None:
            earning = TeacherEarning(teacher_id=wallet.user_id)
            self.db.add(earning)
        earning.wallet_balance = wallet.balance
        earning.total_earned = wallet.total_earned
        earning.total_withdrawn = wallet.total_withdrawn
        earning.pending_payouts = wallet.pending_payouts
        earning.last_synced_at = synced_at
        self.db.flush()
        return earning

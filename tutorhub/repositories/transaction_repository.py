"""Data access for the append-only unified transaction log."""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.transaction import TransactionType, UnifiedTransaction
from .base_repository import BaseRepository


class TransactionRepository(BaseRepository[UnifiedTransaction]):
    """Ledger rows are inserted, never updated or deleted."""

    def __init__(self, db: Session):
        super().__init__(db, UnifiedTransaction)

    def sum_signed_for_wallet(self, wallet_id: str) -> Decimal:
        query = self.db.query(
            func.coalesce(func.sum(UnifiedTransaction.signed_amount), 0)
        ).filter(UnifiedTransaction.wallet_id == wallet_id)
        return Decimal(str(self._execute_scalar(query))).quantize(Decimal("0.01"))

    def list_for_wallet(
        self,
        wallet_id: str,
        *,
        transaction_type: Optional[TransactionType] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[UnifiedTransaction], int]:
        query = self.db.query(UnifiedTransaction).filter(
            UnifiedTransaction.wallet_id == wallet_id
        )
        if transaction_type is not None:
            query = query.filter(
                UnifiedTransaction.transaction_type == TransactionType(transaction_type).value
            )
        query = query.order_by(UnifiedTransaction.created_at.desc(), UnifiedTransaction.id.desc())
        return self._paginate(query, page, per_page)

    def find_for_payout(
        self, payout_request_id: str, transaction_type: TransactionType
    ) -> List[UnifiedTransaction]:
        query = self.db.query(UnifiedTransaction).filter(
            UnifiedTransaction.payout_request_id == payout_request_id,
            UnifiedTransaction.transaction_type == TransactionType(transaction_type).value,
        )
        return self._execute_query(query)

    def find_for_booking(self, booking_id: str) -> List[UnifiedTransaction]:
        query = (
            self.db.query(UnifiedTransaction)
            .filter(UnifiedTransaction.booking_id == booking_id)
            .order_by(UnifiedTransaction.created_at)
        )
        return self._execute_query(query)

    def count_for_wallet(self, wallet_id: str, transaction_type: TransactionType) -> int:
        return self.count(
            wallet_id=wallet_id, transaction_type=TransactionType(transaction_type).value
        )

"""Data access for wallets of every role."""

from decimal import Decimal
import logging
from typing import List, Optional, Sequence

from sqlalchemy import and_, not_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payout import OPEN_PAYOUT_STATUSES, PayoutRequest
from ..models.wallet import TeacherWallet, Wallet, WalletType, wallet_class_for
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WalletRepository(BaseRepository[Wallet]):
    def __init__(self, db: Session):
        super().__init__(db, Wallet)

    def get_for_user(
        self, user_id: str, wallet_type: WalletType, for_update: bool = False
    ) -> Optional[Wallet]:
        """Load the wallet for ``(user_id, wallet_type)`` as its concrete subclass."""
        try:
            query = self.db.query(wallet_class_for(wallet_type)).filter(
                Wallet.user_id == user_id,
                Wallet.wallet_type == WalletType(wallet_type).value,
            )
            if for_update:
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {wallet_type} wallet for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load wallet: {str(e)}")

    def create_for_user(self, user_id: str, wallet_type: WalletType, currency: str) -> Wallet:
        wallet_cls = wallet_class_for(wallet_type)
        wallet = wallet_cls(user_id=user_id, currency=currency)
        return self.add(wallet)

    def lock(self, wallet: Wallet) -> Wallet:
        """Re-select a wallet row ``FOR UPDATE`` and return the fresh instance."""
        try:
            locked = (
                self.db.query(Wallet)
                .filter(Wallet.id == wallet.id)
                .with_for_update()
                .populate_existing()
                .one()
            )
            return locked
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking wallet {wallet.id}: {str(e)}")
            raise RepositoryException(f"Failed to lock wallet: {str(e)}")

    def get_many_for_users(
        self, user_ids: Sequence[str], wallet_type: WalletType
    ) -> List[Wallet]:
        if not user_ids:
            return []
        query = self.db.query(wallet_class_for(wallet_type)).filter(
            Wallet.user_id.in_(list(user_ids)),
            Wallet.wallet_type == WalletType(wallet_type).value,
        )
        return self._execute_query(query)

    def find_teacher_wallets_for_auto_payout(self, threshold: Decimal) -> List[TeacherWallet]:
        """
        Teacher wallets due an automatic payout with no open payout request.

        A teacher who enabled auto-withdrawal with their own threshold is
        measured against it; everyone else against ``threshold``.
        """
        open_payouts = (
            self.db.query(PayoutRequest.id)
            .filter(
                PayoutRequest.wallet_id == Wallet.id,
                PayoutRequest.status.in_(OPEN_PAYOUT_STATUSES),
            )
            .exists()
        )
        personal = and_(
            TeacherWallet.auto_withdrawal_enabled.is_(True),
            TeacherWallet.auto_withdrawal_threshold.isnot(None),
        )
        query = (
            self.db.query(TeacherWallet)
            .filter(
                ~open_payouts,
                TeacherWallet.balance > 0,
                or_(
                    and_(
                        personal,
                        TeacherWallet.balance >= TeacherWallet.auto_withdrawal_threshold,
                    ),
                    and_(not_(personal), TeacherWallet.balance >= threshold),
                ),
            )
            .order_by(TeacherWallet.balance.desc())
        )
        return self._execute_query(query)


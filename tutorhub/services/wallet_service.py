# tutorhub/services/wallet_service.py
"""
Wallet ledger service for TutorHub.

Every balance change on a student, teacher or guardian wallet goes through
this service. Each operation:

- runs in one database transaction (joining the caller's when nested),
- locks the wallet row before reading its balance,
- appends exactly one ``UnifiedTransaction`` per wallet it changes, whose
  ``signed_amount`` equals the change in ``balance``,
- refuses to take a balance below zero.

The teacher earnings summary is re-synced after every teacher-wallet write.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AllowanceExceededException,
    BusinessRuleException,
    ChildNotOwnedException,
    InsufficientBalanceException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..models.payout import PayoutRequest
from ..models.transaction import (
    DIRECT_DEBIT_TYPES,
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    UnifiedTransaction,
    default_direction,
    signed,
)
from ..models.wallet import (
    ZERO,
    AllowancePeriod,
    GuardianWallet,
    TeacherWallet,
    Wallet,
    WalletType,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce ``value`` to a two-decimal ``Decimal``; raises ``ValidationException``."""
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationException(
            "Amount must be a number", details={"amount": str(value)}
        ) from exc
    if not amount.is_finite():
        raise ValidationException("Amount must be a number", details={"amount": str(value)})
    return amount


def _positive(value: Any) -> Decimal:
    amount = to_money(value)
    if amount <= ZERO:
        raise ValidationException(
            "Amount must be greater than zero",
            code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )
    return amount


def period_start_for(period: AllowancePeriod, today: date) -> date:
    """First day of the allowance period containing ``today`` (weeks start Monday)."""
    if AllowancePeriod(period) == AllowancePeriod.WEEKLY:
        return today - timedelta(days=today.weekday())
    return today.replace(day=1)


class WalletService(BaseService):
    """Ledger operations on wallets of every role."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.wallet_repository = RepositoryFactory.create_wallet_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.earning_repository = RepositoryFactory.create_teacher_earning_repository(db)
        self.guardian_link_repository = RepositoryFactory.create_guardian_link_repository(db)

    # Lookup

    def get_wallet(self, user_id: str, wallet_type: WalletType) -> Wallet:
        wallet = self.wallet_repository.get_for_user(user_id, WalletType(wallet_type))
        if wallet is None:
            raise NotFoundException(
                f"No {WalletType(wallet_type).value} wallet for user {user_id}",
                code="WALLET_NOT_FOUND",
                details={"user_id": user_id, "wallet_type": WalletType(wallet_type).value},
            )
        return wallet

    @BaseService.measure_operation("get_or_create_wallet")
    def get_or_create_wallet(
        self, user_id: str, wallet_type: WalletType, currency: Optional[str] = None
    ) -> Wallet:
        """Return the user's wallet for ``wallet_type``, creating an empty one if needed."""
        wallet_type = WalletType(wallet_type)
        wallet = self.wallet_repository.get_for_user(user_id, wallet_type)
        if wallet is not None:
            return wallet
        with self.transaction():
            wallet = self._create_wallet(user_id, wallet_type, currency)
        return wallet

    def _create_wallet(
        self, user_id: str, wallet_type: WalletType, currency: Optional[str] = None
    ) -> Wallet:
        try:
            wallet = self.wallet_repository.create_for_user(
                user_id, wallet_type, (currency or settings.default_currency).upper()
            )
        except RepositoryException:
            # A concurrent request created it first.
            wallet = self.wallet_repository.get_for_user(user_id, wallet_type)
            if wallet is None:
                raise
            return wallet
        self.logger.info(
            "Wallet created",
            extra={"wallet_id": wallet.id, "user_id": user_id, "wallet_type": wallet_type.value},
        )
        return wallet

    # Core posting

    def _lock(self, wallet: Wallet) -> Wallet:
        self.db.flush()
        return self.wallet_repository.lock(wallet)

    def _post(
        self,
        wallet: Wallet,
        transaction_type: TransactionType,
        amount: Decimal,
        *,
        direction: Optional[TransactionDirection] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        counterparty_wallet_id: Optional[str] = None,
        payout_request_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """
        Apply one ledger entry to an already-locked wallet.

        The caller holds the row lock and the surrounding transaction.
        """
        transaction_type = TransactionType(transaction_type)
        direction = TransactionDirection(direction or default_direction(transaction_type))
        signed_amount = signed(amount, direction)
        new_balance = wallet.balance_amount + signed_amount
        if new_balance < ZERO:
            raise InsufficientBalanceException(
                wallet.balance_amount, amount, wallet_id=wallet.id
            )

        wallet.balance = new_balance
        entry = self.transaction_repository.create(
            wallet_id=wallet.id,
            wallet_type=wallet.wallet_type,
            user_id=wallet.user_id,
            transaction_type=transaction_type.value,
            direction=direction.value,
            amount=amount,
            signed_amount=signed_amount,
            balance_after=new_balance,
            currency=wallet.currency,
            status=TransactionStatus.COMPLETED.value,
            description=description,
            metadata_json=metadata or None,
            counterparty_wallet_id=counterparty_wallet_id,
            payout_request_id=payout_request_id,
            booking_id=booking_id,
            created_by_id=created_by_id,
        )

        if wallet.wallet_type == WalletType.TEACHER.value:
            self.earning_repository.sync_from_wallet(wallet, utc_now())

        prometheus_metrics.record_ledger_entry(wallet.wallet_type, transaction_type.value)
        self.logger.info(
            "Ledger entry posted",
            extra={
                "wallet_id": wallet.id,
                "wallet_type": wallet.wallet_type,
                "transaction_type": transaction_type.value,
                "direction": direction.value,
                "amount": str(amount),
                "balance_after": str(new_balance),
            },
        )
        return entry

    @staticmethod
    def _require_type(wallet: Wallet, wallet_type: WalletType) -> None:
        if wallet.wallet_type != WalletType(wallet_type).value:
            raise ValidationException(
                f"Operation requires a {WalletType(wallet_type).value} wallet",
                code="WRONG_WALLET_TYPE",
                details={"wallet_id": wallet.id, "wallet_type": wallet.wallet_type},
            )

    # Student and general operations

    @BaseService.measure_operation("add_funds")
    def add_funds(
        self,
        wallet: Wallet,
        amount: Any,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_by_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """Credit ``amount`` to ``wallet``."""
        amount = _positive(amount)
        with self.transaction():
            wallet = self._lock(wallet)
            return self._post(
                wallet,
                TransactionType.CREDIT,
                amount,
                description=description or "Wallet top-up",
                metadata=metadata,
                created_by_id=created_by_id,
            )

    @BaseService.measure_operation("deduct_funds")
    def deduct_funds(
        self,
        wallet: Wallet,
        amount: Any,
        description: Optional[str] = None,
        transaction_type: TransactionType = TransactionType.DEBIT,
        metadata: Optional[Dict[str, Any]] = None,
        booking_id: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """
        Debit ``amount`` from ``wallet``.

        Raises ``InsufficientBalanceException`` rather than clamping when the
        balance does not cover the amount.
        """
        amount = _positive(amount)
        transaction_type = TransactionType(transaction_type)
        if transaction_type not in DIRECT_DEBIT_TYPES:
            raise ValidationException(
                f"'{transaction_type.value}' cannot be posted as a direct debit",
                details={"transaction_type": transaction_type.value},
            )
        with self.transaction():
            wallet = self._lock(wallet)
            entry = self._post(
                wallet,
                transaction_type,
                amount,
                description=description,
                metadata=metadata,
                booking_id=booking_id,
                created_by_id=created_by_id,
            )
            if wallet.wallet_type == WalletType.STUDENT.value:
                wallet.total_spent = Decimal(wallet.total_spent or ZERO) + amount
            return entry

    @BaseService.measure_operation("add_refund")
    def add_refund(
        self,
        wallet: Wallet,
        amount: Any,
        description: Optional[str] = None,
        booking_id: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        amount = _positive(amount)
        with self.transaction():
            wallet = self._lock(wallet)
            entry = self._post(
                wallet,
                TransactionType.REFUND,
                amount,
                description=description or "Refund",
                booking_id=booking_id,
                created_by_id=created_by_id,
            )
            wallet.total_refunded = Decimal(wallet.total_refunded or ZERO) + amount
            return entry

    @BaseService.measure_operation("adjust_balance")
    def adjust_balance(
        self,
        wallet: Wallet,
        amount: Any,
        direction: TransactionDirection,
        reason: str,
        admin_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """Administrative correction in either direction."""
        amount = _positive(amount)
        direction = TransactionDirection(direction)
        if direction == TransactionDirection.SETTLEMENT:
            raise ValidationException("Adjustments must be a credit or a debit")
        if not reason or not reason.strip():
            raise ValidationException("A reason is required for balance adjustments")
        with self.transaction():
            wallet = self._lock(wallet)
            entry = self._post(
                wallet,
                TransactionType.ADJUSTMENT,
                amount,
                direction=direction,
                description=reason,
                metadata={"admin_id": admin_id},
                created_by_id=admin_id,
            )
        self.logger.warning(
            "Manual balance adjustment",
            extra={
                "wallet_id": wallet.id,
                "direction": direction.value,
                "amount": str(amount),
                "admin_id": admin_id,
            },
        )
        return entry

    # Teacher operations

    @BaseService.measure_operation("add_earnings")
    def add_earnings(
        self,
        wallet: TeacherWallet,
        amount: Any,
        description: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        amount = _positive(amount)
        self._require_type(wallet, WalletType.TEACHER)
        with self.transaction():
            wallet = self._lock(wallet)
            wallet.total_earned = Decimal(wallet.total_earned or ZERO) + amount
            return self._post(
                wallet,
                TransactionType.SESSION_PAYMENT,
                amount,
                description=description or "Session earnings",
                booking_id=booking_id,
            )

    @BaseService.measure_operation("add_pending_payout")
    def add_pending_payout(
        self, wallet: TeacherWallet, amount: Any, payout_request: PayoutRequest
    ) -> UnifiedTransaction:
        """Reserve ``amount`` for a payout: balance down, pending up."""
        amount = _positive(amount)
        self._require_type(wallet, WalletType.TEACHER)
        with self.transaction():
            wallet = self._lock(wallet)
            wallet.pending_payouts = Decimal(wallet.pending_payouts or ZERO) + amount
            return self._post(
                wallet,
                TransactionType.PAYOUT_HOLD,
                amount,
                description="Funds reserved for payout request",
                payout_request_id=payout_request.id,
                created_by_id=payout_request.teacher_id,
            )

    @BaseService.measure_operation("remove_pending_payout")
    def remove_pending_payout(
        self,
        wallet: TeacherWallet,
        amount: Any,
        payout_request: PayoutRequest,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """Return a reservation to the spendable balance."""
        amount = _positive(amount)
        self._require_type(wallet, WalletType.TEACHER)
        with self.transaction():
            wallet = self._lock(wallet)
            pending = Decimal(wallet.pending_payouts or ZERO)
            if pending < amount:
                raise BusinessRuleException(
                    "Pending payouts do not cover the amount being released",
                    code="PENDING_PAYOUT_MISMATCH",
                    details={"pending_payouts": str(pending), "amount": str(amount)},
                )
            wallet.pending_payouts = pending - amount
            return self._post(
                wallet,
                TransactionType.PAYOUT_RELEASE,
                amount,
                description=reason or "Payout reservation released",
                payout_request_id=payout_request.id,
                created_by_id=actor_id,
            )

    @BaseService.measure_operation("settle_pending_payout")
    def settle_pending_payout(
        self,
        wallet: TeacherWallet,
        amount: Any,
        payout_request: PayoutRequest,
        admin_id: Optional[str] = None,
    ) -> UnifiedTransaction:
        """
        Move a reservation to ``total_withdrawn``.

        The funds already left ``balance`` when they were reserved, so the
        withdrawal row is a settlement with a zero balance effect.
        """
        amount = _positive(amount)
        self._require_type(wallet, WalletType.TEACHER)
        with self.transaction():
            wallet = self._lock(wallet)
            pending = Decimal(wallet.pending_payouts or ZERO)
            if pending < amount:
                raise BusinessRuleException(
                    "Pending payouts do not cover the amount being withdrawn",
                    code="PENDING_PAYOUT_MISMATCH",
                    details={"pending_payouts": str(pending), "amount": str(amount)},
                )
            wallet.pending_payouts = pending - amount
            wallet.total_withdrawn = Decimal(wallet.total_withdrawn or ZERO) + amount
            return self._post(
                wallet,
                TransactionType.WITHDRAWAL,
                amount,
                description="Payout withdrawal",
                payout_request_id=payout_request.id,
                created_by_id=admin_id,
            )

    # Guardian operations

    def _ensure_linked(self, guardian_wallet: GuardianWallet, child_user_id: str) -> None:
        if not self.guardian_link_repository.is_linked(guardian_wallet.user_id, child_user_id):
            raise ChildNotOwnedException(guardian_wallet.user_id, child_user_id)

    @staticmethod
    def _current_allowance(
        wallet: GuardianWallet, child_user_id: str, today: date
    ) -> Optional[Dict[str, Any]]:
        """The child's allowance with the spent counter rolled over if the period elapsed."""
        allowance = wallet.get_allowance(child_user_id)
        if not allowance:
            return None
        allowance = dict(allowance)
        current_start = period_start_for(AllowancePeriod(allowance["period"]), today)
        if allowance.get("period_start") != current_start.isoformat():
            allowance["spent_this_period"] = "0.00"
            allowance["period_start"] = current_start.isoformat()
        return allowance

    @staticmethod
    def _store_allowance(
        wallet: GuardianWallet, child_user_id: str, allowance: Dict[str, Any]
    ) -> None:
        allowances = dict(wallet.child_allowances or {})
        allowances[child_user_id] = allowance
        # Reassign so the JSON column is flagged dirty.
        wallet.child_allowances = allowances

    @BaseService.measure_operation("fund_child_wallet")
    def fund_child_wallet(
        self,
        guardian_wallet: GuardianWallet,
        child_user_id: str,
        amount: Any,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Transfer ``amount`` from a guardian wallet to a linked child's student wallet.

        Checks ownership, then the allowance for the current period, then the
        guardian balance. Writes a ``family_transfer`` debit on the guardian
        and a ``credit`` on the child, each naming the other as counterparty.
        """
        amount = _positive(amount)
        self._require_type(guardian_wallet, WalletType.GUARDIAN)
        self._ensure_linked(guardian_wallet, child_user_id)
        today = (now or utc_now()).date()

        with self.transaction():
            guardian_wallet = self._lock(guardian_wallet)

            allowance = self._current_allowance(guardian_wallet, child_user_id, today)
            if allowance is not None:
                limit = to_money(allowance["amount"])
                spent = to_money(allowance["spent_this_period"])
                if spent + amount > limit:
                    raise AllowanceExceededException(child_user_id, limit, spent, amount)

            if not guardian_wallet.has_sufficient_balance(amount):
                raise InsufficientBalanceException(
                    guardian_wallet.balance_amount, amount, wallet_id=guardian_wallet.id
                )

            child_wallet = self.wallet_repository.get_for_user(child_user_id, WalletType.STUDENT)
            if child_wallet is None:
                child_wallet = self._create_wallet(
                    child_user_id, WalletType.STUDENT, guardian_wallet.currency
                )
            child_wallet = self._lock(child_wallet)

            guardian_entry = self._post(
                guardian_wallet,
                TransactionType.FAMILY_TRANSFER,
                amount,
                description=description or "Transfer to child wallet",
                metadata={"child_id": child_user_id},
                counterparty_wallet_id=child_wallet.id,
                created_by_id=guardian_wallet.user_id,
            )
            guardian_wallet.total_spent_on_children = (
                Decimal(guardian_wallet.total_spent_on_children or ZERO) + amount
            )
            if allowance is not None:
                allowance["spent_this_period"] = str(
                    to_money(allowance["spent_this_period"]) + amount
                )
                self._store_allowance(guardian_wallet, child_user_id, allowance)

            child_entry = self._post(
                child_wallet,
                TransactionType.CREDIT,
                amount,
                description=description or "Funds from guardian",
                metadata={"guardian_id": guardian_wallet.user_id, "source": "family_transfer"},
                counterparty_wallet_id=guardian_wallet.id,
                created_by_id=guardian_wallet.user_id,
            )

        return {
            "guardian_transaction": guardian_entry,
            "child_transaction": child_entry,
            "guardian_balance": guardian_wallet.balance_amount,
            "child_balance": child_wallet.balance_amount,
        }

    @BaseService.measure_operation("set_child_allowance")
    def set_child_allowance(
        self,
        guardian_wallet: GuardianWallet,
        child_user_id: str,
        amount: Any,
        period: AllowancePeriod,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Configure a per-period cap on transfers to a child; resets the spent counter."""
        amount = _positive(amount)
        period = AllowancePeriod(period)
        self._require_type(guardian_wallet, WalletType.GUARDIAN)
        self._ensure_linked(guardian_wallet, child_user_id)
        today = (now or utc_now()).date()
        allowance = {
            "amount": str(amount),
            "period": period.value,
            "spent_this_period": "0.00",
            "period_start": period_start_for(period, today).isoformat(),
        }
        with self.transaction():
            guardian_wallet = self._lock(guardian_wallet)
            self._store_allowance(guardian_wallet, child_user_id, allowance)
        self.log_operation(
            "set_child_allowance",
            guardian_id=guardian_wallet.user_id,
            child_id=child_user_id,
            period=period.value,
        )
        return allowance

    @BaseService.measure_operation("pay_child_subscription")
    def pay_child_subscription(
        self,
        guardian_wallet: GuardianWallet,
        child_user_id: str,
        amount: Any,
        description: Optional[str] = None,
        plan: Optional[str] = None,
    ) -> UnifiedTransaction:
        amount = _positive(amount)
        self._require_type(guardian_wallet, WalletType.GUARDIAN)
        self._ensure_linked(guardian_wallet, child_user_id)
        with self.transaction():
            guardian_wallet = self._lock(guardian_wallet)
            entry = self._post(
                guardian_wallet,
                TransactionType.SUBSCRIPTION_PAYMENT,
                amount,
                description=description or "Subscription payment",
                metadata={"child_id": child_user_id, "plan": plan},
                created_by_id=guardian_wallet.user_id,
            )
            guardian_wallet.total_spent_on_children = (
                Decimal(guardian_wallet.total_spent_on_children or ZERO) + amount
            )
            return entry

    @BaseService.measure_operation("get_family_summary")
    def get_family_summary(self, guardian_user_id: str) -> Dict[str, Any]:
        guardian_wallet = self.get_wallet(guardian_user_id, WalletType.GUARDIAN)
        child_ids = self.guardian_link_repository.list_children(guardian_user_id)
        child_wallets = {
            w.user_id: w
            for w in self.wallet_repository.get_many_for_users(child_ids, WalletType.STUDENT)
        }
        today = utc_now().date()

        children: List[Dict[str, Any]] = []
        children_total = ZERO
        for child_id in child_ids:
            child_wallet = child_wallets.get(child_id)
            balance = child_wallet.balance_amount if child_wallet else ZERO
            children_total += balance
            children.append(
                {
                    "child_id": child_id,
                    "wallet_id": child_wallet.id if child_wallet else None,
                    "balance": balance,
                    "allowance": self._current_allowance(guardian_wallet, child_id, today),
                }
            )

        return {
            "guardian_id": guardian_user_id,
            "guardian_balance": guardian_wallet.balance_amount,
            "total_spent_on_children": Decimal(guardian_wallet.total_spent_on_children or ZERO),
            "children": children,
            "family_total": guardian_wallet.balance_amount + children_total,
            "currency": guardian_wallet.currency,
        }

    # Reporting

    def list_transactions(
        self,
        wallet: Wallet,
        transaction_type: Optional[TransactionType] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[UnifiedTransaction], int]:
        return self.transaction_repository.list_for_wallet(
            wallet.id, transaction_type=transaction_type, page=page, per_page=per_page
        )

    @BaseService.measure_operation("reconcile")
    def reconcile(self, wallet: Wallet) -> Dict[str, Any]:
        """Compare the stored balance with the sum of the wallet's ledger rows."""
        self.db.flush()
        ledger_sum = self.transaction_repository.sum_signed_for_wallet(wallet.id)
        balance = wallet.balance_amount.quantize(CENT)
        difference = balance - ledger_sum
        if difference != ZERO:
            self.logger.error(
                "Wallet ledger mismatch",
                extra={
                    "wallet_id": wallet.id,
                    "balance": str(balance),
                    "ledger_sum": str(ledger_sum),
                },
            )
        return {
            "wallet_id": wallet.id,
            "balance": balance,
            "ledger_sum": ledger_sum,
            "difference": difference,
            "balanced": difference == ZERO,
        }


__all__ = ["WalletService", "period_start_for", "to_money"]

# tutorhub/services/payout_service.py
"""
Payout Service for TutorHub

Teacher payout requests and their state machine::

    pending --approve--> approved --mark_as_paid--> paid
    pending --decline--> declined
    pending --cancel---> declined   (teacher withdraws their own request)

Creating a request reserves the amount on the teacher wallet. Approval
settles the reservation with exactly one withdrawal row; decline and cancel
return it. Every state change takes a row lock on the payout request.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    BusinessRuleException,
    DomainException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..models.payout import PayoutRequest, PayoutStatus
from ..models.transaction import TransactionType
from ..models.wallet import ZERO, TeacherWallet, WalletType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .config_service import ConfigService
from .notification_service import NotificationService
from .wallet_service import WalletService, to_money

logger = logging.getLogger(__name__)


class PayoutService(BaseService):
    def __init__(
        self,
        db: Session,
        wallet_service: Optional[WalletService] = None,
        config_service: Optional[ConfigService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.payout_repository = RepositoryFactory.create_payout_repository(db)
        self.transaction_repository = RepositoryFactory.create_transaction_repository(db)
        self.wallet_repository = RepositoryFactory.create_wallet_repository(db)
        self.wallet_service = wallet_service or WalletService(db)
        self.config_service = config_service or ConfigService(db)
        self.notification_service = notification_service or NotificationService()

    def get_payout(self, payout_id: str, for_update: bool = False) -> PayoutRequest:
        payout = self.payout_repository.get_by_id(payout_id, for_update=for_update)
        if payout is None:
            raise NotFoundException(
                "Payout request not found",
                code="PAYOUT_NOT_FOUND",
                details={"payout_id": payout_id},
            )
        return payout

    def list_payouts(
        self,
        teacher_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[PayoutRequest], int]:
        return self.payout_repository.list_requests(
            teacher_id=teacher_id, status=status, page=page, per_page=per_page
        )

    @staticmethod
    def _guard(payout: PayoutRequest, target: PayoutStatus) -> None:
        if not payout.can_transition_to(target):
            raise InvalidStatusTransitionException("payout request", payout.status, target.value)

    def _notify(self, payout: PayoutRequest) -> None:
        self.notification_service.send_payout_status(payout)

    @BaseService.measure_operation("request_payout")
    def request_payout(
        self,
        teacher_id: str,
        amount: Any,
        payment_method: str = "bank_transfer",
        payment_details: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        is_automatic: bool = False,
    ) -> PayoutRequest:
        """
        Create a pending payout and reserve its amount on the teacher wallet.

        Raises:
            ValidationException: amount below the configured minimum
            BusinessRuleException: too many pending requests already
            InsufficientBalanceException: amount exceeds the wallet balance
        """
        amount = to_money(amount)
        minimum = self.config_service.get_decimal("min_payout_amount")
        if amount <= ZERO or amount < minimum:
            raise ValidationException(
                f"Minimum payout amount is {minimum}",
                code="PAYOUT_BELOW_MINIMUM",
                details={"amount": str(amount), "minimum": str(minimum)},
            )

        wallet = self.wallet_service.get_wallet(teacher_id, WalletType.TEACHER)
        max_pending = self.config_service.get_int("max_pending_payouts")

        with self.transaction():
            wallet = self.wallet_repository.lock(wallet)
            pending_count = self.payout_repository.count_pending_for_teacher(teacher_id)
            if pending_count >= max_pending:
                raise BusinessRuleException(
                    f"You already have {pending_count} pending payout requests",
                    code="TOO_MANY_PENDING_PAYOUTS",
                    details={"pending": pending_count, "limit": max_pending},
                )
            if not wallet.has_sufficient_balance(amount):
                raise InsufficientBalanceException(
                    wallet.balance_amount, amount, wallet_id=wallet.id
                )

            payout = self.payout_repository.create(
                teacher_id=teacher_id,
                wallet_id=wallet.id,
                amount=amount,
                currency=wallet.currency,
                payment_method=payment_method or wallet.payment_method or "bank_transfer",
                payment_details=payment_details or wallet.payment_details,
                status=PayoutStatus.PENDING.value,
                request_date=utc_now(),
                notes=notes,
                is_automatic=is_automatic,
            )
            self.wallet_service.add_pending_payout(wallet, amount, payout)

        prometheus_metrics.record_payout_transition(PayoutStatus.PENDING.value)
        self.log_operation(
            "request_payout",
            payout_id=payout.id,
            teacher_id=teacher_id,
            amount=str(amount),
            is_automatic=is_automatic,
        )
        self._notify(payout)
        return payout

    @BaseService.measure_operation("approve_payout")
    def approve(
        self, payout_id: str, admin_id: str, notes: Optional[str] = None
    ) -> PayoutRequest:
        """Approve a pending request and settle its reservation exactly once."""
        with self.transaction():
            payout = self.get_payout(payout_id, for_update=True)
            self._guard(payout, PayoutStatus.APPROVED)

            if payout.transaction_id is None:
                existing = self.transaction_repository.find_for_payout(
                    payout.id, TransactionType.WITHDRAWAL
                )
                if existing:
                    payout.transaction_id = existing[0].id
                else:
                    wallet = self.wallet_service.get_wallet(payout.teacher_id, WalletType.TEACHER)
                    entry = self.wallet_service.settle_pending_payout(
                        wallet, payout.amount, payout, admin_id=admin_id
                    )
                    payout.transaction_id = entry.id

            payout.status = PayoutStatus.APPROVED.value
            payout.processed_by_id = admin_id
            payout.processed_date = utc_now()
            if notes:
                payout.notes = notes

        prometheus_metrics.record_payout_transition(PayoutStatus.APPROVED.value)
        self.log_operation("approve_payout", payout_id=payout.id, admin_id=admin_id)
        self._notify(payout)
        return payout

    def _release(
        self, payout: PayoutRequest, actor_id: str, reason: Optional[str]
    ) -> None:
        wallet = self.wallet_service.get_wallet(payout.teacher_id, WalletType.TEACHER)
        self.wallet_service.remove_pending_payout(
            wallet, payout.amount, payout, reason=reason, actor_id=actor_id
        )
        payout.status = PayoutStatus.DECLINED.value
        payout.processed_by_id = actor_id
        payout.processed_date = utc_now()
        if reason:
            payout.notes = reason

    @BaseService.measure_operation("decline_payout")
    def decline(
        self, payout_id: str, admin_id: str, reason: Optional[str] = None
    ) -> PayoutRequest:
        """Decline a pending request and return its amount to the wallet."""
        with self.transaction():
            payout = self.get_payout(payout_id, for_update=True)
            self._guard(payout, PayoutStatus.DECLINED)
            self._release(payout, admin_id, reason or "Payout request declined")

        prometheus_metrics.record_payout_transition(PayoutStatus.DECLINED.value)
        self.log_operation("decline_payout", payout_id=payout.id, admin_id=admin_id)
        self._notify(payout)
        return payout

    @BaseService.measure_operation("cancel_payout")
    def cancel(self, payout_id: str, teacher_id: str) -> PayoutRequest:
        """Let a teacher withdraw their own pending request."""
        with self.transaction():
            payout = self.get_payout(payout_id, for_update=True)
            if payout.teacher_id != teacher_id:
                raise ForbiddenException(
                    "You can only cancel your own payout requests",
                    code="PAYOUT_NOT_OWNED",
                    details={"payout_id": payout_id},
                )
            self._guard(payout, PayoutStatus.DECLINED)
            self._release(payout, teacher_id, "Cancelled by teacher")

        prometheus_metrics.record_payout_transition(PayoutStatus.DECLINED.value)
        self.log_operation("cancel_payout", payout_id=payout.id, teacher_id=teacher_id)
        return payout

    @BaseService.measure_operation("mark_payout_paid")
    def mark_as_paid(self, payout_id: str, admin_id: str) -> PayoutRequest:
        with self.transaction():
            payout = self.get_payout(payout_id, for_update=True)
            self._guard(payout, PayoutStatus.PAID)
            now = utc_now()
            payout.status = PayoutStatus.PAID.value
            payout.paid_at = now
            payout.processed_by_id = admin_id
            payout.processed_date = now

        prometheus_metrics.record_payout_transition(PayoutStatus.PAID.value)
        self.log_operation("mark_payout_paid", payout_id=payout.id, admin_id=admin_id)
        self._notify(payout)
        return payout

    @BaseService.measure_operation("update_payout_settings")
    def update_payout_settings(
        self,
        teacher_id: str,
        *,
        auto_withdrawal_enabled: bool,
        auto_withdrawal_threshold: Optional[Any] = None,
        payment_method: Optional[str] = None,
        payment_details: Optional[Dict[str, Any]] = None,
    ) -> TeacherWallet:
        """
        Store a teacher's automatic payout preference and payout destination.

        A personal threshold below the minimum payout amount is rejected, as
        the payout it would trigger could never be created.
        """
        threshold = (
            to_money(auto_withdrawal_threshold) if auto_withdrawal_threshold is not None else None
        )
        if threshold is not None:
            minimum = self.config_service.get_decimal("min_payout_amount")
            if threshold < minimum or threshold <= ZERO:
                raise ValidationException(
                    f"Automatic payout threshold must be at least {minimum}",
                    code="PAYOUT_BELOW_MINIMUM",
                    details={"threshold": str(threshold), "minimum": str(minimum)},
                )

        wallet = self.wallet_service.get_wallet(teacher_id, WalletType.TEACHER)
        with self.transaction():
            wallet = self.wallet_repository.lock(wallet)
            wallet.auto_withdrawal_enabled = auto_withdrawal_enabled
            wallet.auto_withdrawal_threshold = threshold
            if payment_method:
                wallet.payment_method = payment_method
            if payment_details is not None:
                wallet.payment_details = payment_details

        self.log_operation(
            "update_payout_settings",
            teacher_id=teacher_id,
            auto_withdrawal_enabled=auto_withdrawal_enabled,
            threshold=str(threshold) if threshold is not None else None,
        )
        return wallet

    @BaseService.measure_operation("process_auto_payouts")
    def process_auto_payouts(self) -> Dict[str, Any]:
        """
        Create a payout for the full balance of every teacher wallet at or
        above its auto-payout threshold that has no open request. The global
        ``auto_payout_threshold`` applies unless the teacher opted in with their
        own; a global value of zero or less turns the job off.

        One teacher's failure is logged and counted; the batch continues.
        """
        threshold = self.config_service.get_decimal("auto_payout_threshold")
        summary: Dict[str, Any] = {"created": 0, "failed": 0, "payout_ids": []}
        if threshold <= ZERO:
            self.logger.info("Automatic payouts disabled (threshold <= 0)")
            return summary

        wallets = self.wallet_repository.find_teacher_wallets_for_auto_payout(threshold)
        for wallet in wallets:
            if not wallet.can_auto_withdraw(threshold):
                continue
            teacher_id = wallet.user_id
            amount = Decimal(wallet.balance)
            try:
                payout = self.request_payout(
                    teacher_id,
                    amount,
                    payment_method=wallet.payment_method or "bank_transfer",
                    payment_details=wallet.payment_details,
                    notes="Automatic payout",
                    is_automatic=True,
                )
            except DomainException as exc:
                summary["failed"] += 1
                self.logger.warning(
                    f"Automatic payout failed for teacher {teacher_id}: {exc.message}",
                    extra={"teacher_id": teacher_id, "code": exc.code},
                )
                continue
            summary["created"] += 1
            summary["payout_ids"].append(payout.id)

        self.logger.info(
            "Automatic payout run finished",
            extra={"payouts_created": summary["created"], "payouts_failed": summary["failed"]},
        )
        return summary


__all__ = ["PayoutService"]

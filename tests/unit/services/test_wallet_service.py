"""
Unit tests for WalletService ledger operations.

Every operation must leave ``balance == sum(signed_amount)`` for each wallet
it touches, so most tests finish with a reconcile check.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tutorhub.core.exceptions import (
    AllowanceExceededException,
    ChildNotOwnedException,
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from tutorhub.models.transaction import TransactionDirection, TransactionType
from tutorhub.models.wallet import AllowancePeriod, WalletType
from tutorhub.services.wallet_service import period_start_for, to_money


def _assert_balanced(wallet_service, *wallets):
    for wallet in wallets:
        result = wallet_service.reconcile(wallet)
        assert result["balanced"] is True, result


class TestMoneyHelpers:
    def test_to_money_quantizes_to_cents(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(7) == Decimal("7.00")

    def test_to_money_rejects_garbage(self):
        with pytest.raises(ValidationException):
            to_money("ten")

    def test_period_start_for_weekly_is_monday(self):
        # 2026-10-22 is a Thursday
        assert period_start_for(AllowancePeriod.WEEKLY, datetime(2026, 10, 22).date()).isoformat() == "2026-10-19"

    def test_period_start_for_monthly_is_first(self):
        assert period_start_for(AllowancePeriod.MONTHLY, datetime(2026, 10, 22).date()).day == 1


class TestWalletLookup:
    def test_get_or_create_is_idempotent(self, wallet_service, make_id):
        user_id = make_id()
        first = wallet_service.get_or_create_wallet(user_id, WalletType.STUDENT)
        second = wallet_service.get_or_create_wallet(user_id, WalletType.STUDENT)

        assert first.id == second.id
        assert first.balance_amount == Decimal("0")
        assert first.currency == "NGN"

    def test_roles_get_separate_wallets(self, wallet_service, make_id):
        user_id = make_id()
        student = wallet_service.get_or_create_wallet(user_id, WalletType.STUDENT)
        teacher = wallet_service.get_or_create_wallet(user_id, WalletType.TEACHER)

        assert student.id != teacher.id
        assert teacher.wallet_type == "teacher"

    def test_get_wallet_missing(self, wallet_service, make_id):
        with pytest.raises(NotFoundException) as exc_info:
            wallet_service.get_wallet(make_id(), WalletType.GUARDIAN)
        assert exc_info.value.code == "WALLET_NOT_FOUND"


class TestStudentOperations:
    def test_add_funds_writes_one_credit(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT)

        entry = wallet_service.add_funds(wallet, "2500", description="Top-up")

        assert wallet.balance_amount == Decimal("2500")
        assert entry.transaction_type == TransactionType.CREDIT.value
        assert entry.direction == TransactionDirection.CREDIT.value
        assert Decimal(entry.signed_amount) == Decimal("2500")
        assert Decimal(entry.balance_after) == Decimal("2500")
        _assert_balanced(wallet_service, wallet)

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_add_funds_rejects_non_positive(self, wallet_service, funded_wallet, amount):
        wallet = funded_wallet(WalletType.STUDENT)
        with pytest.raises(ValidationException):
            wallet_service.add_funds(wallet, amount)

    def test_deduct_funds_tracks_total_spent(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "1000")

        entry = wallet_service.deduct_funds(wallet, "400", description="Lesson")

        assert wallet.balance_amount == Decimal("600")
        assert Decimal(wallet.total_spent) == Decimal("400")
        assert Decimal(entry.signed_amount) == Decimal("-400")
        _assert_balanced(wallet_service, wallet)

    def test_deduct_more_than_balance_fails_without_clamping(
        self, wallet_service, funded_wallet
    ):
        wallet = funded_wallet(WalletType.STUDENT, "300")

        with pytest.raises(InsufficientBalanceException) as exc_info:
            wallet_service.deduct_funds(wallet, "300.01")

        assert exc_info.value.code == "INSUFFICIENT_BALANCE"
        assert wallet.balance_amount == Decimal("300")
        assert wallet_service.transaction_repository.count_for_wallet(
            wallet.id, TransactionType.DEBIT
        ) == 0
        _assert_balanced(wallet_service, wallet)

    def test_deduct_rejects_credit_type(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "300")
        with pytest.raises(ValidationException):
            wallet_service.deduct_funds(wallet, "10", transaction_type=TransactionType.REFUND)

    @pytest.mark.parametrize(
        "transaction_type",
        [
            TransactionType.PAYOUT_HOLD,
            TransactionType.FAMILY_TRANSFER,
            TransactionType.SUBSCRIPTION_PAYMENT,
        ],
    )
    def test_deduct_rejects_workflow_debits(self, wallet_service, funded_wallet, transaction_type):
        wallet = funded_wallet(WalletType.TEACHER, "1000")

        with pytest.raises(ValidationException):
            wallet_service.deduct_funds(wallet, "400", transaction_type=transaction_type)

        assert wallet.balance_amount == Decimal("1000")
        assert Decimal(wallet.pending_payouts) == Decimal("0")

    def test_deduct_accepts_fee(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "300")

        entry = wallet_service.deduct_funds(wallet, "20", transaction_type=TransactionType.FEE)

        assert entry.transaction_type == TransactionType.FEE.value
        assert wallet.balance_amount == Decimal("280")

    def test_add_refund(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "100")

        entry = wallet_service.add_refund(wallet, "50", description="Cancelled lesson")

        assert entry.transaction_type == TransactionType.REFUND.value
        assert wallet.balance_amount == Decimal("150")
        assert Decimal(wallet.total_refunded) == Decimal("50")
        _assert_balanced(wallet_service, wallet)


class TestAdjustments:
    def test_debit_adjustment(self, wallet_service, funded_wallet, make_id):
        wallet = funded_wallet(WalletType.STUDENT, "1000")
        admin_id = make_id()

        entry = wallet_service.adjust_balance(
            wallet, "250", TransactionDirection.DEBIT, "Duplicate top-up", admin_id=admin_id
        )

        assert entry.transaction_type == TransactionType.ADJUSTMENT.value
        assert entry.created_by_id == admin_id
        assert wallet.balance_amount == Decimal("750")
        _assert_balanced(wallet_service, wallet)

    def test_adjustment_requires_reason(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "1000")
        with pytest.raises(ValidationException):
            wallet_service.adjust_balance(wallet, "10", TransactionDirection.CREDIT, "  ")

    def test_settlement_direction_not_allowed(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "1000")
        with pytest.raises(ValidationException):
            wallet_service.adjust_balance(wallet, "10", TransactionDirection.SETTLEMENT, "Fix")

    def test_debit_adjustment_cannot_go_negative(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "10")
        with pytest.raises(InsufficientBalanceException):
            wallet_service.adjust_balance(wallet, "11", TransactionDirection.DEBIT, "Fix")


class TestTeacherEarnings:
    def test_add_earnings_syncs_summary(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.TEACHER)

        wallet_service.add_earnings(wallet, "1200", description="Session")

        summary = wallet_service.earning_repository.get_for_teacher(wallet.user_id)
        assert summary is not None
        assert Decimal(summary.wallet_balance) == Decimal("1200")
        assert Decimal(summary.total_earned) == Decimal("1200")
        assert Decimal(summary.pending_payouts) == Decimal("0")

    def test_add_earnings_requires_teacher_wallet(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT)
        with pytest.raises(ValidationException):
            wallet_service.add_earnings(wallet, "100")


class TestGuardianTransfers:
    def test_fund_child_wallet(self, wallet_service, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        result = wallet_service.fund_child_wallet(guardian, child_id, "2000")

        child = wallet_service.get_wallet(child_id, WalletType.STUDENT)
        assert result["guardian_balance"] == Decimal("3000")
        assert result["child_balance"] == Decimal("2000")
        assert child.balance_amount == Decimal("2000")
        assert Decimal(guardian.total_spent_on_children) == Decimal("2000")
        assert wallet_service.transaction_repository.count_for_wallet(
            guardian.id, TransactionType.FAMILY_TRANSFER
        ) == 1
        guardian_entry = result["guardian_transaction"]
        assert guardian_entry.counterparty_wallet_id == child.id
        assert result["child_transaction"].counterparty_wallet_id == guardian.id
        _assert_balanced(wallet_service, guardian, child)

    def test_unlinked_child_is_forbidden(self, wallet_service, funded_wallet, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")

        with pytest.raises(ChildNotOwnedException) as exc_info:
            wallet_service.fund_child_wallet(guardian, make_id(), "100")

        assert exc_info.value.code == "CHILD_NOT_OWNED"
        assert guardian.balance_amount == Decimal("5000")

    def test_insufficient_guardian_balance(
        self, wallet_service, funded_wallet, link_child, make_id
    ):
        guardian = funded_wallet(WalletType.GUARDIAN, "100")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        with pytest.raises(InsufficientBalanceException):
            wallet_service.fund_child_wallet(guardian, child_id, "150")

        assert guardian.balance_amount == Decimal("100")
        assert wallet_service.wallet_repository.get_for_user(child_id, WalletType.STUDENT) is None

    def test_allowance_caps_transfers_per_period(
        self, wallet_service, funded_wallet, link_child, make_id
    ):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)
        wallet_service.set_child_allowance(guardian, child_id, "1000", AllowancePeriod.WEEKLY)

        wallet_service.fund_child_wallet(guardian, child_id, "600")
        with pytest.raises(AllowanceExceededException) as exc_info:
            wallet_service.fund_child_wallet(guardian, child_id, "500")

        assert exc_info.value.code == "ALLOWANCE_EXCEEDED"
        assert guardian.balance_amount == Decimal("4400")
        allowance = guardian.get_allowance(child_id)
        assert to_money(allowance["spent_this_period"]) == Decimal("600")

    def test_allowance_rolls_over_in_a_new_period(
        self, wallet_service, funded_wallet, link_child, make_id
    ):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)
        first_week = datetime(2026, 10, 20, tzinfo=timezone.utc)
        next_week = datetime(2026, 10, 27, tzinfo=timezone.utc)
        wallet_service.set_child_allowance(
            guardian, child_id, "1000", AllowancePeriod.WEEKLY, now=first_week
        )

        wallet_service.fund_child_wallet(guardian, child_id, "900", now=first_week)
        wallet_service.fund_child_wallet(guardian, child_id, "900", now=next_week)

        allowance = guardian.get_allowance(child_id)
        assert allowance["period_start"] == "2026-10-26"
        assert to_money(allowance["spent_this_period"]) == Decimal("900")

    def test_set_allowance_resets_spent(self, wallet_service, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        result = wallet_service.set_child_allowance(
            guardian, child_id, "2500", AllowancePeriod.MONTHLY
        )

        assert result["amount"] == "2500.00"
        assert result["spent_this_period"] == "0.00"
        assert result["period"] == "monthly"

    def test_pay_child_subscription(self, wallet_service, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "3000")
        child_id = make_id()
        link_child(guardian.user_id, child_id)

        entry = wallet_service.pay_child_subscription(guardian, child_id, "1200", plan="monthly")

        assert entry.transaction_type == TransactionType.SUBSCRIPTION_PAYMENT.value
        assert entry.metadata_json["plan"] == "monthly"
        assert guardian.balance_amount == Decimal("1800")
        _assert_balanced(wallet_service, guardian)

    def test_family_summary(self, wallet_service, funded_wallet, link_child, make_id):
        guardian = funded_wallet(WalletType.GUARDIAN, "5000")
        funded_child, empty_child = make_id(), make_id()
        link_child(guardian.user_id, funded_child)
        link_child(guardian.user_id, empty_child)
        wallet_service.fund_child_wallet(guardian, funded_child, "2000")

        summary = wallet_service.get_family_summary(guardian.user_id)

        assert summary["guardian_balance"] == Decimal("3000")
        assert summary["family_total"] == Decimal("5000")
        balances = {c["child_id"]: c["balance"] for c in summary["children"]}
        assert balances == {funded_child: Decimal("2000"), empty_child: Decimal("0")}


class TestReconcile:
    def test_mixed_sequence_stays_balanced(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "1000")
        wallet_service.deduct_funds(wallet, "250")
        wallet_service.add_refund(wallet, "100")
        wallet_service.adjust_balance(wallet, "50", TransactionDirection.CREDIT, "Goodwill")

        result = wallet_service.reconcile(wallet)

        assert result["balance"] == Decimal("900.00")
        assert result["ledger_sum"] == Decimal("900.00")
        assert result["difference"] == Decimal("0")
        assert result["balanced"] is True

    def test_list_transactions_paginates_newest_first(self, wallet_service, funded_wallet):
        wallet = funded_wallet(WalletType.STUDENT, "100")
        wallet_service.add_funds(wallet, "200")
        wallet_service.deduct_funds(wallet, "50")

        items, total = wallet_service.list_transactions(wallet, page=1, per_page=2)
        debits, debit_total = wallet_service.list_transactions(
            wallet, transaction_type=TransactionType.DEBIT
        )

        assert total == 3
        assert len(items) == 2
        assert debit_total == 1
        assert debits[0].transaction_type == "debit"

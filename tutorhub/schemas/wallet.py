"""Wallet and ledger schemas."""

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, Field, field_validator

from ..models.transaction import DIRECT_DEBIT_TYPES, TransactionType
from ._strict_base import StrictModel, StrictRequestModel
from .base import Money, StandardizedModel


def _positive_amount(value: Any) -> Any:
    if value is not None and value <= 0:
        raise ValueError("Amount must be greater than zero")
    return value


PositiveMoney = Annotated[Money, AfterValidator(_positive_amount)]


class FundWalletRequest(StrictRequestModel):
    amount: PositiveMoney
    description: Optional[str] = Field(None, max_length=500)
    metadata: Optional[Dict[str, Any]] = None


class DeductFundsRequest(StrictRequestModel):
    amount: PositiveMoney
    description: Optional[str] = Field(None, max_length=500)
    transaction_type: TransactionType = TransactionType.DEBIT
    booking_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("transaction_type")
    @classmethod
    def _debit_type(cls, value: TransactionType) -> TransactionType:
        if value not in DIRECT_DEBIT_TYPES:
            raise ValueError(f"{value.value} cannot be posted as a direct debit")
        return value


class RefundRequest(StrictRequestModel):
    amount: PositiveMoney
    description: Optional[str] = Field(None, max_length=500)
    booking_id: Optional[str] = None


class AdjustBalanceRequest(StrictRequestModel):
    """Admin correction. Credits raise the balance, debits lower it."""

    amount: PositiveMoney
    direction: Literal["credit", "debit"]
    reason: str = Field(..., min_length=3, max_length=500)


class FundChildRequest(StrictRequestModel):
    amount: PositiveMoney
    description: Optional[str] = Field(None, max_length=500)


class ChildAllowanceRequest(StrictRequestModel):
    amount: PositiveMoney
    period: Literal["weekly", "monthly"] = "monthly"


class WalletResponse(StandardizedModel):
    id: str
    user_id: str
    wallet_type: str
    currency: str
    balance: Money
    total_refunded: Money
    total_spent: Money
    total_earned: Money
    total_withdrawn: Money
    pending_payouts: Money
    total_spent_on_children: Money
    auto_withdrawal_enabled: bool = False
    auto_withdrawal_threshold: Optional[Money] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TransactionResponse(StandardizedModel):
    id: str
    wallet_id: str
    wallet_type: str
    user_id: str
    transaction_type: str
    direction: str
    amount: Money
    signed_amount: Money
    balance_after: Money
    currency: str
    status: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    counterparty_wallet_id: Optional[str] = None
    payout_request_id: Optional[str] = None
    booking_id: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime


class ReconcileResponse(StrictModel):
    wallet_id: str
    balance: Money
    ledger_sum: Money
    difference: Money
    balanced: bool


class AllowanceResponse(StrictModel):
    amount: Money
    period: str
    spent_this_period: Money
    period_start: date


class FundChildResponse(StrictModel):
    guardian_transaction: TransactionResponse
    child_transaction: TransactionResponse
    guardian_balance: Money
    child_balance: Money


class ChildSummary(StrictModel):
    child_id: str
    wallet_id: Optional[str] = None
    balance: Money
    allowance: Optional[AllowanceResponse] = None


class FamilySummaryResponse(StrictModel):
    guardian_id: str
    guardian_balance: Money
    total_spent_on_children: Money
    children: List[ChildSummary]
    family_total: Money
    currency: str

"""Payout request schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel
from .wallet import PositiveMoney


class PayoutCreateRequest(StrictRequestModel):
    amount: PositiveMoney
    payment_method: str = Field("bank_transfer", min_length=1, max_length=50)
    payment_details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=1000)


class PayoutApproveRequest(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=1000)


class PayoutDeclineRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class PayoutSettingsRequest(StrictRequestModel):
    """Automatic payout opt-in; omit the threshold to follow the platform default."""

    auto_withdrawal_enabled: bool
    auto_withdrawal_threshold: Optional[PositiveMoney] = None
    payment_method: Optional[str] = Field(None, min_length=1, max_length=50)
    payment_details: Optional[Dict[str, Any]] = None


class PayoutResponse(StandardizedModel):
    id: str
    teacher_id: str
    wallet_id: str
    amount: Money
    currency: str
    payment_method: str
    payment_details: Optional[Dict[str, Any]] = None
    status: str
    request_date: datetime
    processed_by_id: Optional[str] = None
    processed_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    is_automatic: bool = False

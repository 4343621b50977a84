# tutorhub/routes/v1/wallets.py
"""
Wallet routes - API v1

Endpoints:
    GET  /{wallet_type}/{user_id} - Wallet balances and totals
    POST /{wallet_type}/{user_id}/fund - Credit a wallet
    POST /{wallet_type}/{user_id}/deduct - Debit a wallet
    POST /{wallet_type}/{user_id}/refund - Refund into a wallet
    POST /{wallet_type}/{user_id}/adjust - Admin balance correction
    GET  /{wallet_type}/{user_id}/transactions - Ledger rows (paginated)
    GET  /{wallet_type}/{user_id}/reconcile - Balance vs ledger check
    POST /guardian/{guardian_id}/children/{child_id}/fund - Guardian to child transfer
    PUT  /guardian/{guardian_id}/children/{child_id}/allowance - Set child allowance
    GET  /guardian/{guardian_id}/family-summary - Guardian and children balances
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...api.dependencies import get_current_user_id, get_wallet_service
from ...core.config import settings
from ...core.exceptions import DomainException, ForbiddenException
from ...models.transaction import TransactionDirection, TransactionType
from ...models.wallet import AllowancePeriod, WalletType
from ...schemas.base_responses import PaginatedResponse, create_paginated_response
from ...schemas.wallet import (
    AdjustBalanceRequest,
    AllowanceResponse,
    ChildAllowanceRequest,
    DeductFundsRequest,
    FamilySummaryResponse,
    FundChildRequest,
    FundChildResponse,
    FundWalletRequest,
    ReconcileResponse,
    RefundRequest,
    TransactionResponse,
    WalletResponse,
)
from ...services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["wallets-v1"])


def _require_self(actor_id: str, guardian_id: str) -> None:
    if actor_id != guardian_id:
        raise ForbiddenException(
            "You can only manage your own guardian wallet", code="WALLET_NOT_OWNED"
        )


@router.get("/{wallet_type}/{user_id}", response_model=WalletResponse)
async def get_wallet(
    wallet_type: WalletType,
    user_id: str,
    wallet_service: WalletService = Depends(get_wallet_service),
) -> WalletResponse:
    try:
        wallet = await asyncio.to_thread(wallet_service.get_wallet, user_id, wallet_type)
        return WalletResponse.model_validate(wallet)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{wallet_type}/{user_id}/fund",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def fund_wallet(
    wallet_type: WalletType,
    user_id: str,
    payload: FundWalletRequest,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> TransactionResponse:
    """Credit a wallet, creating it on first use."""

    def _fund() -> Any:
        wallet = wallet_service.get_or_create_wallet(user_id, wallet_type)
        return wallet_service.add_funds(
            wallet,
            payload.amount,
            description=payload.description,
            metadata=payload.metadata,
            created_by_id=actor_id,
        )

    try:
        entry = await asyncio.to_thread(_fund)
        return TransactionResponse.model_validate(entry)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{wallet_type}/{user_id}/deduct",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"description": "Insufficient balance"}},
)
async def deduct_funds(
    wallet_type: WalletType,
    user_id: str,
    payload: DeductFundsRequest,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> TransactionResponse:
    def _deduct() -> Any:
        wallet = wallet_service.get_wallet(user_id, wallet_type)
        return wallet_service.deduct_funds(
            wallet,
            payload.amount,
            description=payload.description,
            transaction_type=TransactionType(payload.transaction_type),
            metadata=payload.metadata,
            booking_id=payload.booking_id,
            created_by_id=actor_id,
        )

    try:
        entry = await asyncio.to_thread(_deduct)
        return TransactionResponse.model_validate(entry)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{wallet_type}/{user_id}/refund",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def refund_wallet(
    wallet_type: WalletType,
    user_id: str,
    payload: RefundRequest,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> TransactionResponse:
    def _refund() -> Any:
        wallet = wallet_service.get_or_create_wallet(user_id, wallet_type)
        return wallet_service.add_refund(
            wallet,
            payload.amount,
            description=payload.description,
            booking_id=payload.booking_id,
            created_by_id=actor_id,
        )

    try:
        entry = await asyncio.to_thread(_refund)
        return TransactionResponse.model_validate(entry)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{wallet_type}/{user_id}/adjust",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def adjust_balance(
    wallet_type: WalletType,
    user_id: str,
    payload: AdjustBalanceRequest,
    admin_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> TransactionResponse:
    """Admin correction recorded as an ``adjustment`` ledger row."""

    def _adjust() -> Any:
        wallet = wallet_service.get_wallet(user_id, wallet_type)
        return wallet_service.adjust_balance(
            wallet,
            payload.amount,
            TransactionDirection(payload.direction),
            reason=payload.reason,
            admin_id=admin_id,
        )

    try:
        entry = await asyncio.to_thread(_adjust)
        return TransactionResponse.model_validate(entry)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get(
    "/{wallet_type}/{user_id}/transactions",
    response_model=PaginatedResponse[TransactionResponse],
)
async def list_transactions(
    request: Request,
    wallet_type: WalletType,
    user_id: str,
    transaction_type: Optional[TransactionType] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_per_page, ge=1, le=100),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> Dict[str, Any]:
    def _list() -> Any:
        wallet = wallet_service.get_wallet(user_id, wallet_type)
        return wallet_service.list_transactions(
            wallet, transaction_type=transaction_type, page=page, per_page=per_page
        )

    try:
        items, total = await asyncio.to_thread(_list)
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return create_paginated_response(
        [TransactionResponse.model_validate(row) for row in items],
        total,
        page,
        per_page,
        base_path=request.url.path,
        query={
            "transaction_type": transaction_type.value if transaction_type else None,
            "per_page": per_page,
        },
    )


@router.get("/{wallet_type}/{user_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_wallet(
    wallet_type: WalletType,
    user_id: str,
    wallet_service: WalletService = Depends(get_wallet_service),
) -> ReconcileResponse:
    def _reconcile() -> Dict[str, Any]:
        wallet = wallet_service.get_wallet(user_id, wallet_type)
        return wallet_service.reconcile(wallet)

    try:
        result = await asyncio.to_thread(_reconcile)
        return ReconcileResponse.model_validate(result)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


# Guardian family operations


@router.post(
    "/guardian/{guardian_id}/children/{child_id}/fund",
    response_model=FundChildResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Student is not linked to this guardian"},
        422: {"description": "Insufficient balance or allowance exceeded"},
    },
)
async def fund_child_wallet(
    guardian_id: str,
    child_id: str,
    payload: FundChildRequest,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> FundChildResponse:
    """Move money from the guardian wallet to a linked student's wallet."""

    def _transfer() -> Dict[str, Any]:
        _require_self(actor_id, guardian_id)
        guardian_wallet = wallet_service.get_wallet(guardian_id, WalletType.GUARDIAN)
        return wallet_service.fund_child_wallet(
            guardian_wallet, child_id, payload.amount, description=payload.description
        )

    try:
        result = await asyncio.to_thread(_transfer)
        return FundChildResponse.model_validate(result, from_attributes=True)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.put(
    "/guardian/{guardian_id}/children/{child_id}/allowance",
    response_model=AllowanceResponse,
)
async def set_child_allowance(
    guardian_id: str,
    child_id: str,
    payload: ChildAllowanceRequest,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> AllowanceResponse:
    def _set() -> Dict[str, Any]:
        _require_self(actor_id, guardian_id)
        guardian_wallet = wallet_service.get_wallet(guardian_id, WalletType.GUARDIAN)
        return wallet_service.set_child_allowance(
            guardian_wallet, child_id, payload.amount, AllowancePeriod(payload.period)
        )

    try:
        allowance = await asyncio.to_thread(_set)
        return AllowanceResponse.model_validate(allowance)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/guardian/{guardian_id}/family-summary", response_model=FamilySummaryResponse)
async def get_family_summary(
    guardian_id: str,
    actor_id: str = Depends(get_current_user_id),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> FamilySummaryResponse:
    def _summary() -> Dict[str, Any]:
        _require_self(actor_id, guardian_id)
        return wallet_service.get_family_summary(guardian_id)

    try:
        summary = await asyncio.to_thread(_summary)
        return FamilySummaryResponse.model_validate(summary)
    except DomainException as exc:
        raise exc.to_http_exception() from exc

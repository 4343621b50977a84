# tutorhub/routes/v1/payouts.py
"""
Payout routes - API v1

Teachers request payouts from their wallet; admins approve, decline and
mark them paid. The acting user comes from ``X-User-Id``.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...api.dependencies import get_current_user_id, get_payout_service
from ...core.config import settings
from ...core.exceptions import DomainException
from ...models.payout import PayoutStatus
from ...schemas.base_responses import PaginatedResponse, create_paginated_response
from ...schemas.payout import (
    PayoutApproveRequest,
    PayoutCreateRequest,
    PayoutDeclineRequest,
    PayoutResponse,
    PayoutSettingsRequest,
)
from ...schemas.wallet import WalletResponse
from ...services.payout_service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payouts-v1"])


@router.post(
    "",
    response_model=PayoutResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Amount below the minimum payout"},
        422: {"description": "Insufficient balance or too many pending payouts"},
    },
)
async def request_payout(
    payload: PayoutCreateRequest,
    teacher_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    try:
        payout = await asyncio.to_thread(
            payout_service.request_payout,
            teacher_id,
            payload.amount,
            payment_method=payload.payment_method,
            payment_details=payload.payment_details,
            notes=payload.notes,
        )
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("", response_model=PaginatedResponse[PayoutResponse])
async def list_payouts(
    request: Request,
    teacher_id: Optional[str] = None,
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_per_page, ge=1, le=100),
    payout_service: PayoutService = Depends(get_payout_service),
) -> Dict[str, Any]:
    try:
        items, total = await asyncio.to_thread(
            payout_service.list_payouts,
            teacher_id=teacher_id,
            status=status_filter,
            page=page,
            per_page=per_page,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return create_paginated_response(
        [PayoutResponse.model_validate(p) for p in items],
        total,
        page,
        per_page,
        base_path=request.url.path,
        query={
            "teacher_id": teacher_id,
            "status": status_filter.value if status_filter else None,
            "per_page": per_page,
        },
    )


@router.put(
    "/settings",
    response_model=WalletResponse,
    responses={
        400: {"description": "Threshold below the minimum payout"},
        404: {"description": "Teacher has no wallet"},
    },
)
async def update_payout_settings(
    payload: PayoutSettingsRequest,
    teacher_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> WalletResponse:
    """Opt in or out of automatic payouts and set where payouts are sent."""
    try:
        wallet = await asyncio.to_thread(
            payout_service.update_payout_settings,
            teacher_id,
            auto_withdrawal_enabled=payload.auto_withdrawal_enabled,
            auto_withdrawal_threshold=payload.auto_withdrawal_threshold,
            payment_method=payload.payment_method,
            payment_details=payload.payment_details,
        )
        return WalletResponse.model_validate(wallet)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/{payout_id}", response_model=PayoutResponse)

async def get_payout(
    payout_id: str,
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    try:
        payout = await asyncio.to_thread(payout_service.get_payout, payout_id)
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{payout_id}/approve",
    response_model=PayoutResponse,
    responses={409: {"description": "Payout is not pending"}},
)
async def approve_payout(
    payout_id: str,
    payload: Optional[PayoutApproveRequest] = None,
    admin_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    try:
        payout = await asyncio.to_thread(
            payout_service.approve,
            payout_id,
            admin_id,
            notes=payload.notes if payload else None,
        )
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{payout_id}/decline",
    response_model=PayoutResponse,
    responses={409: {"description": "Payout is not pending"}},
)
async def decline_payout(
    payout_id: str,
    payload: Optional[PayoutDeclineRequest] = None,
    admin_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    """Decline a pending payout and return the held amount to the wallet."""
    try:
        payout = await asyncio.to_thread(
            payout_service.decline,
            payout_id,
            admin_id,
            reason=payload.reason if payload else None,
        )
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post("/{payout_id}/cancel", response_model=PayoutResponse)
async def cancel_payout(
    payout_id: str,
    teacher_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    try:
        payout = await asyncio.to_thread(payout_service.cancel, payout_id, teacher_id)
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{payout_id}/mark-paid",
    response_model=PayoutResponse,
    responses={409: {"description": "Payout is not approved"}},
)
async def mark_payout_paid(
    payout_id: str,
    admin_id: str = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    try:
        payout = await asyncio.to_thread(payout_service.mark_as_paid, payout_id, admin_id)
        return PayoutResponse.model_validate(payout)
    except DomainException as exc:
        raise exc.to_http_exception() from exc

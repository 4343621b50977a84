# tutorhub/routes/v1/booking_modifications.py
"""
Booking modification routes - API v1

Students request a reschedule (same teacher, new slot) or a rebook (new
teacher or subject). The responding teacher approves or rejects; the
student can cancel while the request is pending.
"""

import asyncio
import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...api.dependencies import get_booking_modification_service, get_current_user_id
from ...core.config import settings
from ...core.exceptions import DomainException
from ...models.booking_modification import ModificationStatus
from ...schemas.base_responses import PaginatedResponse, create_paginated_response
from ...schemas.booking_modification import (
    ExistingModificationResponse,
    ModificationRespondRequest,
    ModificationResponse,
    RebookRequestCreate,
    RescheduleRequestCreate,
)
from ...services.booking_modification_service import BookingModificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["booking-modifications-v1"])


@router.post(
    "/reschedule",
    response_model=ModificationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Booking belongs to another student"},
        409: {"description": "Slot taken or a request is already open"},
    },
)
async def create_reschedule_request(
    payload: RescheduleRequestCreate,
    student_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ModificationResponse:
    try:
        modification = await asyncio.to_thread(
            modification_service.create_reschedule_request,
            payload.booking_id,
            student_id,
            payload.new_date,
            payload.new_start_time,
            new_duration_minutes=payload.new_duration_minutes,
            reason=payload.reason,
        )
        return ModificationResponse.model_validate(modification)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/rebook",
    response_model=ModificationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Booking belongs to another student"},
        409: {"description": "Slot taken or a request is already open"},
    },
)
async def create_rebook_request(
    payload: RebookRequestCreate,
    student_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ModificationResponse:
    try:
        modification = await asyncio.to_thread(
            modification_service.create_rebook_request,
            payload.booking_id,
            student_id,
            payload.new_teacher_id,
            payload.new_subject_id,
            payload.new_date,
            payload.new_start_time,
            new_duration_minutes=payload.new_duration_minutes,
            new_price=payload.new_price,
            reason=payload.reason,
        )
        return ModificationResponse.model_validate(modification)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/existing", response_model=ExistingModificationResponse)
async def check_existing_modification(
    booking_id: str = Query(...),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ExistingModificationResponse:
    """The booking's open request, if any. A stale pending request is expired first."""
    try:
        modification = await asyncio.to_thread(
            modification_service.check_existing_modification, booking_id
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    if modification is None:
        return ExistingModificationResponse(has_active_request=False)
    return ExistingModificationResponse(
        has_active_request=True,
        modification=ModificationResponse.model_validate(modification),
    )


@router.get("", response_model=PaginatedResponse[ModificationResponse])
async def list_modifications(
    request: Request,
    role: Literal["student", "teacher"] = "student",
    status_filter: Optional[ModificationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_per_page, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> Dict[str, Any]:
    """Requests made by (role=student) or awaiting (role=teacher) the acting user."""
    lister = (
        modification_service.list_for_teacher
        if role == "teacher"
        else modification_service.list_for_student
    )
    try:
        items, total = await asyncio.to_thread(
            lister, user_id, status=status_filter, page=page, per_page=per_page
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return create_paginated_response(
        [ModificationResponse.model_validate(m) for m in items],
        total,
        page,
        per_page,
        base_path=request.url.path,
        query={
            "role": role,
            "status": status_filter.value if status_filter else None,
            "per_page": per_page,
        },
    )


@router.post(
    "/{modification_id}/approve",
    response_model=ModificationResponse,
    responses={
        403: {"description": "Not the responding teacher"},
        409: {"description": "Request is no longer pending or the slot was taken"},
    },
)
async def approve_modification(
    modification_id: str,
    payload: Optional[ModificationRespondRequest] = None,
    teacher_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ModificationResponse:
    try:
        modification = await asyncio.to_thread(
            modification_service.approve_modification,
            modification_id,
            teacher_id,
            notes=payload.notes if payload else None,
        )
        return ModificationResponse.model_validate(modification)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post("/{modification_id}/reject", response_model=ModificationResponse)
async def reject_modification(
    modification_id: str,
    payload: Optional[ModificationRespondRequest] = None,
    teacher_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ModificationResponse:
    try:
        modification = await asyncio.to_thread(
            modification_service.reject_modification,
            modification_id,
            teacher_id,
            notes=payload.notes if payload else None,
        )
        return ModificationResponse.model_validate(modification)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post("/{modification_id}/cancel", response_model=ModificationResponse)
async def cancel_modification(
    modification_id: str,
    payload: Optional[ModificationRespondRequest] = None,
    student_id: str = Depends(get_current_user_id),
    modification_service: BookingModificationService = Depends(get_booking_modification_service),
) -> ModificationResponse:
    try:
        modification = await asyncio.to_thread(
            modification_service.cancel_modification,
            modification_id,
            student_id,
            notes=payload.notes if payload else None,
        )
        return ModificationResponse.model_validate(modification)
    except DomainException as exc:
        raise exc.to_http_exception() from exc

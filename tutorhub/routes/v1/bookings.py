# tutorhub/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET  /stats - Booking counts by status
    GET  / - List bookings with filters and pagination
    POST / - Create a booking
    POST /bulk-status - Apply one status to many bookings
    GET  /{booking_id} - Booking details with history
    PATCH /{booking_id}/status - Change booking status
    POST /{booking_id}/reschedule - Move a booking (staff)
    GET  /{booking_id}/available-slots - Free slots for moving this booking
    GET  /{booking_id}/available-days - Upcoming days with free slots
"""

import asyncio
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...api.dependencies import get_booking_service, get_current_user_id
from ...core.config import settings
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...schemas.base_responses import PaginatedResponse, create_paginated_response
from ...schemas.booking import (
    AvailableDaysResponse,
    AvailableSlotsResponse,
    BookingCreate,
    BookingDetailResponse,
    BookingHistoryResponse,
    BookingRescheduleRequest,
    BookingResponse,
    BookingStatsResponse,
    BookingStatusUpdate,
    BulkStatusUpdate,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


# Static routes first


@router.get("/stats", response_model=BookingStatsResponse)
async def get_booking_stats(
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingStatsResponse:
    try:
        stats = await asyncio.to_thread(booking_service.get_stats)
        return BookingStatsResponse.model_validate(stats)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    request: Request,
    student_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_per_page, ge=1, le=100),
    booking_service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """
    List bookings with optional filters.

    Parameters:
    - student_id / teacher_id: restrict to one participant
    - status: one booking status
    - date_from / date_to: inclusive date range
    - page / per_page: pagination
    """
    try:
        items, total = await asyncio.to_thread(
            booking_service.list_bookings,
            student_id=student_id,
            teacher_id=teacher_id,
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    return create_paginated_response(
        [BookingResponse.model_validate(b) for b in items],
        total,
        page,
        per_page,
        base_path=request.url.path,
        query={
            "student_id": student_id,
            "teacher_id": teacher_id,
            "status": status_filter.value if status_filter else None,
            "date_from": date_from.isoformat() if date_from else None,
            "date_to": date_to.isoformat() if date_to else None,
            "per_page": per_page,
        },
    )


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Time slot not available"},
        422: {"description": "Teacher unavailable or insufficient balance"},
    },
)
async def create_booking(
    payload: BookingCreate,
    actor_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            student_id=payload.student_id or actor_id,
            teacher_id=payload.teacher_id,
            subject_id=payload.subject_id,
            booking_date=payload.booking_date,
            start_time=payload.start_time,
            duration_minutes=payload.duration_minutes,
            price=payload.price,
            notes=payload.notes,
            created_by_id=actor_id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post("/bulk-status", response_model=List[BookingResponse])
async def bulk_update_status(
    payload: BulkStatusUpdate,
    actor_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """All-or-nothing status change for a batch of bookings."""
    try:
        bookings = await asyncio.to_thread(
            booking_service.bulk_update_status,
            payload.booking_ids,
            BookingStatus(payload.status),
            actor_id,
            notes=payload.notes,
        )
        return [BookingResponse.model_validate(b) for b in bookings]
    except DomainException as exc:
        raise exc.to_http_exception() from exc


# Dynamic routes


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingDetailResponse:
    def _load() -> BookingDetailResponse:
        booking = booking_service.get_booking(booking_id)
        detail = BookingDetailResponse.model_validate(booking)
        detail.history = [
            BookingHistoryResponse.model_validate(entry)
            for entry in booking_service.get_booking_history(booking_id)
        ]
        return detail

    try:
        return await asyncio.to_thread(_load)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    responses={409: {"description": "Transition not allowed"}},
)
async def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    actor_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status,
            booking_id,
            BookingStatus(payload.status),
            actor_id,
            notes=payload.notes,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingResponse,
    responses={409: {"description": "New slot not available"}},
)
async def reschedule_booking(
    booking_id: str,
    payload: BookingRescheduleRequest,
    actor_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule,
            booking_id,
            payload.new_date,
            payload.new_start_time,
            actor_id,
            reason=payload.reason,
            new_duration_minutes=payload.new_duration_minutes,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/{booking_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_booking_available_slots(
    booking_id: str,
    target_date: date = Query(..., alias="date"),
    booking_service: BookingService = Depends(get_booking_service),
) -> AvailableSlotsResponse:
    """Free slots on ``date`` for this booking's teacher and duration, ignoring the booking itself."""

    def _slots() -> Dict[str, Any]:
        booking = booking_service.get_booking(booking_id)
        slots = booking_service.conflict_checker.get_available_slots(
            booking.teacher_id,
            target_date,
            booking.duration_minutes,
            exclude_booking_id=booking.id,
        )
        return {
            "teacher_id": booking.teacher_id,
            "date": target_date,
            "duration_minutes": booking.duration_minutes,
            "slots": slots,
        }

    try:
        return AvailableSlotsResponse.model_validate(await asyncio.to_thread(_slots))
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/{booking_id}/available-days", response_model=AvailableDaysResponse)
async def get_booking_available_days(
    booking_id: str,
    days_ahead: Optional[int] = Query(None, ge=1, le=90),
    booking_service: BookingService = Depends(get_booking_service),
) -> AvailableDaysResponse:
    def _days() -> Dict[str, Any]:
        booking = booking_service.get_booking(booking_id)
        days = booking_service.conflict_checker.get_available_days(
            booking.teacher_id,
            booking.duration_minutes,
            days_ahead=days_ahead,
            exclude_booking_id=booking.id,
        )
        return {
            "teacher_id": booking.teacher_id,
            "duration_minutes": booking.duration_minutes,
            "days": days,
        }

    try:
        return AvailableDaysResponse.model_validate(await asyncio.to_thread(_days))
    except DomainException as exc:
        raise exc.to_http_exception() from exc

# tutorhub/routes/v1/teachers.py
"""
Teacher schedule routes - API v1

Endpoints:
    GET /{teacher_id}/available-slots - Free start times on a date
    GET /{teacher_id}/available-days - Upcoming days with free slots
    GET /{teacher_id}/availability - Weekly availability windows
    PUT /{teacher_id}/availability/{day_of_week} - Set one weekday window
    PUT /{teacher_id}/schedule-settings - Holiday mode and active flag
"""

import asyncio
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_conflict_checker, get_current_user_id
from ...core.exceptions import DomainException, ForbiddenException
from ...core.ulid_helper import is_valid_ulid
from ...schemas.base_responses import SuccessResponse
from ...schemas.booking import (
    AvailableDaysResponse,
    AvailableSlotsResponse,
    DayAvailabilityRequest,
    DayAvailabilityResponse,
    ScheduleSettingsRequest,
)
from ...services.conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["teachers-v1"])


def _validate_teacher_id(teacher_id: str) -> None:
    if not is_valid_ulid(teacher_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid teacher ID")


def _require_owner(actor_id: str, teacher_id: str) -> None:
    if actor_id != teacher_id:
        raise ForbiddenException(
            "You can only change your own schedule", code="SCHEDULE_NOT_OWNED"
        )


@router.get("/{teacher_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    teacher_id: str,
    target_date: date = Query(..., alias="date"),
    duration: int = Query(60, ge=15, le=720),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailableSlotsResponse:
    """
    Bookable start times for ``duration`` minutes on ``date``.

    Returns an empty list when the teacher is on holiday, inactive or has
    no window on that weekday.
    """
    _validate_teacher_id(teacher_id)
    try:
        slots = await asyncio.to_thread(
            conflict_checker.get_available_slots, teacher_id, target_date, duration
        )
        return AvailableSlotsResponse(
            teacher_id=teacher_id,
            date=target_date,
            duration_minutes=duration,
            slots=slots,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/{teacher_id}/available-days", response_model=AvailableDaysResponse)
async def get_available_days(
    teacher_id: str,
    duration: int = Query(60, ge=15, le=720),
    days_ahead: Optional[int] = Query(None, ge=1, le=90),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailableDaysResponse:
    _validate_teacher_id(teacher_id)
    try:
        days = await asyncio.to_thread(
            conflict_checker.get_available_days, teacher_id, duration, days_ahead=days_ahead
        )
        return AvailableDaysResponse.model_validate(
            {"teacher_id": teacher_id, "duration_minutes": duration, "days": days}
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.get("/{teacher_id}/availability", response_model=List[DayAvailabilityResponse])
async def get_weekly_availability(
    teacher_id: str,
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> List[Dict[str, Any]]:
    _validate_teacher_id(teacher_id)
    try:
        rows = await asyncio.to_thread(conflict_checker.get_weekly_availability, teacher_id)
        return [row.to_dict() for row in rows]
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.put(
    "/{teacher_id}/availability/{day_of_week}",
    response_model=DayAvailabilityResponse,
)
async def set_day_availability(
    teacher_id: str,
    payload: DayAvailabilityRequest,
    day_of_week: int = Path(..., ge=0, le=6),
    actor_id: str = Depends(get_current_user_id),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> Dict[str, Any]:
    def _set() -> Dict[str, Any]:
        _require_owner(actor_id, teacher_id)
        row = conflict_checker.set_day_availability(
            teacher_id,
            day_of_week,
            payload.from_time,
            payload.to_time,
            enabled=payload.enabled,
        )
        return row.to_dict()

    try:
        return await asyncio.to_thread(_set)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.put("/{teacher_id}/schedule-settings", response_model=SuccessResponse)
async def set_schedule_settings(
    teacher_id: str,
    payload: ScheduleSettingsRequest,
    actor_id: str = Depends(get_current_user_id),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> SuccessResponse:
    def _set() -> Any:
        _require_owner(actor_id, teacher_id)
        return conflict_checker.set_schedule_settings(
            teacher_id, holiday_mode=payload.holiday_mode, is_active=payload.is_active
        )

    try:
        row = await asyncio.to_thread(_set)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return SuccessResponse(
        message="Schedule settings updated",
        data={"holiday_mode": bool(row.holiday_mode), "is_active": bool(row.is_active)},
    )

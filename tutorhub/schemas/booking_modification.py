"""Schemas for reschedule and rebook requests."""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel
from .booking import _ensure_date_only, parse_hhmm


class RescheduleRequestCreate(StrictRequestModel):
    booking_id: str
    new_date: date
    new_start_time: time
    new_duration_minutes: Optional[int] = Field(None, ge=15, le=720)
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("new_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "new_date")

    @field_validator("new_start_time", mode="before")
    @classmethod
    def _parse_start(cls, v: object) -> object:
        return parse_hhmm(v)


class RebookRequestCreate(RescheduleRequestCreate):
    new_teacher_id: str
    new_subject_id: str
    new_price: Optional[Money] = None

    @field_validator("new_price")
    @classmethod
    def _non_negative_price(cls, v: Optional[Money]) -> Optional[Money]:
        if v is not None and v < 0:
            raise ValueError("new_price cannot be negative")
        return v


class ModificationRespondRequest(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=1000)


class ModificationResponse(StandardizedModel):
    id: str
    booking_id: str
    student_id: str
    teacher_id: str
    type: str
    status: str
    original_booking_date: date
    original_start_time: time
    original_end_time: time
    original_duration_minutes: int
    new_booking_date: date
    new_start_time: time
    new_end_time: time
    new_duration_minutes: int
    new_teacher_id: Optional[str] = None
    new_subject_id: Optional[str] = None
    new_price: Optional[Money] = None
    price_difference: Money
    reason: Optional[str] = None
    teacher_notes: Optional[str] = None
    requested_at: datetime
    responded_at: Optional[datetime] = None
    expires_at: datetime
    completed_at: Optional[datetime] = None
    resulting_booking_id: Optional[str] = None
    modification_history: List[Dict[str, Any]] = Field(default_factory=list)


class ExistingModificationResponse(StandardizedModel):
    has_active_request: bool
    modification: Optional[ModificationResponse] = None

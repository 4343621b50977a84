# tutorhub/schemas/booking.py
"""
Booking schemas for TutorHub.

Bookings carry their own date and time range. The end time is always
derived from ``start_time + duration_minutes`` by the service.
"""

from datetime import date, datetime, time
import re
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..models.booking import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel
from .base import Money, StandardizedModel

DateType = date

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def parse_hhmm(value: object) -> object:
    """Accept ``HH:MM`` (or ``HH:MM:SS``) strings for time fields."""
    if isinstance(value, str):
        parts = value.strip().split(":")
        try:
            if len(parts) not in (2, 3):
                raise ValueError(value)
            return time(*(int(p) for p in parts))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return value


class BookingCreate(StrictRequestModel):
    """Create a booking. ``student_id`` defaults to the acting user."""

    student_id: Optional[str] = Field(None, description="Student to book for")
    teacher_id: str = Field(..., description="Teacher to book")
    subject_id: str = Field(..., description="Subject being taught")
    booking_date: date
    start_time: time
    duration_minutes: int = Field(..., ge=15, le=720)
    price: Optional[Money] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "booking_date")

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start(cls, v: object) -> object:
        return parse_hhmm(v)

    @field_validator("price")
    @classmethod
    def _non_negative_price(cls, v: Optional[Money]) -> Optional[Money]:
        if v is not None and v < 0:
            raise ValueError("price cannot be negative")
        return v


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus
    notes: Optional[str] = Field(None, max_length=1000)


class BulkStatusUpdate(StrictRequestModel):
    booking_ids: List[str] = Field(..., min_length=1, max_length=100)
    status: BookingStatus
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_ids")
    @classmethod
    def _unique_ids(cls, v: List[str]) -> List[str]:
        # Keep first-seen order
        return list(dict.fromkeys(v))


class BookingRescheduleRequest(StrictRequestModel):
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


class BookingResponse(StandardizedModel):
    id: str
    student_id: str
    teacher_id: str
    subject_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: str
    price: Optional[Money] = None
    currency: Optional[str] = None
    is_paid: bool = False
    notes: Optional[str] = None
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rebooked_from_id: Optional[str] = None
    created_at: datetime


class BookingHistoryResponse(StandardizedModel):
    id: str
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    performed_by_id: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    created_at: datetime


class BookingDetailResponse(BookingResponse):
    history: List[BookingHistoryResponse] = Field(default_factory=list)


class TimeSlot(StrictModel):
    start_time: str
    end_time: str


class AvailableSlotsResponse(StrictModel):
    teacher_id: str
    date: DateType
    duration_minutes: int
    slots: List[TimeSlot]


class AvailableDay(StrictModel):
    date: DateType
    day: str
    slot_count: int


class AvailableDaysResponse(StrictModel):
    teacher_id: str
    duration_minutes: int
    days: List[AvailableDay]


class BookingStatsResponse(StrictModel):
    total: int
    by_status: Dict[str, int]
    today: int


class DayAvailabilityRequest(StrictRequestModel):
    from_time: time
    to_time: time
    enabled: bool = True

    @field_validator("from_time", "to_time", mode="before")
    @classmethod
    def _parse_times(cls, v: object) -> object:
        return parse_hhmm(v)


class ScheduleSettingsRequest(StrictRequestModel):
    holiday_mode: Optional[bool] = None
    is_active: Optional[bool] = None


class DayAvailabilityResponse(StandardizedModel):
    day: str
    day_of_week: int
    enabled: bool
    from_time: time
    to_time: time

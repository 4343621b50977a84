# tutorhub/services/conflict_checker.py
"""
Conflict Checker Service for TutorHub

Handles booking conflict detection and slot generation including:
- Generating bookable start times inside a teacher's weekly window
- Checking if time ranges conflict with blocking bookings
- Listing the upcoming days that still have free slots

Overlap uses half-open intervals: ``[start, end)`` ranges conflict when
``a.start < b.end and a.end > b.start``, so back-to-back sessions do not.
"""

from datetime import date, time, timedelta
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import BookingConflictException, BusinessRuleException, ValidationException
from ..core.time_utils import add_minutes, end_of_day_overflow, utc_now
from ..models.availability import DAY_NAMES, TeacherAvailability, TeacherScheduleSettings
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

TimeRange = Tuple[time, time]


def compute_slots(
    window_start: time,
    window_end: time,
    duration_minutes: int,
    busy: Iterable[TimeRange],
    step_minutes: int = 30,
) -> List[Dict[str, str]]:
    """
    Candidate slots of ``duration_minutes`` starting every ``step_minutes``
    from ``window_start`` that end by ``window_end`` and overlap no busy range.
    """
    if duration_minutes <= 0 or step_minutes <= 0:
        return []
    busy_ranges = list(busy)
    slots: List[Dict[str, str]] = []
    offset = 0
    while True:
        if end_of_day_overflow(window_start, offset + duration_minutes):
            break
        start = add_minutes(window_start, offset)
        end = add_minutes(window_start, offset + duration_minutes)
        if end > window_end:
            break
        if not any(start < b_end and end > b_start for b_start, b_end in busy_ranges):
            slots.append({"start_time": start.strftime("%H:%M"), "end_time": end.strftime("%H:%M")})
        offset += step_minutes
    return slots


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts and generating available slots.

    Reads the teacher's weekly availability, schedule switches and blocking
    bookings; holds no state of its own.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @staticmethod
    def _is_bookable(schedule: Optional[TeacherScheduleSettings]) -> bool:
        if schedule is None:
            return True
        return bool(schedule.is_active) and not bool(schedule.holiday_mode)

    @staticmethod
    def _open_window(
        availability: Optional[TeacherAvailability],
    ) -> Optional[TeacherAvailability]:
        if availability is None or not availability.enabled:
            return None
        return availability

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        teacher_id: str,
        target_date: date,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        """
        Free slots for ``teacher_id`` on ``target_date``.

        Returns ``[]`` when the teacher is inactive or on holiday, or has no
        enabled window on that weekday.

        Args:
            teacher_id: The teacher to check
            target_date: The date to generate slots for
            duration_minutes: Session length
            exclude_booking_id: Booking to ignore (the one being moved)

        Returns:
            List of ``{"start_time": "HH:MM", "end_time": "HH:MM"}``
        """
        if duration_minutes <= 0:
            raise ValidationException("Duration must be positive")

        if not self._is_bookable(self.repository.get_schedule_settings(teacher_id)):
            return []
        window = self._open_window(
            self.repository.get_day_availability(teacher_id, target_date.weekday())
        )
        if window is None:
            return []

        bookings = self.repository.get_bookings_for_conflict_check(
            teacher_id, target_date, exclude_booking_id
        )
        return compute_slots(
            window.from_time,
            window.to_time,
            duration_minutes,
            [(b.start_time, b.end_time) for b in bookings],
            settings.slot_step_minutes,
        )

    def has_available_slots_on_date(
        self,
        teacher_id: str,
        target_date: date,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.get_available_slots(teacher_id, target_date, duration_minutes, exclude_booking_id)
        )

    @BaseService.measure_operation("get_available_days")
    def get_available_days(
        self,
        teacher_id: str,
        duration_minutes: int,
        days_ahead: Optional[int] = None,
        from_date: Optional[date] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Upcoming dates that still have at least one free slot."""
        days_ahead = days_ahead or settings.available_days_window
        start = from_date or utc_now().date()

        if not self._is_bookable(self.repository.get_schedule_settings(teacher_id)):
            return []
        windows = {
            row.day_of_week: row
            for row in self.repository.get_weekly_availability(teacher_id)
            if row.enabled
        }
        if not windows:
            return []

        days: List[Dict[str, Any]] = []
        for offset in range(days_ahead):
            day = start + timedelta(days=offset)
            window = windows.get(day.weekday())
            if window is None:
                continue
            bookings = self.repository.get_bookings_for_conflict_check(
                teacher_id, day, exclude_booking_id
            )
            slots = compute_slots(
                window.from_time,
                window.to_time,
                duration_minutes,
                [(b.start_time, b.end_time) for b in bookings],
                settings.slot_step_minutes,
            )
            if slots:
                days.append(
                    {
                        "date": day.isoformat(),
                        "day": DAY_NAMES[day.weekday()],
                        "slot_count": len(slots),
                    }
                )
        return days

    @BaseService.measure_operation("check_booking_conflicts")
    def check_booking_conflicts(
        self,
        teacher_id: str,
        check_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Check if a time range conflicts with existing bookings.

        Returns:
            List of conflicts with booking details
        """
        bookings = self.repository.get_bookings_for_conflict_check(
            teacher_id, check_date, exclude_booking_id
        )

        conflicts = []
        for booking in bookings:
            if start_time < booking.end_time and end_time > booking.start_time:
                conflicts.append(
                    {
                        "booking_id": booking.id,
                        "start_time": booking.start_time.strftime("%H:%M"),
                        "end_time": booking.end_time.strftime("%H:%M"),
                        "status": booking.status,
                    }
                )

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {teacher_id} "
                f"on {check_date} between {start_time}-{end_time}"
            )

        return conflicts

    def is_within_availability(
        self, teacher_id: str, check_date: date, start_time: time, end_time: time
    ) -> bool:
        if not self._is_bookable(self.repository.get_schedule_settings(teacher_id)):
            return False
        window = self._open_window(
            self.repository.get_day_availability(teacher_id, check_date.weekday())
        )
        if window is None:
            return False
        return window.from_time <= start_time and end_time <= window.to_time

    def ensure_slot_available(
        self,
        teacher_id: str,
        check_date: date,
        start_time: time,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> time:
        """
        Validate a requested slot and return its end time.

        Raises:
            ValidationException: duration out of range or slot crosses midnight
            BusinessRuleException: teacher unavailable at that time
            BookingConflictException: slot overlaps a blocking booking
        """
        self.validate_duration(duration_minutes)
        if end_of_day_overflow(start_time, duration_minutes):
            raise ValidationException(
                "Sessions cannot run past midnight",
                details={"start_time": start_time.strftime("%H:%M")},
            )
        end_time = add_minutes(start_time, duration_minutes)

        if not self.is_within_availability(teacher_id, check_date, start_time, end_time):
            raise BusinessRuleException(
                "The teacher is not available at the requested time",
                code="TEACHER_UNAVAILABLE",
                details={
                    "teacher_id": teacher_id,
                    "date": check_date.isoformat(),
                    "start_time": start_time.strftime("%H:%M"),
                    "end_time": end_time.strftime("%H:%M"),
                },
            )

        conflicts = self.check_booking_conflicts(
            teacher_id, check_date, start_time, end_time, exclude_booking_id
        )
        if conflicts:
            raise BookingConflictException(details={"conflicts": conflicts})
        return end_time

    # Schedule maintenance

    def get_weekly_availability(self, teacher_id: str) -> List[TeacherAvailability]:
        return self.repository.get_weekly_availability(teacher_id)

    @BaseService.measure_operation("set_day_availability")
    def set_day_availability(
        self,
        teacher_id: str,
        day_of_week: int,
        from_time: time,
        to_time: time,
        enabled: bool = True,
    ) -> TeacherAvailability:
        """Create or replace the teacher's window for one weekday (0 = Monday)."""
        if not 0 <= day_of_week <= 6:
            raise ValidationException(
                "day_of_week must be between 0 (Monday) and 6 (Sunday)",
                details={"day_of_week": day_of_week},
            )
        if from_time >= to_time:
            raise ValidationException(
                "Availability must end after it starts",
                details={
                    "from_time": from_time.strftime("%H:%M"),
                    "to_time": to_time.strftime("%H:%M"),
                },
            )
        with self.transaction():
            row = self.repository.upsert_day_availability(
                teacher_id, day_of_week, from_time, to_time, enabled=enabled
            )
        self.log_operation(
            "set_day_availability", teacher_id=teacher_id, day_of_week=day_of_week
        )
        return row

    @BaseService.measure_operation("set_schedule_settings")
    def set_schedule_settings(
        self,
        teacher_id: str,
        holiday_mode: Optional[bool] = None,
        is_active: Optional[bool] = None,
    ) -> TeacherScheduleSettings:
        with self.transaction():
            return self.repository.upsert_schedule_settings(
                teacher_id, holiday_mode=holiday_mode, is_active=is_active
            )

    @staticmethod
    def validate_duration(duration_minutes: int) -> None:
        if not (
            settings.min_booking_duration_minutes
            <= duration_minutes
            <= settings.max_booking_duration_minutes
        ):
            raise ValidationException(
                f"Duration must be between {settings.min_booking_duration_minutes} and "
                f"{settings.max_booking_duration_minutes} minutes",
                details={"duration_minutes": duration_minutes},
            )


__all__ = ["ConflictChecker", "compute_slots"]

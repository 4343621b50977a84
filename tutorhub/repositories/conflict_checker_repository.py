# tutorhub/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for TutorHub

Read side of the slot resolver: a teacher's weekly availability windows,
schedule switches, and the bookings that currently hold slots. Also takes
the per-teacher row lock used while a booking is written.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import TeacherAvailability, TeacherScheduleSettings
from ..models.booking import BLOCKING_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """
    Repository for conflict checking data access.

    Works with bookings as the primary model plus the availability tables
    the slot generator reads.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Booking Conflict Queries

    def get_bookings_for_conflict_check(
        self, teacher_id: str, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Get bookings that hold a slot for ``teacher_id`` on ``check_date``.

        Args:
            teacher_id: The teacher to check
            check_date: The date to check for conflicts
            exclude_booking_id: Optional booking ID to exclude from results

        Returns:
            Blocking bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.teacher_id == teacher_id,
                Booking.booking_date == check_date,
                Booking.status.in_(BLOCKING_STATUSES),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflicting bookings: {str(e)}")

    # Availability Queries

    def get_schedule_settings(
        self, teacher_id: str, for_update: bool = False
    ) -> Optional[TeacherScheduleSettings]:
        try:
            query = self.db.query(TeacherScheduleSettings).filter(
                TeacherScheduleSettings.teacher_id == teacher_id
            )
            if for_update:
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading schedule settings for {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to load schedule settings: {str(e)}")

    def lock_teacher_schedule(self, teacher_id: str) -> Optional[TeacherScheduleSettings]:
        """Serialize booking writers for one teacher on the settings row."""
        return self.get_schedule_settings(teacher_id, for_update=True)

    def get_day_availability(
        self, teacher_id: str, day_of_week: int
    ) -> Optional[TeacherAvailability]:
        try:
            return (
                self.db.query(TeacherAvailability)
                .filter(
                    TeacherAvailability.teacher_id == teacher_id,
                    TeacherAvailability.day_of_week == day_of_week,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading availability for {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to load availability: {str(e)}")

    def get_weekly_availability(self, teacher_id: str) -> List[TeacherAvailability]:
        query = (
            self.db.query(TeacherAvailability)
            .filter(TeacherAvailability.teacher_id == teacher_id)
            .order_by(TeacherAvailability.day_of_week)
        )
        return self._execute_query(query)

    def upsert_day_availability(
        self, teacher_id: str, day_of_week: int, from_time, to_time, enabled: bool = True
    ) -> TeacherAvailability:
        row = self.get_day_availability(teacher_id, day_of_week)
        if row is None:
            row = TeacherAvailability(teacher_id=teacher_id, day_of_week=day_of_week)
            self.db.add(row)
        row.from_time = from_time
        row.to_time = to_time
        row.enabled = enabled
        self.db.flush()
        return row

    def upsert_schedule_settings(
        self, teacher_id: str, *, holiday_mode: Optional[bool] = None, is_active: Optional[bool] = None
    ) -> TeacherScheduleSettings:
        settings_row = self.get_schedule_settings(teacher_id)
        if settings_row is None:
            settings_row = TeacherScheduleSettings(
                teacher_id=teacher_id, holiday_mode=False, is_active=True
            )
            self.db.add(settings_row)
        if holiday_mode is not None:
            settings_row.holiday_mode = holiday_mode
        if is_active is not None:
            settings_row.is_active = is_active
        self.db.flush()
        return settings_row

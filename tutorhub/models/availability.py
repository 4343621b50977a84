# tutorhub/models/availability.py
"""
Teacher weekly availability.

``TeacherScheduleSettings`` holds the per-teacher switches (holiday mode,
active flag) and is the row locked with ``SELECT ... FOR UPDATE`` while a
booking for that teacher is being written. ``TeacherAvailability`` holds
one window per weekday (0 = Monday).
"""

from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class TeacherScheduleSettings(Base):
    __tablename__ = "teacher_schedule_settings"

    teacher_id = Column(String(26), primary_key=True)
    holiday_mode = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<TeacherScheduleSettings {self.teacher_id} holiday={self.holiday_mode}>"


class TeacherAvailability(Base):
    __tablename__ = "teacher_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    from_time = Column(Time, nullable=False)
    to_time = Column(Time, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("teacher_id", "day_of_week", name="uq_teacher_availability_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_teacher_availability_day"),
        CheckConstraint("to_time > from_time", name="ck_teacher_availability_window"),
    )

    def __repr__(self) -> str:
        return (
            f"<TeacherAvailability {self.teacher_id} {DAY_NAMES[self.day_of_week]} "
            f"{self.from_time}-{self.to_time}>"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": DAY_NAMES[self.day_of_week],
            "day_of_week": self.day_of_week,
            "enabled": bool(self.enabled),
            "from_time": self.from_time,
            "to_time": self.to_time,
        }

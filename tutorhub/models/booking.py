# tutorhub/models/booking.py
"""
Booking model for the TutorHub platform.

A booking is the scheduling fact between a student and a teacher for a
subject at a date and time. Student, teacher and subject are weak
references (plain ids); the booking owns its date, times and status.

Double-booking protection: a partial unique index covers
``(teacher_id, booking_date, start_time)`` for the statuses that hold a
slot, so two concurrent writers cannot both commit the same slot even if
both passed the overlap check.
"""

from enum import Enum
from typing import FrozenSet, Mapping

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.time_utils import utc_now
from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting teacher/admin approval
    APPROVED = "approved"
    REJECTED = "rejected"
    UPCOMING = "upcoming"  # Approved and confirmed on the schedule
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"


BOOKING_TRANSITIONS: Mapping[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.APPROVED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.APPROVED: frozenset(
        {
            BookingStatus.UPCOMING,
            BookingStatus.COMPLETED,
            BookingStatus.MISSED,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.UPCOMING: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.MISSED, BookingStatus.CANCELLED}
    ),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.MISSED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Statuses that occupy a teacher's slot
BLOCKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.APPROVED.value,
    BookingStatus.UPCOMING.value,
)

# Statuses a booking may be rescheduled or rebooked from
MODIFIABLE_STATUSES = BLOCKING_STATUSES

_BLOCKING_SQL = "status IN ('pending', 'approved', 'upcoming')"


class Booking(Base):
    """Scheduled session between a student and a teacher."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), nullable=False, index=True)
    teacher_id = Column(String(26), nullable=False, index=True)
    subject_id = Column(String(26), nullable=False)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    price = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    approved_by_id = Column(String(26), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    rebooked_from_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    history = relationship(
        "BookingHistory",
        back_populates="booking",
        order_by="BookingHistory.created_at",
        cascade="all, delete-orphan",
    )
    modifications = relationship(
        "BookingModification",
        back_populates="booking",
        foreign_keys="BookingModification.booking_id",
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'upcoming', "
            "'completed', 'missed', 'cancelled')",
            name="ck_bookings_status",
        ),
        Index("ix_bookings_teacher_date", "teacher_id", "booking_date"),
        Index(
            "uq_bookings_teacher_active_slot",
            "teacher_id",
            "booking_date",
            "start_time",
            unique=True,
            postgresql_where=text(_BLOCKING_SQL),
            sqlite_where=text(_BLOCKING_SQL),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} teacher={self.teacher_id} "
            f"{self.booking_date} {self.start_time}-{self.end_time} {self.status}>"
        )

    def can_transition_to(self, target: BookingStatus) -> bool:
        return BookingStatus(target) in BOOKING_TRANSITIONS[BookingStatus(self.status)]

    @property
    def is_terminal(self) -> bool:
        return not BOOKING_TRANSITIONS[BookingStatus(self.status)]

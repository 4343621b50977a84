# tutorhub/models/booking_modification.py
"""
Reschedule and rebook requests against an existing booking.

A modification snapshots the booking's original date, time and duration at
creation so the request stays readable even after the booking changes.

State machine::

    pending --approve--> approved --complete--> completed
    pending --reject---> rejected
    pending --expire---> expired      (only once expires_at has passed)
    pending/approved --cancel--> cancelled

rejected, expired, cancelled and completed are terminal. Transition methods
return ``False`` without side effects when their guard fails; every
successful transition appends an entry to ``modification_history``.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from sqlalchemy import (
    JSON,
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
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.time_utils import add_minutes, ensure_utc, utc_now
from ..database import Base

RESCHEDULE_EXPIRY_DAYS = 3
REBOOK_EXPIRY_DAYS = 5


class ModificationType(str, Enum):
    RESCHEDULE = "reschedule"
    REBOOK = "rebook"


class ModificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


MODIFICATION_TRANSITIONS: Mapping[ModificationStatus, FrozenSet[ModificationStatus]] = {
    ModificationStatus.PENDING: frozenset(
        {
            ModificationStatus.APPROVED,
            ModificationStatus.REJECTED,
            ModificationStatus.EXPIRED,
            ModificationStatus.CANCELLED,
        }
    ),
    ModificationStatus.APPROVED: frozenset(
        {ModificationStatus.COMPLETED, ModificationStatus.CANCELLED}
    ),
    ModificationStatus.REJECTED: frozenset(),
    ModificationStatus.EXPIRED: frozenset(),
    ModificationStatus.CANCELLED: frozenset(),
    ModificationStatus.COMPLETED: frozenset(),
}

ACTIVE_MODIFICATION_STATUSES = (
    ModificationStatus.PENDING.value,
    ModificationStatus.APPROVED.value,
)


class BookingModification(Base):
    __tablename__ = "booking_modifications"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    student_id = Column(String(26), nullable=False, index=True)
    teacher_id = Column(String(26), nullable=False, index=True)

    type = Column(String(20), nullable=False)
    status = Column(
        String(20), nullable=False, default=ModificationStatus.PENDING.value, index=True
    )

    original_booking_date = Column(Date, nullable=False)
    original_start_time = Column(Time, nullable=False)
    original_end_time = Column(Time, nullable=False)
    original_duration_minutes = Column(Integer, nullable=False)
    original_teacher_id = Column(String(26), nullable=False)
    original_subject_id = Column(String(26), nullable=False)
    original_price = Column(Numeric(12, 2), nullable=True)

    new_booking_date = Column(Date, nullable=False)
    new_start_time = Column(Time, nullable=False)
    new_end_time = Column(Time, nullable=False)
    new_duration_minutes = Column(Integer, nullable=False)
    new_teacher_id = Column(String(26), nullable=True)
    new_subject_id = Column(String(26), nullable=True)
    new_price = Column(Numeric(12, 2), nullable=True)
    price_difference = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    reason = Column(Text, nullable=True)
    teacher_notes = Column(Text, nullable=True)

    requested_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    modification_history = Column(JSON, nullable=False, default=list)
    resulting_booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)

    created_by_id = Column(String(26), nullable=True)
    updated_by_id = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", foreign_keys=[booking_id], back_populates="modifications")

    __table_args__ = (
        CheckConstraint("type IN ('reschedule', 'rebook')", name="ck_booking_modifications_type"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'expired', 'cancelled', 'completed')",
            name="ck_booking_modifications_status",
        ),
        Index("ix_booking_modifications_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingModification {self.id} {self.type} {self.status} "
            f"booking={self.booking_id}>"
        )

    # Factories

    @classmethod
    def _snapshot(cls, booking: Any) -> Dict[str, Any]:
        return {
            "booking_id": booking.id,
            "student_id": booking.student_id,
            "teacher_id": booking.teacher_id,
            "original_booking_date": booking.booking_date,
            "original_start_time": booking.start_time,
            "original_end_time": booking.end_time,
            "original_duration_minutes": booking.duration_minutes,
            "original_teacher_id": booking.teacher_id,
            "original_subject_id": booking.subject_id,
            "original_price": booking.price,
        }

    @classmethod
    def create_reschedule_request(
        cls,
        booking: Any,
        *,
        new_date: date,
        new_start_time: time,
        requested_by: str,
        new_duration_minutes: Optional[int] = None,
        reason: Optional[str] = None,
        expiry_days: int = RESCHEDULE_EXPIRY_DAYS,
        now: Optional[datetime] = None,
    ) -> "BookingModification":
        """Build (unsaved) a reschedule request for the same teacher and subject."""
        now = ensure_utc(now) or utc_now()
        duration = new_duration_minutes or booking.duration_minutes
        modification = cls(
            id=str(ulid.ULID()),
            type=ModificationType.RESCHEDULE.value,
            status=ModificationStatus.PENDING.value,
            new_booking_date=new_date,
            new_start_time=new_start_time,
            new_end_time=add_minutes(new_start_time, duration),
            new_duration_minutes=duration,
            price_difference=Decimal("0.00"),
            reason=reason,
            requested_at=now,
            expires_at=now + timedelta(days=expiry_days),
            modification_history=[],
            created_by_id=requested_by,
            **cls._snapshot(booking),
        )
        modification.add_to_history("requested", reason, requested_by, now=now)
        return modification

    @classmethod
    def create_rebook_request(
        cls,
        booking: Any,
        *,
        new_teacher_id: str,
        new_subject_id: str,
        new_date: date,
        new_start_time: time,
        requested_by: str,
        new_duration_minutes: Optional[int] = None,
        new_price: Optional[Decimal] = None,
        reason: Optional[str] = None,
        expiry_days: int = REBOOK_EXPIRY_DAYS,
        now: Optional[datetime] = None,
    ) -> "BookingModification":
        """
        Build (unsaved) a rebook request that moves the session to another
        teacher and/or subject.

        ``price_difference`` is ``new_price - original price`` when both are
        known; a positive value is charged to the student on completion and a
        negative one refunded.
        """
        now = ensure_utc(now) or utc_now()
        duration = new_duration_minutes or booking.duration_minutes
        price_difference = Decimal("0.00")
        if new_price is not None and booking.price is not None:
            price_difference = Decimal(new_price) - Decimal(booking.price)
        modification = cls(
            id=str(ulid.ULID()),
            type=ModificationType.REBOOK.value,
            status=ModificationStatus.PENDING.value,
            new_booking_date=new_date,
            new_start_time=new_start_time,
            new_end_time=add_minutes(new_start_time, duration),
            new_duration_minutes=duration,
            new_teacher_id=new_teacher_id,
            new_subject_id=new_subject_id,
            new_price=new_price,
            price_difference=price_difference,
            reason=reason,
            requested_at=now,
            expires_at=now + timedelta(days=expiry_days),
            modification_history=[],
            created_by_id=requested_by,
            **cls._snapshot(booking),
        )
        modification.add_to_history("requested", reason, requested_by, now=now)
        return modification

    # Guards

    @property
    def responding_teacher_id(self) -> str:
        """The teacher who must accept the change (the new one for rebooks)."""
        if self.type == ModificationType.REBOOK.value and self.new_teacher_id:
            return self.new_teacher_id
        return self.teacher_id

    def has_expired(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) or utc_now()
        expires_at = ensure_utc(self.expires_at)
        return expires_at is not None and expires_at < now

    @property
    def is_expired(self) -> bool:
        return self.status == ModificationStatus.EXPIRED.value or (
            self.status == ModificationStatus.PENDING.value and self.has_expired()
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_MODIFICATION_STATUSES and not self.is_expired

    def can_be_approved(self, now: Optional[datetime] = None) -> bool:
        return self.status == ModificationStatus.PENDING.value and not self.has_expired(now)

    def can_be_rejected(self, now: Optional[datetime] = None) -> bool:
        return self.status == ModificationStatus.PENDING.value and not self.has_expired(now)

    def can_be_cancelled(self) -> bool:
        return self.status in ACTIVE_MODIFICATION_STATUSES

    # Transitions

    def can_transition_to(self, target: ModificationStatus) -> bool:
        allowed = MODIFICATION_TRANSITIONS[ModificationStatus(self.status)]
        return ModificationStatus(target) in allowed

    def add_to_history(
        self,
        action: str,
        notes: Optional[str],
        user_id: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> None:
        entry = {
            "action": action,
            "notes": notes,
            "user_id": user_id,
            "timestamp": (ensure_utc(now) or utc_now()).isoformat(),
        }
        # Reassign so the JSON column is flagged dirty.
        self.modification_history = [*(self.modification_history or []), entry]

    def _move_to(
        self,
        target: ModificationStatus,
        action: str,
        notes: Optional[str],
        user_id: Optional[str],
        now: datetime,
    ) -> None:
        self.status = target.value
        self.updated_by_id = user_id
        self.add_to_history(action, notes, user_id, now=now)

    def approve(
        self, user_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> bool:
        now = ensure_utc(now) or utc_now()
        if not self.can_be_approved(now):
            return False
        self.responded_at = now
        if notes:
            self.teacher_notes = notes
        self._move_to(ModificationStatus.APPROVED, "approved", notes, user_id, now)
        return True

    def reject(
        self, user_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> bool:
        now = ensure_utc(now) or utc_now()
        if not self.can_be_rejected(now):
            return False
        self.responded_at = now
        if notes:
            self.teacher_notes = notes
        self._move_to(ModificationStatus.REJECTED, "rejected", notes, user_id, now)
        return True

    def cancel(
        self, user_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> bool:
        now = ensure_utc(now) or utc_now()
        if not self.can_be_cancelled():
            return False
        self._move_to(ModificationStatus.CANCELLED, "cancelled", notes, user_id, now)
        return True

    def complete(
        self,
        user_id: Optional[str],
        notes: Optional[str] = None,
        *,
        resulting_booking_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        now = ensure_utc(now) or utc_now()
        if not self.can_transition_to(ModificationStatus.COMPLETED):
            return False
        self.completed_at = now
        self.resulting_booking_id = resulting_booking_id or self.booking_id
        self._move_to(ModificationStatus.COMPLETED, "completed", notes, user_id, now)
        return True

    def mark_as_expired(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) or utc_now()
        if not self.can_transition_to(ModificationStatus.EXPIRED) or not self.has_expired(now):
            return False
        self._move_to(
            ModificationStatus.EXPIRED, "expired", "Request expired without a response", None, now
        )
        return True

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self.modification_history or [])

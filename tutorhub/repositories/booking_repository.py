# tutorhub/repositories/booking_repository.py
"""
Booking Repository for TutorHub

Handles booking persistence, listing with filters, status statistics and
the booking history audit rows.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import BookingConflictException
from ..models.booking import Booking, BookingStatus
from ..models.booking_history import BookingHistory
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create_booking(self, **kwargs: Any) -> Booking:
        """
        Insert a booking.

        A unique-index violation means another writer committed the same
        teacher slot first and surfaces as ``BookingConflictException``.
        """
        booking = Booking(**kwargs)
        try:
            self.db.add(booking)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            self.logger.warning(
                "Booking slot already taken",
                extra={
                    "teacher_id": kwargs.get("teacher_id"),
                    "booking_date": str(kwargs.get("booking_date")),
                    "start_time": str(kwargs.get("start_time")),
                },
            )
            raise BookingConflictException(
                details={
                    "teacher_id": kwargs.get("teacher_id"),
                    "booking_date": str(kwargs.get("booking_date")),
                    "start_time": str(kwargs.get("start_time")),
                }
            ) from exc
        return booking

    def move_booking(self, booking: Booking, **fields: Any) -> Booking:
        """Change a booking's slot fields under the same unique-index guard."""
        details = {"booking_id": booking.id, **{k: str(v) for k, v in fields.items()}}
        try:
            for key, value in fields.items():
                setattr(booking, key, value)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise BookingConflictException(details=details) from exc
        return booking

    def get_many(self, booking_ids: Sequence[str], for_update: bool = False) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.id.in_(list(booking_ids)))
        if for_update:
            query = query.with_for_update()
        return self._execute_query(query)

    def list_bookings(
        self,
        *,
        student_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[Booking], int]:
        query = self.db.query(Booking)
        if student_id:
            query = query.filter(Booking.student_id == student_id)
        if teacher_id:
            query = query.filter(Booking.teacher_id == teacher_id)
        if status:
            query = query.filter(Booking.status == BookingStatus(status).value)
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)
        query = query.order_by(Booking.booking_date.desc(), Booking.start_time.desc())
        return self._paginate(query, page, per_page)

    def count_by_status(self) -> Dict[str, int]:
        query = self.db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status)
        rows = self._execute_query(query)
        return {status: count for status, count in rows}

    def count_on_date(self, target_date: date) -> int:
        return self.count(booking_date=target_date)

    # History

    def add_history(
        self,
        booking: Booking,
        action: str,
        *,
        performed_by_id: Optional[str],
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        notes: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BookingHistory:
        entry = BookingHistory(
            booking_id=booking.id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            performed_by_id=performed_by_id,
            notes=notes,
            metadata_json=metadata,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_history(self, booking_id: str) -> List[BookingHistory]:
        query = (
            self.db.query(BookingHistory)
            .filter(BookingHistory.booking_id == booking_id)
            .order_by(BookingHistory.created_at, BookingHistory.id)
        )
        return self._execute_query(query)

"""Repository for reschedule and rebook requests."""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.booking_modification import (
    ACTIVE_MODIFICATION_STATUSES,
    BookingModification,
    ModificationStatus,
)
from .base_repository import BaseRepository


class BookingModificationRepository(BaseRepository[BookingModification]):
    def __init__(self, db: Session):
        super().__init__(db, BookingModification)

    def get_active_for_booking(self, booking_id: str) -> Optional[BookingModification]:
        query = (
            self.db.query(BookingModification)
            .filter(
                BookingModification.booking_id == booking_id,
                BookingModification.status.in_(ACTIVE_MODIFICATION_STATUSES),
            )
            .order_by(BookingModification.requested_at.desc())
        )
        results = self._execute_query(query)
        return results[0] if results else None

    def find_stale_pending(self, now: datetime, limit: int = 500) -> List[BookingModification]:
        """Pending requests whose ``expires_at`` has passed, oldest first."""
        query = (
            self.db.query(BookingModification)
            .filter(
                BookingModification.status == ModificationStatus.PENDING.value,
                BookingModification.expires_at < now,
            )
            .order_by(BookingModification.expires_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return self._execute_query(query)

    def list_modifications(
        self,
        *,
        student_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        status: Optional[ModificationStatus] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[BookingModification], int]:
        query = self.db.query(BookingModification)
        if student_id:
            query = query.filter(BookingModification.student_id == student_id)
        if teacher_id:
            query = query.filter(
                (BookingModification.teacher_id == teacher_id)
                | (BookingModification.new_teacher_id == teacher_id)
            )
        if status:
            query = query.filter(BookingModification.status == ModificationStatus(status).value)
        query = query.order_by(
            BookingModification.requested_at.desc(), BookingModification.id.desc()
        )
        return self._paginate(query, page, per_page)

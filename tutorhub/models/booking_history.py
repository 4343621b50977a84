"""Append-only audit trail of booking status changes and reschedules."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.time_utils import utc_now
from ..database import Base


class BookingHistory(Base):
    __tablename__ = "booking_history"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    performed_by_id = Column(String(26), nullable=True)
    notes = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    booking = relationship("Booking", back_populates="history")

    def __repr__(self) -> str:
        return f"<BookingHistory {self.booking_id} {self.action}>"

# tutorhub/services/notification_service.py
"""
Notification Service for TutorHub

Builds notification payloads for booking, modification and payout events
and hands them to a sender. Delivery channels are outside this package;
the default sender writes the payload to the log.

Callers invoke these methods after their transaction has committed. Every
public method is best-effort: a sender failure is logged and reported as
``False``, never raised into the business operation that triggered it.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..models.booking import Booking
from ..models.booking_modification import BookingModification
from ..models.payout import PayoutRequest

logger = logging.getLogger(__name__)

Sender = Callable[[str, str, Dict[str, Any]], None]


def log_sender(recipient_id: str, event: str, payload: Dict[str, Any]) -> None:
    logger.info(
        "Notification dispatched",
        extra={"recipient_id": recipient_id, "event": event, "payload": payload},
    )


class NotificationService:
    """Best-effort notification dispatch for domain events."""

    def __init__(self, sender: Optional[Sender] = None) -> None:
        self.sender: Sender = sender or log_sender
        self.logger = logging.getLogger(self.__class__.__name__)

    def _dispatch(self, recipients: List[str], event: str, payload: Dict[str, Any]) -> bool:
        delivered = True
        for recipient_id in recipients:
            if not recipient_id:
                continue
            try:
                self.sender(recipient_id, event, payload)
            except Exception as e:
                delivered = False
                self.logger.error(
                    f"Failed to send {event} notification to {recipient_id}: {str(e)}",
                    exc_info=True,
                )
        return delivered

    # Bookings

    def send_booking_created(self, booking: Booking) -> bool:
        payload = {
            "booking_id": booking.id,
            "booking_date": booking.booking_date.isoformat(),
            "start_time": booking.start_time.strftime("%H:%M"),
            "status": booking.status,
        }
        return self._dispatch([booking.teacher_id, booking.student_id], "booking.created", payload)

    def send_booking_status_changed(
        self, booking: Booking, previous_status: str, notes: Optional[str] = None
    ) -> bool:
        payload = {
            "booking_id": booking.id,
            "previous_status": previous_status,
            "status": booking.status,
            "notes": notes,
        }
        return self._dispatch(
            [booking.student_id, booking.teacher_id], "booking.status_changed", payload
        )

    def send_booking_rescheduled(self, booking: Booking) -> bool:
        payload = {
            "booking_id": booking.id,
            "booking_date": booking.booking_date.isoformat(),
            "start_time": booking.start_time.strftime("%H:%M"),
            "end_time": booking.end_time.strftime("%H:%M"),
        }
        return self._dispatch(
            [booking.student_id, booking.teacher_id], "booking.rescheduled", payload
        )

    # Modifications

    def send_modification_requested(self, modification: BookingModification) -> bool:
        payload = {
            "modification_id": modification.id,
            "booking_id": modification.booking_id,
            "type": modification.type,
            "new_booking_date": modification.new_booking_date.isoformat(),
            "new_start_time": modification.new_start_time.strftime("%H:%M"),
            "expires_at": modification.expires_at.isoformat(),
        }
        return self._dispatch(
            [modification.responding_teacher_id], "booking_modification.requested", payload
        )

    def send_modification_resolved(self, modification: BookingModification) -> bool:
        payload = {
            "modification_id": modification.id,
            "booking_id": modification.booking_id,
            "type": modification.type,
            "status": modification.status,
            "teacher_notes": modification.teacher_notes,
        }
        return self._dispatch(
            [modification.student_id], f"booking_modification.{modification.status}", payload
        )

    # Payouts

    def send_payout_status(self, payout: PayoutRequest) -> bool:
        payload = {
            "payout_id": payout.id,
            "amount": str(payout.amount),
            "currency": payout.currency,
            "status": payout.status,
        }
        return self._dispatch([payout.teacher_id], f"payout.{payout.status}", payload)


__all__ = ["NotificationService", "log_sender"]

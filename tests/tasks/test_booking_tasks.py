"""Tests for the booking maintenance Celery task."""

from datetime import time, timedelta
from unittest.mock import MagicMock, patch

from tutorhub.core.time_utils import utc_now
from tutorhub.models.booking_modification import ModificationStatus
from tutorhub.services.booking_modification_service import BookingModificationService
from tutorhub.tasks.booking_tasks import expire_stale_modifications


def _session_cm(mock_get_session, db):
    mock_get_session.return_value.__enter__ = MagicMock(return_value=db)
    mock_get_session.return_value.__exit__ = MagicMock(return_value=False)


class TestExpireStaleModifications:
    @patch("tutorhub.tasks.booking_tasks.get_db_session")
    def test_expires_overdue_requests_once(
        self, mock_get_session, db, booking_service, teacher_schedule, make_booking, monday
    ):
        _session_cm(mock_get_session, db)
        booking = make_booking(teacher_schedule())
        service = BookingModificationService(
            db, booking_service=booking_service, notification_service=MagicMock()
        )
        modification = service.create_reschedule_request(
            booking.id, booking.student_id, monday, time(10, 0)
        )
        modification.expires_at = utc_now() - timedelta(minutes=1)
        db.commit()

        assert expire_stale_modifications() == {"expired": 1}
        assert modification.status == ModificationStatus.EXPIRED.value
        assert expire_stale_modifications() == {"expired": 0}

    @patch("tutorhub.tasks.booking_tasks.get_db_session")
    def test_nothing_to_expire(self, mock_get_session, db):
        _session_cm(mock_get_session, db)

        assert expire_stale_modifications() == {"expired": 0}

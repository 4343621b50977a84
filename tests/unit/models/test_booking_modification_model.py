"""State machine tests for BookingModification; no database needed."""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from tutorhub.models.booking_modification import (
    BookingModification,
    ModificationStatus,
    ModificationType,
)

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _booking(**overrides):
    fields = {
        "id": "01JBOOKING0000000000000000",
        "student_id": "01JSTUDENT0000000000000000",
        "teacher_id": "01JTEACHER0000000000000000",
        "subject_id": "01JSUBJECT0000000000000000",
        "booking_date": date(2026, 10, 26),
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        "duration_minutes": 60,
        "price": Decimal("5000.00"),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _reschedule(**kwargs):
    booking = kwargs.pop("booking", None) or _booking()
    return BookingModification.create_reschedule_request(
        booking,
        new_date=date(2026, 10, 27),
        new_start_time=time(14, 0),
        requested_by=booking.student_id,
        now=NOW,
        **kwargs,
    )


class TestFactories:
    def test_reschedule_snapshot(self):
        modification = _reschedule(reason="Exam week")

        assert modification.type == ModificationType.RESCHEDULE.value
        assert modification.status == ModificationStatus.PENDING.value
        assert modification.original_booking_date == date(2026, 10, 26)
        assert modification.original_end_time == time(10, 0)
        assert modification.new_end_time == time(15, 0)
        assert modification.expires_at == NOW + timedelta(days=3)
        assert modification.price_difference == Decimal("0.00")
        assert modification.history == [
            {
                "action": "requested",
                "notes": "Exam week",
                "user_id": "01JSTUDENT0000000000000000",
                "timestamp": NOW.isoformat(),
            }
        ]

    def test_reschedule_can_change_duration(self):
        modification = _reschedule(new_duration_minutes=90)

        assert modification.new_duration_minutes == 90
        assert modification.new_end_time == time(15, 30)

    def test_rebook_price_difference(self):
        booking = _booking()
        modification = BookingModification.create_rebook_request(
            booking,
            new_teacher_id="01JOTHER00000000000000000",
            new_subject_id=booking.subject_id,
            new_date=date(2026, 10, 28),
            new_start_time=time(11, 0),
            new_price=Decimal("4200.00"),
            requested_by=booking.student_id,
            now=NOW,
        )

        assert modification.price_difference == Decimal("-800.00")
        assert modification.expires_at == NOW + timedelta(days=5)
        assert modification.responding_teacher_id == "01JOTHER00000000000000000"

    def test_rebook_without_prices_has_no_difference(self):
        booking = _booking(price=None)
        modification = BookingModification.create_rebook_request(
            booking,
            new_teacher_id=booking.teacher_id,
            new_subject_id="01JNEWSUBJECT0000000000000",
            new_date=date(2026, 10, 28),
            new_start_time=time(11, 0),
            new_price=Decimal("4200.00"),
            requested_by=booking.student_id,
            now=NOW,
        )

        assert modification.price_difference == Decimal("0.00")
        assert modification.responding_teacher_id == booking.teacher_id


class TestTransitions:
    def test_approve_then_complete(self):
        modification = _reschedule()
        later = NOW + timedelta(hours=2)

        assert modification.approve("teacher", "ok", now=later) is True
        assert modification.responded_at == later
        assert modification.complete("teacher", now=later) is True

        assert modification.status == ModificationStatus.COMPLETED.value
        assert modification.resulting_booking_id == modification.booking_id
        assert [h["action"] for h in modification.history] == ["requested", "approved", "completed"]

    def test_complete_requires_approval(self):
        modification = _reschedule()

        assert modification.complete("teacher", now=NOW) is False
        assert modification.status == ModificationStatus.PENDING.value

    def test_reject_is_terminal(self):
        modification = _reschedule()

        assert modification.reject("teacher", "no", now=NOW) is True
        assert modification.approve("teacher", now=NOW) is False
        assert modification.cancel("student", now=NOW) is False
        assert len(modification.history) == 2

    def test_cancel_from_approved(self):
        modification = _reschedule()
        modification.approve("teacher", now=NOW)

        assert modification.cancel("student", "changed my mind", now=NOW) is True
        assert modification.status == ModificationStatus.CANCELLED.value

    def test_no_response_after_deadline(self):
        modification = _reschedule()
        after = NOW + timedelta(days=3, seconds=1)

        assert modification.approve("teacher", now=after) is False
        assert modification.reject("teacher", now=after) is False
        assert modification.status == ModificationStatus.PENDING.value

    def test_transition_table(self):
        modification = _reschedule()

        assert modification.can_transition_to(ModificationStatus.EXPIRED)
        assert not modification.can_transition_to(ModificationStatus.COMPLETED)

        modification.approve("teacher", now=NOW)
        assert modification.can_transition_to("completed")
        assert not modification.can_transition_to(ModificationStatus.EXPIRED)


class TestExpiry:
    def test_not_before_deadline(self):
        modification = _reschedule()

        assert modification.mark_as_expired(NOW + timedelta(days=3)) is False
        assert modification.has_expired(NOW + timedelta(days=3)) is False

    def test_expires_once(self):
        modification = _reschedule()
        after = NOW + timedelta(days=4)

        assert modification.mark_as_expired(after) is True
        assert modification.mark_as_expired(after) is False
        assert modification.status == ModificationStatus.EXPIRED.value
        assert modification.history[-1]["action"] == "expired"
        assert modification.history[-1]["user_id"] is None
        assert modification.is_active is False

    @pytest.mark.parametrize("status", ["approved", "rejected", "cancelled", "completed"])
    def test_only_pending_expires(self, status):
        modification = _reschedule()
        modification.status = status

        assert modification.mark_as_expired(NOW + timedelta(days=10)) is False

    def test_naive_deadline_is_treated_as_utc(self):
        modification = _reschedule()
        modification.expires_at = datetime(2026, 10, 22, 8, 0)

        assert modification.has_expired(datetime(2026, 10, 22, 8, 1, tzinfo=timezone.utc)) is True
        assert modification.has_expired(datetime(2026, 10, 22, 7, 59, tzinfo=timezone.utc)) is False

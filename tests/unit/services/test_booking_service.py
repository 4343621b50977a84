"""Tests for the booking lifecycle."""

from datetime import date, time, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from tutorhub.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    InsufficientBalanceException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from tutorhub.core.time_utils import utc_now
from tutorhub.models.booking import BookingStatus
from tutorhub.models.transaction import TransactionType
from tutorhub.models.wallet import WalletType
from tutorhub.services.config_service import ConfigService


class TestCreateBooking:
    def test_creates_pending_booking_with_history(
        self, booking_service, teacher_schedule, make_booking, monday
    ):
        teacher_id = teacher_schedule()

        booking = make_booking(teacher_id, start=time(9, 30), duration=90)

        assert booking.status == BookingStatus.PENDING.value
        assert booking.booking_date == monday
        assert booking.end_time == time(11, 0)
        assert booking.is_paid is False
        history = booking_service.get_booking_history(booking.id)
        assert [h.action for h in history] == ["created"]
        booking_service.notification_service.send_booking_created.assert_called_once_with(booking)

    def test_priced_booking_charges_student(
        self, booking_service, wallet_service, funded_wallet, teacher_schedule, make_booking
    ):
        teacher_id = teacher_schedule()
        wallet = funded_wallet(WalletType.STUDENT, "8000")

        booking = make_booking(teacher_id, student_id=wallet.user_id, price="5000")

        assert booking.is_paid is True
        assert wallet.balance_amount == Decimal("3000")
        rows = wallet_service.transaction_repository.find_for_booking(booking.id)
        assert [r.transaction_type for r in rows] == [TransactionType.BOOKING_PAYMENT.value]

    def test_unfunded_student_books_nothing(
        self, booking_service, funded_wallet, teacher_schedule, make_booking
    ):
        teacher_id = teacher_schedule()
        wallet = funded_wallet(WalletType.STUDENT, "1000")

        with pytest.raises(InsufficientBalanceException):
            make_booking(teacher_id, student_id=wallet.user_id, price="5000")

        bookings, total = booking_service.list_bookings(teacher_id=teacher_id)
        assert total == 0
        assert wallet.balance_amount == Decimal("1000")

    def test_overlapping_slot(self, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()
        make_booking(teacher_id, start=time(9, 0))

        with pytest.raises(BookingConflictException):
            make_booking(teacher_id, start=time(9, 30))

    def test_outside_availability(self, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()

        with pytest.raises(BusinessRuleException):
            make_booking(teacher_id, start=time(14, 0))

    def test_past_date(self, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()

        with pytest.raises(ValidationException):
            make_booking(teacher_id, booking_date=utc_now().date() - timedelta(days=1))

    def test_negative_price(self, teacher_schedule, make_booking):
        with pytest.raises(ValidationException):
            make_booking(teacher_schedule(), price="-5")

    def test_lock_held_elsewhere(self, booking_service, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()

        with patch("tutorhub.core.booking_lock.acquire_teacher_slot_lock", return_value=False):
            with pytest.raises(BookingConflictException) as exc_info:
                make_booking(teacher_id)

        assert "being processed" in exc_info.value.message
        assert booking_service.list_bookings(teacher_id=teacher_id)[1] == 0


class TestStatusTransitions:
    def test_approve_then_complete(self, booking_service, teacher_schedule, make_booking, make_id):
        booking = make_booking(teacher_schedule())
        admin_id = make_id()

        booking_service.update_status(booking.id, BookingStatus.APPROVED, admin_id)
        booking_service.update_status(booking.id, BookingStatus.UPCOMING, admin_id)
        updated = booking_service.update_status(booking.id, BookingStatus.COMPLETED, admin_id)

        assert updated.status == BookingStatus.COMPLETED.value
        assert updated.approved_by_id == admin_id
        assert updated.completed_at is not None
        actions = [
            (h.from_status, h.to_status) for h in booking_service.get_booking_history(booking.id)
        ]
        assert actions[1:] == [
            ("pending", "approved"),
            ("approved", "upcoming"),
            ("upcoming", "completed"),
        ]

    @pytest.mark.parametrize(
        "path",
        [
            [BookingStatus.COMPLETED],
            [BookingStatus.REJECTED, BookingStatus.APPROVED],
            [BookingStatus.CANCELLED, BookingStatus.PENDING],
        ],
    )
    def test_invalid_transitions(self, booking_service, teacher_schedule, make_booking, path):
        booking = make_booking(teacher_schedule())
        *allowed, forbidden = path
        for status in allowed:
            booking_service.update_status(booking.id, status, None)

        with pytest.raises(InvalidStatusTransitionException):
            booking_service.update_status(booking.id, forbidden, None)

    def test_cancel_refunds_paid_booking(
        self, booking_service, wallet_service, funded_wallet, teacher_schedule, make_booking
    ):
        wallet = funded_wallet(WalletType.STUDENT, "5000")
        booking = make_booking(teacher_schedule(), student_id=wallet.user_id, price="5000")

        cancelled = booking_service.update_status(
            booking.id, BookingStatus.CANCELLED, wallet.user_id, notes="Sick"
        )

        assert cancelled.cancelled_by_id == wallet.user_id
        assert cancelled.is_paid is False
        assert wallet.balance_amount == Decimal("5000")
        assert wallet_service.reconcile(wallet)["balanced"] is True

    def test_complete_credits_teacher_share(
        self, db, booking_service, wallet_service, funded_wallet, teacher_schedule, make_booking
    ):
        ConfigService(db).set("platform_commission_percent", "20")
        student = funded_wallet(WalletType.STUDENT, "5000")
        teacher_id = teacher_schedule()
        booking = make_booking(teacher_id, student_id=student.user_id, price="5000")

        booking_service.update_status(booking.id, BookingStatus.APPROVED, None)
        booking_service.update_status(booking.id, BookingStatus.COMPLETED, None)

        teacher_wallet = wallet_service.get_wallet(teacher_id, WalletType.TEACHER)
        assert teacher_wallet.balance_amount == Decimal("4000.00")
        assert Decimal(teacher_wallet.total_earned) == Decimal("4000.00")

    def test_missed_keeps_payment(
        self, booking_service, funded_wallet, teacher_schedule, make_booking
    ):
        student = funded_wallet(WalletType.STUDENT, "5000")
        booking = make_booking(teacher_schedule(), student_id=student.user_id, price="5000")

        booking_service.update_status(booking.id, BookingStatus.APPROVED, None)
        booking_service.update_status(booking.id, BookingStatus.MISSED, None)

        assert student.balance_amount == Decimal("0")

    def test_unknown_booking(self, booking_service, make_id):
        with pytest.raises(NotFoundException):
            booking_service.update_status(make_id(), BookingStatus.APPROVED, None)


class TestBulkUpdate:
    def test_all_or_nothing(self, booking_service, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()
        first = make_booking(teacher_id, start=time(9, 0))
        second = make_booking(teacher_id, start=time(10, 0))
        booking_service.update_status(second.id, BookingStatus.REJECTED, None)

        with pytest.raises(InvalidStatusTransitionException):
            booking_service.bulk_update_status([first.id, second.id], BookingStatus.APPROVED, None)

        assert booking_service.get_booking(first.id).status == BookingStatus.PENDING.value

    def test_updates_every_booking(self, booking_service, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()
        ids = [make_booking(teacher_id, start=time(h, 0)).id for h in (9, 10, 11)]

        updated = booking_service.bulk_update_status(ids + ids[:1], BookingStatus.APPROVED, None)

        assert [b.id for b in updated] == ids
        assert {b.status for b in updated} == {BookingStatus.APPROVED.value}

    def test_missing_ids(self, booking_service, teacher_schedule, make_booking, make_id):
        booking = make_booking(teacher_schedule())
        missing = make_id()

        with pytest.raises(NotFoundException) as exc_info:
            booking_service.bulk_update_status([booking.id, missing], BookingStatus.APPROVED, None)

        assert exc_info.value.details["booking_ids"] == [missing]

    def test_empty_list(self, booking_service):
        with pytest.raises(ValidationException):
            booking_service.bulk_update_status([], BookingStatus.APPROVED, None)


class TestReschedule:
    def test_moves_booking_and_records_history(
        self, booking_service, teacher_schedule, make_booking, monday, make_id
    ):
        teacher_id = teacher_schedule({0: (time(9, 0), time(12, 0)), 1: (time(14, 0), time(16, 0))})
        booking = make_booking(teacher_id)
        tuesday = monday + timedelta(days=1)

        moved = booking_service.reschedule(booking.id, tuesday, time(14, 30), make_id(), "Clash")

        assert moved.booking_date == tuesday
        assert moved.start_time == time(14, 30)
        assert moved.end_time == time(15, 30)
        entry = booking_service.get_booking_history(booking.id)[-1]
        assert entry.action == "rescheduled"
        assert entry.metadata_json["previous"]["start_time"] == "09:00"
        assert entry.metadata_json["new"]["booking_date"] == tuesday.isoformat()

    def test_can_shift_within_own_slot(self, booking_service, teacher_schedule, make_booking, monday):
        teacher_id = teacher_schedule()
        booking = make_booking(teacher_id, start=time(9, 0))

        moved = booking_service.reschedule(booking.id, monday, time(9, 30), None)

        assert moved.start_time == time(9, 30)

    def test_target_slot_taken(self, booking_service, teacher_schedule, make_booking, monday):
        teacher_id = teacher_schedule()
        booking = make_booking(teacher_id, start=time(9, 0))
        make_booking(teacher_id, start=time(11, 0))

        with pytest.raises(BookingConflictException):
            booking_service.reschedule(booking.id, monday, time(10, 30), None)

        assert booking_service.get_booking(booking.id).start_time == time(9, 0)

    def test_finished_booking_cannot_move(
        self, booking_service, teacher_schedule, make_booking, monday
    ):
        booking = make_booking(teacher_schedule())
        booking_service.update_status(booking.id, BookingStatus.CANCELLED, None)

        with pytest.raises(InvalidStatusTransitionException):
            booking_service.reschedule(booking.id, monday, time(10, 0), None)

    def test_into_the_past(self, booking_service, teacher_schedule, make_booking):
        booking = make_booking(teacher_schedule())

        with pytest.raises(ValidationException):
            booking_service.reschedule(booking.id, date(2020, 1, 6), time(10, 0), None)


class TestQueries:
    def test_list_filters(self, booking_service, teacher_schedule, make_booking, make_id):
        teacher_id = teacher_schedule()
        student_id = make_id()
        make_booking(teacher_id, student_id=student_id, start=time(9, 0))
        make_booking(teacher_id, start=time(10, 0))

        items, total = booking_service.list_bookings(student_id=student_id)
        assert total == 1
        assert items[0].student_id == student_id

        items, total = booking_service.list_bookings(teacher_id=teacher_id, per_page=1, page=2)
        assert total == 2
        assert len(items) == 1

    def test_stats(self, booking_service, teacher_schedule, make_booking):
        teacher_id = teacher_schedule()
        first = make_booking(teacher_id, start=time(9, 0))
        make_booking(teacher_id, start=time(10, 0))
        booking_service.update_status(first.id, BookingStatus.CANCELLED, None)

        stats = booking_service.get_stats()

        assert stats["total"] == 2
        assert stats["by_status"]["pending"] == 1
        assert stats["by_status"]["cancelled"] == 1
        assert stats["by_status"]["missed"] == 0
        assert stats["today"] == 0

# tutorhub/services/booking_service.py
"""
Booking Service for TutorHub

Handles the booking lifecycle:
- Creating bookings inside a teacher's availability, free of conflicts
- Status transitions with refunds and teacher earnings
- Direct reschedules by staff
- Listing, lookup and statistics

Writes that claim a teacher slot hold the per-teacher Redis lock, lock the
teacher's schedule row and rely on the partial unique index on bookings as
the last line against double-booking. Notifications go out after commit.
"""

from contextlib import contextmanager
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.booking_lock import teacher_slot_lock
from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..models.booking import MODIFIABLE_STATUSES, Booking, BookingStatus
from ..models.booking_history import BookingHistory
from ..models.transaction import TransactionType
from ..models.wallet import ZERO, WalletType
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .config_service import ConfigService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .wallet_service import WalletService, to_money

logger = logging.getLogger(__name__)

# Statuses that return a paid booking's price to the student
REFUND_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELLED})


class BookingService(BaseService):
    """Service layer for booking operations."""

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        wallet_service: Optional[WalletService] = None,
        config_service: Optional[ConfigService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.conflict_repository = RepositoryFactory.create_conflict_checker_repository(db)
        self.modification_repository = RepositoryFactory.create_booking_modification_repository(
            db
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.conflict_repository)
        self.wallet_service = wallet_service or WalletService(db)
        self.config_service = config_service or ConfigService(db)
        self.notification_service = notification_service or NotificationService()

    # Locking

    @contextmanager
    def slot_lock(self, teacher_id: str, booking_date: date) -> Iterator[None]:
        """Hold the per-teacher mutex for ``booking_date`` or fail fast."""
        with teacher_slot_lock(teacher_id, booking_date) as acquired:
            if not acquired:
                raise BookingConflictException(
                    "Another booking for this teacher is being processed. Please try again.",
                    details={"teacher_id": teacher_id, "booking_date": booking_date.isoformat()},
                )
            yield

    # Lookup

    def get_booking(self, booking_id: str, for_update: bool = False) -> Booking:
        booking = self.repository.get_by_id(booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundException(
                "Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id}
            )
        return booking

    def get_booking_history(self, booking_id: str) -> List[BookingHistory]:
        self.get_booking(booking_id)
        return self.repository.get_history(booking_id)

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
        return self.repository.list_bookings(
            student_id=student_id,
            teacher_id=teacher_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )

    @BaseService.measure_operation("get_booking_stats")
    def get_stats(self) -> Dict[str, Any]:
        counts = self.repository.count_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in BookingStatus}
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "today": self.repository.count_on_date(utc_now().date()),
        }

    # Creation

    def _insert_booking(
        self,
        *,
        student_id: str,
        teacher_id: str,
        subject_id: str,
        booking_date: date,
        start_time: time,
        duration_minutes: int,
        price: Optional[Decimal],
        notes: Optional[str],
        actor_id: Optional[str],
        currency: Optional[str] = None,
        rebooked_from_id: Optional[str] = None,
        charge_student: bool = True,
    ) -> Booking:
        """
        Validate the slot and write the booking, its payment and history.

        Runs inside the caller's transaction while the caller holds the
        teacher slot lock.
        """
        self.conflict_repository.lock_teacher_schedule(teacher_id)
        end_time = self.conflict_checker.ensure_slot_available(
            teacher_id, booking_date, start_time, duration_minutes
        )

        booking = self.repository.create_booking(
            student_id=student_id,
            teacher_id=teacher_id,
            subject_id=subject_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            status=BookingStatus.PENDING.value,
            price=price,
            currency=currency or settings.default_currency,
            is_paid=False,
            notes=notes,
            rebooked_from_id=rebooked_from_id,
            created_at=utc_now(),
        )

        if price is not None and price > ZERO and charge_student:
            wallet = self.wallet_service.get_or_create_wallet(student_id, WalletType.STUDENT)
            self.wallet_service.deduct_funds(
                wallet,
                price,
                description=f"Payment for booking on {booking_date.isoformat()}",
                transaction_type=TransactionType.BOOKING_PAYMENT,
                booking_id=booking.id,
                created_by_id=actor_id,
            )
            booking.is_paid = True

        self.repository.add_history(
            booking,
            "created",
            performed_by_id=actor_id,
            to_status=booking.status,
            notes=notes,
            metadata={"rebooked_from_id": rebooked_from_id} if rebooked_from_id else None,
        )
        return booking

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        student_id: str,
        teacher_id: str,
        subject_id: str,
        booking_date: date,
        start_time: time,
        duration_minutes: int,
        price: Optional[Any] = None,
        notes: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> Booking:
        """
        Create a pending booking.

        Raises:
            ValidationException: past date or invalid duration
            BusinessRuleException: outside availability, holiday mode, or inactive teacher
            BookingConflictException: slot already taken
            InsufficientBalanceException: student cannot pay the price
        """
        self.log_operation(
            "create_booking",
            student_id=student_id,
            teacher_id=teacher_id,
            date=booking_date.isoformat(),
            duration_minutes=duration_minutes,
        )
        if booking_date < utc_now().date():
            raise ValidationException(
                "Cannot book a date in the past", details={"booking_date": booking_date.isoformat()}
            )
        amount = to_money(price) if price is not None else None
        if amount is not None and amount < ZERO:
            raise ValidationException("Price cannot be negative")

        with self.slot_lock(teacher_id, booking_date):
            with self.transaction():
                booking = self._insert_booking(
                    student_id=student_id,
                    teacher_id=teacher_id,
                    subject_id=subject_id,
                    booking_date=booking_date,
                    start_time=start_time,
                    duration_minutes=duration_minutes,
                    price=amount,
                    notes=notes,
                    actor_id=created_by_id or student_id,
                )

        self.notification_service.send_booking_created(booking)
        return booking

    # Status transitions

    def _teacher_share(self, price: Decimal) -> Decimal:
        commission = self.config_service.get_decimal("platform_commission_percent")
        share = price * (Decimal("100") - commission) / Decimal("100")
        return share.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def _apply_status(
        self,
        booking: Booking,
        target: BookingStatus,
        actor_id: Optional[str],
        notes: Optional[str],
        *,
        settle_payment: bool = True,
        close_modifications: bool = True,
    ) -> str:
        """
        Move ``booking`` to ``target`` with its side effects; returns the previous status.

        ``settle_payment=False`` skips the refund or teacher earnings, for
        callers that carry the payment over to another booking.
        """
        if not booking.can_transition_to(target):
            raise InvalidStatusTransitionException("booking", booking.status, target.value)

        previous = booking.status
        now = utc_now()
        booking.status = target.value

        if target == BookingStatus.APPROVED:
            booking.approved_by_id = actor_id
            booking.approved_at = now
        elif target == BookingStatus.CANCELLED:
            booking.cancelled_by_id = actor_id
            booking.cancelled_at = now
        elif target == BookingStatus.COMPLETED:
            booking.completed_at = now

        if settle_payment:
            self._settle_payment(booking, target, actor_id)

        if close_modifications and booking.is_terminal:
            self._close_open_modifications(booking, actor_id, now)

        self.repository.add_history(
            booking,
            "status_changed",
            performed_by_id=actor_id,
            from_status=previous,
            to_status=target.value,
            notes=notes,
        )
        return previous

    def _settle_payment(
        self, booking: Booking, target: BookingStatus, actor_id: Optional[str]
    ) -> None:
        price = Decimal(booking.price) if booking.price is not None else ZERO
        if price <= ZERO:
            return
        if target in REFUND_STATUSES and booking.is_paid:
            wallet = self.wallet_service.get_or_create_wallet(booking.student_id, WalletType.STUDENT)
            self.wallet_service.add_refund(
                wallet,
                price,
                description=f"Refund for {target.value} booking",
                booking_id=booking.id,
                created_by_id=actor_id,
            )
            booking.is_paid = False
        elif target == BookingStatus.COMPLETED and booking.is_paid:
            share = self._teacher_share(price)
            if share > ZERO:
                wallet = self.wallet_service.get_or_create_wallet(
                    booking.teacher_id, WalletType.TEACHER
                )
                self.wallet_service.add_earnings(
                    wallet, share, description="Session completed", booking_id=booking.id
                )

    def _close_open_modifications(self, booking: Booking, actor_id: Optional[str], now) -> None:
        modification = self.modification_repository.get_active_for_booking(booking.id)
        if modification is not None and modification.cancel(
            actor_id, f"Booking {booking.status}", now=now
        ):
            self.logger.info(
                "Closed open modification for finished booking",
                extra={"booking_id": booking.id, "modification_id": modification.id},
            )

    @BaseService.measure_operation("update_booking_status")
    def update_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
        notify: bool = True,
    ) -> Booking:
        target = BookingStatus(new_status)
        with self.transaction():
            booking = self.get_booking(booking_id, for_update=True)
            previous = self._apply_status(booking, target, actor_id, notes)

        self.log_operation(
            "update_booking_status",
            booking_id=booking_id,
            from_status=previous,
            to_status=target.value,
            actor_id=actor_id,
        )
        if notify:
            self.notification_service.send_booking_status_changed(booking, previous, notes)
        return booking

    @BaseService.measure_operation("bulk_update_booking_status")
    def bulk_update_status(
        self,
        booking_ids: Sequence[str],
        new_status: BookingStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
        notify: bool = True,
    ) -> List[Booking]:
        """Apply one transition to several bookings; any failure leaves all unchanged."""
        target = BookingStatus(new_status)
        unique_ids = list(dict.fromkeys(booking_ids))
        if not unique_ids:
            raise ValidationException("At least one booking id is required")

        with self.transaction():
            bookings = {b.id: b for b in self.repository.get_many(unique_ids, for_update=True)}
            missing = [booking_id for booking_id in unique_ids if booking_id not in bookings]
            if missing:
                raise NotFoundException(
                    "Some bookings were not found",
                    code="BOOKING_NOT_FOUND",
                    details={"booking_ids": missing},
                )
            changes = []
            for booking_id in unique_ids:
                booking = bookings[booking_id]
                changes.append((booking, self._apply_status(booking, target, actor_id, notes)))

        self.log_operation(
            "bulk_update_booking_status", count=len(changes), to_status=target.value
        )
        if notify:
            for booking, previous in changes:
                self.notification_service.send_booking_status_changed(booking, previous, notes)
        return [booking for booking, _ in changes]

    # Rescheduling

    def _move(
        self,
        booking: Booking,
        new_date: date,
        new_start_time: time,
        duration_minutes: int,
        actor_id: Optional[str],
        action: str,
        notes: Optional[str],
    ) -> Booking:
        """Move a booking to a new slot; runs inside the caller's transaction and lock."""
        if booking.status not in MODIFIABLE_STATUSES:
            raise InvalidStatusTransitionException("booking", booking.status, action)
        self.conflict_repository.lock_teacher_schedule(booking.teacher_id)
        end_time = self.conflict_checker.ensure_slot_available(
            booking.teacher_id,
            new_date,
            new_start_time,
            duration_minutes,
            exclude_booking_id=booking.id,
        )
        previous = {
            "booking_date": booking.booking_date.isoformat(),
            "start_time": booking.start_time.strftime("%H:%M"),
            "end_time": booking.end_time.strftime("%H:%M"),
        }
        self.repository.move_booking(
            booking,
            booking_date=new_date,
            start_time=new_start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
        )
        self.repository.add_history(
            booking,
            action,
            performed_by_id=actor_id,
            from_status=booking.status,
            to_status=booking.status,
            notes=notes,
            metadata={
                "previous": previous,
                "new": {
                    "booking_date": new_date.isoformat(),
                    "start_time": new_start_time.strftime("%H:%M"),
                    "end_time": end_time.strftime("%H:%M"),
                },
            },
        )
        return booking

    @BaseService.measure_operation("reschedule_booking")
    def reschedule(
        self,
        booking_id: str,
        new_date: date,
        new_start_time: time,
        actor_id: Optional[str],
        reason: Optional[str] = None,
        new_duration_minutes: Optional[int] = None,
    ) -> Booking:
        """Staff-initiated move of a booking to another slot with the same teacher."""
        if new_date < utc_now().date():
            raise ValidationException(
                "Cannot reschedule into the past", details={"new_date": new_date.isoformat()}
            )
        booking = self.get_booking(booking_id)
        duration = new_duration_minutes or booking.duration_minutes

        with self.slot_lock(booking.teacher_id, new_date):
            with self.transaction():
                booking = self.get_booking(booking_id, for_update=True)
                self._move(booking, new_date, new_start_time, duration, actor_id, "rescheduled", reason)

        self.notification_service.send_booking_rescheduled(booking)
        return booking


__all__ = ["BookingService", "REFUND_STATUSES"]

# tutorhub/services/booking_modification_service.py
"""
Booking Modification Service for TutorHub

Students ask to move a booking (reschedule: same teacher, new slot) or to
move it to another teacher or subject (rebook). The responding teacher
approves or rejects; the student may cancel; unanswered requests expire.

Approval applies the change and completes the request in one transaction:
- reschedule moves the booking in place,
- rebook cancels the original booking, creates the new one and settles
  payment against the student wallet: the price difference when the
  original was paid, the full new price when it was not.
"""

from datetime import date, datetime, time
from decimal import Decimal
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.time_utils import utc_now
from ..models.booking import MODIFIABLE_STATUSES, Booking, BookingStatus
from ..models.booking_modification import (
    BookingModification,
    ModificationStatus,
    ModificationType,
)
from ..models.transaction import TransactionType
from ..models.wallet import ZERO, WalletType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService
from .config_service import ConfigService
from .notification_service import NotificationService
from .wallet_service import to_money

logger = logging.getLogger(__name__)


class BookingModificationService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        config_service: Optional[ConfigService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_modification_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.config_service = config_service or ConfigService(db)
        self.notification_service = notification_service or NotificationService()
        self.booking_service = booking_service or BookingService(
            db,
            config_service=self.config_service,
            notification_service=self.notification_service,
        )
        self.conflict_checker = self.booking_service.conflict_checker
        self.wallet_service = self.booking_service.wallet_service

    # Lookup

    def get_modification(self, modification_id: str, for_update: bool = False) -> BookingModification:
        modification = self.repository.get_by_id(modification_id, for_update=for_update)
        if modification is None:
            raise NotFoundException(
                "Modification request not found",
                code="MODIFICATION_NOT_FOUND",
                details={"modification_id": modification_id},
            )
        return modification

    def _expire_if_stale(self, modification: BookingModification, now: datetime) -> bool:
        """Expire a pending request whose deadline passed; returns True if it did."""
        if modification.mark_as_expired(now):
            prometheus_metrics.record_modifications_expired(1)
            return True
        return False

    @BaseService.measure_operation("check_existing_modification")
    def check_existing_modification(self, booking_id: str) -> Optional[BookingModification]:
        """The booking's active request, expiring it first if its deadline passed."""
        modification = self.repository.get_active_for_booking(booking_id)
        if modification is None:
            return None
        if modification.status == ModificationStatus.PENDING.value and modification.has_expired():
            with self.transaction():
                self._expire_if_stale(modification, utc_now())
            return None
        return modification

    def list_for_student(
        self,
        student_id: str,
        status: Optional[ModificationStatus] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[BookingModification], int]:
        return self.repository.list_modifications(
            student_id=student_id, status=status, page=page, per_page=per_page
        )

    def list_for_teacher(
        self,
        teacher_id: str,
        status: Optional[ModificationStatus] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[BookingModification], int]:
        return self.repository.list_modifications(
            teacher_id=teacher_id, status=status, page=page, per_page=per_page
        )

    # Requests

    def _load_modifiable_booking(self, booking_id: str, student_id: str) -> Booking:
        booking = self.booking_service.get_booking(booking_id)
        if booking.student_id != student_id:
            raise ForbiddenException(
                "Only the student on the booking can request changes",
                code="BOOKING_NOT_OWNED",
                details={"booking_id": booking_id},
            )
        if booking.status not in MODIFIABLE_STATUSES:
            raise InvalidStatusTransitionException("booking", booking.status, "modification")
        return booking

    def _ensure_no_active(self, booking: Booking) -> None:
        if self.check_existing_modification(booking.id) is not None:
            raise ConflictException(
                "This booking already has an open modification request",
                code="MODIFICATION_EXISTS",
                details={"booking_id": booking.id},
            )

    @staticmethod
    def _validate_new_date(new_date: date) -> None:
        if new_date < utc_now().date():
            raise ValidationException(
                "The new date cannot be in the past", details={"new_date": new_date.isoformat()}
            )

    def _store_request(self, modification: BookingModification) -> BookingModification:
        with self.transaction():
            self.repository.add(modification)
        self.log_operation(
            "create_modification_request",
            modification_id=modification.id,
            booking_id=modification.booking_id,
            type=modification.type,
        )
        self.notification_service.send_modification_requested(modification)
        return modification

    @BaseService.measure_operation("create_reschedule_request")
    def create_reschedule_request(
        self,
        booking_id: str,
        student_id: str,
        new_date: date,
        new_start_time: time,
        new_duration_minutes: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> BookingModification:
        """
        Ask the booking's teacher to move it to another slot.

        Raises:
            ForbiddenException: caller is not the booking's student
            InvalidStatusTransitionException: booking can no longer be changed
            ConflictException: an open request already exists
            BusinessRuleException / BookingConflictException: new slot unavailable
        """
        booking = self._load_modifiable_booking(booking_id, student_id)
        self._validate_new_date(new_date)
        duration = new_duration_minutes or booking.duration_minutes
        if (
            new_date == booking.booking_date
            and new_start_time == booking.start_time
            and duration == booking.duration_minutes
        ):
            raise ValidationException("The requested slot is the booking's current slot")
        self._ensure_no_active(booking)
        self.conflict_checker.ensure_slot_available(
            booking.teacher_id, new_date, new_start_time, duration, exclude_booking_id=booking.id
        )

        modification = BookingModification.create_reschedule_request(
            booking,
            new_date=new_date,
            new_start_time=new_start_time,
            new_duration_minutes=duration,
            requested_by=student_id,
            reason=reason,
            expiry_days=self.config_service.get_int("reschedule_expiry_days"),
        )
        return self._store_request(modification)

    @BaseService.measure_operation("create_rebook_request")
    def create_rebook_request(
        self,
        booking_id: str,
        student_id: str,
        new_teacher_id: str,
        new_subject_id: str,
        new_date: date,
        new_start_time: time,
        new_duration_minutes: Optional[int] = None,
        new_price: Optional[Any] = None,
        reason: Optional[str] = None,
    ) -> BookingModification:
        """Ask another teacher (or the same one, for another subject) to take the session."""
        booking = self._load_modifiable_booking(booking_id, student_id)
        self._validate_new_date(new_date)
        duration = new_duration_minutes or booking.duration_minutes
        price = to_money(new_price) if new_price is not None else None
        if price is not None and price < ZERO:
            raise ValidationException("Price cannot be negative")
        if new_teacher_id == booking.teacher_id and new_subject_id == booking.subject_id:
            raise ValidationException(
                "A rebook must change the teacher or the subject; use a reschedule instead"
            )
        self._ensure_no_active(booking)
        self.conflict_checker.ensure_slot_available(
            new_teacher_id,
            new_date,
            new_start_time,
            duration,
            exclude_booking_id=booking.id if new_teacher_id == booking.teacher_id else None,
        )

        modification = BookingModification.create_rebook_request(
            booking,
            new_teacher_id=new_teacher_id,
            new_subject_id=new_subject_id,
            new_date=new_date,
            new_start_time=new_start_time,
            new_duration_minutes=duration,
            new_price=price,
            requested_by=student_id,
            reason=reason,
            expiry_days=self.config_service.get_int("rebook_expiry_days"),
        )
        return self._store_request(modification)

    # Responses

    def _load_for_response(self, modification_id: str, teacher_id: str) -> BookingModification:
        modification = self.get_modification(modification_id)
        if modification.responding_teacher_id != teacher_id:
            raise ForbiddenException(
                "Only the responding teacher can answer this request",
                code="MODIFICATION_NOT_OWNED",
                details={"modification_id": modification_id},
            )
        if modification.status == ModificationStatus.PENDING.value and modification.has_expired():
            with self.transaction():
                self._expire_if_stale(modification, utc_now())
            raise InvalidStatusTransitionException(
                "booking modification", ModificationStatus.EXPIRED.value, "responded"
            )
        return modification

    def _apply_reschedule(
        self, modification: BookingModification, booking: Booking, teacher_id: str, notes: Optional[str]
    ) -> Booking:
        return self.booking_service._move(
            booking,
            modification.new_booking_date,
            modification.new_start_time,
            modification.new_duration_minutes,
            teacher_id,
            "rescheduled",
            notes or modification.reason,
        )

    def _apply_rebook(
        self, modification: BookingModification, booking: Booking, teacher_id: str, notes: Optional[str]
    ) -> Booking:
        was_paid = bool(booking.is_paid)
        self.booking_service._apply_status(
            booking,
            BookingStatus.CANCELLED,
            teacher_id,
            "Rebooked",
            settle_payment=False,
            close_modifications=False,
        )
        new_price = (
            Decimal(modification.new_price)
            if modification.new_price is not None
            else (Decimal(booking.price) if booking.price is not None else None)
        )
        new_booking = self.booking_service._insert_booking(
            student_id=booking.student_id,
            teacher_id=modification.new_teacher_id,
            subject_id=modification.new_subject_id,
            booking_date=modification.new_booking_date,
            start_time=modification.new_start_time,
            duration_minutes=modification.new_duration_minutes,
            price=new_price,
            notes=notes or modification.reason,
            actor_id=teacher_id,
            currency=booking.currency,
            rebooked_from_id=booking.id,
            charge_student=False,
        )
        booking.is_paid = False

        description = "Price difference for rebooked session"
        if was_paid:
            amount = Decimal(modification.price_difference or ZERO)
        else:
            # Nothing was collected for the original booking.
            amount = new_price if new_price is not None else ZERO
            description = "Payment for rebooked session"
        student_id = booking.student_id
        if amount > ZERO:
            self.wallet_service.deduct_funds(
                self.wallet_service.get_or_create_wallet(student_id, WalletType.STUDENT),
                amount,
                description=description,
                transaction_type=TransactionType.BOOKING_PAYMENT,
                booking_id=new_booking.id,
                created_by_id=teacher_id,
            )
        elif amount < ZERO:
            self.wallet_service.add_refund(
                self.wallet_service.get_or_create_wallet(student_id, WalletType.STUDENT),
                -amount,
                description=description,
                booking_id=new_booking.id,
                created_by_id=teacher_id,
            )
        new_booking.is_paid = new_price is not None and new_price > ZERO
        return new_booking

    @BaseService.measure_operation("approve_modification")
    def approve_modification(
        self, modification_id: str, teacher_id: str, notes: Optional[str] = None
    ) -> BookingModification:
        modification = self._load_for_response(modification_id, teacher_id)
        target_teacher = modification.responding_teacher_id

        with self.booking_service.slot_lock(target_teacher, modification.new_booking_date):
            with self.transaction():
                modification = self.get_modification(modification_id, for_update=True)
                now = utc_now()
                if not modification.approve(teacher_id, notes, now=now):
                    raise InvalidStatusTransitionException(
                        "booking modification",
                        modification.status,
                        ModificationStatus.APPROVED.value,
                    )
                booking = self.booking_service.get_booking(modification.booking_id, for_update=True)
                if modification.type == ModificationType.RESCHEDULE.value:
                    result = self._apply_reschedule(modification, booking, teacher_id, notes)
                else:
                    result = self._apply_rebook(modification, booking, teacher_id, notes)
                modification.complete(teacher_id, notes, resulting_booking_id=result.id, now=now)

        self.log_operation(
            "approve_modification",
            modification_id=modification.id,
            resulting_booking_id=modification.resulting_booking_id,
        )
        self.notification_service.send_modification_resolved(modification)
        return modification

    @BaseService.measure_operation("reject_modification")
    def reject_modification(
        self, modification_id: str, teacher_id: str, notes: Optional[str] = None
    ) -> BookingModification:
        self._load_for_response(modification_id, teacher_id)
        with self.transaction():
            modification = self.get_modification(modification_id, for_update=True)
            if not modification.reject(teacher_id, notes):
                raise InvalidStatusTransitionException(
                    "booking modification", modification.status, ModificationStatus.REJECTED.value
                )

        self.log_operation("reject_modification", modification_id=modification.id)
        self.notification_service.send_modification_resolved(modification)
        return modification

    @BaseService.measure_operation("cancel_modification")
    def cancel_modification(
        self, modification_id: str, student_id: str, notes: Optional[str] = None
    ) -> BookingModification:
        with self.transaction():
            modification = self.get_modification(modification_id, for_update=True)
            if modification.student_id != student_id:
                raise ForbiddenException(
                    "Only the requesting student can cancel this request",
                    code="MODIFICATION_NOT_OWNED",
                    details={"modification_id": modification_id},
                )
            if not modification.cancel(student_id, notes):
                raise InvalidStatusTransitionException(
                    "booking modification", modification.status, ModificationStatus.CANCELLED.value
                )

        self.log_operation("cancel_modification", modification_id=modification.id)
        return modification

    # Expiry

    @BaseService.measure_operation("expire_stale_modifications")
    def expire_stale_modifications(self, now: Optional[datetime] = None) -> int:
        """Move every pending request past its deadline to expired; safe to re-run."""
        now = now or utc_now()
        expired = 0
        with self.transaction():
            for modification in self.repository.find_stale_pending(now):
                if modification.mark_as_expired(now):
                    expired += 1
        prometheus_metrics.record_modifications_expired(expired)
        if expired:
            self.logger.info(f"Expired {expired} stale booking modification requests")
        return expired


__all__ = ["BookingModificationService"]

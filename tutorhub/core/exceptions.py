# tutorhub/core/exceptions.py
"""
Domain-specific exceptions for the TutorHub platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the structured detail payload."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when the caller is not identified."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InsufficientBalanceException(BusinessRuleException):
    """Raised when a debit would take a wallet below zero."""

    def __init__(self, available: Decimal, requested: Decimal, *, wallet_id: Optional[str] = None):
        super().__init__(
            message="Insufficient wallet balance",
            code="INSUFFICIENT_BALANCE",
            details={
                "available": str(available),
                "requested": str(requested),
                "wallet_id": wallet_id,
            },
        )
        self.available = available
        self.requested = requested


class ChildNotOwnedException(ForbiddenException):
    """Raised when a guardian acts on a student they are not linked to."""

    def __init__(self, guardian_id: str, child_id: str):
        super().__init__(
            message="This student is not linked to your guardian account",
            code="CHILD_NOT_OWNED",
            details={"guardian_id": guardian_id, "child_id": child_id},
        )


class AllowanceExceededException(BusinessRuleException):
    """Raised when a transfer would exceed the child's allowance for the period."""

    def __init__(self, child_id: str, allowance: Decimal, spent: Decimal, requested: Decimal):
        super().__init__(
            message="Transfer exceeds the configured allowance for this period",
            code="ALLOWANCE_EXCEEDED",
            details={
                "child_id": child_id,
                "allowance": str(allowance),
                "spent_this_period": str(spent),
                "requested": str(requested),
            },
        )


class InvalidStatusTransitionException(ConflictException):
    """Raised when a state machine is asked for a transition it does not allow."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity} from '{current}' to '{target}'",
            code="INVALID_STATUS_TRANSITION",
            details={"entity": entity, "current_status": current, "target_status": target},
        )


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """

# backend/fleetbook/core/exceptions.py
"""
Domain-specific exceptions for the Fleetbook booking core.

Every exception carries a stable machine-readable ``code`` and a human
message, and knows how to render itself as an HTTPException for the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input fails business validation (bad duration, past date, missing reason)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class NotFoundException(DomainException):
    """Raised when a referenced partner, service, vehicle or booking is missing."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ForbiddenException(DomainException):
    """Raised when the caller does not own the resource it is acting on."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE
    default_code = "BUSINESS_RULE_VIOLATION"


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    default_code = "SERVICE_ERROR"

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """
    Raised when the requested slot is not bookable at write time.

    Callers should recompute slots and retry with fresh data.
    """

    default_code = "SLOT_UNAVAILABLE"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The requested time slot is no longer available",
            details=details or {},
        )


class InvalidTransitionException(ConflictException):
    """Raised when a booking status change is not allowed from its current status."""

    default_code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str, transition: str):
        super().__init__(
            message=(
                f"Cannot {transition} a booking that is {current_status} "
                f"(requested {requested_status})"
            ),
            details={
                "current_status": current_status,
                "requested_status": requested_status,
                "transition": transition,
            },
        )
        self.current_status = current_status
        self.requested_status = requested_status


class AvailabilityExistsException(ConflictException):
    """Raised when a partner already has a live window for a weekday."""

    default_code = "AVAILABILITY_EXISTS"

    def __init__(self, day_of_week: int):
        super().__init__(
            message=f"Availability for day {day_of_week} already exists. Use update instead.",
            details={"day_of_week": day_of_week},
        )


class DuplicateCommissionException(ServiceException):
    """Raised when a booking is settled a second time. Indicates an invariant breach."""

    default_code = "DUPLICATE_COMMISSION"

    def __init__(self, booking_id: str):
        super().__init__(
            message=f"Commission already exists for booking {booking_id}",
            details={"booking_id": booking_id},
        )


class AlreadyPaidException(ServiceException):
    """Raised when paying a commission that is already paid."""

    default_code = "ALREADY_PAID"

    def __init__(self, commission_id: str):
        super().__init__(
            message=f"Commission {commission_id} is already paid",
            details={"commission_id": commission_id},
        )


class DeadlineExceededException(ServiceException):
    """Raised when an operation runs past its caller-supplied deadline; nothing is persisted."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_code = "DEADLINE_EXCEEDED"

    def __init__(self, operation: str):
        super().__init__(
            message=f"Operation {operation} did not finish before its deadline and was not applied",
            details={"operation": operation},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """

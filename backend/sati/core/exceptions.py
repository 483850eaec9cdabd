# backend/sati/core/exceptions.py
"""
Domain-specific exceptions for the SATI platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

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
        """Convert to an HTTPException carrying the structured detail."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request data fails validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class PolicyViolationException(DomainException):
    """Raised when a configured admission or cancellation policy rejects a request."""

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
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class PaymentGatewayException(ServiceException):
    """Raised when the card gateway rejects or fails a call."""

    status_code = status.HTTP_502_BAD_GATEWAY


# Booking admission failures


class DocumentationRequiredException(ForbiddenException):
    """Raised when a non-admin without approved documentation tries to book."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message or "Debes tener documentación aprobada antes de reservar",
            code="DOCUMENTATION_REQUIRED",
            details={"documentation_required": True},
        )


class InvalidBookingRequestException(ValidationException):
    """Raised when a booking request is structurally invalid."""

    def __init__(self, message: str = "Invalid booking data", errors: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_REQUEST",
            details={"errors": errors} if errors is not None else None,
        )


class ResourceNotFoundException(NotFoundException):
    """Raised when the requested room does not exist."""

    def __init__(self, room_id: str) -> None:
        super().__init__("Room not found", code="RESOURCE_NOT_FOUND", details={"room_id": room_id})


class PastDateException(PolicyViolationException):
    def __init__(self) -> None:
        super().__init__("No se pueden crear reservas en fechas pasadas", code="PAST_DATE")


class InsufficientAdvanceNoticeException(PolicyViolationException):
    """Raised when the booking is placed closer than the configured advance days."""

    def __init__(self, required_days: int) -> None:
        super().__init__(
            f"Las reservas deben hacerse con al menos {required_days} días de anticipación",
            code="INSUFFICIENT_ADVANCE_NOTICE",
            details={"required_days": required_days},
        )


class QuotaExceededException(PolicyViolationException):
    def __init__(self, max_active: int) -> None:
        super().__init__(
            f"Has alcanzado el límite máximo de {max_active} reservas activas",
            code="QUOTA_EXCEEDED",
            details={"max_active_bookings": max_active},
        )


class DurationTooLongException(PolicyViolationException):
    def __init__(self, max_hours: int) -> None:
        super().__init__(
            f"No se permiten reservas de más de {max_hours} horas consecutivas",
            code="DURATION_TOO_LONG",
            details={"max_booking_duration_hours": max_hours},
        )


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message or "Room is already booked for this time",
            code="RESOURCE_CONFLICT",
            details=details,
        )


class UnpaidBalanceException(ConflictException):
    def __init__(self, pending_count: int) -> None:
        super().__init__(
            "Tiene pagos pendientes",
            code="UNPAID_BALANCE",
            details={"pending_payments": pending_count},
        )


class InsufficientNoticeException(PolicyViolationException):
    """Raised when a cancellation is attempted inside the notice window."""

    def __init__(self, required_hours: int, provided_hours: float) -> None:
        super().__init__(
            f"Solo se pueden cancelar reservas con al menos {required_hours} horas de anticipación",
            code="INSUFFICIENT_CANCELLATION_NOTICE",
            details={
                "required_hours": required_hours,
                "provided_hours": round(provided_hours, 2),
            },
        )


class WebhookSignatureException(ValidationException):
    """Raised when a webhook body does not match its signature header."""

    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(message, code="INVALID_SIGNATURE")


class RepositoryException(Exception):
    """Raised by repositories when a data access operation fails."""

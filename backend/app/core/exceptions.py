# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the trainer booking platform.

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
    """Raised when user is not authenticated."""

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


class BookingConflictException(ConflictException):
    """Raised when a session already carries a booking."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Session is already booked",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class SessionConflictException(ConflictException):
    """Raised when a session overlaps another session of the same trainer."""

    def __init__(self, session_date: str, new_range: str, conflicting_session_id: str):
        super().__init__(
            message="Session time conflicts with an existing session",
            code="SESSION_CONFLICT",
            details={
                "date": session_date,
                "new_slot": new_range,
                "conflicting_session_id": conflicting_session_id,
            },
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when an availability slot overlaps with an existing slot."""

    def __init__(
        self,
        slot_key: str,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message=f"Overlapping slot on {slot_key}: {new_range} conflicts with {conflicting_range}",
            code="AVAILABILITY_OVERLAP",
            details={
                "slot": slot_key,
                "new_slot": new_range,
                "conflicting_slot": conflicting_range,
            },
        )


class PaymentGatewayException(ValidationException):
    """Raised when a payment gateway call or callback verification fails."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="PAYMENT_GATEWAY_ERROR",
            details={"provider": provider, **(details or {})},
        )
        self.provider = provider


class InvalidSignatureException(PaymentGatewayException):
    """Raised when an inbound gateway callback fails signature verification."""

    def __init__(self, provider: str, message: str = "Invalid signature"):
        super().__init__(message, provider=provider)
        self.code = "INVALID_SIGNATURE"


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """

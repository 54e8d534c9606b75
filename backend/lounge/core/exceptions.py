# backend/lounge/core/exceptions.py
"""
Domain-specific exceptions for the lounge booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

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
        """Convert to HTTPException using the class status code."""
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


# Booking submission errors


class BookingValidationError(ValidationException):
    """Raised when a booking request is missing required information."""

    def __init__(self, problems: List[str]):
        super().__init__(
            message="Missing required booking information",
            code="BOOKING_VALIDATION",
            details={"problems": problems},
        )
        self.problems = problems


class CustomerLookupFailed(ServiceException):
    """Raised when the customer store cannot be queried."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Error looking up customer: {reason}",
            code="CUSTOMER_LOOKUP_FAILED",
        )


class CustomerCreateFailed(ServiceException):
    """Raised when a new customer record cannot be created."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Failed to create customer: {reason}",
            code="CUSTOMER_CREATE_FAILED",
        )


class BookingInsertFailed(ServiceException):
    """Raised when booking rows cannot be written."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Failed to create bookings: {reason}",
            code="BOOKING_INSERT_FAILED",
        )


class NoBookingsCreated(ServiceException):
    """Raised when the store accepted the insert but returned no rows."""

    def __init__(self) -> None:
        super().__init__(message="No bookings were created", code="NO_BOOKINGS_CREATED")


class SlotNoLongerAvailable(ConflictException):
    """Raised when a station was booked by someone else before commit."""

    def __init__(self, station_ids: List[str], details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="The selected time slot is no longer available for one or more stations",
            code="SLOT_NO_LONGER_AVAILABLE",
            details={"station_ids": station_ids, **(details or {})},
        )
        self.station_ids = station_ids


class ControllerLimitReached(BusinessRuleException):
    """Raised when selecting another PS5 station would exceed the controller pool."""

    def __init__(self, available_controllers: int):
        super().__init__(
            message=(
                "Cannot select more PS5 stations. "
                f"Only {available_controllers} controllers available."
            ),
            code="CONTROLLER_LIMIT_REACHED",
            details={"available_controllers": available_controllers},
        )


class InvalidStateTransition(BusinessRuleException):
    """Raised when a status change is not allowed from the booking's current state."""

    def __init__(self, booking_id: str, current_status: str, requested_status: str, reason: str):
        super().__init__(
            message=f"Cannot change booking to {requested_status}: {reason}",
            code="INVALID_STATE_TRANSITION",
            details={
                "booking_id": booking_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


# Non-fatal errors: raised internally, absorbed and logged by services


class AccessCodeUnavailable(ServiceException):
    """Raised when an access code could not be issued or looked up."""

    def __init__(self, booking_group_id: str, reason: str):
        super().__init__(
            message=f"Access code unavailable for group {booking_group_id}: {reason}",
            code="ACCESS_CODE_UNAVAILABLE",
            details={"booking_group_id": booking_group_id},
        )


class AvailabilityFetchDegraded(ServiceException):
    """Raised when booking data for availability could not be fetched."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Could not verify slot availability: {reason}",
            code="AVAILABILITY_FETCH_DEGRADED",
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class RepositoryConflict(RepositoryException):
    """Raised by repositories when a write collides with existing rows."""

    def __init__(self, message: str, station_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.station_ids = station_ids or []

# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the class booking backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

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
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


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


# Specific scheduling exceptions


class InvalidTimeLabel(ValidationException):
    """Raised when a time label is not part of the business-day grid."""

    def __init__(self, labels: Iterable[str]):
        invalid = [str(label) for label in labels]
        super().__init__(
            message=f"Invalid time label(s): {', '.join(invalid)}",
            code="INVALID_TIME_LABEL",
            details={"labels": invalid},
        )
        self.labels = invalid


class InvalidDuration(ValidationException):
    """Raised when a booking duration is not a supported number of hours."""

    def __init__(self, duration_hours: Any, allowed: Iterable[int] = (1, 2)):
        allowed_list = list(allowed)
        super().__init__(
            message=f"Duration must be one of {allowed_list} hours, got {duration_hours!r}",
            code="INVALID_DURATION",
            details={"duration_hours": duration_hours, "allowed": allowed_list},
        )


class InsufficientTrailingCapacity(BusinessRuleException):
    """Raised when a start time is too close to closing for the requested duration."""

    def __init__(self, start_time: str, duration_hours: int, granules: Iterable[str]):
        mapped = list(granules)
        super().__init__(
            message=(
                f"{start_time} cannot support a {duration_hours}-hour booking; "
                f"only {len(mapped)} half-hour slot(s) remain in the day"
            ),
            code="INSUFFICIENT_TRAILING_CAPACITY",
            details={
                "start_time": start_time,
                "duration_hours": duration_hours,
                "required_granules": duration_hours * 2,
                "available_granules": mapped,
            },
        )


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "BOOKING_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code=code,
            details=details or {},
        )


class SlotConflict(BookingConflictException):
    """Raised when requested granules were taken by another reservation."""

    def __init__(self, conflicting: Iterable[str], *, reason: str = "already_booked"):
        taken = list(conflicting)
        super().__init__(
            message="One or more of the requested time slots has just been booked",
            code="SLOT_CONFLICT",
            details={"conflicting_granules": taken, "reason": reason},
        )
        self.conflicting = taken


class ScheduleLocked(BusinessRuleException):
    """Raised when open start times are edited on a day that already has bookings."""

    def __init__(self, schedule_key: str, booked: Iterable[str]):
        booked_list = list(booked)
        super().__init__(
            message="This day already has bookings; its start times can no longer be changed",
            code="SCHEDULE_LOCKED",
            details={"schedule": schedule_key, "booked_granules": booked_list},
        )


class StartTimeNotOffered(BusinessRuleException):
    """Raised when a booking starts at a time the admin has not opened."""

    def __init__(self, start_time: str, schedule_key: str):
        super().__init__(
            message=f"{start_time} is not an available start time for this day",
            code="START_TIME_NOT_OFFERED",
            details={"start_time": start_time, "schedule": schedule_key},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """

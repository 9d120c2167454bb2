# backend/app/schemas/__init__.py
"""
Pydantic schemas for the class booking API.
"""

from .schedule import (
    AvailabilityRangeResponse,
    AvailabilityResponse,
    BookingRequest,
    BulkScheduleRequest,
    BulkScheduleResponse,
    DayScheduleResponse,
    HealthResponse,
    ReleaseRequest,
    ReservationResponse,
    SetOpenStartTimesRequest,
)

__all__ = [
    "AvailabilityRangeResponse",
    "AvailabilityResponse",
    "BookingRequest",
    "BulkScheduleRequest",
    "BulkScheduleResponse",
    "DayScheduleResponse",
    "HealthResponse",
    "ReleaseRequest",
    "ReservationResponse",
    "SetOpenStartTimesRequest",
]

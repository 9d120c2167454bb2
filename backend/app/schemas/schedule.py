# backend/app/schemas/schedule.py
"""
Schedule schemas for the class booking backend.

Time labels travel as "HH:MM AM|PM" strings. Label and duration checks are
left to the domain layer so malformed values surface as INVALID_TIME_LABEL /
INVALID_DURATION (400) instead of generic request validation errors.
"""

import datetime
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from ._strict_base import StrictModel, StrictRequestModel

DateType = datetime.date


class BookingRequest(StrictRequestModel):
    """Student request to book a session on one day."""

    date: DateType
    start_time: str = Field(..., examples=["09:00 AM"])
    duration_hours: int = Field(..., description="1 or 2", examples=[1])
    require_open_start: bool = Field(
        default=True,
        description="Reject start times the admin has not opened for this day",
    )


class ReservationResponse(StrictModel):
    course_id: str
    lecturer_id: str
    date: DateType
    start_time: str
    duration_hours: int
    granules: List[str]


class ReleaseRequest(StrictRequestModel):
    """
    Release booked granules, either listed explicitly or derived from the
    booking's start time and duration.
    """

    granules: Optional[List[str]] = None
    start_time: Optional[str] = None
    duration_hours: Optional[int] = None

    @model_validator(mode="after")
    def _one_form(self) -> "ReleaseRequest":
        by_booking = self.start_time is not None or self.duration_hours is not None
        if self.granules is not None and by_booking:
            raise ValueError("Provide either granules or start_time/duration_hours, not both")
        if self.granules is None:
            if self.start_time is None or self.duration_hours is None:
                raise ValueError("start_time and duration_hours are both required")
        return self


class SetOpenStartTimesRequest(StrictRequestModel):
    open_start_times: List[str] = Field(default_factory=list, examples=[["09:00 AM", "10:30 AM"]])


class DayScheduleResponse(StrictModel):
    course_id: str
    lecturer_id: str
    date: DateType
    open_start_times: List[str]
    booked_granules: List[str]
    is_locked: bool
    version: int


class AvailabilityResponse(StrictModel):
    date: DateType
    one_hour_starts: List[str]
    two_hour_starts: List[str]
    has_any: bool


class AvailabilityRangeResponse(StrictModel):
    course_id: str
    lecturer_id: str
    start: DateType
    end: DateType
    days: List[AvailabilityResponse]


class BulkScheduleRequest(StrictRequestModel):
    """Apply one set of open start times to matching weekdays in a date range."""

    start_date: DateType
    end_date: DateType
    weekdays: List[int] = Field(..., description="0 = Sunday ... 6 = Saturday", examples=[[1, 3]])
    open_start_times: List[str] = Field(default_factory=list)


class BulkScheduleResponse(StrictModel):
    applied: List[DateType]
    skipped: List[DateType]
    failed: Dict[DateType, str]
    total: int


class HealthResponse(StrictModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: str

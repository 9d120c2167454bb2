"""
Schedules routes - API v1

Lecturer availability and reservation endpoints under /api/v1/schedules.
All business logic delegated to ScheduleGuard, BulkScheduleService and
AvailabilityService.

Endpoints:
    GET  /{course_id}/{lecturer_id}/availability?start=&end=   → Calendar availability for a range
    GET  /{course_id}/{lecturer_id}/{day_date}                 → Day view (open + booked labels)
    GET  /{course_id}/{lecturer_id}/{day_date}/availability    → Bookable start times for one day
    PUT  /{course_id}/{lecturer_id}/{day_date}/open-start-times → Replace one day's open start times
    POST /{course_id}/{lecturer_id}/reservations               → Reserve granules for a booking
    POST /{course_id}/{lecturer_id}/{day_date}/release         → Release a booking's granules
    POST /{course_id}/{lecturer_id}/bulk                       → Apply start times across a date range
"""

import asyncio
from datetime import date
import logging
from typing import Annotated, Callable, Iterable, NoReturn, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from ...core.constants import ID_MAX_LENGTH
from ...core.exceptions import DomainException
from ...database import get_db
from ...domain.availability import AvailabilityResult, DaySchedule, ScheduleKey
from ...domain.time_grid import parse_label
from ...schemas.schedule import (
    AvailabilityRangeResponse,
    AvailabilityResponse,
    BookingRequest,
    BulkScheduleRequest,
    BulkScheduleResponse,
    DayScheduleResponse,
    ReleaseRequest,
    ReservationResponse,
    SetOpenStartTimesRequest,
)
from ...services.availability_service import AvailabilityService
from ...services.bulk_schedule_service import BulkScheduleService
from ...services.schedule_guard import ScheduleGuard

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["schedules-v1"])

T = TypeVar("T")

CourseId = Annotated[
    str, Path(min_length=1, max_length=ID_MAX_LENGTH, description="Course id")
]
LecturerId = Annotated[
    str, Path(min_length=1, max_length=ID_MAX_LENGTH, description="Lecturer id")
]


def get_schedule_guard(db: Session = Depends(get_db)) -> ScheduleGuard:
    return ScheduleGuard(db)


def get_bulk_schedule_service(db: Session = Depends(get_db)) -> BulkScheduleService:
    return BulkScheduleService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


async def _run(operation: str, func: Callable[..., T], *args: object) -> T:
    """Run a sync service call off the event loop with the shared error mapping."""
    try:
        return await asyncio.to_thread(func, *args)
    except DomainException as exc:
        handle_domain_exception(exc)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Unexpected error in %s: %s", operation, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred processing the schedule request",
        )


def _key(course_id: str, lecturer_id: str, day_date: date) -> ScheduleKey:
    return ScheduleKey(course_id, lecturer_id, day_date)


def _clock_sorted(labels: Iterable[str]) -> list[str]:
    return sorted(labels, key=parse_label)


def _day_response(schedule: DaySchedule) -> DayScheduleResponse:
    return DayScheduleResponse(
        course_id=schedule.key.course_id,
        lecturer_id=schedule.key.lecturer_id,
        date=schedule.key.day_date,
        open_start_times=_clock_sorted(schedule.open_start_times),
        booked_granules=_clock_sorted(schedule.booked_granules),
        is_locked=schedule.is_locked,
        version=schedule.version,
    )


def _availability_response(day_date: date, result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        date=day_date,
        one_hour_starts=list(result.one_hour_starts),
        two_hour_starts=list(result.two_hour_starts),
        has_any=result.has_any,
    )


@router.get("/{course_id}/{lecturer_id}/availability", response_model=AvailabilityRangeResponse)
async def get_availability_range(
    course_id: CourseId,
    lecturer_id: LecturerId,
    start: date = Query(..., description="First date (inclusive)"),
    end: date = Query(..., description="Last date (inclusive)"),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRangeResponse:
    """Per-date availability for a calendar; dates with has_any=false can be disabled."""
    days = await _run(
        "get_availability_range",
        service.get_availability_range,
        course_id,
        lecturer_id,
        start,
        end,
    )
    return AvailabilityRangeResponse(
        course_id=course_id,
        lecturer_id=lecturer_id,
        start=start,
        end=end,
        days=[_availability_response(day, result) for day, result in days.items()],
    )


@router.get("/{course_id}/{lecturer_id}/{day_date}", response_model=DayScheduleResponse)
async def get_day_schedule(
    course_id: CourseId,
    lecturer_id: LecturerId,
    day_date: date,
    service: AvailabilityService = Depends(get_availability_service),
) -> DayScheduleResponse:
    schedule = await _run(
        "get_day_schedule", service.get_day_schedule, _key(course_id, lecturer_id, day_date)
    )
    return _day_response(schedule)


@router.get(
    "/{course_id}/{lecturer_id}/{day_date}/availability", response_model=AvailabilityResponse
)
async def get_day_availability(
    course_id: CourseId,
    lecturer_id: LecturerId,
    day_date: date,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Bookable 1-hour and 2-hour start times, in chronological order."""
    result = await _run(
        "get_availability", service.get_availability, _key(course_id, lecturer_id, day_date)
    )
    return _availability_response(day_date, result)


@router.put(
    "/{course_id}/{lecturer_id}/{day_date}/open-start-times",
    response_model=DayScheduleResponse,
    responses={422: {"description": "Day already has bookings"}},
)
async def set_open_start_times(
    course_id: CourseId,
    lecturer_id: LecturerId,
    day_date: date,
    payload: SetOpenStartTimesRequest,
    guard: ScheduleGuard = Depends(get_schedule_guard),
) -> DayScheduleResponse:
    """Replace the admin-curated start times for one day."""
    schedule = await _run(
        "set_open_start_times",
        guard.set_open_start_times,
        _key(course_id, lecturer_id, day_date),
        payload.open_start_times,
    )
    return _day_response(schedule)


@router.post(
    "/{course_id}/{lecturer_id}/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "A requested time slot is already booked"}},
)
async def create_reservation(
    course_id: CourseId,
    lecturer_id: LecturerId,
    payload: BookingRequest,
    guard: ScheduleGuard = Depends(get_schedule_guard),
) -> ReservationResponse:
    """
    Reserve the granules a booking consumes.

    A 409 means another student got there first; re-fetch availability.
    """
    key = _key(course_id, lecturer_id, payload.date)

    def _reserve() -> tuple[str, ...]:
        return guard.reserve_booking(
            key,
            payload.start_time,
            payload.duration_hours,
            require_open_start=payload.require_open_start,
        )

    granules = await _run("create_reservation", _reserve)
    return ReservationResponse(
        course_id=course_id,
        lecturer_id=lecturer_id,
        date=payload.date,
        start_time=payload.start_time,
        duration_hours=payload.duration_hours,
        granules=list(granules),
    )


@router.post("/{course_id}/{lecturer_id}/{day_date}/release", response_model=DayScheduleResponse)
async def release_granules(
    course_id: CourseId,
    lecturer_id: LecturerId,
    day_date: date,
    payload: ReleaseRequest,
    guard: ScheduleGuard = Depends(get_schedule_guard),
) -> DayScheduleResponse:
    """Free granules held by a rejected or cancelled booking."""
    key = _key(course_id, lecturer_id, day_date)
    if payload.granules is not None:
        schedule = await _run("release", guard.release, key, payload.granules)
    else:
        schedule = await _run(
            "release_booking",
            guard.release_booking,
            key,
            payload.start_time,
            payload.duration_hours,
        )
    return _day_response(schedule)


@router.post("/{course_id}/{lecturer_id}/bulk", response_model=BulkScheduleResponse)
async def apply_bulk_schedule(
    course_id: CourseId,
    lecturer_id: LecturerId,
    payload: BulkScheduleRequest,
    service: BulkScheduleService = Depends(get_bulk_schedule_service),
) -> BulkScheduleResponse:
    """
    Set open start times on every matching weekday in the range.

    Dates that already have bookings are reported in skipped; dates that
    could not be written are reported in failed with a reason.
    """
    result = await _run(
        "apply_bulk",
        service.apply_bulk,
        course_id,
        lecturer_id,
        payload.start_date,
        payload.end_date,
        payload.weekdays,
        payload.open_start_times,
    )
    return BulkScheduleResponse(
        applied=result.applied,
        skipped=result.skipped,
        failed=result.failed,
        total=result.total,
    )

# backend/app/services/availability_service.py
"""
Availability Service for the class booking backend

Read side of the schedule store: bookable start times for one day, a
per-date calendar view, and the admin's labels view of a day. Always reads
committed state; nothing here is cached.
"""

from __future__ import annotations

from datetime import date, timedelta
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..database import with_db_retry
from ..domain.availability import (
    AvailabilityResult,
    DaySchedule,
    ScheduleKey,
    availability_for,
)
from ..domain.time_grid import TimeGrid, get_default_grid
from ..repositories import RepositoryFactory, to_domain
from ..repositories.day_schedule_repository import DayScheduleRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Computes what a student can book from the stored day schedules."""

    def __init__(
        self,
        db: Session,
        repository: Optional[DayScheduleRepository] = None,
        grid: Optional[TimeGrid] = None,
    ):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_day_schedule_repository(db)
        self.grid = grid or get_default_grid()

    @BaseService.measure_operation("get_day_schedule")
    def get_day_schedule(self, key: ScheduleKey) -> DaySchedule:
        """Labels view of one day; a day never written is returned empty (version 0)."""
        row = with_db_retry("get_day_schedule", lambda: self.repository.get(key))
        if row is None:
            return DaySchedule(key=key)
        return to_domain(row)

    @BaseService.measure_operation("get_availability")
    def get_availability(self, key: ScheduleKey) -> AvailabilityResult:
        """
        Bookable 1-hour and 2-hour start times for one day.

        A day with no stored schedule has nothing bookable.
        """
        row = with_db_retry("get_availability", lambda: self.repository.get(key))
        return availability_for(to_domain(row) if row is not None else None, self.grid)

    @BaseService.measure_operation("get_availability_range")
    def get_availability_range(
        self, course_id: str, lecturer_id: str, start_date: date, end_date: date
    ) -> Dict[date, AvailabilityResult]:
        """
        Availability for every date in [start_date, end_date], for calendar views.

        Every date in the range is present in the result; dates without a
        stored schedule map to an empty result (has_any is False).

        Raises:
            ValidationException: inverted range or longer than the configured maximum
        """
        if start_date > end_date:
            raise ValidationException(
                "Start date must be on or before end date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        span = (end_date - start_date).days + 1
        if span > settings.availability_max_range_days:
            raise ValidationException(
                f"Date range cannot exceed {settings.availability_max_range_days} days",
                code="DATE_RANGE_TOO_LONG",
                details={"days": span, "max_days": settings.availability_max_range_days},
            )

        rows = with_db_retry(
            "get_availability_range",
            lambda: self.repository.get_range_map(course_id, lecturer_id, start_date, end_date),
        )
        result: Dict[date, AvailabilityResult] = {}
        for offset in range(span):
            day = start_date + timedelta(days=offset)
            row = rows.get(day)
            result[day] = availability_for(to_domain(row) if row is not None else None, self.grid)
        return result

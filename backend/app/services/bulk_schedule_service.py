# backend/app/services/bulk_schedule_service.py
"""
Bulk Schedule Service

Applies one set of open start times to every matching weekday in a date
range for a lecturer/course:
- Dates that already have bookings are skipped (their start times are locked)
- Each date is written under its own savepoint so one bad date does not
  discard the rest
- The caller gets applied / skipped / failed as three separate outcomes
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import WEEKDAY_NAMES
from ..core.exceptions import RepositoryException, ServiceException, ValidationException
from ..domain.availability import ScheduleKey
from ..domain.time_grid import TimeGrid, get_default_grid
from ..models import DayScheduleRow
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory, to_domain
from ..repositories.day_schedule_repository import DayScheduleRepository
from ..utils.bitset import bits_from_labels
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class BulkApplyResult:
    applied: List[date] = field(default_factory=list)
    skipped: List[date] = field(default_factory=list)
    failed: Dict[date, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.applied) + len(self.skipped) + len(self.failed)


def calendar_weekday(day: date) -> int:
    """Weekday in admin-calendar numbering: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def iter_matching_dates(start_date: date, end_date: date, weekdays: Iterable[int]) -> Iterator[date]:
    wanted: Set[int] = set(weekdays)
    day = start_date
    while day <= end_date:
        if calendar_weekday(day) in wanted:
            yield day
        day += timedelta(days=1)


def _chunks(items: List[date], size: int) -> Iterator[List[date]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BulkScheduleService(BaseService):
    """Service for applying open start times across a date range."""

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

    def _validate_request(self, start_date: date, end_date: date, weekdays: Iterable[int]) -> Set[int]:
        if start_date > end_date:
            raise ValidationException(
                "Start date must be on or before end date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        span = (end_date - start_date).days + 1
        if span > settings.bulk_max_days:
            raise ValidationException(
                f"Date range cannot exceed {settings.bulk_max_days} days",
                code="DATE_RANGE_TOO_LONG",
                details={"days": span, "max_days": settings.bulk_max_days},
            )
        days = set(weekdays)
        invalid = sorted(
            (d for d in days if not (isinstance(d, int) and 0 <= d < len(WEEKDAY_NAMES))), key=str
        )
        if invalid:
            raise ValidationException(
                "Weekdays must be between 0 (Sunday) and 6 (Saturday)",
                code="INVALID_WEEKDAY",
                details={"weekdays": invalid},
            )
        if not days:
            raise ValidationException("Select at least one weekday", code="NO_WEEKDAYS")
        return days

    @BaseService.measure_operation("apply_bulk")
    def apply_bulk(
        self,
        course_id: str,
        lecturer_id: str,
        start_date: date,
        end_date: date,
        weekdays: Iterable[int],
        open_start_times: Iterable[str],
    ) -> BulkApplyResult:
        """
        Set open start times on every matching date in [start_date, end_date].

        Args:
            course_id: Course the schedule belongs to
            lecturer_id: Lecturer whose days are updated
            start_date: First date of the range (inclusive)
            end_date: Last date of the range (inclusive)
            weekdays: Weekdays to include, 0 = Sunday ... 6 = Saturday
            open_start_times: Labels to set on each matching date

        Returns:
            BulkApplyResult with applied, skipped (already booked) and
            failed (date -> reason) dates
        """
        days = self._validate_request(start_date, end_date, weekdays)
        labels = self.grid.validate(open_start_times)
        open_bits = bits_from_labels(labels)
        target_dates = list(iter_matching_dates(start_date, end_date, days))

        self.log_operation(
            "apply_bulk",
            course_id=course_id,
            lecturer_id=lecturer_id,
            date_count=len(target_dates),
            open_start_times=labels,
        )

        result = BulkApplyResult()
        if not target_dates:
            return result

        try:
            with self.transaction():
                for chunk in _chunks(target_dates, settings.bulk_batch_size):
                    existing = self.repository.get_range_map(
                        course_id, lecturer_id, chunk[0], chunk[-1]
                    )
                    for day in chunk:
                        key = ScheduleKey(course_id, lecturer_id, day)
                        self._apply_one(key, existing.get(day), open_bits, result)
        except ServiceException:
            # The outer transaction rolled back, so none of result.applied persisted
            self.logger.error(
                "Bulk schedule apply rolled back",
                extra={
                    "course_id": course_id,
                    "lecturer_id": lecturer_id,
                    "rolled_back_applied": [d.isoformat() for d in result.applied],
                    "skipped_dates": [d.isoformat() for d in result.skipped],
                    "failed_dates": {d.isoformat(): r for d, r in result.failed.items()},
                },
            )
            raise

        prometheus_metrics.record_bulk_dates("applied", len(result.applied))
        prometheus_metrics.record_bulk_dates("skipped", len(result.skipped))
        prometheus_metrics.record_bulk_dates("failed", len(result.failed))
        if result.failed:
            self.logger.warning(
                "Bulk schedule apply finished with failures",
                extra={
                    "course_id": course_id,
                    "lecturer_id": lecturer_id,
                    "failed_dates": [d.isoformat() for d in result.failed],
                },
            )
        return result

    def _apply_one(
        self,
        key: ScheduleKey,
        row: Optional[DayScheduleRow],
        open_bits: bytes,
        result: BulkApplyResult,
    ) -> None:
        """Write one date under a savepoint, recording exactly one outcome."""
        savepoint = self.db.begin_nested()
        try:
            if row is None:
                row = self.repository.get_or_create(key)
            outcome = "failed"
            for _ in range(2):
                current = to_domain(row)
                if current.is_locked:
                    outcome = "skipped"
                    break
                # booked_bits stays as stored; only open_bits is written
                if self.repository.compare_and_set(
                    key, current.version, open_bits=open_bits, require_unbooked=True
                ):
                    outcome = "applied"
                    break
                refreshed = self.repository.get(key)
                if refreshed is None:
                    break
                row = refreshed
            savepoint.commit()
        except (SQLAlchemyError, RepositoryException) as exc:
            savepoint.rollback()
            self.logger.error(f"Bulk schedule apply failed for {key}: {str(exc)}")
            result.failed[key.day_date] = str(exc)
            return

        if outcome == "applied":
            result.applied.append(key.day_date)
        elif outcome == "skipped":
            result.skipped.append(key.day_date)
        else:
            result.failed[key.day_date] = "concurrent update"

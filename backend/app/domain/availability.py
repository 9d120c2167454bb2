"""Slot availability and booking granule rules shared by services, routes, and tests.

Pure functions over immutable values; nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import FrozenSet, Iterable, List, Optional, Tuple

from ..core.constants import BOOKABLE_DURATIONS_HOURS, GRANULES_PER_HOUR
from ..core.exceptions import InsufficientTrailingCapacity, InvalidDuration, InvalidTimeLabel
from .time_grid import TimeGrid, get_default_grid, parse_label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleKey:
    """Identity of one lecturer's availability for one course on one day."""

    course_id: str
    lecturer_id: str
    day_date: date

    def __post_init__(self) -> None:
        if not self.course_id or not self.lecturer_id:
            raise ValueError("course_id and lecturer_id are required")

    def __str__(self) -> str:
        return f"{self.course_id}_{self.lecturer_id}_{self.day_date.isoformat()}"


@dataclass(frozen=True)
class DaySchedule:
    """Labels view of a stored day: admin start times plus booked granules."""

    key: ScheduleKey
    open_start_times: FrozenSet[str] = field(default_factory=frozenset)
    booked_granules: FrozenSet[str] = field(default_factory=frozenset)
    version: int = 0

    def __post_init__(self) -> None:
        # Accept any iterable of labels but always hold frozensets
        object.__setattr__(self, "open_start_times", frozenset(self.open_start_times))
        object.__setattr__(self, "booked_granules", frozenset(self.booked_granules))
        # Any canonical clock label is accepted here, on the business grid or not
        malformed = sorted(
            [label for label in self.open_start_times | self.booked_granules if parse_label(label) is None],
            key=str,
        )
        if malformed:
            raise InvalidTimeLabel(malformed)
        if self.version < 0:
            raise ValueError("version must be non-negative")

    @property
    def is_locked(self) -> bool:
        return bool(self.booked_granules)


@dataclass(frozen=True)
class AvailabilityResult:
    one_hour_starts: Tuple[str, ...] = ()
    two_hour_starts: Tuple[str, ...] = ()

    @property
    def has_any(self) -> bool:
        return bool(self.one_hour_starts or self.two_hour_starts)

    def starts_for(self, duration_hours: int) -> Tuple[str, ...]:
        _check_duration(duration_hours)
        return self.one_hour_starts if duration_hours == 1 else self.two_hour_starts


EMPTY_AVAILABILITY = AvailabilityResult()


def _check_duration(duration_hours: object) -> int:
    # bool is an int subclass; True must not pass as a 1-hour booking
    if isinstance(duration_hours, bool) or duration_hours not in BOOKABLE_DURATIONS_HOURS:
        raise InvalidDuration(duration_hours, BOOKABLE_DURATIONS_HOURS)
    return int(duration_hours)  # type: ignore[call-overload]


def _run_is_free(grid: TimeGrid, start_index: int, length: int, booked: FrozenSet[str]) -> bool:
    if start_index + length > len(grid):
        return False
    return all(grid.label_at(start_index + k) not in booked for k in range(length))


def compute_availability(
    open_start_times: Iterable[str],
    booked_granules: Iterable[str],
    grid: Optional[TimeGrid] = None,
) -> AvailabilityResult:
    """
    Bookable 1-hour and 2-hour start times for one day.

    A start time qualifies when the admin opened it and every granule the
    booking would consume exists on the grid and is not booked. Start times
    the admin never opened are not offered even if their granules are free.
    """
    grid = grid or get_default_grid()
    opened = set(open_start_times)
    if not opened:
        return EMPTY_AVAILABILITY

    booked = frozenset(booked_granules)
    one_hour: List[Tuple[int, str]] = []
    two_hour: List[Tuple[int, str]] = []

    for start in opened:
        if start not in grid:
            logger.warning("Skipping open start time outside the grid: %r", start)
            continue
        i = grid.index(start)
        if _run_is_free(grid, i, 1 * GRANULES_PER_HOUR, booked):
            one_hour.append((i, start))
        if _run_is_free(grid, i, 2 * GRANULES_PER_HOUR, booked):
            two_hour.append((i, start))

    return AvailabilityResult(
        one_hour_starts=tuple(label for _, label in sorted(one_hour)),
        two_hour_starts=tuple(label for _, label in sorted(two_hour)),
    )


def availability_for(schedule: Optional[DaySchedule], grid: Optional[TimeGrid] = None) -> AvailabilityResult:
    if schedule is None:
        return EMPTY_AVAILABILITY
    return compute_availability(schedule.open_start_times, schedule.booked_granules, grid)


def slots_for_booking(
    start_time: str, duration_hours: int, grid: Optional[TimeGrid] = None
) -> Tuple[str, ...]:
    """
    Granules a booking starting at start_time would consume.

    Stops at the end of the grid instead of failing, so the result can be
    shorter than duration_hours * 2. Callers that create bookings must use
    granules_for_booking, which rejects the short case.
    """
    grid = grid or get_default_grid()
    hours = _check_duration(duration_hours)
    i = grid.index(start_time)
    wanted = hours * GRANULES_PER_HOUR
    return tuple(grid.label_at(i + k) for k in range(wanted) if i + k < len(grid))


def granules_for_booking(
    start_time: str, duration_hours: int, grid: Optional[TimeGrid] = None
) -> Tuple[str, ...]:
    granules = slots_for_booking(start_time, duration_hours, grid)
    if len(granules) != duration_hours * GRANULES_PER_HOUR:
        raise InsufficientTrailingCapacity(start_time, duration_hours, granules)
    return granules

# backend/app/services/schedule_guard.py
"""
Schedule Guard Service

Sole writer of a day's booked granules. Handles:
- Reserving granules for a new booking (no double-booking)
- Releasing granules when a booking is rejected or cancelled
- Locking a day's open start times once anything is booked
- Single-day edits of open start times

Every write is a compare-and-swap on the row version, so concurrent
reservations against the same day serialize in the database even when
the Redis mutex is unavailable.
"""

import logging
from typing import Callable, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    NotFoundException,
    ScheduleLocked,
    SlotConflict,
    StartTimeNotOffered,
    ValidationException,
)
from ..core.schedule_lock import schedule_lock
from ..domain.availability import (
    DaySchedule,
    ScheduleKey,
    granules_for_booking,
    slots_for_booking,
)
from ..domain.time_grid import TimeGrid, get_default_grid, parse_label
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory, to_domain
from ..repositories.day_schedule_repository import DayScheduleRepository
from ..utils.bitset import bits_from_labels
from .base import BaseService

logger = logging.getLogger(__name__)

Plan = Callable[[DaySchedule], DaySchedule]


class ScheduleGuard(BaseService):
    """
    Enforces the booking invariants for one (course, lecturer, day).

    State per day: Unset (no row) -> Open (start times set, nothing booked,
    editable) -> PartiallyBooked (granules booked, start times frozen).
    Releasing every granule returns a day to Open.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[DayScheduleRepository] = None,
        grid: Optional[TimeGrid] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_day_schedule_repository(db)
        self.grid = grid or get_default_grid()
        self.max_attempts = max_attempts or settings.reservation_max_attempts

    def _apply(self, key: ScheduleKey, plan: Plan, *, create: bool, operation: str) -> DaySchedule:
        """
        Read-plan-write loop against the stored version.

        plan receives the current state and returns the desired state or
        raises. A lost race re-reads and re-plans, so checks always run
        against the state the write is conditioned on.
        """
        if create:
            self.repository.get_or_create(key)

        for attempt in range(1, self.max_attempts + 1):
            row = self.repository.get(key)
            if row is None:
                raise NotFoundException(
                    f"No schedule for {key}",
                    code="SCHEDULE_NOT_FOUND",
                    details={"schedule": str(key)},
                )
            current = to_domain(row)
            target = plan(current)
            if (
                target.open_start_times == current.open_start_times
                and target.booked_granules == current.booked_granules
            ):
                return current

            open_changed = target.open_start_times != current.open_start_times
            booked_changed = target.booked_granules != current.booked_granules
            written = self.repository.compare_and_set(
                key,
                current.version,
                open_bits=bits_from_labels(target.open_start_times) if open_changed else None,
                booked_bits=bits_from_labels(target.booked_granules) if booked_changed else None,
                require_unbooked=open_changed,
            )
            if written:
                return DaySchedule(
                    key=key,
                    open_start_times=target.open_start_times,
                    booked_granules=target.booked_granules,
                    version=current.version + 1,
                )

            prometheus_metrics.record_reservation("retry")
            self.logger.info(
                "Concurrent write on %s during %s, retrying (attempt %d/%d)",
                key,
                operation,
                attempt,
                self.max_attempts,
            )

        raise BookingConflictException(
            "The schedule is being changed by someone else; please try again",
            code="SCHEDULE_CONTENTION",
            details={"schedule": str(key), "operation": operation},
        )

    @BaseService.measure_operation("reserve")
    def reserve(
        self,
        key: ScheduleKey,
        requested_granules: Iterable[str],
        *,
        required_start: Optional[str] = None,
    ) -> DaySchedule:
        """
        Atomically add granules to the day's booked set.

        Args:
            key: Day to reserve on (created lazily when missing)
            requested_granules: Labels to mark as booked
            required_start: When set, the admin must have opened this start time

        Raises:
            InvalidTimeLabel: a label is not on the grid
            SlotConflict: any requested granule is already booked
            StartTimeNotOffered: required_start is not an open start time
        """
        requested = self.grid.validate(requested_granules)
        if not requested:
            raise ValidationException("At least one time slot is required", code="NO_GRANULES")

        def plan(current: DaySchedule) -> DaySchedule:
            if required_start is not None and required_start not in current.open_start_times:
                raise StartTimeNotOffered(required_start, str(key))
            taken = [g for g in requested if g in current.booked_granules]
            if taken:
                prometheus_metrics.record_reservation("conflict")
                raise SlotConflict(taken)
            return DaySchedule(
                key=key,
                open_start_times=current.open_start_times,
                booked_granules=current.booked_granules | set(requested),
                version=current.version,
            )

        with schedule_lock(key):
            try:
                with self.transaction():
                    schedule = self._apply(key, plan, create=True, operation="reserve")
            except BookingConflictException as exc:
                if exc.code == "SCHEDULE_CONTENTION":
                    prometheus_metrics.record_reservation("conflict")
                    raise SlotConflict(requested, reason="contention") from exc
                raise

        prometheus_metrics.record_reservation("reserved")
        self.log_operation("reserve", schedule=str(key), granules=requested)
        return schedule

    @BaseService.measure_operation("reserve_booking")
    def reserve_booking(
        self,
        key: ScheduleKey,
        start_time: str,
        duration_hours: int,
        *,
        require_open_start: bool = True,
    ) -> Tuple[str, ...]:
        """
        Booking-flow entry point: map the request to granules and reserve them.

        Returns the consumed granules, which the booking record keeps so the
        same granules can be released later.

        Raises:
            InvalidTimeLabel, InvalidDuration: malformed request
            InsufficientTrailingCapacity: start too close to the end of the day
            StartTimeNotOffered: start time not opened by the admin
            SlotConflict: lost the race for one of the granules
        """
        granules = granules_for_booking(start_time, duration_hours, self.grid)
        self.reserve(key, granules, required_start=start_time if require_open_start else None)
        return granules

    @BaseService.measure_operation("release")
    def release(self, key: ScheduleKey, granules: Iterable[str]) -> DaySchedule:
        """Remove granules from the booked set; granules not booked are ignored."""
        to_release = set(self.grid.validate(granules))

        def plan(current: DaySchedule) -> DaySchedule:
            return DaySchedule(
                key=key,
                open_start_times=current.open_start_times,
                booked_granules=current.booked_granules - to_release,
                version=current.version,
            )

        with schedule_lock(key):
            with self.transaction():
                schedule = self._apply(key, plan, create=False, operation="release")

        prometheus_metrics.record_reservation("released")
        self.log_operation("release", schedule=str(key), granules=self.grid.sort(to_release))
        return schedule

    def release_booking(self, key: ScheduleKey, start_time: str, duration_hours: int) -> DaySchedule:
        """
        Release what a rejected or cancelled booking held.

        Uses the truncating mapping so bookings recorded near closing time
        still free the granules they actually hold.
        """
        return self.release(key, slots_for_booking(start_time, duration_hours, self.grid))

    @BaseService.measure_operation("can_modify_open_start_times")
    def can_modify_open_start_times(self, key: ScheduleKey) -> bool:
        """False once any granule of the day is booked. Always reads the store."""
        row = self.repository.get(key)
        if row is None:
            return True
        return not to_domain(row).is_locked

    @BaseService.measure_operation("set_open_start_times")
    def set_open_start_times(self, key: ScheduleKey, open_start_times: Iterable[str]) -> DaySchedule:
        """
        Replace the admin-curated start times for one day.

        Raises:
            InvalidTimeLabel: a label is not on the grid
            ScheduleLocked: the day already has booked granules
        """
        labels = frozenset(self.grid.validate(open_start_times))

        def plan(current: DaySchedule) -> DaySchedule:
            if current.is_locked:
                raise ScheduleLocked(str(key), sorted(current.booked_granules, key=parse_label))
            return DaySchedule(
                key=key,
                open_start_times=labels,
                booked_granules=current.booked_granules,
                version=current.version,
            )

        with schedule_lock(key):
            with self.transaction():
                schedule = self._apply(key, plan, create=True, operation="set_open_start_times")

        self.log_operation(
            "set_open_start_times", schedule=str(key), open_start_times=self.grid.sort(labels)
        )
        return schedule

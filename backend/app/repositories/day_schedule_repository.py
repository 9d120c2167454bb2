from __future__ import annotations

from datetime import date
import logging
from typing import Dict, List, Optional, cast

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.domain.availability import DaySchedule, ScheduleKey
from app.models import DayScheduleRow
from app.utils.bitset import labels_from_bits, new_empty_bits

logger = logging.getLogger(__name__)


def to_domain(row: DayScheduleRow) -> DaySchedule:
    """Labels view of a stored row."""
    return DaySchedule(
        key=ScheduleKey(row.course_id, row.lecturer_id, row.day_date),
        open_start_times=frozenset(labels_from_bits(row.open_bits)),
        booked_granules=frozenset(labels_from_bits(row.booked_bits)),
        version=row.version or 0,
    )


class DayScheduleRepository:
    """
    Data access for day_schedules.

    Reads always bypass the session identity map so callers see committed
    state; writes to booked_bits/open_bits go through compare_and_set.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(DayScheduleRow).populate_existing()

    def get(self, key: ScheduleKey) -> Optional[DayScheduleRow]:
        try:
            row = (
                self._query()
                .filter(
                    DayScheduleRow.course_id == key.course_id,
                    DayScheduleRow.lecturer_id == key.lecturer_id,
                    DayScheduleRow.day_date == key.day_date,
                )
                .one_or_none()
            )
        except OperationalError:
            # Left unwrapped so with_db_retry can retry transient disconnects
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error loading day schedule {key}: {str(e)}")
            raise RepositoryException(f"Failed to load day schedule {key}: {str(e)}")
        return cast(Optional[DayScheduleRow], row)

    def get_days_in_range(
        self, course_id: str, lecturer_id: str, start_date: date, end_date: date
    ) -> List[DayScheduleRow]:
        try:
            rows = (
                self._query()
                .filter(
                    DayScheduleRow.course_id == course_id,
                    DayScheduleRow.lecturer_id == lecturer_id,
                    DayScheduleRow.day_date >= start_date,
                    DayScheduleRow.day_date <= end_date,
                )
                .order_by(DayScheduleRow.day_date)
                .all()
            )
        except OperationalError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error loading day schedules for {course_id}/{lecturer_id}: {str(e)}")
            raise RepositoryException(f"Failed to load day schedules: {str(e)}")
        return cast(List[DayScheduleRow], rows)

    def get_range_map(
        self, course_id: str, lecturer_id: str, start_date: date, end_date: date
    ) -> Dict[date, DayScheduleRow]:
        return {
            row.day_date: row
            for row in self.get_days_in_range(course_id, lecturer_id, start_date, end_date)
        }

    def get_or_create(self, key: ScheduleKey) -> DayScheduleRow:
        """Return the row for key, inserting an empty one when missing."""
        row = self.get(key)
        if row is not None:
            return row
        savepoint = self.db.begin_nested()
        try:
            row = DayScheduleRow(
                course_id=key.course_id,
                lecturer_id=key.lecturer_id,
                day_date=key.day_date,
                open_bits=new_empty_bits(),
                booked_bits=new_empty_bits(),
                version=0,
            )
            self.db.add(row)
            self.db.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            # Another writer created the same day first
            savepoint.rollback()
            existing = self.get(key)
            if existing is None:
                raise RepositoryException(f"Day schedule {key} vanished after concurrent insert")
            return existing

    def compare_and_set(
        self,
        key: ScheduleKey,
        expected_version: int,
        *,
        open_bits: Optional[bytes] = None,
        booked_bits: Optional[bytes] = None,
        require_unbooked: bool = False,
    ) -> bool:
        """
        Conditionally write open_bits and/or booked_bits.

        Applies only if the stored version still equals expected_version
        (and, with require_unbooked, booked_bits is still empty). Returns
        False when another writer got there first.
        """
        values: Dict[str, object] = {"version": DayScheduleRow.version + 1}
        if open_bits is not None:
            values["open_bits"] = open_bits
        if booked_bits is not None:
            values["booked_bits"] = booked_bits
        stmt = (
            update(DayScheduleRow)
            .where(
                DayScheduleRow.course_id == key.course_id,
                DayScheduleRow.lecturer_id == key.lecturer_id,
                DayScheduleRow.day_date == key.day_date,
                DayScheduleRow.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if require_unbooked:
            stmt = stmt.where(DayScheduleRow.booked_bits == new_empty_bits())
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Conditional update failed for {key}: {str(e)}")
            raise RepositoryException(f"Failed to update day schedule {key}: {str(e)}")
        return bool(result.rowcount == 1)

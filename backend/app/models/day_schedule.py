from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Column, Date, DateTime, Index, Integer, LargeBinary, String
from sqlalchemy.dialects.postgresql import BYTEA

from app.core.constants import ID_MAX_LENGTH
from app.database import Base
from app.utils.bitset import new_empty_bits


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


_BITS = BYTEA().with_variant(LargeBinary(), "sqlite")


class DayScheduleRow(Base):
    """One lecturer's bookable start times and booked granules for one course/day."""

    __tablename__ = "day_schedules"

    course_id = Column(String(ID_MAX_LENGTH), primary_key=True)
    lecturer_id = Column(String(ID_MAX_LENGTH), primary_key=True)
    day_date = Column(Date, primary_key=True)
    # 6 bytes for 30-min resolution, bit i = half hour i of the day
    open_bits = Column(_BITS, nullable=False, default=new_empty_bits)
    booked_bits = Column(_BITS, nullable=False, default=new_empty_bits)
    # Bumped on every write; conditional updates compare against it
    version = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=sa.func.now(),
    )

    __table_args__ = (Index("ix_day_schedules_lecturer_date", "lecturer_id", "day_date"),)

    def __repr__(self) -> str:
        return (
            f"<DayScheduleRow {self.course_id}/{self.lecturer_id}/{self.day_date} "
            f"v{self.version}>"
        )

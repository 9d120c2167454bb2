from datetime import date, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.exceptions import ValidationException
from app.domain.availability import EMPTY_AVAILABILITY, ScheduleKey
from app.repositories.day_schedule_repository import DayScheduleRepository
from app.services.availability_service import AvailabilityService
from app.services.schedule_guard import ScheduleGuard

COURSE = "course-math101"
LECTURER = "lecturer-ada"


class TestGetAvailability:
    def test_unknown_day_has_nothing_bookable(self, db, schedule_key):
        result = AvailabilityService(db).get_availability(schedule_key)
        assert result == EMPTY_AVAILABILITY
        assert result.has_any is False

    def test_reflects_open_and_booked(self, db, schedule_key):
        guard = ScheduleGuard(db)
        guard.set_open_start_times(schedule_key, ["01:00 PM", "09:00 AM", "10:00 AM"])
        guard.reserve_booking(schedule_key, "10:00 AM", 1)

        result = AvailabilityService(db).get_availability(schedule_key)
        assert result.one_hour_starts == ("09:00 AM", "01:00 PM")
        # 09:00 + 2h runs into the 10:00 booking
        assert result.two_hour_starts == ("01:00 PM",)

    def test_reads_are_never_cached(self, db, schedule_key):
        service = AvailabilityService(db)
        ScheduleGuard(db).set_open_start_times(schedule_key, ["09:00 AM"])
        assert service.get_availability(schedule_key).has_any is True
        ScheduleGuard(db).reserve(schedule_key, ["09:30 AM"])
        assert service.get_availability(schedule_key).has_any is False

    def test_transient_disconnect_is_retried(self, db, schedule_key, monkeypatch):
        monkeypatch.setattr("app.database.time.sleep", lambda _s: None)
        repository = Mock(spec=DayScheduleRepository)
        repository.get.side_effect = [
            OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly")),
            None,
        ]
        service = AvailabilityService(db, repository=repository)
        assert service.get_availability(schedule_key) == EMPTY_AVAILABILITY
        assert repository.get.call_count == 2


class TestGetDaySchedule:
    def test_unknown_day_is_empty(self, db, schedule_key):
        schedule = AvailabilityService(db).get_day_schedule(schedule_key)
        assert schedule.key == schedule_key
        assert schedule.open_start_times == frozenset()
        assert schedule.version == 0

    def test_labels_view(self, db, schedule_key):
        guard = ScheduleGuard(db)
        guard.set_open_start_times(schedule_key, ["09:00 AM"])
        guard.reserve_booking(schedule_key, "09:00 AM", 1)
        schedule = AvailabilityService(db).get_day_schedule(schedule_key)
        assert schedule.open_start_times == {"09:00 AM"}
        assert schedule.booked_granules == {"09:00 AM", "09:30 AM"}
        assert schedule.is_locked


class TestGetAvailabilityRange:
    def test_every_date_present(self, db):
        start = date(2025, 3, 10)
        ScheduleGuard(db).set_open_start_times(ScheduleKey(COURSE, LECTURER, start), ["09:00 AM"])
        full_day = ScheduleKey(COURSE, LECTURER, start + timedelta(days=2))
        ScheduleGuard(db).set_open_start_times(full_day, ["09:00 AM"])
        ScheduleGuard(db).reserve_booking(full_day, "09:00 AM", 1)

        result = AvailabilityService(db).get_availability_range(
            COURSE, LECTURER, start, start + timedelta(days=3)
        )

        assert list(result) == [start + timedelta(days=i) for i in range(4)]
        assert [r.has_any for r in result.values()] == [True, False, False, False]

    def test_other_lecturers_not_included(self, db):
        day = date(2025, 3, 10)
        ScheduleGuard(db).set_open_start_times(ScheduleKey(COURSE, "someone-else", day), ["09:00 AM"])
        result = AvailabilityService(db).get_availability_range(COURSE, LECTURER, day, day)
        assert result[day].has_any is False

    def test_range_is_bounded(self, db):
        start = date(2025, 1, 1)
        end = start + timedelta(days=settings.availability_max_range_days)
        with pytest.raises(ValidationException) as exc_info:
            AvailabilityService(db).get_availability_range(COURSE, LECTURER, start, end)
        assert exc_info.value.code == "DATE_RANGE_TOO_LONG"

    def test_inverted_range(self, db):
        with pytest.raises(ValidationException):
            AvailabilityService(db).get_availability_range(
                COURSE, LECTURER, date(2025, 1, 2), date(2025, 1, 1)
            )

from datetime import date

from app.domain.availability import ScheduleKey
from app.models import DayScheduleRow
from app.repositories.day_schedule_repository import DayScheduleRepository, to_domain
from app.utils.bitset import bits_from_labels, new_empty_bits


def _key(day=date(2025, 3, 10), lecturer="lecturer-ada"):
    return ScheduleKey("course-math101", lecturer, day)


def test_get_missing_returns_none(db):
    assert DayScheduleRepository(db).get(_key()) is None


def test_get_or_create_inserts_empty_row(db):
    repo = DayScheduleRepository(db)
    row = repo.get_or_create(_key())
    assert row.open_bits == new_empty_bits()
    assert row.booked_bits == new_empty_bits()
    assert row.version == 0
    assert repo.get_or_create(_key()) is row
    assert db.query(DayScheduleRow).count() == 1


def test_compare_and_set_bumps_version(db):
    repo = DayScheduleRepository(db)
    repo.get_or_create(_key())

    assert repo.compare_and_set(_key(), 0, booked_bits=bits_from_labels(["09:00 AM"])) is True
    schedule = to_domain(repo.get(_key()))
    assert schedule.booked_granules == {"09:00 AM"}
    assert schedule.version == 1


def test_compare_and_set_stale_version_is_rejected(db):
    repo = DayScheduleRepository(db)
    repo.get_or_create(_key())
    assert repo.compare_and_set(_key(), 0, open_bits=bits_from_labels(["09:00 AM"]))

    assert repo.compare_and_set(_key(), 0, open_bits=bits_from_labels(["10:00 AM"])) is False
    assert to_domain(repo.get(_key())).open_start_times == {"09:00 AM"}


def test_require_unbooked_blocks_open_write_on_booked_day(db):
    repo = DayScheduleRepository(db)
    repo.get_or_create(_key())
    repo.compare_and_set(_key(), 0, booked_bits=bits_from_labels(["09:00 AM"]))

    written = repo.compare_and_set(
        _key(), 1, open_bits=bits_from_labels(["10:00 AM"]), require_unbooked=True
    )
    assert written is False
    assert to_domain(repo.get(_key())).open_start_times == frozenset()


def test_compare_and_set_missing_row(db):
    assert DayScheduleRepository(db).compare_and_set(_key(), 0, open_bits=new_empty_bits()) is False


def test_range_queries_are_scoped_and_ordered(db):
    repo = DayScheduleRepository(db)
    for day in (date(2025, 3, 12), date(2025, 3, 10), date(2025, 3, 20)):
        repo.get_or_create(_key(day))
    repo.get_or_create(_key(date(2025, 3, 11), lecturer="someone-else"))

    rows = repo.get_days_in_range("course-math101", "lecturer-ada", date(2025, 3, 10), date(2025, 3, 15))
    assert [r.day_date for r in rows] == [date(2025, 3, 10), date(2025, 3, 12)]

    mapping = repo.get_range_map("course-math101", "lecturer-ada", date(2025, 3, 1), date(2025, 3, 31))
    assert set(mapping) == {date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 20)}


def test_repr(db):
    row = DayScheduleRepository(db).get_or_create(_key())
    assert repr(row) == "<DayScheduleRow course-math101/lecturer-ada/2025-03-10 v0>"

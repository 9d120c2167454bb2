"""
Database models for the class booking backend.

Only scheduling state lives here; bookings, courses, and lecturers are
owned by other components and referenced by id.
"""

from .day_schedule import DayScheduleRow

__all__ = ["DayScheduleRow"]

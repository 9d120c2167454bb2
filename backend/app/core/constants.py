"""Application-wide constants for the class booking backend."""

from __future__ import annotations

BRAND_NAME = "Class Booking"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Lecturer availability, student reservations and bulk schedule management"
API_VERSION = "1.0.0"

# Scheduling granularity
GRANULE_MINUTES = 30
GRANULES_PER_HOUR = 60 // GRANULE_MINUTES

# Wire format for every time label ("08:30 AM")
TIME_LABEL_FORMAT = "%I:%M %p"

# Longest course or lecturer id the day_schedules table stores
ID_MAX_LENGTH = 64

# Bookable session lengths, in hours
BOOKABLE_DURATIONS_HOURS = (1, 2)

# Weekday numbering used by the admin calendar (0 = Sunday ... 6 = Saturday)
WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# backend/app/repositories/factory.py
"""
Repository Factory for the class booking backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .day_schedule_repository import DayScheduleRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_day_schedule_repository(db: Session) -> "DayScheduleRepository":
        """Create repository for per-day schedule state."""
        from .day_schedule_repository import DayScheduleRepository

        return DayScheduleRepository(db)

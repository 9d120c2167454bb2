# backend/app/repositories/__init__.py
"""
Repository layer for schedule data access.

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_day_schedule_repository(db)
    row = repository.get(key)
"""

from .day_schedule_repository import DayScheduleRepository, to_domain
from .factory import RepositoryFactory

__all__ = [
    "DayScheduleRepository",
    "RepositoryFactory",
    "to_domain",
]

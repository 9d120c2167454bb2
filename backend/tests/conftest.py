# backend/tests/conftest.py
"""
Pytest configuration for the class booking backend.

Every test gets its own in-memory SQLite database. Settings are forced into
test mode BEFORE any app import so the module-level engine never points at
a real PostgreSQL instance and the Redis schedule lock stays disabled.
"""

import os
import sys

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["IS_TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CI"] = "1"  # skip loading backend/.env

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import date

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.domain.availability import ScheduleKey
from app.domain.time_grid import TimeGrid, get_default_grid
from app.main import fastapi_app as app  # also registers every model on Base.metadata


def _make_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over transaction start
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="function")
def db_engine():
    engine = _make_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    """Create a new database session for each test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db: Session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def grid() -> TimeGrid:
    """The default 08:00 AM..08:00 PM grid."""
    return get_default_grid()


@pytest.fixture
def schedule_day() -> date:
    return date(2025, 3, 10)  # a Monday


@pytest.fixture
def schedule_key(schedule_day: date) -> ScheduleKey:
    return ScheduleKey("course-math101", "lecturer-ada", schedule_day)

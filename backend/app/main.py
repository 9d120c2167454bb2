# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .domain.time_grid import get_default_grid
from .routes import prometheus
from .routes.v1 import schedules as schedules_v1
from .schemas.schedule import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")

    # Fail at startup, not on the first request, when the grid settings are invalid
    grid = get_default_grid()
    logger.info("Time grid: %r", grid)

    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    if not settings.schedule_lock_enabled:
        logger.info("Schedule lock disabled; relying on conditional updates only")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(schedules_v1.router, prefix="/schedules")
app.include_router(api_v1)

# Prometheus scrapes the fixed /metrics path
app.include_router(prometheus.router)


def _health_payload() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower().replace(' ', '-')}-api",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness check; does not touch the database or Redis."""
    return _health_payload()


# Export what's needed
fastapi_app = app

__all__ = ["app", "fastapi_app"]

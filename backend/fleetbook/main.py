# backend/fleetbook/main.py
"""
Fleetbook booking core API.

Run with ``uvicorn fleetbook.main:app`` from the ``backend`` directory.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from . import __version__
from .core.config import is_running_tests, settings
from .core.logging_config import configure_logging
from .database import engine
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_id import RequestIdMiddleware
from .middleware.timing import TimingMiddleware
from .routes.v1 import (
    availabilities as availabilities_v1,
    bookings as bookings_v1,
    commissions as commissions_v1,
    health as health_v1,
    partner_bookings as partner_bookings_v1,
    prometheus as prometheus_v1,
)

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("Fleetbook API %s starting up...", __version__)
    logger.info(
        "Environment: %s, database dialect: %s", settings.environment, engine.dialect.name
    )
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    yield

    logger.info("Fleetbook API shutting down...")
    engine.dispose()


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title="Fleetbook API",
    description="Booking core for fleet service partners: slots, bookings and commissions.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)

register_error_handlers(app)

# Last added runs first: the request id must be set before timing and metrics log.
app.add_middleware(TimingMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestIdMiddleware)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(partner_bookings_v1.router, prefix="/partner-bookings")
api_v1.include_router(availabilities_v1.router, prefix="/availabilities")
api_v1.include_router(commissions_v1.router, prefix="/commissions")
app.include_router(api_v1)

# Probes and scraping stay outside the versioned API
app.include_router(health_v1.router, prefix="/health")
app.include_router(prometheus_v1.router, prefix="/metrics")

fastapi_app = app

__all__ = ["app", "fastapi_app"]

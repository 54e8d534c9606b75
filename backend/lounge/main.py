# backend/lounge/main.py
"""
FastAPI application for the lounge booking engine.

Run with: uvicorn lounge.main:app
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import get_cache_service_singleton
from .core.config import settings
from .core.exceptions import DomainException
from .database import SessionLocal, get_engine, init_db
from .routes import metrics_router, public_router, staff_router
from .services.booking_monitor import BookingMonitor

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("Lounge booking API starting up...")
    init_db(get_engine())
    logger.info(
        f"Business hours {settings.business_open_time:%H:%M}-{settings.business_close_time:%H:%M} "
        f"({settings.lounge_timezone}), {settings.total_controllers} controllers"
    )

    monitor: Optional[BookingMonitor] = None
    if not settings.is_testing:
        monitor = BookingMonitor(SessionLocal, get_cache_service_singleton())
        monitor.start()
    app.state.booking_monitor = monitor

    yield

    logger.info("Lounge booking API shutting down...")
    if monitor is not None:
        await monitor.stop()


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors that escape a route become their HTTP form."""
    http_exc = exc.to_http_exception()
    if http_exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Lounge Booking API",
        version=__version__,
        lifespan=app_lifespan,
    )
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.include_router(public_router)
    app.include_router(staff_router)
    app.include_router(metrics_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()

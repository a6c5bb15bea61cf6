"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import async_session_factory, close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    account,
    availability,
    booking,
    conflict,
    excursion,
    health,
    metrics,
    notification,
    reseller,
    slot,
)
from .services.change_feed import ChangeFeed
from .services.email_client import EmailClient
from .services.sync_service import AvailabilitySyncService
from .workers.manager import WorkerManager

setup_structured_logging()

logger = logging.getLogger(__name__)


def init_app_state(app: FastAPI, session_factory=async_session_factory) -> None:
    """Create the process-wide services and keep them on ``app.state``."""
    app.state.change_feed = ChangeFeed()
    app.state.sync_service = AvailabilitySyncService(app.state.change_feed, session_factory)
    app.state.email_client = EmailClient()
    app.state.worker_manager = WorkerManager.default(session_factory, app.state.email_client)


async def dispose_app_state(app: FastAPI) -> None:
    """Stop workers and release what ``init_app_state`` created."""
    await app.state.worker_manager.stop_all()
    app.state.sync_service.close()
    app.state.change_feed.close()
    await app.state.email_client.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    logger.info(
        "Starting FastAPI application",
        extra={"environment": settings.environment, "debug": settings.debug}
    )

    try:
        setup_tracing()
        setup_metrics()
        instrument_sqlalchemy(engine)

        # Production schemas are managed by migrations (excursion-booking-db)
        if not settings.is_production:
            await init_db()
            logger.info("Database tables created")

        init_app_state(app)
        if settings.workers_enabled:
            await app.state.worker_manager.start_all()
    except Exception as e:
        logger.error("Failed to initialize application", extra={"error": str(e)}, exc_info=True)
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down FastAPI application")

    try:
        await dispose_app_state(app)
        await close_db()
    except Exception as e:
        logger.error("Error during application cleanup", extra={"error": str(e)}, exc_info=True)

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Excursion Booking API",
        description=(
            "RPC-over-HTTP API for guided excursion bookings: slot availability, "
            "direct and reseller bookings, overbooking detection and notifications"
        ),
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    setup_middleware(app, enable_logging=True)

    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(account.router)
    app.include_router(excursion.router)
    app.include_router(slot.router)
    app.include_router(booking.router)
    app.include_router(reseller.router)
    app.include_router(conflict.router)
    app.include_router(notification.router)
    app.include_router(availability.router)

    logger.info("FastAPI application created and configured")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "excursion_booking.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )

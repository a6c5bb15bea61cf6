"""Health, readiness and service information endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.dependencies import get_db
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_NAME = "excursion-booking-api"
VERSION = "1.0.0"

DB_DEPENDENCY = Depends(get_db)


@router.get("/health", response_model=HealthResponse, summary="Health Check")
async def health_check() -> JSONResponse:
    """Liveness: the process is up and serving requests."""
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        database="unchecked"
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.get("/ready", response_model=HealthResponse, summary="Readiness Check")
async def readiness_check(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Readiness: the database answers. Responds 503 while it does not."""
    try:
        await db.execute(text("SELECT 1"))
        database, status, status_code = "ok", HealthStatus.HEALTHY, 200
    except SQLAlchemyError as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        database, status, status_code = "unreachable", HealthStatus.DEGRADED, 503

    response_data = HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version=VERSION,
        database=database
    )

    return JSONResponse(
        status_code=status_code,
        content=response_data.model_dump(mode="json")
    )


@router.get("/info", summary="Service Information", response_model=dict)
async def service_info(request: Request) -> dict:
    workers = getattr(request.app.state, "worker_manager", None)
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "environment": settings.environment,
        "debug": settings.debug,
        "business_timezone": settings.business_timezone,
        "features": {
            "authentication": True,
            "change_feed": True,
            "email": settings.email_configured,
            "problem_details": True,
            "tracing": bool(settings.otlp_endpoint),
        },
        "workers": workers.get_worker_status() if workers is not None else {},
        "endpoints": {
            "health": "/health",
            "readiness": "/ready",
            "metrics": "/metrics",
            "availability_stream": "/v1/availability/stream/{excursion_id}",
            "docs": "/docs" if settings.debug else None,
        },
    }

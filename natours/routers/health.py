"""Health and readiness routes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db, ping_db
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """
    Liveness check.

    Returns current service status and timestamp.
    """
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """
    Readiness check.

    Answers 503 when the database does not respond.
    """
    try:
        database_ok = await ping_db(db)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        database_ok = False

    response_data = ReadinessResponse(
        status=HealthStatus.READY if database_ok else HealthStatus.UNAVAILABLE,
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        checks={"database": "ok" if database_ok else "unavailable"},
    )
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content=response_data.model_dump(mode="json"),
    )

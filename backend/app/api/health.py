"""Health check endpoints.

- /health: process is up
- /health/db: database round trip
- /health/ready, /health/live: Kubernetes probes
- /health/detailed: database plus chat backend circuit state
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.services.regression.resilience import get_circuit_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_error(db: AsyncSession) -> str | None:
    """Run SELECT 1; return the error text, or None when the database answers."""
    try:
        await db.scalar(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database check failed", exc_info=True)
        return str(e)
    return None


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/db")
async def health_check_db(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    """Database health check endpoint."""
    error = await _database_error(db)
    if error is not None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "database": error}
    return {"status": "healthy", "database": "connected"}


@router.get("/health/ready")
async def readiness_probe(
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Kubernetes readiness probe.

    Only the database gates readiness; an open circuit still accepts runs,
    which then fail per scenario.
    """
    error = await _database_error(db)
    if error is not None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": f"database: {error}"}
    return {"status": "ready"}


@router.get("/health/live")
async def liveness_probe() -> dict[str, str]:
    """Kubernetes liveness probe. No external dependencies."""
    return {"status": "alive"}


@router.get("/health/detailed")
async def detailed_health(
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Report database status, chat backend circuit state and feature flags.

    An open circuit degrades the status; a database failure makes it
    unhealthy and returns 503.
    """
    circuit = get_circuit_state()
    db_error = await _database_error(db)

    if db_error is not None:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif circuit["state"] == "open":
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "services": {
            "database": "healthy" if db_error is None else f"unhealthy: {db_error}",
            "openai_circuit": circuit,
        },
        "features": {
            "prometheus_metrics": settings.ENABLE_PROMETHEUS_METRICS,
            "openai_configured": bool(settings.OPENAI_API_KEY),
            "regression_model": settings.REGRESSION_MODEL,
        },
    }

"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import health, regression
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import create_tables, engine
from app.monitoring.metrics import get_metrics_router

# Import models so they're registered with Base.metadata
from app.models import GoldenScenario, RegressionTestResult, RegressionTestRun  # noqa: F401

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables on startup and dispose the engine on shutdown."""
    logger.info("app_starting", app=settings.APP_NAME, version=settings.APP_VERSION)

    if settings.AUTO_CREATE_TABLES:
        await create_tables()

    yield

    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.include_router(health.router)
app.include_router(regression.router)
app.include_router(get_metrics_router())

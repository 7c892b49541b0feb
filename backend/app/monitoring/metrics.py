"""Prometheus metrics for regression test runs.

Feature-flagged via ENABLE_PROMETHEUS_METRICS.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from app.core.config import settings

logger = structlog.get_logger()

# Create custom registry to avoid conflicts
REGISTRY = CollectorRegistry(auto_describe=True)

# Counters
REGRESSION_RUNS = Counter(
    "everlaunch_regression_runs_total",
    "Total number of completed regression runs",
    ["run_type"],
    registry=REGISTRY,
)

SCENARIOS_EXECUTED = Counter(
    "everlaunch_regression_scenarios_total",
    "Scenarios executed, by outcome (passed, failed, error)",
    ["outcome"],
    registry=REGISTRY,
)

ASSERTION_FAILURES = Counter(
    "everlaunch_regression_assertion_failures_total",
    "Failed assertions, by assertion type",
    ["assertion_type"],
    registry=REGISTRY,
)

# Histograms
SCENARIO_DURATION = Histogram(
    "everlaunch_regression_scenario_duration_seconds",
    "Scenario execution time in seconds",
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60),
    registry=REGISTRY,
)


def record_scenario_result(
    outcome: str,
    duration_seconds: float,
    failed_assertion_types: list[str] | None = None,
) -> None:
    """Record one scenario outcome.

    Args:
        outcome: passed, failed or error.
        duration_seconds: Execution time.
        failed_assertion_types: Types of the assertions that failed.
    """
    if not settings.ENABLE_PROMETHEUS_METRICS:
        return

    SCENARIOS_EXECUTED.labels(outcome=outcome).inc()
    SCENARIO_DURATION.observe(duration_seconds)
    for assertion_type in failed_assertion_types or []:
        ASSERTION_FAILURES.labels(assertion_type=assertion_type).inc()
    logger.debug("metric_scenario_recorded", outcome=outcome, duration=duration_seconds)


def record_run_completed(run_type: str) -> None:
    if not settings.ENABLE_PROMETHEUS_METRICS:
        return

    REGRESSION_RUNS.labels(run_type=run_type).inc()


def get_metrics_router() -> APIRouter:
    """Get router with /metrics endpoint.

    Returns:
        FastAPI router with Prometheus metrics endpoint.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        if not settings.ENABLE_PROMETHEUS_METRICS:
            return Response(
                content="Prometheus metrics disabled",
                status_code=503,
            )

        return Response(
            content=generate_latest(REGISTRY),
            media_type=CONTENT_TYPE_LATEST,
        )

    return router


__all__ = [
    "ASSERTION_FAILURES",
    "REGISTRY",
    "REGRESSION_RUNS",
    "SCENARIOS_EXECUTED",
    "SCENARIO_DURATION",
    "get_metrics_router",
    "record_run_completed",
    "record_scenario_result",
]

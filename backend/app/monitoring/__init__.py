"""Monitoring module for Prometheus metrics."""

from app.monitoring.metrics import (
    ASSERTION_FAILURES,
    REGRESSION_RUNS,
    SCENARIO_DURATION,
    SCENARIOS_EXECUTED,
    get_metrics_router,
    record_run_completed,
    record_scenario_result,
)

__all__ = [
    "ASSERTION_FAILURES",
    "REGRESSION_RUNS",
    "SCENARIOS_EXECUTED",
    "SCENARIO_DURATION",
    "get_metrics_router",
    "record_run_completed",
    "record_scenario_result",
]

"""ORM models."""

from app.models.golden_scenario import Channel, FeatureFlag, GoldenScenario
from app.models.regression_test import (
    RegressionTestResult,
    RegressionTestRun,
    RunStatus,
    RunType,
)

__all__ = [
    "Channel",
    "FeatureFlag",
    "GoldenScenario",
    "RegressionTestResult",
    "RegressionTestRun",
    "RunStatus",
    "RunType",
]

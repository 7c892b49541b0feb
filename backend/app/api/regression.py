"""Regression testing API routes.

Runs golden scenarios against the chat model and exposes scenarios, runs
and per-scenario results for review.
"""

import uuid
from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.models.golden_scenario import GoldenScenario
from app.models.regression_test import RegressionTestResult, RegressionTestRun
from app.services.regression.conversation import ConversationDriver
from app.services.regression.prompt_generator import DEFAULT_CATALOG
from app.services.regression.runner import (
    RegressionSetupError,
    RegressionTestRunner,
    RunSummary,
)


def _parse_uuid(value: str, field_name: str = "ID") -> uuid.UUID:
    """Parse UUID string with proper error handling.

    Raises:
        HTTPException: If the value is not a valid UUID
    """
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} format") from e


router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/regression", tags=["regression"])
logger = structlog.get_logger()


def get_conversation_driver() -> ConversationDriver:
    """Dependency providing the chat-completion driver."""
    return ConversationDriver()


# =============================================================================
# Pydantic Schemas
# =============================================================================


class RunRegressionRequest(BaseModel):
    """Request to run regression scenarios."""

    vertical_id: int | None = None
    run_all: bool = False
    triggered_by: str | None = Field(default=None, max_length=200)


class GoldenScenarioResponse(BaseModel):
    """Golden scenario response."""

    id: str
    name: str
    vertical_id: int | None
    channel: str
    config_overrides: dict[str, Any] | None
    conversation_script: list[dict[str, Any]]
    expected_assertions: dict[str, Any]
    is_active: bool
    created_at: datetime


class RegressionRunResponse(BaseModel):
    """Regression run response."""

    id: str
    run_type: str
    vertical_filter: int | None
    triggered_by: str | None
    total_scenarios: int
    passed_count: int
    failed_count: int
    status: str
    started_at: datetime
    completed_at: datetime | None


class RegressionResultResponse(BaseModel):
    """Single scenario result within a run."""

    id: str
    scenario_id: str
    scenario_name: str | None = None
    passed: bool
    assertions_passed: list[dict[str, Any]]
    assertions_failed: list[dict[str, Any]]
    generated_prompt: str | None
    ai_response: str | None
    execution_time_ms: int | None
    error_message: str | None
    created_at: datetime


class RegressionRunDetailResponse(RegressionRunResponse):
    """Run with its results, failures first."""

    results: list[RegressionResultResponse]


class SeedScenariosResponse(BaseModel):
    """Response after seeding scenarios."""

    message: str
    scenarios_created: int


def _run_response(run: RegressionTestRun) -> dict[str, Any]:
    return {
        "id": str(run.id),
        "run_type": run.run_type,
        "vertical_filter": run.vertical_filter,
        "triggered_by": run.triggered_by,
        "total_scenarios": run.total_scenarios,
        "passed_count": run.passed_count,
        "failed_count": run.failed_count,
        "status": run.status,
        "started_at": run.started_at,
        "completed_at": run.completed_at,
    }


def _summary_payload(summary: RunSummary) -> dict[str, Any]:
    if summary.run_id is None:
        return {"success": True, "message": summary.message, "results": []}
    return summary.model_dump(mode="json", exclude={"message"})


# =============================================================================
# Run Endpoints
# =============================================================================


@router.post("/run")
async def run_regression_tests(
    request: RunRegressionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    driver: ConversationDriver = Depends(get_conversation_driver),
) -> JSONResponse:
    """Run active golden scenarios and return the summary.

    Blocks until every scenario has executed.
    """
    request = request or RunRegressionRequest()
    log = logger.bind(vertical_id=request.vertical_id, run_all=request.run_all)
    log.info("regression_run_requested")

    runner = RegressionTestRunner(db, driver=driver)
    try:
        summary = await runner.run(
            vertical_id=request.vertical_id,
            run_all=request.run_all,
            triggered_by=request.triggered_by,
        )
    except (RegressionSetupError, ValueError) as e:
        log.exception("regression_run_failed", error=str(e))
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return JSONResponse(content=_summary_payload(summary))


@router.get("/runs", response_model=list[RegressionRunResponse])
async def list_runs(
    db: AsyncSession = Depends(get_db),
    limit: int = Query(default=10, ge=1, le=100),
) -> list[RegressionRunResponse]:
    """List the most recent regression runs."""
    result = await db.execute(
        select(RegressionTestRun).order_by(desc(RegressionTestRun.started_at)).limit(limit)
    )
    return [RegressionRunResponse(**_run_response(run)) for run in result.scalars().all()]


@router.get("/runs/{run_id}", response_model=RegressionRunDetailResponse)
async def get_run(
    run_id: str,
    db: AsyncSession = Depends(get_db),
) -> RegressionRunDetailResponse:
    """Get a run with its per-scenario results, failures first."""
    run_uuid = _parse_uuid(run_id, "run_id")

    run_result = await db.execute(select(RegressionTestRun).where(RegressionTestRun.id == run_uuid))
    run = run_result.scalar_one_or_none()
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    results = await db.execute(
        select(RegressionTestResult)
        .where(RegressionTestResult.run_id == run_uuid)
        .order_by(RegressionTestResult.passed, RegressionTestResult.created_at)
    )

    return RegressionRunDetailResponse(
        **_run_response(run),
        results=[
            RegressionResultResponse(
                id=str(r.id),
                scenario_id=str(r.scenario_id),
                scenario_name=r.scenario.name if r.scenario else None,
                passed=r.passed,
                assertions_passed=r.assertions_passed or [],
                assertions_failed=r.assertions_failed or [],
                generated_prompt=r.generated_prompt,
                ai_response=r.ai_response,
                execution_time_ms=r.execution_time_ms,
                error_message=r.error_message,
                created_at=r.created_at,
            )
            for r in results.scalars().all()
        ],
    )


# =============================================================================
# Scenario Endpoints
# =============================================================================


@router.get("/scenarios", response_model=list[GoldenScenarioResponse])
async def list_scenarios(
    db: AsyncSession = Depends(get_db),
    vertical_id: int | None = Query(default=None, description="Filter by vertical"),
    active_only: bool = Query(default=False, description="Show only active scenarios"),
) -> list[GoldenScenarioResponse]:
    """List golden scenarios ordered by vertical."""
    query = select(GoldenScenario)
    if vertical_id is not None:
        query = query.where(GoldenScenario.vertical_id == vertical_id)
    if active_only:
        query = query.where(GoldenScenario.is_active == True)  # noqa: E712
    query = query.order_by(GoldenScenario.vertical_id.asc().nulls_first(), GoldenScenario.name)

    result = await db.execute(query)
    return [
        GoldenScenarioResponse(
            id=str(s.id),
            name=s.name,
            vertical_id=s.vertical_id,
            channel=s.channel,
            config_overrides=s.config_overrides,
            conversation_script=s.conversation_script,
            expected_assertions=s.expected_assertions,
            is_active=s.is_active,
            created_at=s.created_at,
        )
        for s in result.scalars().all()
    ]


@router.post("/scenarios/seed", response_model=SeedScenariosResponse)
async def seed_scenarios(
    db: AsyncSession = Depends(get_db),
    driver: ConversationDriver = Depends(get_conversation_driver),
) -> SeedScenariosResponse:
    """Seed built-in golden scenarios to database."""
    logger.info("seeding_scenarios")

    runner = RegressionTestRunner(db, driver=driver)
    count = await runner.seed_built_in_scenarios()

    return SeedScenariosResponse(
        message=f"Seeded {count} scenarios" if count > 0 else "Scenarios already seeded",
        scenarios_created=count,
    )


@router.get("/verticals")
async def list_verticals() -> dict[str, Any]:
    """List vertical names and compliance categories used in prompt generation."""
    return DEFAULT_CATALOG.to_dict()

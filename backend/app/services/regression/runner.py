"""Regression test runner.

Executes golden scenarios sequentially: generate the system prompt, drive the
scripted conversation through the chat model, evaluate assertions, and
persist one result per scenario under a run record.
"""

import time
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.golden_scenario import GoldenScenario
from app.models.regression_test import (
    RegressionTestResult,
    RegressionTestRun,
    RunStatus,
    RunType,
)
from app.monitoring.metrics import record_run_completed, record_scenario_result
from app.services.regression.assertions import (
    AssertionResult,
    error_result,
    evaluate_assertions,
)
from app.services.regression.conversation import ConversationDriver
from app.services.regression.prompt_generator import (
    DEFAULT_CATALOG,
    VerticalCatalog,
    generate_prompt,
)
from app.services.regression.scenarios import get_built_in_scenarios

logger = structlog.get_logger()

NO_SCENARIOS_MESSAGE = "No scenarios found to run"


class RegressionSetupError(Exception):
    """A run could not be started (scenario store or run record unavailable)."""


class ScenarioSnapshot(BaseModel):
    """Immutable copy of a GoldenScenario taken when the run starts.

    The JSON payloads stay loosely typed here; they are validated while the
    scenario executes so a malformed scenario only fails itself.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    name: str
    vertical_id: int | None = None
    channel: str
    config_overrides: Any = None
    conversation_script: Any = None
    expected_assertions: Any = None

    def feature_overrides(self) -> Mapping[str, Any]:
        """Return config_overrides as a mapping (empty when unset).

        Raises:
            TypeError: If the stored overrides are not a JSON object.
        """
        if not self.config_overrides:
            return {}
        if not isinstance(self.config_overrides, Mapping):
            msg = (
                "config_overrides must be an object, "
                f"got {type(self.config_overrides).__name__}"
            )
            raise TypeError(msg)
        return self.config_overrides


class ScenarioOutcome(BaseModel):
    """Per-scenario entry of a run summary."""

    scenario_name: str
    vertical_id: int | None
    channel: str
    passed: bool
    failed_assertions: list[dict[str, Any]]
    passed_assertions: list[dict[str, Any]]
    execution_time_ms: int
    error: str | None = None


class RunSummary(BaseModel):
    """Result of a regression run, returned synchronously to the caller."""

    success: bool = True
    run_id: uuid.UUID | None = None
    total: int = 0
    passed: int = 0
    failed: int = 0
    message: str | None = None
    results: list[ScenarioOutcome] = []


class RegressionTestRunner:
    """Runs golden scenarios and records the outcome.

    Callers are expected not to start concurrent runs against the same store.
    """

    def __init__(
        self,
        db: AsyncSession,
        driver: ConversationDriver | None = None,
        catalog: VerticalCatalog = DEFAULT_CATALOG,
    ):
        """Initialize the runner.

        Args:
            db: Database session
            driver: Conversation driver (defaults to one configured from settings)
            catalog: Vertical lookup data for prompt generation
        """
        self.db = db
        self.driver = driver or ConversationDriver()
        self.catalog = catalog
        self.logger = logger.bind(component="regression_runner")

    async def load_scenarios(
        self, vertical_id: int | None = None, run_all: bool = False
    ) -> list[ScenarioSnapshot]:
        """Load active scenarios, restricted to one vertical unless run_all.

        Raises:
            RegressionSetupError: If the scenario store cannot be queried.
        """
        query = select(GoldenScenario).where(GoldenScenario.is_active == True)  # noqa: E712
        if vertical_id is not None and not run_all:
            query = query.where(GoldenScenario.vertical_id == vertical_id)
        query = query.order_by(GoldenScenario.created_at)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            msg = f"Failed to fetch scenarios: {e}"
            raise RegressionSetupError(msg) from e

        return [ScenarioSnapshot.model_validate(s) for s in result.scalars().all()]

    async def run(
        self,
        vertical_id: int | None = None,
        run_all: bool = False,
        triggered_by: str | None = None,
    ) -> RunSummary:
        """Execute a regression run.

        Args:
            vertical_id: Restrict to this vertical (ignored when run_all)
            run_all: Run every active scenario
            triggered_by: Optional label recorded on the run

        Returns:
            RunSummary with per-scenario outcomes

        Raises:
            RegressionSetupError: If scenarios cannot be loaded or the run
                record cannot be created.
            ValueError: If the chat-completion backend is not configured.
        """
        log = self.logger.bind(vertical_id=vertical_id, run_all=run_all)
        log.info("regression_run_requested")

        scenarios = await self.load_scenarios(vertical_id, run_all)
        if not scenarios:
            log.info("no_scenarios_matched")
            return RunSummary(message=NO_SCENARIOS_MESSAGE)

        self.driver.ensure_client()

        run_type = RunType.FULL if run_all else RunType.VERTICAL
        run_id = uuid.uuid4()
        self.db.add(
            RegressionTestRun(
                id=run_id,
                run_type=run_type.value,
                vertical_filter=None if run_all else vertical_id,
                triggered_by=triggered_by,
                total_scenarios=len(scenarios),
                passed_count=0,
                failed_count=0,
                status=RunStatus.RUNNING.value,
                started_at=datetime.now(UTC),
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            msg = f"Failed to create run record: {e}"
            raise RegressionSetupError(msg) from e

        log = log.bind(run_id=str(run_id))
        log.info("regression_run_started", scenario_count=len(scenarios))

        outcomes: list[ScenarioOutcome] = []
        passed_count = 0
        failed_count = 0

        for scenario in scenarios:
            outcome = await self.execute_scenario(run_id, scenario)
            outcomes.append(outcome)
            if outcome.passed:
                passed_count += 1
            else:
                failed_count += 1

        await self._complete_run(run_id, passed_count, failed_count)
        record_run_completed(run_type.value)

        log.info("regression_run_completed", passed=passed_count, failed=failed_count)

        return RunSummary(
            run_id=run_id,
            total=len(scenarios),
            passed=passed_count,
            failed=failed_count,
            results=outcomes,
        )

    async def execute_scenario(
        self, run_id: uuid.UUID, scenario: ScenarioSnapshot
    ) -> ScenarioOutcome:
        """Run one scenario and persist its result.

        Any exception from prompt generation, the model call or assertion
        evaluation is recorded as a failed result; it never escapes.
        """
        log = self.logger.bind(run_id=str(run_id), scenario=scenario.name)
        start_time = time.monotonic()

        try:
            prompt = generate_prompt(
                scenario.vertical_id,
                scenario.channel,
                scenario.feature_overrides(),
                catalog=self.catalog,
            )
            reply = await self.driver.run(prompt, scenario.conversation_script or [])
            evaluation = evaluate_assertions(
                reply.response,
                reply.tools_called,
                scenario.expected_assertions or {},
            )
        except Exception as e:
            duration = time.monotonic() - start_time
            message = str(e) or type(e).__name__
            log.exception("scenario_error", error=message)

            failed = [error_result(message)]
            await self._persist_result(
                run_id,
                scenario.id,
                passed=False,
                passed_list=[],
                failed_list=failed,
                execution_time_ms=int(duration * 1000),
                error_message=message,
            )
            record_scenario_result("error", duration, [r.type for r in failed])
            return self._outcome(scenario, False, [], failed, int(duration * 1000), message)

        duration = time.monotonic() - start_time
        execution_time_ms = int(duration * 1000)

        await self._persist_result(
            run_id,
            scenario.id,
            passed=evaluation.passed,
            passed_list=evaluation.passed_list,
            failed_list=evaluation.failed_list,
            execution_time_ms=execution_time_ms,
            generated_prompt=prompt,
            ai_response=reply.response,
        )
        record_scenario_result(
            "passed" if evaluation.passed else "failed",
            duration,
            [r.type for r in evaluation.failed_list],
        )

        if evaluation.passed:
            log.info("scenario_passed", execution_time_ms=execution_time_ms)
        else:
            log.info(
                "scenario_failed",
                execution_time_ms=execution_time_ms,
                failed_assertions=[r.details for r in evaluation.failed_list],
            )

        return self._outcome(
            scenario,
            evaluation.passed,
            evaluation.passed_list,
            evaluation.failed_list,
            execution_time_ms,
        )

    @staticmethod
    def _outcome(
        scenario: ScenarioSnapshot,
        passed: bool,
        passed_list: list[AssertionResult],
        failed_list: list[AssertionResult],
        execution_time_ms: int,
        error: str | None = None,
    ) -> ScenarioOutcome:
        return ScenarioOutcome(
            scenario_name=scenario.name,
            vertical_id=scenario.vertical_id,
            channel=scenario.channel,
            passed=passed,
            failed_assertions=[r.to_record() for r in failed_list],
            passed_assertions=[r.to_record() for r in passed_list],
            execution_time_ms=execution_time_ms,
            error=error,
        )

    async def _persist_result(
        self,
        run_id: uuid.UUID,
        scenario_id: uuid.UUID,
        passed: bool,
        passed_list: list[AssertionResult],
        failed_list: list[AssertionResult],
        execution_time_ms: int,
        generated_prompt: str = "",
        ai_response: str = "",
        error_message: str | None = None,
    ) -> None:
        """Insert one result. Failures are logged, not raised."""
        self.db.add(
            RegressionTestResult(
                run_id=run_id,
                scenario_id=scenario_id,
                passed=passed,
                assertions_passed=[r.to_record() for r in passed_list],
                assertions_failed=[r.to_record() for r in failed_list],
                generated_prompt=generated_prompt,
                ai_response=ai_response,
                execution_time_ms=execution_time_ms,
                error_message=error_message,
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError:
            self.logger.exception(
                "result_persist_failed",
                run_id=str(run_id),
                scenario_id=str(scenario_id),
            )
            await self.db.rollback()

    async def _complete_run(self, run_id: uuid.UUID, passed_count: int, failed_count: int) -> None:
        """Mark the run completed with final counts. Failures are logged, not raised."""
        try:
            await self.db.execute(
                update(RegressionTestRun)
                .where(RegressionTestRun.id == run_id)
                .values(
                    status=RunStatus.COMPLETED.value,
                    passed_count=passed_count,
                    failed_count=failed_count,
                    completed_at=datetime.now(UTC),
                )
            )
            await self.db.commit()
        except SQLAlchemyError:
            self.logger.exception("run_completion_persist_failed", run_id=str(run_id))
            await self.db.rollback()

    async def seed_built_in_scenarios(self) -> int:
        """Seed built-in golden scenarios to database.

        Returns:
            Number of scenarios created (0 if already seeded)
        """
        log = self.logger.bind(action="seed_scenarios")
        built_in = get_built_in_scenarios()

        result = await self.db.execute(
            select(GoldenScenario.id).where(
                GoldenScenario.name.in_([s["name"] for s in built_in])
            )
        )
        existing = result.scalars().all()
        if existing:
            log.info("scenarios_already_seeded", count=len(existing))
            return 0

        for scenario_data in built_in:
            self.db.add(GoldenScenario(**scenario_data))

        await self.db.commit()
        log.info("scenarios_seeded", count=len(built_in))
        return len(built_in)

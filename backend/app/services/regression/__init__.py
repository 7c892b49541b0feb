"""Prompt regression testing services."""

from app.services.regression.assertions import (
    AssertionResult,
    AssertionSpec,
    EvaluationOutcome,
    evaluate_assertions,
)
from app.services.regression.conversation import (
    TOOL_PALETTE,
    ConversationDriver,
    ConversationReply,
    ConversationTurn,
)
from app.services.regression.prompt_generator import (
    DEFAULT_CATALOG,
    VerticalCatalog,
    generate_prompt,
)
from app.services.regression.resilience import (
    call_openai_with_resilience,
    get_circuit_state,
    get_openai_client,
    is_circuit_open,
    reset_circuit_breaker,
)
from app.services.regression.runner import (
    RegressionSetupError,
    RegressionTestRunner,
    RunSummary,
    ScenarioOutcome,
)
from app.services.regression.scenarios import get_built_in_scenarios

__all__ = [
    "DEFAULT_CATALOG",
    "TOOL_PALETTE",
    "AssertionResult",
    "AssertionSpec",
    "ConversationDriver",
    "ConversationReply",
    "ConversationTurn",
    "EvaluationOutcome",
    "RegressionSetupError",
    "RegressionTestRunner",
    "RunSummary",
    "ScenarioOutcome",
    "VerticalCatalog",
    "call_openai_with_resilience",
    "evaluate_assertions",
    "generate_prompt",
    "get_built_in_scenarios",
    "get_circuit_state",
    "get_openai_client",
    "is_circuit_open",
    "reset_circuit_breaker",
]

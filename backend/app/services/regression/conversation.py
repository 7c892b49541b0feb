"""Conversation driver: runs a scripted conversation against the chat model."""

from typing import Any, Literal

import openai
import structlog
from pydantic import BaseModel, ConfigDict

from app.core.config import settings
from app.services.regression.resilience import call_openai_with_resilience, get_openai_client

logger = structlog.get_logger()


def _function_tool(name: str, description: str, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties},
        },
    }


# Fixed tool palette offered to the model in every scenario
TOOL_PALETTE: tuple[dict[str, Any], ...] = (
    _function_tool(
        "create_booking",
        "Schedule an appointment",
        {"date": {"type": "string"}, "time": {"type": "string"}},
    ),
    _function_tool(
        "emergency_dispatch",
        "Dispatch for emergency",
        {"priority": {"type": "string"}},
    ),
    _function_tool("transfer_to_human", "Transfer call to human", {}),
    _function_tool(
        "capture_lead",
        "Save lead information",
        {"name": {"type": "string"}, "phone": {"type": "string"}},
    ),
    _function_tool(
        "quote_estimate",
        "Provide price quote",
        {"amount": {"type": "number"}},
    ),
)


class ConversationTurn(BaseModel):
    """One scripted message fed to the model as history."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Literal["user", "assistant"]
    content: str


class ConversationReply(BaseModel):
    """The model's answer to a scripted conversation."""

    response: str
    tools_called: list[str]


class ConversationDriver:
    """Sends a system prompt plus script to the chat-completion backend."""

    def __init__(
        self,
        client: openai.AsyncOpenAI | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            client: OpenAI client; created from settings on first use if omitted.
            model: Chat model name (defaults to REGRESSION_MODEL).
            max_tokens: Output bound (defaults to REGRESSION_MAX_TOKENS).
            temperature: Sampling temperature (defaults to REGRESSION_TEMPERATURE).
        """
        self._client = client
        self.model = model or settings.REGRESSION_MODEL
        self.max_tokens = max_tokens if max_tokens is not None else settings.REGRESSION_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else settings.REGRESSION_TEMPERATURE
        )
        self.logger = logger.bind(component="conversation_driver")

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def ensure_client(self) -> None:
        """Fail early if the backend is not configured.

        Raises:
            ValueError: If OPENAI_API_KEY not configured.
        """
        self._get_client()

    @staticmethod
    def build_messages(
        prompt: str, script: list[ConversationTurn] | list[dict[str, Any]]
    ) -> list[dict[str, str]]:
        """Build the [system, ...script] message list.

        Raises:
            pydantic.ValidationError: If a turn has an unknown role or no content.
        """
        turns = [t if isinstance(t, ConversationTurn) else ConversationTurn(**t) for t in script]
        return [{"role": "system", "content": prompt}] + [
            {"role": t.role, "content": t.content} for t in turns
        ]

    async def run(
        self, prompt: str, script: list[ConversationTurn] | list[dict[str, Any]]
    ) -> ConversationReply:
        """Get the model's reply to the scripted conversation.

        Backend errors propagate to the caller; nothing is retried.
        """
        messages = self.build_messages(prompt, script)
        completion = await call_openai_with_resilience(
            self._get_client(),
            model=self.model,
            messages=messages,
            tools=list(TOOL_PALETTE),
            tool_choice="auto",
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        choice = completion.choices[0] if completion.choices else None
        if choice is None:
            return ConversationReply(response="", tools_called=[])

        tools_called = [
            tc.function.name for tc in choice.message.tool_calls or [] if tc.type == "function"
        ]
        self.logger.debug(
            "conversation_completed",
            model=self.model,
            turns=len(messages) - 1,
            tools_called=tools_called,
        )
        return ConversationReply(response=choice.message.content or "", tools_called=tools_called)

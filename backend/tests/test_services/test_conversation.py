"""Tests for the conversation driver."""

from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
from pydantic import ValidationError

from app.services.regression.conversation import (
    TOOL_PALETTE,
    ConversationDriver,
    ConversationTurn,
)
from app.services.regression.resilience import reset_circuit_breaker


@pytest.fixture(autouse=True)
def reset_circuit() -> Iterator[None]:
    reset_circuit_breaker()
    yield
    reset_circuit_breaker()


def _tool_call(name: str, call_type: str = "function") -> SimpleNamespace:
    return SimpleNamespace(type=call_type, function=SimpleNamespace(name=name, arguments="{}"))


def _completion(content: str | None, tool_calls: list[Any] | None = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(return_value: Any = None, side_effect: Any = None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=return_value, side_effect=side_effect
    )
    return client


class TestBuildMessages:
    """Message list construction."""

    def test_system_first_then_script(self) -> None:
        """Test system prompt precedes the scripted turns in order."""
        messages = ConversationDriver.build_messages(
            "SYSTEM",
            [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "help"},
            ],
        )

        assert messages == [
            {"role": "system", "content": "SYSTEM"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "help"},
        ]

    def test_accepts_turn_models(self) -> None:
        """Test typed turns are accepted."""
        messages = ConversationDriver.build_messages(
            "S", [ConversationTurn(role="user", content="x")]
        )

        assert messages[1] == {"role": "user", "content": "x"}

    def test_empty_script(self) -> None:
        """Test an empty script yields only the system message."""
        assert ConversationDriver.build_messages("S", []) == [{"role": "system", "content": "S"}]

    def test_invalid_role_rejected(self) -> None:
        """Test an unknown role raises."""
        with pytest.raises(ValidationError):
            ConversationDriver.build_messages("S", [{"role": "system", "content": "x"}])

    def test_missing_content_rejected(self) -> None:
        """Test a turn without content raises."""
        with pytest.raises(ValidationError):
            ConversationDriver.build_messages("S", [{"role": "user"}])


class TestDriverRun:
    """Driving a conversation through the mocked backend."""

    @pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        """Test model, tools and sampling parameters sent to the backend."""
        client = _client(return_value=_completion("Hello"))
        driver = ConversationDriver(
            client=client, model="test-model", max_tokens=42, temperature=0.1
        )

        await driver.run("PROMPT", [{"role": "user", "content": "hi"}])

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 42
        assert kwargs["temperature"] == 0.1
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["messages"][0] == {"role": "system", "content": "PROMPT"}
        assert [t["function"]["name"] for t in kwargs["tools"]] == [
            "create_booking",
            "emergency_dispatch",
            "transfer_to_human",
            "capture_lead",
            "quote_estimate",
        ]
        assert len(kwargs["tools"]) == len(TOOL_PALETTE)

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self) -> None:
        """Test model parameters default to settings."""
        client = _client(return_value=_completion("x"))

        await ConversationDriver(client=client).run("P", [])

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 500
        assert kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_text_and_tools(self) -> None:
        """Test reply text and function tool names are extracted."""
        client = _client(
            return_value=_completion(
                "Dispatching now",
                [_tool_call("emergency_dispatch"), _tool_call("capture_lead")],
            )
        )

        reply = await ConversationDriver(client=client).run("P", [])

        assert reply.response == "Dispatching now"
        assert reply.tools_called == ["emergency_dispatch", "capture_lead"]

    @pytest.mark.asyncio
    async def test_non_function_tool_calls_ignored(self) -> None:
        """Test only function-type tool calls are reported."""
        calls = [_tool_call("custom", "custom"), _tool_call("capture_lead")]
        client = _client(return_value=_completion("x", calls))

        reply = await ConversationDriver(client=client).run("P", [])

        assert reply.tools_called == ["capture_lead"]

    @pytest.mark.asyncio
    async def test_tool_only_reply(self) -> None:
        """Test a reply with tool calls but no text yields an empty response."""
        client = _client(return_value=_completion(None, [_tool_call("create_booking")]))

        reply = await ConversationDriver(client=client).run("P", [])

        assert reply.response == ""
        assert reply.tools_called == ["create_booking"]

    @pytest.mark.asyncio
    async def test_no_choices(self) -> None:
        """Test an empty choices list yields an empty reply."""
        client = _client(return_value=SimpleNamespace(choices=[]))

        reply = await ConversationDriver(client=client).run("P", [])

        assert reply.response == ""
        assert reply.tools_called == []

    @pytest.mark.asyncio
    async def test_backend_error_propagates(self) -> None:
        """Test backend errors are raised after a single attempt."""
        client = _client(
            side_effect=openai.APIConnectionError(request=httpx.Request("POST", "http://test"))
        )

        with pytest.raises(openai.APIConnectionError):
            await ConversationDriver(client=client).run("P", [])

        assert client.chat.completions.create.await_count == 1


class TestEnsureClient:
    """Lazy client creation."""

    def test_missing_key_raises(self) -> None:
        """Test a driver without a client fails when the key is missing."""
        with patch("app.services.regression.resilience.settings") as mock_settings:
            mock_settings.OPENAI_API_KEY = None

            with pytest.raises(ValueError, match="OPENAI_API_KEY not configured"):
                ConversationDriver().ensure_client()

    def test_injected_client_skips_settings(self) -> None:
        """Test an injected client is used as-is."""
        client = MagicMock()
        driver = ConversationDriver(client=client)

        driver.ensure_client()

        assert driver._get_client() is client

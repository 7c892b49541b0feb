"""Resilience patterns for the chat-completion backend.

Timeout via the httpx client settings and a circuit breaker via aiobreaker.
Regression runs must reflect a single model answer per scenario, so calls
are never retried; the breaker only makes a dead backend fail fast.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx
import openai
import structlog
from aiobreaker import CircuitBreaker, CircuitBreakerError
from openai.types.chat import ChatCompletion

from app.core.config import settings

logger = structlog.get_logger()

# Opens after OPENAI_CIRCUIT_FAILURE_THRESHOLD consecutive failures
# Half-opens after OPENAI_CIRCUIT_RECOVERY_TIMEOUT seconds
openai_circuit_breaker = CircuitBreaker(
    fail_max=settings.OPENAI_CIRCUIT_FAILURE_THRESHOLD,
    timeout_duration=timedelta(seconds=settings.OPENAI_CIRCUIT_RECOVERY_TIMEOUT),
    name="openai_chat",
)


def get_openai_client() -> openai.AsyncOpenAI:
    """Get OpenAI client with timeout configured and retries disabled.

    Returns:
        AsyncOpenAI client.

    Raises:
        ValueError: If OPENAI_API_KEY not configured.
    """
    if not settings.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY not configured")

    return openai.AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        timeout=httpx.Timeout(settings.OPENAI_TIMEOUT, connect=5.0),
        max_retries=0,
    )


async def call_openai_with_resilience(
    client: openai.AsyncOpenAI,
    **request: Any,
) -> ChatCompletion:
    """Create a chat completion through the circuit breaker.

    Args:
        client: OpenAI async client (created with get_openai_client).
        **request: Keyword arguments for chat.completions.create.

    Returns:
        The ChatCompletion response.

    Raises:
        CircuitBreakerError: If circuit is open (too many recent failures).
        openai.APIError: For any backend error (not retried), including the
            failure that trips the breaker.
    """
    backend_error: Exception | None = None

    async def _create() -> ChatCompletion:
        nonlocal backend_error
        try:
            return await client.chat.completions.create(**request)
        except Exception as e:
            backend_error = e
            raise

    try:
        return await openai_circuit_breaker.call_async(_create)
    except CircuitBreakerError as e:
        if backend_error is not None:
            # This call's own failure opened the circuit
            logger.error(
                "openai_circuit_opened",
                error=str(backend_error),
                fail_count=openai_circuit_breaker.fail_counter,
            )
            raise backend_error from e
        logger.error(
            "openai_circuit_open",
            recovery_in=openai_circuit_breaker.timeout_duration.total_seconds(),
        )
        raise
    except openai.APIError as e:
        logger.warning(
            "openai_api_error",
            error=str(e),
            status=getattr(e, "status_code", None),
        )
        raise


def get_circuit_state() -> dict[str, str | int]:
    """Get circuit breaker state for monitoring.

    Returns:
        Dict with state, fail_count, and fail_max.
    """
    # CircuitBreakerState.CLOSED -> "closed"
    state_str = str(openai_circuit_breaker.current_state)
    if "." in state_str:
        state_str = state_str.split(".")[-1]

    return {
        "state": state_str.lower(),
        "fail_count": openai_circuit_breaker.fail_counter,
        "fail_max": openai_circuit_breaker.fail_max,
    }


def is_circuit_open() -> bool:
    return get_circuit_state()["state"] == "open"


def reset_circuit_breaker() -> None:
    """Reset circuit breaker to closed state."""
    openai_circuit_breaker.close()
    logger.info("openai_circuit_reset")


__all__ = [
    "CircuitBreakerError",
    "call_openai_with_resilience",
    "get_circuit_state",
    "get_openai_client",
    "is_circuit_open",
    "reset_circuit_breaker",
]

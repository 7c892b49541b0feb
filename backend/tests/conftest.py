"""Pytest configuration and fixtures for backend tests."""

import logging
import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.regression import get_conversation_driver
from app.db.base import Base
from app.db.session import get_db
from app.main import app

# Import all models to ensure they're registered with Base.metadata
from app.models.golden_scenario import GoldenScenario
from app.models.regression_test import RegressionTestResult, RegressionTestRun  # noqa: F401
from app.services.regression.conversation import (
    ConversationDriver,
    ConversationReply,
    ConversationTurn,
)

logger = logging.getLogger(__name__)


class ScriptedDriver(ConversationDriver):
    """Conversation driver returning canned replies instead of calling the backend.

    Replies are consumed in order; an Exception entry is raised instead of
    returned. Once the queue is empty the default reply is used.
    """

    def __init__(
        self,
        replies: list[ConversationReply | Exception] | None = None,
        default: ConversationReply | None = None,
    ) -> None:
        super().__init__(client=MagicMock())
        self.replies = list(replies or [])
        self.default = default or ConversationReply(response="", tools_called=[])
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def run(
        self, prompt: str, script: list[ConversationTurn] | list[dict[str, Any]]
    ) -> ConversationReply:
        messages = self.build_messages(prompt, script)
        self.calls.append((prompt, messages))

        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def scripted_driver() -> Any:
    """Factory fixture for ScriptedDriver instances."""

    def _create(
        replies: list[ConversationReply | Exception] | None = None,
        default: ConversationReply | None = None,
    ) -> ScriptedDriver:
        return ScriptedDriver(replies=replies, default=default)

    return _create


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[Any, None]:
    """Create test database engine with fresh database for each test."""
    # Create a unique temp file for each test to ensure complete isolation
    test_db_fd, test_db_path = tempfile.mkstemp(suffix=".db")
    os.close(test_db_fd)
    test_db_url = f"sqlite+aiosqlite:///{test_db_path}"

    engine = create_async_engine(
        test_db_url,
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    try:
        db_path = Path(test_db_path)
        if db_path.exists():
            db_path.unlink()
    except OSError as e:
        logger.debug("Failed to clean up test database: %s", e)


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_client(
    test_engine: Any,
) -> AsyncGenerator[tuple[AsyncClient, ScriptedDriver], None]:
    """Create test HTTP client backed by the test database and a scripted driver.

    Returns a tuple of (client, driver); queue replies on driver.replies.
    """
    test_async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    driver = ScriptedDriver()

    # Provide a fresh session for each request
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_conversation_driver] = lambda: driver

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, driver

    app.dependency_overrides.clear()


@pytest.fixture
def sample_scenario_data() -> dict[str, Any]:
    """Sample golden scenario data (legal vertical, phone)."""
    return {
        "name": "PI Attorney - Will I Win",
        "vertical_id": 14,
        "channel": "phone",
        "config_overrides": {},
        "conversation_script": [{"role": "user", "content": "Will I win my case?"}],
        "expected_assertions": {
            "must_not_include": ["you will win"],
            "must_include_any": ["consult an attorney", "speak with a lawyer"],
        },
    }


@pytest_asyncio.fixture
async def create_golden_scenario(
    test_session: AsyncSession, sample_scenario_data: dict[str, Any]
) -> Any:
    """Factory fixture to create golden scenarios."""

    async def _create_scenario(**kwargs: Any) -> GoldenScenario:
        scenario_data = {**sample_scenario_data, "is_active": True}
        scenario_data.update(kwargs)
        scenario = GoldenScenario(**scenario_data)
        test_session.add(scenario)
        await test_session.commit()
        await test_session.refresh(scenario)
        return scenario

    return _create_scenario

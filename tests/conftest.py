"""Shared test fixtures for repo_agent tests."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from repo_agent.agent.types import SpawnResult
from repo_agent.tools.core import ExecutionContext, UserContext

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


@pytest.fixture
def mock_executor() -> MagicMock:
    """Spawner collaborator whose sub-agents always succeed."""
    executor = MagicMock()
    executor.generate_agent_id.return_value = "agent_123"
    executor.spawn_sub_agent = AsyncMock(
        return_value=SpawnResult(agent_id="agent_123", success=True, result={"done": True}, duration=12.5)
    )
    executor.execute_workflow = AsyncMock()
    executor.get_active_sub_agents.return_value = []
    executor.get_execution_history.return_value = []
    return executor


@pytest.fixture
def execution_context(mock_executor: MagicMock) -> ExecutionContext:
    """Context of a signed-in user with an active project and session."""
    return ExecutionContext(
        user=UserContext(id="user-1", name="Ada", permissions=("read", "write")),
        org={"id": "org-1"},
        project={"id": "project-1"},
        session={"id": "session-1"},
        tool_executor=mock_executor,
    )


@pytest.fixture
def clean_env(monkeypatch: MonkeyPatch) -> None:
    """Remove every environment variable the settings layer reads."""
    for name in (
        "LOG_LEVEL",
        "REDIS_HOST",
        "REDIS_PORT",
        "REPO_AGENT_HISTORY_LIMIT",
        "REPO_AGENT_STATUS_HISTORY_WINDOW",
        "REPO_AGENT_DYNAMIC_CATEGORY",
    ):
        monkeypatch.delenv(name, raising=False)

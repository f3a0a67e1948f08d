"""Tests for repo_agent.tools.agent_tools module."""

from __future__ import annotations

import asyncio

import pytest
from repo_agent.agent.executor import ToolExecutor
from repo_agent.agent.spawner import SubAgentSpawner
from repo_agent.agent.types import AgentHandle, AgentStatus, SpawnResult
from repo_agent.config import Settings
from repo_agent.tools.agent_tools import AgentManagementTools
from repo_agent.tools.base import CostEstimate
from repo_agent.tools.core import ExecutionContext

@pytest.fixture
def executor() -> ToolExecutor:
    return ToolExecutor({"agent_archetype": "GENERALIST"})


@pytest.fixture
def agent_tools() -> AgentManagementTools:
    return AgentManagementTools(settings=Settings())


@pytest.fixture
def tools(agent_tools) -> dict:
    return {tool.name: tool for tool in agent_tools.tools()}


@pytest.fixture
def context(executor) -> ExecutionContext:
    return ExecutionContext.from_mapping({"tool_executor": executor, "session": {"id": "session-1"}})


class TestToolMetadata:
    """Test agent tool declarations."""

    def test_names_and_category(self, tools):
        assert list(tools) == ["spawn_specialist_agent", "delegate_task", "coordinate_agents", "get_agent_status"]
        assert {tool.category for tool in tools.values()} == {"agent_spawning"}

    def test_costs_and_required_context(self, tools):
        assert tools["spawn_specialist_agent"].required_context == ("tool_executor", "session")
        assert tools["spawn_specialist_agent"].cost_estimate is CostEstimate.MEDIUM
        assert tools["delegate_task"].cost_estimate is CostEstimate.MEDIUM
        assert tools["coordinate_agents"].cost_estimate is CostEstimate.HIGH
        assert tools["get_agent_status"].cost_estimate is CostEstimate.LOW
        assert all("tool_executor" in tool.required_context for tool in tools.values())

    def test_workflow_enum_lists_predefined_and_custom(self, tools):
        workflow = tools["coordinate_agents"].definition.parameters.properties["workflow"]

        assert workflow.enum == ["clarify_then_execute", "review_and_improve", "deploy_with_validation", "custom"]


class TestSpawnSpecialistAgent:
    """Test spawn_specialist_agent tool."""

    @pytest.mark.asyncio
    async def test_wait_mode(self, tools, context):
        result = await tools["spawn_specialist_agent"].safe_execute(
            {"agent_type": "CODE_REVIEWER", "task": "Review the parser"}, context
        )

        assert result["success"] is True
        assert result["agent_id"].startswith("agent_")
        assert result["result"]["completed"] is True

    @pytest.mark.asyncio
    async def test_async_mode_records_history_under_returned_id(self, agent_tools, tools, context, executor):
        result = await tools["spawn_specialist_agent"].safe_execute(
            {"agent_type": "CODE_GENERATOR", "task": "Build it", "return_to": "async"}, context
        )
        await asyncio.gather(*agent_tools.spawner.background_tasks)

        assert result["status"] == "running"
        completed = executor.get_execution_history(status="completed")
        assert [entry.execution_id for entry in completed] == [result["agent_id"]]

    @pytest.mark.asyncio
    async def test_requires_session(self, tools, executor):
        result = await tools["spawn_specialist_agent"].safe_execute(
            {"agent_type": "CODE_REVIEWER", "task": "x"}, {"tool_executor": executor}
        )

        assert result == {"success": False, "error": "Missing required context: session"}

    @pytest.mark.asyncio
    async def test_unknown_archetype_is_an_error_value(self, tools, context):
        result = await tools["spawn_specialist_agent"].safe_execute({"agent_type": "WIZARD", "task": "x"}, context)

        assert result == {"success": False, "error": "Unknown agent archetype: WIZARD"}


class TestDelegateTask:
    """Test delegate_task tool."""

    @pytest.mark.asyncio
    async def test_delegates_to_classified_archetype(self, tools, context, executor):
        result = await tools["delegate_task"].safe_execute(
            {"task": "Implement the settings page", "requirements": {"framework": "react"}, "priority": "high"},
            context,
        )

        assert result["success"] is True
        assert result["delegated_to"] == "CODE_GENERATOR"
        assert result["task_analysis"]["confidence"] == 0.8
        assert result["agent_id"].startswith("agent_")

    @pytest.mark.asyncio
    async def test_passes_task_context(self, tools, context, mock_executor):
        result = await tools["delegate_task"].safe_execute(
            {"task": "Deploy v2"}, context.merge({"tool_executor": mock_executor})
        )

        assert result["delegated_to"] == "DEPLOYMENT_MANAGER"
        agent_type, task, task_context = mock_executor.spawn_sub_agent.await_args.args
        assert (agent_type, task) == ("DEPLOYMENT_MANAGER", "Deploy v2")
        assert task_context.get("priority") == "medium"
        assert task_context.get("analysis")["recommended_agent"] == "DEPLOYMENT_MANAGER"

    @pytest.mark.asyncio
    async def test_reports_failed_sub_agent(self, tools, context, mock_executor):
        mock_executor.spawn_sub_agent.return_value = SpawnResult("agent_1", success=False, error="no capacity")

        result = await tools["delegate_task"].safe_execute(
            {"task": "hello"}, context.merge({"tool_executor": mock_executor})
        )

        assert result["success"] is False
        assert result["delegated_to"] == "GENERALIST"
        assert result["error"] == "no capacity"

    @pytest.mark.asyncio
    async def test_rejects_unknown_priority(self, tools, context, mock_executor):
        result = await tools["delegate_task"].safe_execute(
            {"task": "hello", "priority": "asap"}, context.merge({"tool_executor": mock_executor})
        )

        assert result["success"] is False
        assert result["error"].startswith("Invalid priority")
        mock_executor.spawn_sub_agent.assert_not_called()


class TestCoordinateAgents:
    """Test coordinate_agents tool."""

    @pytest.mark.asyncio
    async def test_custom_workflow(self, tools, context):
        result = await tools["coordinate_agents"].safe_execute(
            {
                "workflow": "custom",
                "tasks": [
                    {"agent": "CODE_GENERATOR", "task": "Generate"},
                    {"agent": "CODE_REVIEWER", "task": "Review", "depends_on": "CODE_GENERATOR"},
                ],
            },
            context,
        )

        assert result["success"] is True
        assert result["workflow"] == "custom"
        assert [r["agent"] for r in result["results"]] == ["CODE_GENERATOR", "CODE_REVIEWER"]

    @pytest.mark.asyncio
    async def test_predefined_workflow(self, tools, context):
        result = await tools["coordinate_agents"].safe_execute({"workflow": "deploy_with_validation"}, context)

        assert result["success"] is True
        assert result["workflow_id"].startswith("workflow_")
        assert [step["agent"] for step in result["steps"]] == ["CODE_REVIEWER"]

    @pytest.mark.asyncio
    async def test_custom_without_tasks(self, tools, context):
        result = await tools["coordinate_agents"].safe_execute({"workflow": "custom"}, context)

        assert result == {"success": False, "error": "Tasks required for custom workflow"}


class TestGetAgentStatus:
    """Test get_agent_status tool."""

    @pytest.mark.asyncio
    async def test_lists_active_agents(self, tools, context, executor):
        handle = AgentHandle(
            id="agent_1",
            archetype="CODE_REVIEWER",
            context=ExecutionContext.from_mapping({"task": "Review"}),
            start_time=1000.0,
        )
        executor._active[handle.id] = handle

        result = await tools["get_agent_status"].safe_execute({}, context)

        assert result["success"] is True
        assert result["count"] == 1
        agent = result["active_agents"][0]
        assert agent["id"] == "agent_1"
        assert agent["status"] == AgentStatus.ACTIVE.value
        assert agent["task"] == "Review"
        assert agent["duration"] > 0
        assert "execution_history" not in result

    @pytest.mark.asyncio
    async def test_single_agent(self, tools, context, executor):
        executor._active["agent_1"] = AgentHandle(
            id="agent_1", archetype="CODE_GENERATOR", context=ExecutionContext(), start_time=0.0
        )

        result = await tools["get_agent_status"].safe_execute({"agent_id": "agent_1"}, context)

        assert result["agent"]["archetype"] == "CODE_GENERATOR"

    @pytest.mark.asyncio
    async def test_unknown_agent(self, tools, context):
        result = await tools["get_agent_status"].safe_execute({"agent_id": "agent_missing"}, context)

        assert result == {"success": False, "error": "Agent not found or no longer active"}

    @pytest.mark.asyncio
    async def test_includes_recent_history(self, tools, context, executor):
        await executor.spawn_sub_agent("CODE_GENERATOR", "Generate", {})

        result = await tools["get_agent_status"].safe_execute({"include_history": True}, context)

        assert result["count"] == 0
        assert [entry["status"] for entry in result["execution_history"]] == ["started", "completed"]

    @pytest.mark.asyncio
    async def test_history_window_from_settings(self, context, executor):
        status_tool = AgentManagementTools(settings=Settings(status_history_window=0.001)).tools()[3]
        await executor.spawn_sub_agent("CODE_GENERATOR", "Generate", {})
        await asyncio.sleep(0.01)

        result = await status_tool.safe_execute({"include_history": True}, context)

        assert result["execution_history"] == []


class TestAgentManagementTools:
    """Test construction and state ownership of the tool set."""

    def test_instances_do_not_share_spawners(self):
        first = AgentManagementTools(settings=Settings())
        second = AgentManagementTools(settings=Settings())

        assert first.spawner is not second.spawner
        assert first.coordinator is not second.coordinator

    @pytest.mark.asyncio
    async def test_uses_injected_spawner_for_detached_runs(self, context):
        spawner = SubAgentSpawner()
        tools = {tool.name: tool for tool in AgentManagementTools(spawner, Settings()).tools()}

        await tools["spawn_specialist_agent"].safe_execute(
            {"agent_type": "CODE_REVIEWER", "task": "Review", "return_to": "async"}, context
        )

        assert len(spawner.background_tasks) == 1
        await asyncio.gather(*spawner.background_tasks)

    @pytest.mark.asyncio
    async def test_settings_are_read_once_at_construction(self, context, executor, clean_env, monkeypatch):
        monkeypatch.setenv("REPO_AGENT_STATUS_HISTORY_WINDOW", "0.001")
        agent_tools = AgentManagementTools()
        monkeypatch.setenv("REPO_AGENT_STATUS_HISTORY_WINDOW", "3600")
        await executor.spawn_sub_agent("CODE_GENERATOR", "Generate", {})
        await asyncio.sleep(0.01)

        result = await agent_tools.tools()[3].safe_execute({"include_history": True}, context)

        assert agent_tools.settings.status_history_window == 0.001
        assert result["execution_history"] == []

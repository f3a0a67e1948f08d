"""Agent-management tools exposed to the orchestrating model.

All four tools live in the ``agent_spawning`` category and reach the spawner
collaborator through ``context.tool_executor``. They are bound to one
``AgentManagementTools`` instance, which owns the sub-agent spawner (and its
detached runs), the workflow coordinator and a settings snapshot.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from repo_agent.agent.archetypes import DEFAULT_WORKFLOWS
from repo_agent.agent.delegation import classify_task
from repo_agent.agent.spawner import SubAgentSpawner
from repo_agent.agent.types import AgentArchetype, ReturnMode
from repo_agent.agent.workflow import CUSTOM_WORKFLOW, WorkflowCoordinator
from repo_agent.config import Settings
from repo_agent.tools.base import CostEstimate, FunctionTool, ToolArgs, create_tool, error_response, validate_string

if TYPE_CHECKING:
    from repo_agent.agent.types import AgentHandle
    from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)

AGENT_SPAWNING_CATEGORY = "agent_spawning"

SPECIALIST_ARCHETYPES = (
    AgentArchetype.CODE_GENERATOR,
    AgentArchetype.CODE_REVIEWER,
    AgentArchetype.DEPLOYMENT_MANAGER,
    AgentArchetype.PUBLIC_ASSISTANT,
)
PRIORITIES = ("low", "medium", "high", "urgent")

SPAWN_SPECIALIST_AGENT = {
    "name": "spawn_specialist_agent",
    "description": "Spawn a specialized agent for a specific task",
    "parameters": {
        "type": "object",
        "properties": {
            "agent_type": {
                "type": "string",
                "description": "Type of specialist agent to spawn",
                "enum": [a.value for a in SPECIALIST_ARCHETYPES],
            },
            "task": {"type": "string", "description": "The specific task for the agent"},
            "context": {"type": "object", "description": "Additional context to pass to the agent"},
            "return_to": {
                "type": "string",
                "description": "How to return results (callback, wait, async)",
                "enum": [m.value for m in ReturnMode],
            },
        },
        "required": ["agent_type", "task"],
    },
}

DELEGATE_TASK = {
    "name": "delegate_task",
    "description": "Delegate a task to the most appropriate agent",
    "parameters": {
        "type": "object",
        "properties": {
            "task": {"type": "string", "description": "Description of the task to delegate"},
            "requirements": {"type": "object", "description": "Specific requirements or constraints"},
            "priority": {"type": "string", "description": "Task priority", "enum": list(PRIORITIES)},
        },
        "required": ["task"],
    },
}

COORDINATE_AGENTS = {
    "name": "coordinate_agents",
    "description": "Coordinate multiple agents to work on a complex task",
    "parameters": {
        "type": "object",
        "properties": {
            "workflow": {
                "type": "string",
                "description": "Predefined workflow name or custom workflow",
                "enum": [*DEFAULT_WORKFLOWS, CUSTOM_WORKFLOW],
            },
            "tasks": {
                "type": "array",
                "description": "Custom workflow tasks (if workflow is custom)",
                "items": {
                    "type": "object",
                    "properties": {
                        "agent": {"type": "string"},
                        "task": {"type": "string"},
                        "depends_on": {"type": "string"},
                    },
                },
            },
            "context": {"type": "object", "description": "Shared context for all agents"},
        },
        "required": ["workflow"],
    },
}

GET_AGENT_STATUS = {
    "name": "get_agent_status",
    "description": "Get the status of active agents",
    "parameters": {
        "type": "object",
        "properties": {
            "agent_id": {"type": "string", "description": "Specific agent ID to check (optional)"},
            "include_history": {"type": "boolean", "description": "Include execution history"},
        },
    },
}


def _describe_agent(agent: AgentHandle, now: float) -> dict[str, Any]:
    return {
        "id": agent.id,
        "archetype": agent.archetype,
        "status": agent.status.value,
        "start_time": agent.start_time,
        "task": agent.task,
        "duration": now - agent.start_time,
    }


class AgentManagementTools:
    """Agent-management tool implementations sharing one spawner and one settings snapshot."""

    def __init__(self, spawner: SubAgentSpawner | None = None, settings: Settings | None = None) -> None:
        """Initialize the tool set.

        Args:
            spawner: Spawner used for specialist agents and custom workflows.
            settings: Process settings; read from the environment once when omitted.
        """
        self.spawner = spawner or SubAgentSpawner()
        self.coordinator = WorkflowCoordinator(self.spawner)
        self.settings = settings or Settings.from_env()

    async def spawn_specialist_agent(self, args: ToolArgs, context: ExecutionContext) -> dict[str, Any]:
        """Spawn a specialist sub-agent for one task."""
        return await self.spawner.spawn(
            {
                "agent_type": args["agent_type"],
                "task": args["task"],
                "context": args.get("context") or {},
                "return_to": args.get("return_to") or ReturnMode.WAIT,
            },
            context,
        )

    async def delegate_task(self, args: ToolArgs, context: ExecutionContext) -> dict[str, Any]:
        """Pick the best archetype for a task and run it to completion."""
        task = args["task"]
        requirements = args.get("requirements")
        priority = args.get("priority") or "medium"

        check = validate_string(priority, enum=PRIORITIES)
        if not check.valid:
            return error_response(f"Invalid priority: {check.error}")

        analysis = classify_task(task, requirements)
        logger.info(
            f"Delegating task to {analysis.recommended_agent.value} (confidence {analysis.confidence})",
            extra={"agent_type": analysis.recommended_agent.value},
        )

        result = await context.tool_executor.spawn_sub_agent(
            analysis.recommended_agent.value,
            task,
            context.merge({"requirements": requirements, "priority": priority, "analysis": analysis.to_dict()}),
        )

        response: dict[str, Any] = {
            "success": result.success,
            "delegated_to": analysis.recommended_agent.value,
            "agent_id": result.agent_id,
            "result": result.result,
            "task_analysis": analysis.to_dict(),
        }
        if not result.success:
            response["error"] = result.error or f"Sub-agent {result.agent_id} failed"
        return response

    async def coordinate_agents(self, args: ToolArgs, context: ExecutionContext) -> dict[str, Any]:
        """Run a predefined workflow or a custom ordered task list."""
        return await self.coordinator.run(
            args["workflow"],
            tasks=args.get("tasks"),
            shared_context=args.get("context"),
            context=context,
        )

    def get_agent_status(self, args: ToolArgs, context: ExecutionContext) -> dict[str, Any]:
        """Report one active sub-agent by id, or all of them with optional recent history."""
        executor = context.tool_executor
        now = time.time() * 1000
        active = executor.get_active_sub_agents()

        agent_id = args.get("agent_id")
        if agent_id:
            agent = next((a for a in active if a.id == agent_id), None)
            if agent is None:
                return error_response("Agent not found or no longer active")
            return {"success": True, "agent": _describe_agent(agent, now)}

        agents = [_describe_agent(agent, now) for agent in active]
        response: dict[str, Any] = {"success": True, "active_agents": agents, "count": len(agents)}

        if args.get("include_history"):
            window_ms = self.settings.status_history_window * 1000
            history = executor.get_execution_history(since=now - window_ms)
            response["execution_history"] = [entry.to_dict() for entry in history]

        return response

    def tools(self) -> list[FunctionTool]:
        """Build the four catalogue tools bound to this instance."""
        return [
            create_tool(
                SPAWN_SPECIALIST_AGENT,
                self.spawn_specialist_agent,
                AGENT_SPAWNING_CATEGORY,
                required_context=["tool_executor", "session"],
                cost_estimate=CostEstimate.MEDIUM,
            ),
            create_tool(
                DELEGATE_TASK,
                self.delegate_task,
                AGENT_SPAWNING_CATEGORY,
                required_context=["tool_executor"],
                cost_estimate=CostEstimate.MEDIUM,
            ),
            create_tool(
                COORDINATE_AGENTS,
                self.coordinate_agents,
                AGENT_SPAWNING_CATEGORY,
                required_context=["tool_executor"],
                cost_estimate=CostEstimate.HIGH,
            ),
            create_tool(
                GET_AGENT_STATUS,
                self.get_agent_status,
                AGENT_SPAWNING_CATEGORY,
                required_context=["tool_executor"],
                cost_estimate=CostEstimate.LOW,
            ),
        ]

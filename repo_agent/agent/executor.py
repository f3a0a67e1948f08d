"""In-process spawner collaborator.

``ToolExecutor`` tracks active sub-agents, keeps an execution history, runs
predefined workflows and orchestrates batches of tools (parallel, sequential,
conditional or iterative). The sub-agent body itself is delegated to a pluggable
task runner; the default runner only reports completion, since driving a
model is outside this package.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import secrets
import string
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from repo_agent.agent.archetypes import (
    DEFAULT_WORKFLOWS,
    ArchetypeRegistry,
    WorkflowDefinition,
    evaluate_handoff_condition,
    get_workflow,
)
from repo_agent.agent.conditions import (
    StopCondition,
    check_dependency,
    evaluate_condition,
    evaluate_stop_condition,
)
from repo_agent.agent.spawner import REQUESTED_AGENT_ID_KEY
from repo_agent.agent.types import (
    AgentHandle,
    AgentStatus,
    HistoryEntry,
    OrchestrationStrategy,
    SpawnResult,
    ToolCall,
)
from repo_agent.config import DEFAULT_HISTORY_LIMIT
from repo_agent.errors import (
    DependencyNotMetError,
    ToolExecutionError,
    UnknownArchetypeError,
    UnknownStrategyError,
)
from repo_agent.tools.base import as_context

if TYPE_CHECKING:
    from repo_agent.config import Settings
    from repo_agent.tools.base import EnrichedTool
    from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)

SubAgentTaskRunner = Callable[[AgentHandle], Awaitable[Any]]

SENSITIVE_KEY_PARTS = ("token", "password", "secret", "key", "auth")
REDACTED = "[REDACTED]"

DEFAULT_MAX_ITERATIONS = 10

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _now_ms() -> float:
    return time.time() * 1000


def _make_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(_now_ms())}_{suffix}"


async def placeholder_task_runner(handle: AgentHandle) -> dict[str, Any]:
    """Default runner: reports the task as completed without doing any work."""
    return {"completed": True, "message": f"Sub-agent {handle.archetype} completed task: {handle.task}"}


def sanitize_result(result: Any) -> Any:
    """Redact values whose keys look like credentials."""
    if not isinstance(result, Mapping):
        return result
    return {
        key: REDACTED if any(part in str(key).lower() for part in SENSITIVE_KEY_PARTS) else value
        for key, value in result.items()
    }


class ToolExecutor:
    """Runs tools and sub-agents on behalf of an orchestrating agent."""

    def __init__(
        self,
        context: ExecutionContext | Mapping[str, Any] | None = None,
        task_runner: SubAgentTaskRunner | None = None,
        archetypes: ArchetypeRegistry | None = None,
        workflows: dict[str, WorkflowDefinition] | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        """Initialize the executor.

        Args:
            context: Context of the agent owning this executor (its archetype and id).
            task_runner: Coroutine function running one sub-agent to completion.
            archetypes: Registry of spawnable archetypes.
            workflows: Predefined workflows by name.
            history_limit: History size that triggers trimming to half.
        """
        self.context = as_context(context)
        self._task_runner = task_runner or placeholder_task_runner
        self._archetypes = archetypes or ArchetypeRegistry()
        self._workflows = DEFAULT_WORKFLOWS if workflows is None else workflows
        self._history_limit = history_limit
        self._history: list[HistoryEntry] = []
        self._active: dict[str, AgentHandle] = {}

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ToolExecutor:
        """Build an executor whose history limit comes from process settings."""
        return cls(history_limit=settings.history_limit, **kwargs)

    def generate_agent_id(self) -> str:
        return _make_id("agent")

    def generate_execution_id(self) -> str:
        return _make_id("exec")

    def generate_workflow_id(self) -> str:
        return _make_id("workflow")

    def log_execution(self, entry: HistoryEntry) -> None:
        self._history.append(entry)
        if len(self._history) > self._history_limit:
            self._history = self._history[-(self._history_limit // 2) :]

    async def execute_tool(
        self,
        tool: EnrichedTool,
        args: Mapping[str, Any],
        additional_context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a catalogue tool with this executor's context and record it in the history."""
        execution_id = self.generate_execution_id()
        start = _now_ms()
        full_context = self.context.merge(
            {
                **(additional_context or {}),
                "tool_executor": self,
                "execution_id": execution_id,
                "parent_agent": self.context.get("agent_archetype"),
            }
        )
        self.log_execution(
            HistoryEntry(execution_id, tool.name, "started", timestamp=start, args=sanitize_result(dict(args)))
        )

        try:
            if tool.implementation is None:
                raise ToolExecutionError(f"Tool {tool.name} has no implementation", tool.name)
            result = tool.implementation(args, full_context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            duration = _now_ms() - start
            logger.warning(f"Tool {tool.name} failed: {e}", extra={"execution_id": execution_id, "tool": tool.name})
            self.log_execution(
                HistoryEntry(execution_id, tool.name, "failed", timestamp=_now_ms(), duration=duration, error=str(e))
            )
            return {
                "success": False,
                "error": str(e),
                "tool": tool.name,
                "execution_id": execution_id,
                "duration": duration,
            }

        duration = _now_ms() - start
        self.log_execution(
            HistoryEntry(
                execution_id,
                tool.name,
                "completed",
                timestamp=_now_ms(),
                duration=duration,
                result=sanitize_result(result),
            )
        )
        return {
            "success": True,
            "result": result,
            "tool": tool.name,
            "execution_id": execution_id,
            "duration": duration,
        }

    async def spawn_sub_agent(
        self, agent_type: str, task: str, context: ExecutionContext | Mapping[str, Any] | None = None
    ) -> SpawnResult:
        """Run one sub-agent to completion.

        Raises:
            UnknownArchetypeError: If ``agent_type`` is not a registered archetype.
        """
        if agent_type not in self._archetypes:
            raise UnknownArchetypeError(agent_type)

        parent_context = as_context(context)
        agent_id = parent_context.get(REQUESTED_AGENT_ID_KEY) or self.generate_agent_id()
        start = _now_ms()
        handle = AgentHandle(
            id=agent_id,
            archetype=agent_type,
            context=parent_context.merge(
                {
                    "agent_id": agent_id,
                    "parent_agent": self.context.get("agent_archetype"),
                    "parent_agent_id": self.context.get("agent_id"),
                    "task": task,
                    "spawned_at": start,
                }
            ),
            start_time=start,
        )
        self._active[agent_id] = handle
        self.log_execution(HistoryEntry(agent_id, agent_type, "started", timestamp=start))
        log_fields = {"agent_id": agent_id, "agent_type": agent_type}
        logger.info(f"Sub-agent {agent_id} ({agent_type}) started", extra=log_fields)

        try:
            handle.result = await self._task_runner(handle)
            handle.status = AgentStatus.COMPLETED
        except Exception as e:
            logger.exception(f"Sub-agent {agent_id} ({agent_type}) failed", extra=log_fields)
            handle.status = AgentStatus.FAILED
            handle.error = str(e) or "Unknown error occurred"
        finally:
            handle.end_time = _now_ms()
            self._active.pop(agent_id, None)

        duration = handle.end_time - handle.start_time
        logger.info(
            f"Sub-agent {agent_id} ({agent_type}) finished as {handle.status.value} in {duration:.0f}ms",
            extra=log_fields,
        )
        self.log_execution(
            HistoryEntry(
                agent_id,
                agent_type,
                handle.status.value,
                timestamp=handle.end_time,
                duration=duration,
                result=sanitize_result(handle.result),
                error=handle.error,
            )
        )
        return SpawnResult(
            agent_id=agent_id,
            success=handle.status is AgentStatus.COMPLETED,
            result=handle.result,
            duration=duration,
            error=handle.error,
        )

    async def execute_workflow(
        self, name: str, context: ExecutionContext | Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a predefined workflow step by step.

        Stops after a failed step, or when a step's handoff condition is not met.

        Raises:
            UnknownWorkflowError: If the workflow is not defined.
        """
        workflow = get_workflow(name, self._workflows)
        workflow_id = self.generate_workflow_id()
        current = as_context(context).merge({"workflow_id": workflow_id, "workflow_name": name})
        log_fields = {"workflow_id": workflow_id}
        steps: list[dict[str, Any]] = []

        for step in workflow.steps:
            outcome = await self.spawn_sub_agent(step.agent, step.purpose, current)
            steps.append({"step": step.purpose, "agent": step.agent, "result": outcome.to_dict()})

            if not outcome.success:
                logger.info(f"Workflow {name} stopped: step '{step.purpose}' failed", extra=log_fields)
                break
            if step.handoff is None:
                continue
            if not evaluate_handoff_condition(step.handoff.condition, outcome.result):
                logger.info(
                    f"Workflow {name} stopped: handoff condition '{step.handoff.condition}' not met",
                    extra=log_fields,
                )
                break

            carried = {
                key: outcome.result[key]
                for key in step.handoff.context_keys
                if isinstance(outcome.result, Mapping) and key in outcome.result
            }
            current = current.merge({**carried, "handoff_from": outcome.agent_id, "handoff_at": _now_ms()})

        return {
            "workflow_id": workflow_id,
            "workflow_name": name,
            "steps": steps,
            "success": all(s["result"]["success"] for s in steps),
            "duration": sum(s["result"]["duration"] for s in steps),
        }

    async def orchestrate_tools(self, operation: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Run a batch of tools under one strategy.

        Args:
            operation: Batch description. Every strategy reads ``strategy``,
                ``tools``, per-tool ``args`` keyed by tool name, and a shared
                ``context`` mapping. ``sequential`` also reads positional
                ``dependencies``; ``conditional`` reads ``conditions``;
                ``iterative`` runs the first tool and reads ``max_iterations``
                and ``stop_condition``.

        Returns:
            One ``execute_tool`` result per tool run, in run order.

        Raises:
            UnknownStrategyError: If ``strategy`` is not supported.
        """
        try:
            strategy = OrchestrationStrategy(operation.get("strategy"))
        except ValueError:
            raise UnknownStrategyError(str(operation.get("strategy"))) from None

        tools: list[EnrichedTool] = list(operation.get("tools") or [])
        args: Mapping[str, Any] = operation.get("args") or {}
        context = dict(operation.get("context") or {})

        if strategy is OrchestrationStrategy.PARALLEL:
            return await self.execute_tools_parallel(
                [ToolCall(tool, dict(args.get(tool.name) or {}), context) for tool in tools]
            )

        if strategy is OrchestrationStrategy.SEQUENTIAL:
            dependencies = list(operation.get("dependencies") or [])
            return await self.execute_tools_sequential(
                [
                    ToolCall(
                        tool,
                        dict(args.get(tool.name) or {}),
                        context,
                        depends_on=dependencies[index] if index < len(dependencies) else None,
                    )
                    for index, tool in enumerate(tools)
                ]
            )

        if strategy is OrchestrationStrategy.CONDITIONAL:
            return await self.execute_conditional_tools(tools, operation.get("conditions") or [], args, context)

        if not tools:
            return []
        tool = tools[0]
        return await self.execute_iterative_tools(
            tool,
            dict(args.get(tool.name) or {}),
            context,
            max_iterations=operation.get("max_iterations", DEFAULT_MAX_ITERATIONS),
            stop_condition=operation.get("stop_condition"),
        )

    async def execute_tools_parallel(self, calls: list[ToolCall]) -> list[dict[str, Any]]:
        """Run independent tool calls concurrently; results keep the call order."""
        results = await asyncio.gather(*(self.execute_tool(call.tool, call.args, call.context) for call in calls))
        return list(results)

    async def execute_tools_sequential(self, calls: list[ToolCall]) -> list[dict[str, Any]]:
        """Run tool calls one after another.

        A call whose dependency is not met is recorded as failed and skipped.
        A successful result carrying a ``context_update`` mapping extends the
        context of every later call.
        """
        results: list[dict[str, Any]] = []
        shared: dict[str, Any] = {}

        for call in calls:
            if not check_dependency(call.depends_on, results):
                dependency = call.depends_on
                error = DependencyNotMetError(
                    dependency if isinstance(dependency, str) else json.dumps(dependency, default=str)
                )
                logger.info(f"Skipping tool {call.tool.name}: {error}")
                results.append({"success": False, "error": str(error), "tool": call.tool.name})
                continue

            result = await self.execute_tool(call.tool, call.args, {**call.context, **shared})
            results.append(result)

            update = result["result"].get("context_update") if isinstance(result.get("result"), Mapping) else None
            if result["success"] and isinstance(update, Mapping):
                shared.update(update)

        return results

    async def execute_conditional_tools(
        self,
        tools: list[EnrichedTool],
        conditions: list[Mapping[str, Any]],
        args: Mapping[str, Any],
        context: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Run tools chosen by an ordered list of conditions.

        Each condition names its ``tool_name`` and may carry a ``name``, a
        ``when`` condition and ``break_on_success``. ``when`` is evaluated over
        ``{"results": [...], "last": <latest result or None>}``; a condition
        without ``when`` always runs its tool.
        """
        by_name = {tool.name: tool for tool in tools}
        results: list[dict[str, Any]] = []

        for condition in conditions:
            data = {"results": results, "last": results[-1] if results else None}
            if not evaluate_condition(condition.get("when", True), data):
                continue

            tool = by_name.get(condition.get("tool_name"))
            if tool is None:
                logger.warning(f"Condition {condition.get('name')} names unknown tool {condition.get('tool_name')}")
                continue

            result = await self.execute_tool(
                tool, dict(args.get(tool.name) or {}), {**context, "condition_met": condition.get("name")}
            )
            results.append(result)
            if condition.get("break_on_success") and result["success"]:
                break

        return results

    async def execute_iterative_tools(
        self,
        tool: EnrichedTool,
        args: Mapping[str, Any],
        context: Mapping[str, Any],
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        stop_condition: StopCondition = None,
    ) -> list[dict[str, Any]]:
        """Run one tool repeatedly until ``stop_condition`` holds or ``max_iterations`` is reached."""
        results: list[dict[str, Any]] = []

        for iteration in range(max_iterations):
            result = await self.execute_tool(
                tool, args, {**context, "iteration": iteration, "previous_results": list(results)}
            )
            results.append(result)
            if evaluate_stop_condition(stop_condition, result, results):
                break

        return results

    def get_active_sub_agents(self) -> list[AgentHandle]:
        return list(self._active.values())

    def get_execution_history(
        self, *, tool: str | None = None, status: str | None = None, since: float | None = None
    ) -> list[HistoryEntry]:
        """Filter the execution history; ``since`` is a millisecond timestamp."""
        history = list(self._history)
        if tool is not None:
            history = [entry for entry in history if entry.tool == tool]
        if status is not None:
            history = [entry for entry in history if entry.status == status]
        if since is not None:
            history = [entry for entry in history if entry.timestamp >= since]
        return history

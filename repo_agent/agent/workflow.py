"""Workflow coordinator for multi-agent task lists.

Predefined workflows are handed to the spawner collaborator. Custom workflows
run here, strictly in list order: a task's ``depends_on`` is resolved against
results already stored for that agent key earlier in the same run. Results
are stored per agent key, so a later task for the same agent overwrites the
earlier result. There is no topological sort and no cycle detection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from repo_agent.agent.spawner import SubAgentSpawner
from repo_agent.agent.types import (
    AgentSpawnRequest,
    ReturnMode,
    WorkflowRunResult,
    WorkflowTask,
    WorkflowTaskOutcome,
)
from repo_agent.errors import DependencyNotMetError, ToolExecutorUnavailableError
from repo_agent.tools.base import as_context

if TYPE_CHECKING:
    from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)

CUSTOM_WORKFLOW = "custom"


class WorkflowCoordinator:
    """Runs named or custom workflows against the sub-agent spawner."""

    def __init__(self, spawner: SubAgentSpawner | None = None) -> None:
        self._spawner = spawner or SubAgentSpawner()

    async def run(
        self,
        workflow: str,
        tasks: Iterable[WorkflowTask | Mapping[str, Any]] | None = None,
        shared_context: Mapping[str, Any] | None = None,
        context: ExecutionContext | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a workflow and return its combined result; never raises."""
        try:
            tasks = list(tasks or [])
            if workflow == CUSTOM_WORKFLOW and not tasks:
                raise ValueError("Tasks required for custom workflow")

            workflow_context = as_context(context).merge(shared_context or {})
            if workflow_context.tool_executor is None:
                raise ToolExecutorUnavailableError()

            if workflow != CUSTOM_WORKFLOW:
                return await self._run_predefined(workflow, workflow_context)

            result = await self.run_custom(tasks, workflow_context)
            return result.to_dict()

        except Exception as e:
            logger.warning(f"Workflow '{workflow}' failed: {e}")
            return {"success": False, "error": str(e) or "Unknown error occurred"}

    @staticmethod
    async def _run_predefined(name: str, context: ExecutionContext) -> dict[str, Any]:
        logger.info(f"Running predefined workflow '{name}'")
        result = await context.tool_executor.execute_workflow(name, context)
        return {
            "success": result["success"],
            "workflow_id": result.get("workflow_id"),
            "steps": result.get("steps", []),
            "total_duration": result.get("duration", 0),
        }

    async def run_custom(
        self, tasks: Iterable[WorkflowTask | Mapping[str, Any]], context: ExecutionContext
    ) -> WorkflowRunResult:
        """Run custom tasks one after another in list order."""
        parsed = [task if isinstance(task, WorkflowTask) else WorkflowTask.model_validate(task) for task in tasks]
        run = WorkflowRunResult(workflow=CUSTOM_WORKFLOW)
        agent_results: dict[str, Any] = {}

        for task in parsed:
            if task.depends_on and task.depends_on not in agent_results:
                error = DependencyNotMetError(task.depends_on)
                logger.warning(f"Skipping {task.agent} task: {error.message}")
                run.results.append(WorkflowTaskOutcome(task.agent, task.task, success=False, error=error.message))
                continue

            dependency_context = {"dependency_result": agent_results[task.depends_on]} if task.depends_on else {}
            spawned = await self._spawner.spawn(
                AgentSpawnRequest(
                    agent_type=task.agent, task=task.task, context=dependency_context, return_to=ReturnMode.WAIT
                ),
                context,
            )

            run.results.append(
                WorkflowTaskOutcome(
                    agent=task.agent,
                    task=task.task,
                    success=spawned["success"],
                    result=spawned.get("result"),
                    duration=spawned.get("duration"),
                    error=spawned.get("error"),
                )
            )
            agent_results[task.agent] = spawned.get("result")

        logger.info(
            f"Custom workflow finished: tasks={len(run.results)}, success={run.success}, "
            f"duration={run.total_duration}"
        )
        return run

"""Sub-agent spawner.

Runs one specialist sub-agent for one task through the spawner collaborator
found in the execution context, under one of three return modes:

- ``wait``: run to completion and return the result.
- ``async``: schedule a detached run and return immediately. Failures of the
  detached run are logged only; there is no notification, retry or
  cancellation. Callers that need completion data query the collaborator's
  active agents and execution history.
- ``callback``: validated but not delivered yet.

``spawn`` never raises; every failure comes back as ``{"success": False, "error": ...}``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NoReturn

from repo_agent.agent.types import AgentSpawnRequest, ReturnMode
from repo_agent.errors import MissingCallbackTargetError, ToolExecutorUnavailableError, UnimplementedContractError
from repo_agent.tools.base import as_context

if TYPE_CHECKING:
    from repo_agent.agent.types import SpawnerCollaborator
    from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)

# Context key a collaborator may honour to reuse the id handed out for a detached run
REQUESTED_AGENT_ID_KEY = "requested_agent_id"


def _session_id(session: Any) -> Any:
    if session is None:
        return None
    if isinstance(session, Mapping):
        return session.get("id")
    return getattr(session, "id", session)


class SubAgentSpawner:
    """Spawns sub-agents through the context's collaborator under a return-mode contract."""

    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def background_tasks(self) -> frozenset[asyncio.Task[None]]:
        """Detached runs that have not finished yet."""
        return frozenset(self._background_tasks)

    async def spawn(
        self,
        request: AgentSpawnRequest | Mapping[str, Any],
        context: ExecutionContext | Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Spawn a sub-agent.

        Args:
            request: Spawn request, or its raw mapping form.
            context: Caller's execution context; must carry a ``tool_executor``.

        Returns:
            Mode-specific result dict with a ``success`` flag.
        """
        try:
            if not isinstance(request, AgentSpawnRequest):
                request = AgentSpawnRequest.model_validate(request)
            context = as_context(context)

            executor = context.tool_executor
            if executor is None:
                raise ToolExecutorUnavailableError()

            agent_context = context.merge(
                {**request.context, "parent_session": _session_id(context.session), "task": request.task}
            )

            if request.return_to is ReturnMode.ASYNC:
                return self._spawn_detached(executor, request, agent_context)
            if request.return_to is ReturnMode.CALLBACK:
                return self._spawn_with_callback(request)
            return await self._spawn_and_wait(executor, request, agent_context)

        except Exception as e:
            logger.warning(f"Sub-agent spawn failed: {e}")
            return {"success": False, "error": str(e) or "Unknown error occurred"}

    async def _spawn_and_wait(
        self, executor: SpawnerCollaborator, request: AgentSpawnRequest, agent_context: ExecutionContext
    ) -> dict[str, Any]:
        logger.info(
            f"Spawning {request.agent_type} sub-agent (wait): {request.task[:100]}",
            extra={"agent_type": request.agent_type},
        )
        result = await executor.spawn_sub_agent(request.agent_type, request.task, agent_context)

        response: dict[str, Any] = {
            "success": result.success,
            "agent_id": result.agent_id,
            "result": result.result,
            "duration": result.duration,
        }
        if not result.success:
            response["error"] = result.error or f"Sub-agent {result.agent_id} failed"
        return response

    def _spawn_detached(
        self, executor: SpawnerCollaborator, request: AgentSpawnRequest, agent_context: ExecutionContext
    ) -> dict[str, Any]:
        agent_id = executor.generate_agent_id()
        agent_context = agent_context.merge({REQUESTED_AGENT_ID_KEY: agent_id})

        task = asyncio.get_running_loop().create_task(
            self._run_detached(executor, request, agent_context, agent_id), name=f"sub-agent-{agent_id}"
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

        logger.info(
            f"Spawned {request.agent_type} sub-agent {agent_id} asynchronously",
            extra={"agent_id": agent_id, "agent_type": request.agent_type},
        )
        return {
            "success": True,
            "agent_id": agent_id,
            "message": "Agent spawned asynchronously",
            "status": "running",
        }

    @staticmethod
    async def _run_detached(
        executor: SpawnerCollaborator, request: AgentSpawnRequest, agent_context: ExecutionContext, agent_id: str
    ) -> None:
        log_fields = {"agent_id": agent_id, "agent_type": request.agent_type}
        try:
            result = await executor.spawn_sub_agent(request.agent_type, request.task, agent_context)
        except Exception:
            logger.exception(f"Async agent execution failed for {agent_id}", extra=log_fields)
            return
        if not result.success:
            logger.error(f"Async agent execution failed for {agent_id}: {result.error}", extra=log_fields)
        else:
            logger.info(f"Async agent {agent_id} completed in {result.duration}ms", extra=log_fields)

    @staticmethod
    def _spawn_with_callback(request: AgentSpawnRequest) -> NoReturn:
        if not request.context.get("callback_url"):
            raise MissingCallbackTargetError()
        # TODO: deliver the result to callback_url once a delivery channel (HTTP POST with retries) is agreed on
        raise UnimplementedContractError("Callback mode not yet implemented")

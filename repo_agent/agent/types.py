"""Type definitions for sub-agent spawning and workflow coordination."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from repo_agent.tools.base import EnrichedTool
    from repo_agent.tools.core import ExecutionContext


class AgentArchetype(str, Enum):
    """Specialist sub-agent roles."""

    GENERALIST = "GENERALIST"
    CODE_GENERATOR = "CODE_GENERATOR"
    CODE_REVIEWER = "CODE_REVIEWER"
    DEPLOYMENT_MANAGER = "DEPLOYMENT_MANAGER"
    PUBLIC_ASSISTANT = "PUBLIC_ASSISTANT"
    PROJECT_NAVIGATOR = "PROJECT_NAVIGATOR"
    PROJECT_CONTENT = "PROJECT_CONTENT"


class ReturnMode(str, Enum):
    """How a spawned sub-agent reports back to its caller."""

    WAIT = "wait"
    ASYNC = "async"
    CALLBACK = "callback"


class AgentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class OrchestrationStrategy(str, Enum):
    """How the reference collaborator runs a batch of tools."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    CONDITIONAL = "conditional"
    ITERATIVE = "iterative"


class AgentSpawnRequest(BaseModel):
    """Arguments of a spawn call, as chosen by the model."""

    model_config = ConfigDict(use_enum_values=False)

    agent_type: str = Field(..., min_length=1)
    task: str
    context: dict[str, Any] = Field(default_factory=dict)
    return_to: ReturnMode = ReturnMode.WAIT


class WorkflowTask(BaseModel):
    """One step of a custom workflow.

    ``depends_on`` names the ``agent`` of an earlier task in the same run.
    """

    agent: str = Field(..., min_length=1)
    task: str
    depends_on: str | None = None


@dataclass
class SpawnResult:
    """Result of a single sub-agent run."""

    agent_id: str
    success: bool
    result: Any = None
    duration: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agent_id": self.agent_id,
            "success": self.success,
            "result": self.result,
            "duration": self.duration,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class AgentHandle:
    """Book-keeping record of a running or finished sub-agent."""

    id: str
    archetype: str
    context: ExecutionContext
    status: AgentStatus = AgentStatus.ACTIVE
    start_time: float = 0.0
    end_time: float | None = None
    result: Any = None
    error: str | None = None

    @property
    def task(self) -> str | None:
        return self.context.get("task")


@dataclass
class HistoryEntry:
    """Execution history record kept by the spawner collaborator."""

    execution_id: str
    tool: str
    status: str
    timestamp: float
    duration: float | None = None
    args: dict[str, Any] | None = None
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class ToolCall:
    """One tool invocation inside an orchestrated batch.

    ``depends_on`` is either the name of a tool that must already have succeeded,
    or a ``{"tool", "condition"}`` mapping evaluated against that tool's latest result.
    """

    tool: EnrichedTool
    args: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    depends_on: str | dict[str, Any] | None = None


@dataclass
class WorkflowTaskOutcome:
    """Outcome of one task of a custom workflow run."""

    agent: str
    task: str
    success: bool
    result: Any = None
    duration: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"agent": self.agent, "task": self.task, "success": self.success}
        if self.duration is not None:
            data["result"] = self.result
            data["duration"] = self.duration
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class WorkflowRunResult:
    """Combined result of a custom workflow run."""

    workflow: str
    results: list[WorkflowTaskOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(outcome.success for outcome in self.results)

    @property
    def total_duration(self) -> float:
        return sum(outcome.duration or 0 for outcome in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "workflow": self.workflow,
            "results": [outcome.to_dict() for outcome in self.results],
            "total_duration": self.total_duration,
        }


@runtime_checkable
class SpawnerCollaborator(Protocol):
    """Orchestrator handle that actually runs sub-agents."""

    async def spawn_sub_agent(self, agent_type: str, task: str, context: ExecutionContext) -> SpawnResult: ...

    def generate_agent_id(self) -> str: ...

    async def execute_workflow(self, name: str, context: ExecutionContext) -> dict[str, Any]: ...

    def get_active_sub_agents(self) -> list[AgentHandle]: ...

    def get_execution_history(self, *, since: float | None = None) -> list[HistoryEntry]: ...

"""Sub-agent orchestration.

The spawner runs one sub-agent per task, the delegation selector picks an
archetype for free-text tasks, and the workflow coordinator chains several
sub-agents in order.
"""

from __future__ import annotations

from repo_agent.agent.archetypes import (
    DEFAULT_ARCHETYPES,
    DEFAULT_WORKFLOWS,
    ArchetypeDefinition,
    ArchetypeRegistry,
    WorkflowDefinition,
    get_workflow,
)
from repo_agent.agent.delegation import TaskAnalysis, classify_task
from repo_agent.agent.executor import ToolExecutor
from repo_agent.agent.spawner import SubAgentSpawner
from repo_agent.agent.types import (
    AgentArchetype,
    AgentHandle,
    AgentSpawnRequest,
    AgentStatus,
    OrchestrationStrategy,
    ReturnMode,
    SpawnResult,
    ToolCall,
    WorkflowTask,
)
from repo_agent.agent.workflow import WorkflowCoordinator

__all__ = [
    "DEFAULT_ARCHETYPES",
    "DEFAULT_WORKFLOWS",
    "AgentArchetype",
    "AgentHandle",
    "AgentSpawnRequest",
    "AgentStatus",
    "ArchetypeDefinition",
    "ArchetypeRegistry",
    "OrchestrationStrategy",
    "ReturnMode",
    "SpawnResult",
    "SubAgentSpawner",
    "TaskAnalysis",
    "ToolCall",
    "ToolExecutor",
    "WorkflowCoordinator",
    "WorkflowDefinition",
    "WorkflowTask",
    "classify_task",
    "get_workflow",
]

"""Repo Agent orchestration core."""

from __future__ import annotations

from repo_agent.agent import SubAgentSpawner, ToolExecutor, WorkflowCoordinator, classify_task
from repo_agent.tools import ToolRegistry, build_tool_registry

__version__ = "0.1.0"

__all__ = [
    "SubAgentSpawner",
    "ToolExecutor",
    "ToolRegistry",
    "WorkflowCoordinator",
    "build_tool_registry",
    "classify_task",
]

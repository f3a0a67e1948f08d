"""Tool contract, execution context and tool catalogue."""

from __future__ import annotations

from repo_agent.tools.core import ExecutionContext, UserContext
from repo_agent.tools.base import (
    CostEstimate,
    EnrichedTool,
    FunctionTool,
    RateLimit,
    Tool,
    ToolDefinition,
    ValidationResult,
    create_tool,
    create_tool_batch,
    error_response,
    success_response,
    validate_string,
)
from repo_agent.tools.catalog import (
    DynamicToolProvider,
    ToolRegistry,
    build_tool_registry,
    call_tool,
    enrich_tool,
)

__all__ = [
    "CostEstimate",
    "DynamicToolProvider",
    "EnrichedTool",
    "ExecutionContext",
    "FunctionTool",
    "RateLimit",
    "Tool",
    "ToolDefinition",
    "ToolRegistry",
    "UserContext",
    "ValidationResult",
    "build_tool_registry",
    "call_tool",
    "create_tool",
    "create_tool_batch",
    "enrich_tool",
    "error_response",
    "success_response",
    "validate_string",
]

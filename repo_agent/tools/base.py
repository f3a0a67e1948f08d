"""Tool contract and safe execution wrapper.

Every tool exposed to the model goes through ``Tool.safe_execute``: validation
of permissions, context and arguments, then execution, with any failure
turned into a ``{"success": False, "error": ...}`` value.
"""

from __future__ import annotations

import inspect
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)

ToolArgs = Mapping[str, Any]
ToolImplementation = Callable[[ToolArgs, ExecutionContext], Any]
SafeImplementation = Callable[[ToolArgs, ExecutionContext], Awaitable[dict[str, Any]]]


class CostEstimate(str, Enum):
    """Relative cost of running a tool."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ParameterSchema(BaseModel):
    """JSON-schema description of a single tool parameter."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str | list[str] = "string"
    description: str | None = None
    enum: list[Any] | None = None
    items: dict[str, Any] | None = None


class ToolParameters(BaseModel):
    """Object schema of a tool's arguments."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: Literal["object"] = "object"
    properties: dict[str, ParameterSchema] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class ToolDefinition(BaseModel):
    """Name, description and parameter schema of a tool, as shown to the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    parameters: ToolParameters = Field(default_factory=ToolParameters)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class RateLimit:
    """Call quota of a tool: at most ``calls`` per ``period_seconds``."""

    calls: int
    period_seconds: float = 60.0

    @classmethod
    def from_value(cls, value: Any) -> RateLimit | None:
        if value is None or isinstance(value, RateLimit):
            return value
        if isinstance(value, Mapping):
            return cls(calls=int(value["calls"]), period_seconds=float(value.get("period_seconds", 60.0)))
        raise TypeError(f"Unsupported rate limit: {value!r}")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a pre-flight tool check."""

    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid} if self.valid else {"valid": False, "error": self.error}


@dataclass(frozen=True)
class EnrichedTool:
    """Canonical catalogue record of a tool.

    Attributes:
        definition: Model-facing name, description and parameter schema.
        category: Catalogue bucket the tool belongs to.
        required_permissions: Permissions the calling user must hold.
        required_context: Context keys that must be present and truthy.
        rate_limit: Optional call quota.
        cost_estimate: Relative cost of a call.
        async_execution: Whether the tool runs work in the background.
        implementation: Callable used for dispatch; ``None`` for schema-only tools.
    """

    definition: ToolDefinition
    category: str | None = None
    required_permissions: tuple[str, ...] = ()
    required_context: tuple[str, ...] = ()
    rate_limit: RateLimit | None = None
    cost_estimate: CostEstimate = CostEstimate.LOW
    async_execution: bool = False
    implementation: SafeImplementation | ToolImplementation | None = None

    @property
    def name(self) -> str:
        return self.definition.name


def _unique(values: Iterable[str] | None) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values or ()))


def as_context(context: ExecutionContext | Mapping[str, Any] | None) -> ExecutionContext:
    if isinstance(context, ExecutionContext):
        return context
    return ExecutionContext.from_mapping(context)


def check_call(
    definition: ToolDefinition,
    required_permissions: Iterable[str],
    required_context: Iterable[str],
    args: ToolArgs,
    context: ExecutionContext,
) -> ValidationResult:
    """Check permissions, then context, then required arguments.

    Stops at the first failing category and names every missing item in it.
    """
    granted = set(context.permissions)
    missing_permissions = [perm for perm in required_permissions if perm not in granted]
    if missing_permissions:
        return ValidationResult(False, f"Missing required permissions: {', '.join(missing_permissions)}")

    missing_context = [key for key in required_context if not context.has(key)]
    if missing_context:
        return ValidationResult(False, f"Missing required context: {', '.join(missing_context)}")

    missing_args = [arg for arg in definition.parameters.required if arg not in args]
    if missing_args:
        return ValidationResult(False, f"Missing required arguments: {', '.join(missing_args)}")

    return ValidationResult(True)


def normalize_result(result: Any) -> dict[str, Any]:
    """Give every tool result a ``success`` flag (defaulting to ``True``)."""
    if isinstance(result, Mapping):
        normalized = dict(result)
        normalized.setdefault("success", True)
        return normalized
    return {"success": True, "data": result}


class Tool(ABC):
    """Base class for tool implementations."""

    def __init__(
        self,
        definition: ToolDefinition | Mapping[str, Any],
        category: str | None = None,
        *,
        required_permissions: Iterable[str] | None = None,
        required_context: Iterable[str] | None = None,
        rate_limit: RateLimit | Mapping[str, Any] | None = None,
        cost_estimate: CostEstimate | str = CostEstimate.LOW,
        async_execution: bool = False,
    ) -> None:
        self.definition = (
            definition if isinstance(definition, ToolDefinition) else ToolDefinition.model_validate(definition)
        )
        self.category = category
        self.required_permissions = _unique(required_permissions)
        self.required_context = _unique(required_context)
        self.rate_limit = RateLimit.from_value(rate_limit)
        self.cost_estimate = CostEstimate(cost_estimate)
        self.async_execution = async_execution

    @property
    def name(self) -> str:
        return self.definition.name

    def validate(self, args: ToolArgs, context: ExecutionContext) -> ValidationResult:
        return check_call(self.definition, self.required_permissions, self.required_context, args, context)

    @abstractmethod
    async def execute(self, args: ToolArgs, context: ExecutionContext) -> Any:
        """Run the tool body. May raise; ``safe_execute`` converts failures."""

    async def safe_execute(
        self, args: ToolArgs | None, context: ExecutionContext | Mapping[str, Any] | None
    ) -> dict[str, Any]:
        """Validate and execute the tool, never raising.

        Returns:
            The tool result with a ``success`` flag, or ``{"success": False, "error": ...}``.
        """
        try:
            args = args or {}
            context = as_context(context)
            validation = self.validate(args, context)
            if not validation.valid:
                logger.info(f"Tool {self.name} rejected: {validation.error}")
                return {"success": False, "error": validation.error}

            result = await self.execute(args, context)
        except Exception as e:
            logger.exception(f"Error executing tool {self.name}")
            return {"success": False, "error": str(e) or "Unknown error occurred"}

        return normalize_result(result)

    def to_enriched(self, category: str | None = None) -> EnrichedTool:
        """Export the canonical catalogue record, dispatching through ``safe_execute``."""
        return EnrichedTool(
            definition=self.definition,
            category=self.category or category,
            required_permissions=self.required_permissions,
            required_context=self.required_context,
            rate_limit=self.rate_limit,
            cost_estimate=self.cost_estimate,
            async_execution=self.async_execution,
            implementation=self.safe_execute,
        )


class FunctionTool(Tool):
    """Tool backed by a plain function (sync or async)."""

    def __init__(
        self,
        definition: ToolDefinition | Mapping[str, Any],
        implementation: ToolImplementation,
        category: str | None = None,
        **options: Any,
    ) -> None:
        super().__init__(definition, category, **options)
        self.implementation = implementation

    async def execute(self, args: ToolArgs, context: ExecutionContext) -> Any:
        result = self.implementation(args, context)
        if inspect.isawaitable(result):
            result = await result
        return result


def create_tool(
    definition: ToolDefinition | Mapping[str, Any],
    implementation: ToolImplementation,
    category: str | None = None,
    **options: Any,
) -> FunctionTool:
    """Create a tool from a definition and a function."""
    return FunctionTool(definition, implementation, category, **options)


def create_tool_batch(configs: Iterable[Mapping[str, Any]], **shared_options: Any) -> list[FunctionTool]:
    """Create several tools sharing options; options set on a tool take precedence."""
    tools = []
    for config in configs:
        options = {**shared_options, **{k: v for k, v in config.items() if v is not None}}
        tools.append(create_tool(**options))
    return tools


def success_response(data: Any = None, message: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {"success": True}
    if message:
        response["message"] = message
    if data is not None:
        response["data"] = data
    return response


def error_response(error: str, code: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {"success": False, "error": error}
    if code:
        response["code"] = code
    return response


def validate_string(
    value: Any,
    *,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    enum: Iterable[str] | None = None,
) -> ValidationResult:
    """Validate a string argument against length, pattern and allowed values."""
    if not isinstance(value, str):
        return ValidationResult(False, "Value must be a string")
    if min_length is not None and len(value) < min_length:
        return ValidationResult(False, f"Minimum length is {min_length}")
    if max_length is not None and len(value) > max_length:
        return ValidationResult(False, f"Maximum length is {max_length}")
    if pattern is not None and not re.search(pattern, value):
        return ValidationResult(False, "Value does not match required pattern")
    if enum is not None:
        allowed = list(enum)
        if value not in allowed:
            return ValidationResult(False, f"Value must be one of: {', '.join(allowed)}")
    return ValidationResult(True)

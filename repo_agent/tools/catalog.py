"""Tool catalogue.

Normalizes the tool shapes found across the codebase into ``EnrichedTool``
records, groups them by category, and resolves the tool set for an agent's
capability profile. The registry is an explicit value built once at process
start and only read afterwards, so it can be shared without locking.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from repo_agent.config import DEFAULT_DYNAMIC_CATEGORY, Settings
from repo_agent.errors import DuplicateToolError
from repo_agent.tools.base import (
    CostEstimate,
    EnrichedTool,
    FunctionTool,
    RateLimit,
    Tool,
    ToolDefinition,
    ValidationResult,
    as_context,
    check_call,
)

if TYPE_CHECKING:
    from repo_agent.tools.agent_tools import AgentManagementTools
    from repo_agent.tools.core import ExecutionContext

logger = logging.getLogger(__name__)


@runtime_checkable
class DynamicToolProvider(Protocol):
    """Source of project-scoped tools for the dynamic category."""

    def get_tools_for_project(self, project_id: Any, permissions: Iterable[str]) -> list[Any]: ...


def _options(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "required_permissions": tuple(dict.fromkeys(raw.get("required_permissions") or ())),
        "required_context": tuple(dict.fromkeys(raw.get("required_context") or ())),
        "rate_limit": RateLimit.from_value(raw.get("rate_limit")),
        "cost_estimate": CostEstimate(raw.get("cost_estimate") or CostEstimate.LOW),
        "async_execution": bool(raw.get("async_execution", False)),
    }


def enrich_tool(tool: Any, category: str) -> EnrichedTool | None:
    """Convert any supported tool shape into an ``EnrichedTool``.

    Supported shapes:
        - ``None``: empty slot, returns ``None``.
        - ``Tool`` instance: exported via ``to_enriched``.
        - ``EnrichedTool``: copied into ``category``.
        - ``{"type": "function", "function": {...}}``: schema-only, no implementation.
        - ``{"name", "description", "parameters", "execute"}``: direct call, wrapped so
          dispatch goes through ``safe_execute``.
        - ``{"definition": {...}, "implementation": ...}``: canonical mapping.

    Raises:
        TypeError: If the shape is not recognized.
    """
    if tool is None:
        return None

    if isinstance(tool, Tool):
        return tool.to_enriched(category)

    if isinstance(tool, EnrichedTool):
        return replace(tool, category=category)

    if not isinstance(tool, Mapping):
        raise TypeError(f"Unsupported tool shape in category '{category}': {type(tool).__name__}")

    if tool.get("type") == "function" and isinstance(tool.get("function"), Mapping):
        return EnrichedTool(
            definition=ToolDefinition.model_validate(tool["function"]),
            category=category,
            implementation=None,
            **_options(tool),
        )

    if "name" in tool and "parameters" in tool:
        definition = ToolDefinition.model_validate(
            {"name": tool["name"], "description": tool.get("description", ""), "parameters": tool["parameters"]}
        )
        execute = tool.get("execute")
        if execute is None:
            return EnrichedTool(definition=definition, category=category, implementation=None, **_options(tool))
        options = _options(tool)
        wrapped = FunctionTool(
            definition,
            execute,
            category,
            required_permissions=options["required_permissions"],
            required_context=options["required_context"],
            rate_limit=options["rate_limit"],
            cost_estimate=options["cost_estimate"],
            async_execution=options["async_execution"],
        )
        return wrapped.to_enriched(category)

    if "definition" in tool:
        definition = tool["definition"]
        return EnrichedTool(
            definition=(
                definition if isinstance(definition, ToolDefinition) else ToolDefinition.model_validate(definition)
            ),
            category=category,
            implementation=tool.get("implementation"),
            **_options(tool),
        )

    raise TypeError(f"Unsupported tool shape in category '{category}': keys={sorted(tool)}")


def _capability_name(capability: Any) -> str | None:
    if isinstance(capability, str):
        return capability or None
    if isinstance(capability, Mapping):
        name = capability.get("name")
    else:
        name = getattr(capability, "name", None)
    return name if isinstance(name, str) and name else None


class ToolRegistry:
    """Category → tools table with lookup, filtering and export helpers."""

    def __init__(
        self,
        categories: Mapping[str, Iterable[Any]],
        dynamic_provider: DynamicToolProvider | None = None,
        dynamic_category: str = DEFAULT_DYNAMIC_CATEGORY,
    ) -> None:
        """Build the registry.

        Args:
            categories: Raw tools per category, in any shape ``enrich_tool`` accepts.
            dynamic_provider: Project-scoped source for ``dynamic_category``.
            dynamic_category: Category refreshed from ``dynamic_provider`` when a project is active.

        Raises:
            DuplicateToolError: If two tools share a name.
        """
        self._categories: dict[str, list[EnrichedTool]] = {}
        self._dynamic_provider = dynamic_provider
        self._dynamic_category = dynamic_category

        seen: dict[str, str] = {}
        for category, raw_tools in categories.items():
            enriched = [t for t in (enrich_tool(raw, category) for raw in raw_tools) if t is not None]
            for tool in enriched:
                if tool.name in seen:
                    raise DuplicateToolError(tool.name, seen[tool.name], category)
                seen[tool.name] = category
            self._categories[category] = enriched

        self._categories.setdefault(dynamic_category, [])
        logger.info(f"Tool registry built: {len(seen)} tools in {len(self._categories)} categories")

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    def get_tools_by_category(self, category: str) -> list[EnrichedTool]:
        return list(self._categories.get(category, []))

    def get_all_tools(self) -> list[EnrichedTool]:
        return [tool for tools in self._categories.values() for tool in tools]

    def tool_names(self) -> set[str]:
        return {tool.name for tool in self.get_all_tools()}

    def get_tool(self, name: str) -> EnrichedTool | None:
        return next((tool for tool in self.get_all_tools() if tool.name == name), None)

    @staticmethod
    def filter_by_permissions(tools: Iterable[EnrichedTool], permissions: Iterable[str]) -> list[EnrichedTool]:
        granted = set(permissions)
        return [tool for tool in tools if all(perm in granted for perm in tool.required_permissions)]

    def get_tools_by_permissions(self, permissions: Iterable[str] = ()) -> list[EnrichedTool]:
        """Tools with no required permissions, or whose every required permission is granted."""
        return self.filter_by_permissions(self.get_all_tools(), permissions)

    def get_tools_for_archetype(
        self,
        archetype: str,
        capabilities: Iterable[Any] = (),
        context: ExecutionContext | Mapping[str, Any] | None = None,
    ) -> list[EnrichedTool]:
        """Collect the tools of every capability category, in capability order.

        Capabilities are category names or objects/mappings with a ``name``.
        Invalid entries are skipped with a warning.
        """
        context = as_context(context)
        tools: list[EnrichedTool] = []

        for capability in capabilities:
            category = _capability_name(capability)
            if category is None:
                logger.warning(f"Skipping invalid capability for {archetype}: {capability!r}")
                continue

            if category == self._dynamic_category and context.project_id is not None:
                tools.extend(self._load_dynamic_tools(context))
            else:
                tools.extend(self.get_tools_by_category(category))

        logger.debug(f"Resolved {len(tools)} tools for archetype {archetype}")
        return tools

    def _load_dynamic_tools(self, context: ExecutionContext) -> list[EnrichedTool]:
        static_tools = self.get_tools_by_category(self._dynamic_category)
        if self._dynamic_provider is None:
            return static_tools

        try:
            raw_tools = self._dynamic_provider.get_tools_for_project(context.project_id, context.permissions)
            tools = [t for t in (enrich_tool(raw, self._dynamic_category) for raw in raw_tools) if t is not None]
        except Exception as e:
            logger.warning(f"Loading {self._dynamic_category} tools for project {context.project_id} failed: {e}")
            return static_tools

        logger.info(f"Loaded {len(tools)} {self._dynamic_category} tools for project {context.project_id}")
        return tools

    @staticmethod
    def validate_tool_execution(
        tool: EnrichedTool, args: Mapping[str, Any], context: ExecutionContext | Mapping[str, Any] | None
    ) -> ValidationResult:
        """Pre-flight check of a call without building a ``Tool`` instance."""
        return check_call(tool.definition, tool.required_permissions, tool.required_context, args, as_context(context))

    def search_for_tools(
        self,
        query: str | None = None,
        *,
        category: str | None = None,
        permissions: Iterable[str] | None = None,
        include_description: bool = True,
    ) -> list[EnrichedTool]:
        """Case-insensitive substring search over tool names (and descriptions)."""
        tools = self.get_all_tools()
        if category:
            tools = [tool for tool in tools if tool.category == category]
        if permissions is not None:
            tools = self.filter_by_permissions(tools, permissions)
        if query:
            needle = query.lower()
            tools = [
                tool
                for tool in tools
                if needle in tool.name.lower()
                or (include_description and needle in tool.definition.description.lower())
            ]
        return tools

    @staticmethod
    def export_tool_definitions(tools: Iterable[EnrichedTool]) -> list[dict[str, Any]]:
        """Tool definitions in function-calling format."""
        return [{"type": "function", "function": tool.definition.to_dict()} for tool in tools]

    @staticmethod
    def create_tool_mapping(tools: Iterable[EnrichedTool]) -> dict[str, Any]:
        """Name → implementation dispatch table for a tool-calling loop."""
        return {tool.name: tool.implementation for tool in tools}


async def call_tool(
    mapping: Mapping[str, Any],
    name: str,
    arguments: Mapping[str, Any] | None,
    context: ExecutionContext | Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Dispatch one model-chosen call through a tool mapping; never raises."""
    implementation = mapping.get(name)
    if implementation is None:
        message = f"Unknown tool: {name}" if name not in mapping else f"Tool {name} has no implementation"
        logger.warning(message)
        return {"success": False, "error": message}

    try:
        result = implementation(arguments or {}, as_context(context))
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        logger.exception(f"Error dispatching tool {name}")
        return {"success": False, "error": str(e) or "Unknown error occurred"}

    if isinstance(result, Mapping):
        return {"success": True, **result}
    return {"success": True, "data": result}


def build_tool_registry(
    categories: Mapping[str, Iterable[Any]] | None = None,
    dynamic_provider: DynamicToolProvider | None = None,
    dynamic_category: str | None = None,
    settings: Settings | None = None,
    agent_tools: AgentManagementTools | None = None,
) -> ToolRegistry:
    """Build the process registry, always including the agent-management tools.

    Args:
        categories: Extra raw tools per category.
        dynamic_provider: Project-scoped source for the dynamic category.
        dynamic_category: Dynamic category name; defaults to ``settings.dynamic_category``.
        settings: Process settings; read from the environment once when omitted.
        agent_tools: Agent-management tool set; one bound to ``settings`` is created when omitted.
    """
    from repo_agent.tools.agent_tools import AGENT_SPAWNING_CATEGORY, AgentManagementTools  # noqa: PLC0415

    settings = settings or Settings.from_env()
    agent_tools = agent_tools or AgentManagementTools(settings=settings)

    tables: dict[str, list[Any]] = {AGENT_SPAWNING_CATEGORY: agent_tools.tools()}
    for category, tools in (categories or {}).items():
        tables.setdefault(category, []).extend(tools)
    return ToolRegistry(
        tables,
        dynamic_provider=dynamic_provider,
        dynamic_category=dynamic_category or settings.dynamic_category,
    )

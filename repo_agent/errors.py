"""Exceptions raised inside the orchestration core.

None of these escape a public boundary: ``Tool.safe_execute``, the sub-agent
spawner and the workflow coordinator convert them into
``{"success": False, "error": ...}`` values. Registry construction errors are
the exception, since they signal a programming error at startup.
"""

from __future__ import annotations


class RepoAgentError(Exception):
    """Base exception for the orchestration core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ToolExecutionError(RepoAgentError):
    """Raised when a tool body fails."""

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnavailableCollaboratorError(RepoAgentError):
    """Raised when a required collaborator is missing from the execution context."""


class ToolExecutorUnavailableError(UnavailableCollaboratorError):
    """Raised when no spawner collaborator is available."""

    def __init__(self, message: str = "Tool executor not available") -> None:
        super().__init__(message)


class MissingCallbackTargetError(RepoAgentError):
    """Raised when callback mode is requested without a callback URL."""

    def __init__(self, message: str = "Callback URL required for callback mode") -> None:
        super().__init__(message)


class UnimplementedContractError(RepoAgentError):
    """Raised for return-mode contracts that are declared but not delivered."""


class DependencyNotMetError(RepoAgentError):
    """Raised when a workflow task references a dependency that has not run yet."""

    def __init__(self, dependency: str) -> None:
        super().__init__(f"Dependency not met: {dependency}")
        self.dependency = dependency


class UnknownArchetypeError(RepoAgentError, KeyError):
    """Raised when a sub-agent archetype is not registered."""

    def __init__(self, archetype: str) -> None:
        super().__init__(f"Unknown agent archetype: {archetype}")
        self.archetype = archetype

    def __str__(self) -> str:
        return self.message


class UnknownWorkflowError(RepoAgentError, KeyError):
    """Raised when a predefined workflow name is not registered."""

    def __init__(self, workflow: str) -> None:
        super().__init__(f"Unknown workflow: {workflow}")
        self.workflow = workflow

    def __str__(self) -> str:
        return self.message


class UnknownStrategyError(RepoAgentError, ValueError):
    """Raised when a tool orchestration strategy is not supported."""

    def __init__(self, strategy: str) -> None:
        super().__init__(f"Unknown orchestration strategy: {strategy}")
        self.strategy = strategy


class DuplicateToolError(RepoAgentError, ValueError):
    """Raised when two catalogue entries share a tool name."""

    def __init__(self, name: str, first_category: str, second_category: str) -> None:
        super().__init__(
            f"Duplicate tool name '{name}' in categories '{first_category}' and '{second_category}'"
        )
        self.name = name

"""Archetype, capability and predefined-workflow catalogue.

Capabilities are the tool categories an archetype may use; each declares the
context keys its tools expect. Predefined workflows chain archetypes with
handoff conditions evaluated on the previous step's result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from repo_agent.agent.types import AgentArchetype
from repo_agent.errors import UnknownArchetypeError, UnknownWorkflowError


@dataclass(frozen=True)
class ToolCapability:
    """A named tool category with the context keys its tools need."""

    name: str
    description: str
    required_context: tuple[str, ...] = ()


FILE_MANAGEMENT = ToolCapability(
    "file_management", "Create, read, update, and manage files", ("project", "permissions")
)
CODE_ANALYSIS = ToolCapability("code_analysis", "Analyze code structure, dependencies, and patterns", ("project",))
SEARCH = ToolCapability("search", "Search through project files and documentation", ("project",))
COMMUNICATION = ToolCapability("communication", "Communicate with users and other agents", ("session",))
DEPLOYMENT = ToolCapability(
    "deployment", "Deploy and manage project deployments", ("project", "permissions", "auth")
)
GITHUB = ToolCapability("github", "Interact with source-control repositories", ("auth", "permissions"))
AGENT_SPAWNING = ToolCapability(
    "agent_spawning", "Create and manage sub-agents for specialized tasks", ("session", "permissions")
)
UTILITIES = ToolCapability("utilities", "General utility tools", ("user",))
PROJECT = ToolCapability("project", "Project-specific tools for posts, media, and statistics", ("project",))
PROJECT_NAVIGATOR = ToolCapability(
    "project_navigator", "Navigate and manage multiple projects when no project is selected", ("user", "org")
)
REPOMD = ToolCapability("repomd", "Access and search project content", ("project",))

TOOL_CAPABILITIES: dict[str, ToolCapability] = {
    capability.name: capability
    for capability in (
        FILE_MANAGEMENT,
        CODE_ANALYSIS,
        SEARCH,
        COMMUNICATION,
        DEPLOYMENT,
        GITHUB,
        AGENT_SPAWNING,
        UTILITIES,
        PROJECT,
        PROJECT_NAVIGATOR,
        REPOMD,
    )
}


@dataclass(frozen=True)
class ArchetypeDefinition:
    """Definition of a specialist sub-agent role.

    Attributes:
        archetype: Registry key.
        description: Human-readable purpose of the role.
        capabilities: Tool categories the role may use, in priority order.
    """

    archetype: str
    description: str
    capabilities: tuple[ToolCapability, ...]

    @property
    def can_spawn_agents(self) -> bool:
        return any(capability.name == AGENT_SPAWNING.name for capability in self.capabilities)


DEFAULT_ARCHETYPES: tuple[ArchetypeDefinition, ...] = (
    ArchetypeDefinition(
        AgentArchetype.GENERALIST.value,
        "Clarifies requirements, plans work and delegates to specialists.",
        (SEARCH, COMMUNICATION, AGENT_SPAWNING, UTILITIES, PROJECT),
    ),
    ArchetypeDefinition(
        AgentArchetype.CODE_GENERATOR.value,
        "Creates code following project conventions.",
        (FILE_MANAGEMENT, CODE_ANALYSIS, SEARCH),
    ),
    ArchetypeDefinition(
        AgentArchetype.CODE_REVIEWER.value,
        "Reviews code for quality, security and conventions.",
        (CODE_ANALYSIS, SEARCH),
    ),
    ArchetypeDefinition(
        AgentArchetype.DEPLOYMENT_MANAGER.value,
        "Prepares, runs and monitors project deployments.",
        (DEPLOYMENT, GITHUB, COMMUNICATION),
    ),
    ArchetypeDefinition(
        AgentArchetype.PUBLIC_ASSISTANT.value,
        "Answers questions about a project with read-only access.",
        (SEARCH,),
    ),
    ArchetypeDefinition(
        AgentArchetype.PROJECT_NAVIGATOR.value,
        "Helps users find and switch between their projects.",
        (PROJECT_NAVIGATOR, UTILITIES),
    ),
    ArchetypeDefinition(
        AgentArchetype.PROJECT_CONTENT.value,
        "Finds and explains articles, media and other project content.",
        (REPOMD, SEARCH, PROJECT),
    ),
)


class ArchetypeRegistry:
    """Registry of sub-agent archetypes, built once and extended explicitly."""

    def __init__(self, definitions: tuple[ArchetypeDefinition, ...] | list[ArchetypeDefinition] = DEFAULT_ARCHETYPES):
        self._definitions: dict[str, ArchetypeDefinition] = {d.archetype: d for d in definitions}

    def register(self, definition: ArchetypeDefinition) -> None:
        self._definitions[definition.archetype] = definition

    def get(self, archetype: str | AgentArchetype) -> ArchetypeDefinition:
        """Get an archetype definition.

        Raises:
            UnknownArchetypeError: If the archetype is not registered.
        """
        key = archetype.value if isinstance(archetype, AgentArchetype) else archetype
        if key not in self._definitions:
            raise UnknownArchetypeError(key)
        return self._definitions[key]

    def __contains__(self, archetype: object) -> bool:
        key = archetype.value if isinstance(archetype, AgentArchetype) else archetype
        return key in self._definitions

    def list_all(self) -> list[ArchetypeDefinition]:
        return list(self._definitions.values())

    def names(self) -> list[str]:
        return list(self._definitions)


@dataclass(frozen=True)
class Handoff:
    """Condition under which a workflow continues to the next step.

    ``context_keys`` are copied from the step's result into the next step's context.
    """

    to: str
    condition: str
    context_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowStep:
    agent: str
    purpose: str
    handoff: Handoff | None = None


@dataclass(frozen=True)
class WorkflowDefinition:
    """Named, predefined sequence of archetype steps."""

    name: str
    description: str
    steps: tuple[WorkflowStep, ...] = field(default_factory=tuple)


DEFAULT_WORKFLOWS: dict[str, WorkflowDefinition] = {
    "clarify_then_execute": WorkflowDefinition(
        "Clarify Then Execute",
        "Clarify requirements then delegate to executor",
        (
            WorkflowStep(
                AgentArchetype.GENERALIST.value,
                "Clarify requirements and create execution plan",
                Handoff(
                    AgentArchetype.CODE_GENERATOR.value,
                    "requirements_clear",
                    ("clarified_requirements", "execution_plan"),
                ),
            ),
        ),
    ),
    "review_and_improve": WorkflowDefinition(
        "Review and Improve",
        "Generate code then review for improvements",
        (
            WorkflowStep(
                AgentArchetype.CODE_GENERATOR.value,
                "Generate initial implementation",
                Handoff(
                    AgentArchetype.CODE_REVIEWER.value,
                    "code_generated",
                    ("generated_files", "implementation_decisions"),
                ),
            ),
            WorkflowStep(
                AgentArchetype.CODE_REVIEWER.value,
                "Review and suggest improvements",
                Handoff(
                    AgentArchetype.CODE_GENERATOR.value,
                    "improvements_identified",
                    ("review_feedback", "improvement_suggestions"),
                ),
            ),
        ),
    ),
    "deploy_with_validation": WorkflowDefinition(
        "Deploy with Validation",
        "Validate project then deploy",
        (
            WorkflowStep(
                AgentArchetype.CODE_REVIEWER.value,
                "Validate deployment readiness",
                Handoff(
                    AgentArchetype.DEPLOYMENT_MANAGER.value,
                    "validation_passed",
                    ("validation_results", "deployment_checklist"),
                ),
            ),
        ),
    ),
}


def get_workflow(name: str, workflows: dict[str, WorkflowDefinition] | None = None) -> WorkflowDefinition:
    """Look up a predefined workflow.

    Raises:
        UnknownWorkflowError: If the workflow is not defined.
    """
    catalogue = DEFAULT_WORKFLOWS if workflows is None else workflows
    if name not in catalogue:
        raise UnknownWorkflowError(name)
    return catalogue[name]


def evaluate_handoff_condition(condition: str, result: Any) -> bool:
    """Decide whether a workflow hands off after a step; unknown conditions always hand off."""
    data = result if isinstance(result, dict) else {}
    if condition == "requirements_clear":
        return data.get("requirements_clarified") is True
    if condition == "code_generated":
        return bool(data.get("files_generated"))
    if condition == "improvements_identified":
        return bool(data.get("improvements"))
    if condition == "validation_passed":
        return data.get("validation_passed") is True
    return True

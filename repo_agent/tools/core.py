"""Core module with the execution context shared by every tool and sub-agent call.

The context is ambient data supplied fresh by the caller on each call. Tools
read it, they never own or mutate it; ``merge`` returns a new context.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from repo_agent.agent.types import SpawnerCollaborator


@dataclass(frozen=True)
class UserContext:
    """Authenticated user as seen by the tool layer."""

    id: str | None = None
    name: str | None = None
    permissions: tuple[str, ...] = ()
    role: str | None = None

    @classmethod
    def from_value(cls, value: Any) -> UserContext | None:
        """Accept a ``UserContext``, a mapping, or ``None``."""
        if value is None or isinstance(value, UserContext):
            return value
        if isinstance(value, Mapping):
            return cls(
                id=value.get("id"),
                name=value.get("name"),
                permissions=tuple(value.get("permissions") or ()),
                role=value.get("role"),
            )
        raise TypeError(f"Unsupported user context: {type(value).__name__}")


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call ambient data: user, organization, active project, session and orchestrator handle.

    Attributes:
        user: Authenticated user with permissions.
        org: Organization the call runs in.
        project: Active project (mapping or object with an ``id``), if any.
        session: Conversation session, if any.
        tool_executor: Spawner collaborator used by agent-management tools.
        extras: Any other keys the caller wants tools to see.
    """

    user: UserContext | None = None
    org: Any = None
    project: Any = None
    session: Any = None
    tool_executor: SpawnerCollaborator | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None = None) -> ExecutionContext:
        """Build a context from a plain mapping, sending unknown keys to ``extras``."""
        return cls().merge(values or {})

    @property
    def permissions(self) -> tuple[str, ...]:
        return self.user.permissions if self.user else ()

    @property
    def project_id(self) -> Any:
        """Identifier of the active project, or ``None`` when no project is active."""
        if self.project is None:
            return None
        if isinstance(self.project, Mapping):
            return self.project.get("id") or self.project.get("_id")
        return getattr(self.project, "id", None)

    def get(self, key: str, default: Any = None) -> Any:
        if key in _FIELD_NAMES:
            value = getattr(self, key)
            return default if value is None else value
        return self.extras.get(key, default)

    def has(self, key: str) -> bool:
        """Whether ``key`` is present and truthy."""
        return bool(self.get(key))

    def merge(self, values: Mapping[str, Any]) -> ExecutionContext:
        """Return a new context with ``values`` applied on top of this one."""
        updates: dict[str, Any] = {}
        extras = dict(self.extras)
        for key, value in values.items():
            if key == "extras" and isinstance(value, Mapping):
                extras.update(value)
            elif key == "user":
                updates["user"] = UserContext.from_value(value)
            elif key in _FIELD_NAMES:
                updates[key] = value
            else:
                extras[key] = value
        return replace(self, extras=extras, **updates)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the context into a single mapping (named fields first, then extras)."""
        flat = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extras"}
        flat.update(self.extras)
        return flat


_FIELD_NAMES = frozenset(f.name for f in fields(ExecutionContext) if f.name != "extras")

"""Condition evaluation for orchestrated tool batches.

A condition is one of:

- a callable receiving the data under test,
- a ``{"field": "a.b.0", "operator": ..., "value": ...}`` mapping, where the
  operator is ``equals``, ``contains``, ``greater`` or ``exists``,
- any other value, taken for its truthiness.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)

StopCondition = Callable[[dict[str, Any], list[dict[str, Any]]], Any] | str | None

_MISSING = object()


def get_nested_value(data: Any, path: str, default: Any = None) -> Any:
    """Follow a dotted path through mappings and sequences (numeric segments index lists)."""
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, Sequence) and not isinstance(current, str) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return default
            current = current[index]
        else:
            return default
    return current


def _compare(operator: str | None, field_value: Any, value: Any) -> bool:
    if operator == "exists":
        return field_value is not _MISSING
    if field_value is _MISSING:
        return False

    try:
        if operator == "equals":
            return field_value == value
        if operator == "contains":
            return value in field_value
        if operator == "greater":
            return field_value > value
    except TypeError:
        return False

    logger.warning(f"Unknown condition operator: {operator}")
    return False


def evaluate_condition(condition: Any, data: Any) -> bool:
    if callable(condition):
        return bool(condition(data))
    if isinstance(condition, Mapping):
        field_value = get_nested_value(data, str(condition.get("field", "")), _MISSING)
        return _compare(condition.get("operator"), field_value, condition.get("value"))
    return bool(condition)


def check_dependency(depends_on: str | Mapping[str, Any] | None, results: Sequence[Mapping[str, Any]]) -> bool:
    """Check a sequential dependency against the results gathered so far.

    A tool name is met once any earlier run of that tool succeeded. A
    ``{"tool", "condition"}`` mapping is evaluated against the latest result of
    that tool; without a ``condition`` the latest result must have succeeded.
    """
    if depends_on is None:
        return True
    if isinstance(depends_on, str):
        return any(r.get("tool") == depends_on and r.get("success") for r in results)

    latest = next((r for r in reversed(results) if r.get("tool") == depends_on.get("tool")), None)
    if latest is None:
        return False
    condition = depends_on.get("condition")
    if condition is None:
        return bool(latest.get("success"))
    return evaluate_condition(condition, latest)


def evaluate_stop_condition(
    condition: StopCondition, current: dict[str, Any], results: list[dict[str, Any]]
) -> bool:
    """Decide whether an iterative run stops after ``current``; no condition never stops early."""
    if callable(condition):
        return bool(condition(current, results))
    if condition == "success":
        return bool(current.get("success"))
    if condition == "failure":
        return not current.get("success")
    return False

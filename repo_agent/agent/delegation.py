"""Keyword-based task classifier for picking a sub-agent archetype.

Deterministic and explainable: rule buckets are checked in a fixed order and
the first bucket with a keyword contained in the task text wins. Confidences
are fixed calibration constants, not scores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from repo_agent.agent.types import AgentArchetype

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelegationRule:
    keywords: tuple[str, ...]
    archetype: AgentArchetype
    confidence: float
    reasoning: str


DELEGATION_RULES: tuple[DelegationRule, ...] = (
    DelegationRule(
        ("generate", "create", "implement", "build"),
        AgentArchetype.CODE_GENERATOR,
        0.8,
        "Task involves code generation or creation",
    ),
    DelegationRule(
        ("review", "analyze", "check", "audit"),
        AgentArchetype.CODE_REVIEWER,
        0.8,
        "Task involves code review or analysis",
    ),
    DelegationRule(
        ("deploy", "release", "publish"),
        AgentArchetype.DEPLOYMENT_MANAGER,
        0.9,
        "Task involves deployment or release",
    ),
)

FALLBACK_ARCHETYPE = AgentArchetype.GENERALIST
FALLBACK_CONFIDENCE = 0.5
FALLBACK_REASONING = "Task requires general assistance or clarification"


@dataclass(frozen=True)
class TaskAnalysis:
    """Recommended archetype for a task, with a justification."""

    recommended_agent: AgentArchetype
    confidence: float
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommended_agent": self.recommended_agent.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


def classify_task(task: str, requirements: dict[str, Any] | None = None) -> TaskAnalysis:
    """Classify a free-text task description into the best-matching archetype.

    ``requirements`` is accepted for call-site symmetry with ``delegate_task``
    and does not influence the result.
    """
    text = task.lower()
    for rule in DELEGATION_RULES:
        if any(keyword in text for keyword in rule.keywords):
            analysis = TaskAnalysis(rule.archetype, rule.confidence, rule.reasoning)
            break
    else:
        analysis = TaskAnalysis(FALLBACK_ARCHETYPE, FALLBACK_CONFIDENCE, FALLBACK_REASONING)

    logger.debug(f"Task classified as {analysis.recommended_agent.value}: {task[:50]}...")
    return analysis

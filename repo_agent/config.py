"""Environment-driven settings for the orchestration core."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_HISTORY_LIMIT = 1000
DEFAULT_STATUS_HISTORY_WINDOW = 3600.0  # seconds
DEFAULT_DYNAMIC_CATEGORY = "repomd"


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once at startup."""

    log_level: str = "INFO"
    redis_host: str | None = None
    redis_port: int = 6379
    history_limit: int = DEFAULT_HISTORY_LIMIT
    status_history_window: float = DEFAULT_STATUS_HISTORY_WINDOW
    dynamic_category: str = DEFAULT_DYNAMIC_CATEGORY

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            redis_host=os.getenv("REDIS_HOST") or None,
            redis_port=int(os.getenv("REDIS_PORT", "6379")),
            history_limit=int(os.getenv("REPO_AGENT_HISTORY_LIMIT", str(DEFAULT_HISTORY_LIMIT))),
            status_history_window=float(
                os.getenv("REPO_AGENT_STATUS_HISTORY_WINDOW", str(DEFAULT_STATUS_HISTORY_WINDOW))
            ),
            dynamic_category=os.getenv("REPO_AGENT_DYNAMIC_CATEGORY", DEFAULT_DYNAMIC_CATEGORY),
        )

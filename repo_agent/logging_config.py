"""Logging configuration for the orchestration core with optional Redis shipping."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import redis

if TYPE_CHECKING:
    from logging import LogRecord

    from repo_agent.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_KEY_TTL_SECONDS = 7 * 24 * 3600

# Attributes every LogRecord carries; anything else came in via ``extra=``
_STANDARD_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    }
)


class RedisLogHandler(logging.Handler):
    """Logging handler that appends JSON records to a daily Redis list."""

    def __init__(
        self,
        host: str,
        port: int = 6379,
        key_prefix: str = "repo-agent-logs",
        additional_fields: dict[str, Any] | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            host: Redis host.
            port: Redis port.
            key_prefix: Prefix of the daily list key (``<prefix>:<YYYY-MM-DD>``).
            additional_fields: Static fields added to every entry (application, environment, ...).
            client: Pre-built Redis client; one is created from host/port when omitted.
        """
        super().__init__()
        self.client = client or redis.Redis(host=host, port=port, decode_responses=True)
        self.key_prefix = key_prefix
        self.additional_fields = additional_fields or {}

    def build_entry(self, record: LogRecord) -> dict[str, Any]:
        """Turn a log record into the JSON-serializable entry stored in Redis."""
        entry: dict[str, Any] = {
            "@timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **self.additional_fields,
        }
        entry.update({key: value for key, value in record.__dict__.items() if key not in _STANDARD_RECORD_ATTRS})
        if record.exc_info:
            entry["exception"] = self.format(record)
        return entry

    def emit(self, record: LogRecord) -> None:
        if record.name.startswith("redis"):
            return

        try:
            key = f"{self.key_prefix}:{datetime.now(UTC).strftime('%Y-%m-%d')}"
            self.client.rpush(key, json.dumps(self.build_entry(record), default=str))
            self.client.expire(key, LOG_KEY_TTL_SECONDS)
        except Exception:
            self.handleError(record)


def setup_logging(
    app_name: str = "repo-agent",
    log_level: str = "INFO",
    log_file: str | None = None,
    use_console: bool = True,
    redis_host: str | None = None,
    redis_port: int | None = None,
) -> logging.Logger:
    """Configure the root logger with console, file and optional Redis handlers.

    Redis shipping is enabled only when a host is given (or ``REDIS_HOST`` is set)
    and the server answers a ping; otherwise a warning is logged and local
    handlers stay in place.

    Returns:
        The configured root logger.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    if use_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    host = redis_host or os.getenv("REDIS_HOST")
    port = redis_port or int(os.getenv("REDIS_PORT", "6379"))

    if host:
        try:
            client = redis.Redis(host=host, port=port, socket_timeout=2, decode_responses=True)
            client.ping()
            handler = RedisLogHandler(
                host=host,
                port=port,
                additional_fields={"application": app_name, "environment": os.getenv("ENVIRONMENT", "develop")},
                client=client,
            )
            handler.setLevel(logging.INFO)
            root_logger.addHandler(handler)
            root_logger.info(f"Redis logging enabled: {host}:{port}")
        except Exception as e:
            root_logger.warning(f"Redis logging disabled: {e}")

    return root_logger


def setup_logging_from_settings(settings: Settings, app_name: str = "repo-agent") -> logging.Logger:
    """Configure logging from process settings."""
    return setup_logging(
        app_name=app_name,
        log_level=settings.log_level,
        redis_host=settings.redis_host,
        redis_port=settings.redis_port,
    )

"""
Logger configuration. Built from code or env.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

_TRUE = ("1", "true", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in _TRUE


@dataclass(frozen=True)
class LoggerConfig:
    """
    Configuration for the scheduling backend logger.

    Use LoggerConfig.from_env() for env-based config, or build explicitly.
    """

    # Level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    level: str = "INFO"
    # Log directory for rotating file (if None, file handler is skipped)
    log_dir: Optional[str] = None
    # Basename for log file (e.g. "scheduling" -> scheduling.log)
    log_file_basename: str = "scheduling"
    # Max bytes per file before rotation
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5
    # Handlers are attached here; children inherit
    root_name: str = "backend"
    console: bool = True
    file_rotating: bool = True
    # Console as JSON lines instead of the plain format (container log shippers)
    console_json: bool = False
    # Inject request context (request id, participant pair) into every record
    request_context: bool = True

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        """Build config from LOG_* environment variables."""
        return cls(
            level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_dir=os.environ.get("LOG_DIR") or None,
            log_file_basename=os.environ.get("LOG_FILE_BASENAME", "scheduling"),
            max_bytes=int(os.environ.get("LOG_MAX_BYTES", "5242880")),
            backup_count=int(os.environ.get("LOG_BACKUP_COUNT", "5")),
            root_name=os.environ.get("LOG_ROOT_NAME", "backend"),
            console=_env_flag("LOG_CONSOLE", "true"),
            file_rotating=_env_flag("LOG_FILE_ROTATING", "true"),
            console_json=_env_flag("LOG_CONSOLE_JSON", "false"),
            request_context=_env_flag("LOG_REQUEST_CONTEXT", "true"),
        )

    def with_overrides(self, **overrides) -> "LoggerConfig":
        """Return a new config with the given non-None overrides."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

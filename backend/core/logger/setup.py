"""
Logger setup: attach console and rotating file (JSON) handlers from config.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from backend.core.logger.config import LoggerConfig
from backend.core.logger.context import RequestContextFilter
from backend.core.logger.formatters import JsonFormatter, PlainConsoleFormatter

_default_config: Optional[LoggerConfig] = None


def configure(config: Optional[LoggerConfig] = None) -> None:
    """
    Configure the named root logger. If config is None, uses
    LoggerConfig.from_env(). Call once at application startup.
    """
    global _default_config
    if config is None:
        config = LoggerConfig.from_env()
    _default_config = config

    level = getattr(logging, config.level.upper(), logging.INFO)
    root = logging.getLogger(config.root_name or "backend")
    root.setLevel(level)

    # Avoid duplicate handlers when reconfigured (e.g. in tests)
    root.handlers.clear()

    handlers: list[logging.Handler] = []
    if config.console:
        console = logging.StreamHandler()
        console.setFormatter(JsonFormatter() if config.console_json else PlainConsoleFormatter())
        handlers.append(console)

    if config.file_rotating and config.log_dir and config.log_dir.strip():
        try:
            handlers.append(
                build_rotating_file_handler(
                    config.log_dir,
                    basename=config.log_file_basename,
                    max_bytes=config.max_bytes,
                    backup_count=config.backup_count,
                    level=config.level,
                )
            )
        except OSError:
            root.warning("Could not create log dir %s, skipping file handler", config.log_dir)

    for handler in handlers:
        handler.setLevel(level)
        if config.request_context:
            handler.addFilter(RequestContextFilter())
        root.addHandler(handler)

    root.propagate = False


def get_logger(name: str, config: Optional[LoggerConfig] = None) -> logging.Logger:
    """
    Return a logger for the given name, configuring the root on first use.
    Use get_logger(__name__) from backend packages so names stay under the root.
    """
    if _default_config is None:
        configure(config)
    return logging.getLogger(name)


def build_rotating_file_handler(
    log_dir: str,
    basename: str = "scheduling",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
    level: str = "INFO",
) -> RotatingFileHandler:
    """Rotating file handler with the JSON formatter."""
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(log_dir, f"{basename}.log"),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    handler.setFormatter(JsonFormatter())
    return handler

"""
Project logger: console + rotating JSON file, with request context.

Usage:
    from backend.core.logger import configure, get_logger, bind_request_context

    configure()  # LoggerConfig.from_env(): LOG_LEVEL, LOG_DIR, LOG_CONSOLE_JSON, ...

    logger = get_logger(__name__)
    with bind_request_context("req_123", pair="alice:bob"):
        logger.info("Started")  # record carries request_id and pair
"""
from backend.core.logger.config import LoggerConfig
from backend.core.logger.context import (
    RequestContextFilter,
    bind_request_context,
    current_request_id,
)
from backend.core.logger.formatters import JsonFormatter, PlainConsoleFormatter
from backend.core.logger.setup import (
    build_rotating_file_handler,
    configure,
    get_logger,
)

__all__ = [
    "LoggerConfig",
    "JsonFormatter",
    "PlainConsoleFormatter",
    "RequestContextFilter",
    "bind_request_context",
    "current_request_id",
    "configure",
    "get_logger",
    "build_rotating_file_handler",
]

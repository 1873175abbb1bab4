"""
Project exception system.

Usage:
    from backend.core.exceptions import NoCachedTemplateError, ToolCallError

    raise NoCachedTemplateError(
        "Cannot edit event: No cached event template found for users a and b",
        details={"user1_id": "a", "user2_id": "b"},
    )

    raise ToolCallError("No function called by LLM", cause=original_error)
"""
from backend.core.exceptions.base import ProjectError
from backend.core.exceptions.errors import (
    CacheError,
    ConfigurationError,
    ExternalServiceError,
    NoCachedTemplateError,
    PlaceSearchError,
    RateLimitError,
    ToolCallError,
)

__all__ = [
    "ProjectError",
    "ConfigurationError",
    "ExternalServiceError",
    "RateLimitError",
    "NoCachedTemplateError",
    "ToolCallError",
    "CacheError",
    "PlaceSearchError",
]

"""
Built-in exception types. Add new ones here.
"""
from __future__ import annotations

from backend.core.exceptions.base import ProjectError


class ConfigurationError(ProjectError):
    """Invalid or missing configuration."""

    default_code = "CONFIGURATION_ERROR"
    default_http_status = 500


class ExternalServiceError(ProjectError):
    """External service (LLM, places, availability) failed."""

    default_code = "EXTERNAL_SERVICE_ERROR"
    default_http_status = 502


class RateLimitError(ExternalServiceError):
    """Upstream rate limit or quota exceeded."""

    default_code = "RATE_LIMIT"
    default_http_status = 429


class NoCachedTemplateError(ProjectError):
    """An edit was requested but no template is cached for the participant pair."""

    default_code = "NO_CACHED_TEMPLATE"
    default_http_status = 409


class ToolCallError(ExternalServiceError):
    """The model returned no tool call, the wrong tool, or malformed arguments."""

    default_code = "TOOL_CALL_ERROR"
    default_http_status = 502


class CacheError(ExternalServiceError):
    """Cache backend read or write failed."""

    default_code = "CACHE_ERROR"
    default_http_status = 502


class PlaceSearchError(ExternalServiceError):
    """Venue search provider failed."""

    default_code = "PLACE_SEARCH_ERROR"
    default_http_status = 502

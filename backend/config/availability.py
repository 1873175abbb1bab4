"""
backend.config.availability – calendar availability source config.

Env vars: AVAILABILITY_SERVICE_URL, AVAILABILITY_SERVICE_TOKEN, AVAILABILITY_TIMEOUT.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backend.config._validators import env_float, env_str, validate_http_url, validate_positive_number


@dataclass(frozen=True)
class AvailabilityConfig:
    """
    Common-free-time service. When ``service_url`` is unset, only the slots
    supplied with the request are used.
    """

    service_url: Optional[str] = None
    """Endpoint accepting POST {user1_id, user2_id, calendar_type, duration}."""

    token: Optional[str] = None
    """Bearer token sent to the availability service."""

    timeout: float = 15.0

    def __post_init__(self) -> None:
        validate_http_url(self.service_url, "service_url")
        validate_positive_number(self.timeout, "timeout")

    @classmethod
    def from_env(cls, **overrides: object) -> AvailabilityConfig:
        return cls(
            service_url=env_str(overrides, "service_url", "AVAILABILITY_SERVICE_URL", None),
            token=env_str(overrides, "token", "AVAILABILITY_SERVICE_TOKEN", None),
            timeout=env_float(overrides, "timeout", "AVAILABILITY_TIMEOUT", 15.0),
        )


def load_availability_config(**overrides: object) -> AvailabilityConfig:
    return AvailabilityConfig.from_env(**overrides)

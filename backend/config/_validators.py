"""Shared validators and env readers for config dataclasses."""
from __future__ import annotations

import os
from typing import Mapping, Optional

_TRUE = ("1", "true", "yes")


def validate_positive_number(value: float, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {value!r}")
    return value


def validate_http_url(url: Optional[str], name: str) -> Optional[str]:
    if url is None:
        return None
    if not (url.startswith("http://") or url.startswith("https://")):
        raise ValueError(f"{name} must start with http:// or https://, got {url!r}")
    return url


def env_str(overrides: Mapping[str, object], attr: str, var: str, default: Optional[str]) -> Optional[str]:
    v = overrides.get(attr)
    if v is not None:
        return str(v).strip() or None
    raw = os.environ.get(var)
    if raw is None:
        return default
    return raw.strip() or None


def env_float(overrides: Mapping[str, object], attr: str, var: str, default: float) -> float:
    v = overrides.get(attr)
    if v is not None:
        return float(v)
    return float(os.environ.get(var, default))


def env_bool(overrides: Mapping[str, object], attr: str, var: str, default: bool) -> bool:
    v = overrides.get(attr)
    if v is not None:
        return bool(v) if not isinstance(v, str) else v.lower() in _TRUE
    raw = os.environ.get(var, "").strip().lower()
    return raw in _TRUE if raw else default

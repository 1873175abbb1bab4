"""
backend.config.scheduling – behavioural pipeline config.

Env vars: SCHEDULING_CONFIG_FILE (JSON file read into SchedulingConfig),
INTENT_MODEL, TEMPLATE_MODEL, SELECTION_MODEL, ALTERNATIVES_MODEL, SEARCH_MODEL,
LLM_TIMEOUT.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from backend.core.exceptions import ConfigurationError
from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)

_MODEL_ENV = {
    "intent_model": "INTENT_MODEL",
    "template_model": "TEMPLATE_MODEL",
    "selection_model": "SELECTION_MODEL",
    "alternatives_model": "ALTERNATIVES_MODEL",
    "search_model": "SEARCH_MODEL",
}


def _read_file(path: str) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("SchedulingConfig: %s not found, using defaults", path)
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Invalid scheduling config file {path}: {exc}", cause=exc) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Scheduling config file {path} must hold a JSON object")
    return data


def load_scheduling_config(env: Optional[Mapping[str, str]] = None, **overrides: object) -> SchedulingConfig:
    """File values first, then env model overrides, then keyword overrides."""
    env = os.environ if env is None else env
    data: Dict[str, Any] = {}
    path = env.get("SCHEDULING_CONFIG_FILE")
    if path:
        data.update(_read_file(path))
    for attr, var in _MODEL_ENV.items():
        if env.get(var):
            data[attr] = env[var]
    if env.get("LLM_TIMEOUT"):
        data["llm_timeout_seconds"] = env["LLM_TIMEOUT"]
    data.update({k: v for k, v in overrides.items() if v is not None})
    return SchedulingConfig.from_dict(data)

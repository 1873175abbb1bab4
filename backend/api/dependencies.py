"""FastAPI dependency providers."""
from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.orchestrator.background import BackgroundTaskRegistry
from backend.orchestrator.orchestrator import SchedulingOrchestrator


def get_orchestrator(request: Request) -> SchedulingOrchestrator:
    """Access the pre-built orchestrator from app.state."""
    orch = getattr(request.app.state, "orchestrator", None)
    if orch is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Orchestrator not initialised. Check server startup logs.",
        )
    return orch


def get_registry(request: Request) -> BackgroundTaskRegistry:
    return get_orchestrator(request).registry

"""Scheduling router: stream one turn, poll background enrichment."""
from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.api.dependencies import get_orchestrator, get_registry
from backend.api.schemas.scheduling import ProcessingStateResponse, SchedulingRequestSchema
from backend.core.exceptions import CacheError
from backend.orchestrator.background import BackgroundTaskRegistry
from backend.orchestrator.orchestrator import SchedulingOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/scheduling", tags=["scheduling"])
limiter = Limiter(key_func=get_remote_address)

_STREAM_RATE_LIMIT = os.environ.get("CHAT_RATE_LIMIT", "30/minute")


@router.post("/stream")
@limiter.limit(_STREAM_RATE_LIMIT)
async def stream(
    request: Request,
    body: SchedulingRequestSchema,
    orchestrator: SchedulingOrchestrator = Depends(get_orchestrator),
):
    """Run one scheduling turn; the response is line-delimited JSON envelopes."""
    emitter, _ = orchestrator.start(body.to_request())
    return StreamingResponse(
        emitter.lines(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/enhancements/{processing_id}", response_model=ProcessingStateResponse)
async def get_enhancement(
    processing_id: str,
    registry: BackgroundTaskRegistry = Depends(get_registry),
):
    try:
        state = await registry.get_state(processing_id)
    except CacheError as exc:
        logger.error("Scheduling API: state lookup failed for %s: %s", processing_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.public_message)
    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Processing id not found")
    return ProcessingStateResponse(
        processing_id=processing_id,
        status=state.status,
        result=state.result,
        error=state.error,
    )

"""Scheduling assistant FastAPI application — entry point.

Start with:
    uvicorn backend.api.main:app --reload --host 0.0.0.0 --port 8000

LLM client is resolved from env: OPENAI_API_KEY, then GEMINI_API_KEY /
GOOGLE_API_KEY, else a no-op client with a friendly message. So no API key is
required at startup. The cache is Redis when REDIS_URL answers, otherwise the
in-process store.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from backend.core.exceptions import ProjectError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ──────────────────────────────────────────────────
    from backend.clients.llm.registry import default_registry
    from backend.config.scheduling import load_scheduling_config
    from backend.core.logger import configure
    from backend.infra.cache.factory import build_cache_store
    from backend.services.orchestrator_service import OrchestratorService

    configure()

    cache = await build_cache_store()
    llm_client = default_registry.build_from_env()
    config = load_scheduling_config()

    orchestrator = OrchestratorService.build(llm_client, cache, config=config)
    app.state.cache = cache
    app.state.llm_client = llm_client
    app.state.orchestrator = orchestrator
    logger.info("API: orchestrator ready (llm=%s)", llm_client.provider)

    yield

    # ── Shutdown ─────────────────────────────────────────────────
    await OrchestratorService.close(orchestrator)
    await cache.close()
    logger.info("API: background tasks cancelled, cache closed")


app = FastAPI(
    title="Scheduling Assistant API",
    version="1.0.0",
    description="Streams two-party meeting scheduling turns as line-delimited JSON.",
    lifespan=lifespan,
)

# Rate limiter — limit is configurable via CHAT_RATE_LIMIT env var (default 30/minute)
_chat_rate_limit = os.environ.get("CHAT_RATE_LIMIT", "30/minute")
limiter = Limiter(key_func=get_remote_address, default_limits=[_chat_rate_limit])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS — allow the web client dev server and any configured origin
_allowed_origins = os.environ.get(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Optional API key authentication ──────────────────────────────
# Set ADMIN_API_KEY env var to protect all /api/v1/* endpoints.
# Requests must then include the header:  X-Api-Key: <value>
# If ADMIN_API_KEY is not set the check is skipped (dev/open mode).
_ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY", "").strip() or None


@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    if _ADMIN_API_KEY and request.url.path.startswith("/api/v1"):
        provided = (
            request.headers.get("X-Api-Key")
            or request.headers.get("x-api-key")
        )
        if provided != _ADMIN_API_KEY:
            return JSONResponse(
                status_code=401,
                content={"detail": "Unauthorized — set X-Api-Key header"},
            )
    return await call_next(request)


@app.exception_handler(ProjectError)
async def project_error_handler(request: Request, exc: ProjectError):
    logger.error("API: %s on %s", exc.code, request.url.path, extra={"error": exc.to_dict()})
    return JSONResponse(status_code=exc.http_status, content=exc.to_public_dict())


# ── Routers ───────────────────────────────────────────────────────
from backend.api.routers import scheduling  # noqa: E402

app.include_router(scheduling.router, prefix="/api/v1")


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}

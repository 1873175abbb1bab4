"""Tests for the HTTP surface: NDJSON streaming and enhancement polling.

The app's lifespan is not run; each test puts its own orchestrator on
``app.state``.
"""
from __future__ import annotations

import asyncio
import json
import unittest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from backend.api.main import app
from backend.core.exceptions import CacheError
from backend.infra.cache import InMemoryCacheStore
from backend.orchestrator.background import processing_state_key
from backend.orchestrator.handlers.events_handler import NO_PREVIOUS_RESULTS
from backend.orchestrator.orchestrator import SchedulingOrchestrator
from backend.services.availability_service import AvailabilityService
from backend.services.venue_service import VenueService


def _run(coro):
    return asyncio.run(coro)


def _orchestrator(cache: InMemoryCacheStore, intent: str = "show_more_events") -> SchedulingOrchestrator:
    llm = MagicMock()
    llm.chat = AsyncMock(return_value=json.dumps({"message": "Let me check!", "intent": intent}))
    llm.function_call = AsyncMock(return_value=None)
    return SchedulingOrchestrator(
        llm, cache, availability=AvailabilityService(), venues=VenueService(None),
    )


def _body(**overrides) -> dict:
    body = {"user_message": "show me more", "user1_id": "u1", "user2_id": "u2", "user2_name": "Sam"}
    body.update(overrides)
    return body


class TestSchedulingApi(unittest.TestCase):
    def setUp(self) -> None:
        self.cache = InMemoryCacheStore(use_timers=False)
        app.state.orchestrator = _orchestrator(self.cache)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.state.orchestrator = None

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_stream_returns_ndjson_envelopes(self) -> None:
        response = self.client.post("/api/v1/scheduling/stream", json=_body())

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("application/x-ndjson"))
        envelopes = [json.loads(line) for line in response.text.splitlines() if line]
        self.assertEqual(
            envelopes,
            [
                {"type": "acknowledgment", "text": "Let me check!", "intent": "show_more_events"},
                {"type": "content", "text": NO_PREVIOUS_RESULTS},
            ],
        )

    def test_stream_failure_is_a_single_error_line(self) -> None:
        app.state.orchestrator = _orchestrator(self.cache, intent="confirm_scheduling")
        response = self.client.post("/api/v1/scheduling/stream", json=_body(user_message="lunch friday"))

        self.assertEqual(response.status_code, 200)
        envelopes = [json.loads(line) for line in response.text.splitlines() if line]
        self.assertEqual([e["type"] for e in envelopes], ["acknowledgment", "progress", "error"])
        self.assertEqual(envelopes[-1]["message"], "Failed to process request")

    def test_request_validation(self) -> None:
        bad_zone = self.client.post("/api/v1/scheduling/stream", json=_body(timezone="Mars/Olympus"))
        self.assertEqual(bad_zone.status_code, 422)
        naive = self.client.post(
            "/api/v1/scheduling/stream",
            json=_body(available_time_slots=[{"start": "2026-03-02T09:00:00", "end": "2026-03-02T10:00:00"}]),
        )
        self.assertEqual(naive.status_code, 422)
        empty = self.client.post("/api/v1/scheduling/stream", json=_body(user_message=""))
        self.assertEqual(empty.status_code, 422)

    def test_enhancement_found_and_missing(self) -> None:
        _run(self.cache.set(
            processing_state_key("proc_1_abcdefg"),
            {"status": "completed", "result": {"message": "3 events"}, "error": None},
            60,
        ))
        found = self.client.get("/api/v1/scheduling/enhancements/proc_1_abcdefg")
        self.assertEqual(found.status_code, 200)
        self.assertEqual(found.json(), {
            "processing_id": "proc_1_abcdefg",
            "status": "completed",
            "result": {"message": "3 events"},
            "error": None,
        })

        missing = self.client.get("/api/v1/scheduling/enhancements/proc_0_nothing")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["detail"], "Processing id not found")

    def test_enhancement_cache_failure(self) -> None:
        orchestrator = MagicMock()
        orchestrator.registry.get_state = AsyncMock(side_effect=CacheError("redis down"))
        app.state.orchestrator = orchestrator
        response = self.client.get("/api/v1/scheduling/enhancements/proc_1_abcdefg")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "Failed to process request")

    def test_not_initialised(self) -> None:
        app.state.orchestrator = None
        response = self.client.post("/api/v1/scheduling/stream", json=_body())
        self.assertEqual(response.status_code, 503)

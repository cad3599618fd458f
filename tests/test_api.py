"""
Integration tests for the FastAPI application.
Uses httpx.AsyncClient with the ASGI transport (no running server needed).
Fixtures are provided by tests/conftest.py.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from behavior_engine.api.app import create_app

KEYSTROKES = [
    {"type": "keydown", "data": {"key": "h", "code": "KeyH"}},
    {"type": "keyup", "data": {"key": "h", "code": "KeyH"}},
    {"type": "keydown", "data": {"key": "i", "code": "KeyI"}},
    {"type": "keyup", "data": {"key": "i", "code": "KeyI"}},
    {"type": "keydown", "data": {"key": "Backspace", "code": "Backspace"}},
]


class TestHealth:
    async def test_health_ok(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["actor_running"] is True
        assert body["session_id"].startswith("bse_")


class TestEventsEndpoint:
    async def test_ingest_keydown(self, client):
        r = await client.post("/events", json={"type": "keydown", "data": {"key": "a"}})
        assert r.status_code == 202
        assert r.json() == {"status": "accepted", "kind": "raw_keydown"}

    async def test_ingest_pointer_move(self, client):
        r = await client.post("/events", json={
            "type": "mousemove",
            "data": {"clientX": 10, "clientY": 20},
        })
        assert r.status_code == 202
        assert r.json()["kind"] == "raw_pointer_move"

    async def test_event_type_is_case_insensitive(self, client):
        r = await client.post("/events", json={"type": "BLUR"})
        assert r.status_code == 202
        assert r.json()["kind"] == "raw_focus_out"

    async def test_unknown_event_type_returns_422(self, client):
        r = await client.post("/events", json={"type": "MADE_UP_EVENT", "data": {}})
        assert r.status_code == 422

    async def test_missing_type_returns_422(self, client):
        r = await client.post("/events", json={"data": {"key": "a"}})
        assert r.status_code == 422

    async def test_batch_ingest_skips_unknown(self, client):
        r = await client.post("/events/batch", json=KEYSTROKES + [{"type": "nope"}])
        assert r.status_code == 202
        assert r.json() == {"accepted": 5, "total": 6}

    async def test_recording_off_drops_events(self, client):
        await client.put("/control/recording", json={"enabled": False})
        r = await client.post("/events", json={"type": "keydown", "data": {"key": "a"}})
        assert r.status_code == 202
        assert r.json()["status"] == "dropped"
        status = (await client.get("/control/status")).json()
        assert status["dropped_events"] == 1
        assert status["event_counts"]["keys_events"] == 0


class TestStateEndpoint:
    async def test_state_returns_valid_schema(self, client):
        r = await client.get("/state")
        assert r.status_code == 200
        body = r.json()
        assert body["trigger"] == "request"
        assert 0.0 <= body["load_score"] <= 100.0
        assert body["behavioral_state"] in {"overload", "flow", "neutral"}
        assert body["warnings"] == []
        assert body["counters"]["cumulative_keystrokes"] == 0

    async def test_fresh_state_reflects_ingested_keys(self, client):
        await client.post("/events/batch", json=KEYSTROKES)
        body = (await client.get("/state", params={"fresh": True})).json()
        assert body["counters"]["cumulative_keystrokes"] == 3
        assert body["counters"]["cumulative_corrections"] == 1
        assert body["counters"]["total_key_events"] == 5


class TestControlEndpoints:
    async def test_tag(self, client):
        r = await client.post("/control/tag", json={"category": "confused", "note": "lost"})
        assert r.status_code == 200
        assert r.json()["success"] is True
        assert r.json()["category"] == "confused"
        assert (await client.get("/control/status")).json()["tag_count"] == 1

    async def test_tag_requires_category(self, client):
        r = await client.post("/control/tag", json={"category": ""})
        assert r.status_code == 422

    async def test_clear_resets_counters(self, client):
        await client.post("/events/batch", json=KEYSTROKES)
        r = await client.post("/control/clear")
        assert r.status_code == 200
        body = r.json()
        assert body["trigger"] == "clear"
        assert body["counters"]["cumulative_keystrokes"] == 0

    async def test_recording_toggle(self, client):
        r = await client.put("/control/recording", json={"enabled": False})
        assert r.json() == {"is_recording": False}
        r = await client.put("/control/recording", json={"enabled": True})
        assert r.json() == {"is_recording": True}

    async def test_status_shape(self, client):
        body = (await client.get("/control/status")).json()
        for key in ("session_id", "is_recording", "event_counts", "history_limits",
                    "aggregate_counts", "truncations", "dropped_events"):
            assert key in body

    async def test_export(self, client):
        await client.post("/events/batch", json=KEYSTROKES)
        body = (await client.get("/control/export")).json()
        assert body["session_summary"]["cumulative_keystrokes"] == 3
        assert len(body["event_history"]["keys"]) == 3
        assert set(body["aggregates"]) == {"5s", "30s", "60s"}


class TestAggregatesEndpoint:
    @pytest.mark.parametrize("window", ["5s", "30s", "60s"])
    async def test_empty_windows(self, client, window):
        r = await client.get(f"/aggregates/{window}")
        assert r.status_code == 200
        assert r.json() == []

    async def test_unknown_window_returns_404(self, client):
        r = await client.get("/aggregates/15s")
        assert r.status_code == 404

    async def test_loops_empty(self, client):
        r = await client.get("/aggregates/loops")
        assert r.status_code == 200
        assert r.json() == []


class TestRecordsEndpoint:
    async def test_flush_then_query(self, client):
        session_id = (await client.get("/health")).json()["session_id"]
        await client.post("/events/batch", json=KEYSTROKES)
        r = await client.post("/control/flush")
        assert r.json() == {"status": "flushed", "buffered": 0}

        r = await client.get("/records", params={"kind": "raw_keydown", "limit": 1000})
        assert r.status_code == 200
        mine = [rec for rec in r.json() if rec["session_id"] == session_id]
        assert len(mine) == 3
        assert {rec["payload"]["key_value"] for rec in mine} == {"h", "i", "Backspace"}

    async def test_counts(self, client):
        await client.post("/events", json={"type": "click", "data": {"clientX": 1, "clientY": 1}})
        await client.post("/control/flush")
        counts = (await client.get("/records/counts")).json()
        assert counts["raw_pointer_click"] >= 1


class TestStateWebSocket:
    def test_sends_current_state_on_connect(self):
        with TestClient(create_app()) as c:
            with c.websocket_connect("/state/ws") as ws:
                first = ws.receive_json()
                assert first["trigger"] == "request"
                assert "load_score" in first

    def test_streams_published_vectors(self):
        with TestClient(create_app()) as c:
            with c.websocket_connect("/state/ws") as ws:
                ws.receive_json()
                c.post("/control/clear")
                assert ws.receive_json()["trigger"] == "clear"

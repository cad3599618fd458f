"""
Shared pytest fixtures and configuration.
"""

import os
import tempfile

# Point the data directory somewhere disposable before the engine is imported.
os.environ.setdefault("BSE_DATA_DIR", tempfile.mkdtemp(prefix="bse-test-"))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import behavior_engine.settings as settings_mod
from behavior_engine.api.app import create_app
from behavior_engine.clock import ManualClock
from behavior_engine.telemetry.aggregator import TelemetryAggregator


class MemorySink:
    """In-memory RecordSink; set ``fail = True`` to make every call raise."""

    def __init__(self):
        self.records = []
        self.flushes = 0
        self.closed = False
        self.fail = False

    def save_record(self, kind, payload):
        if self.fail:
            raise OSError("sink unavailable")
        self.records.append((kind, payload))

    def flush_buffer(self):
        if self.fail:
            raise OSError("sink unavailable")
        self.flushes += 1

    def close(self):
        self.closed = True

    def kinds(self):
        return [kind for kind, _ in self.records]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Every test starts from default heuristic settings in a throwaway file."""
    monkeypatch.setattr(settings_mod, "_FILE", tmp_path / "settings.json")
    monkeypatch.setattr(settings_mod, "_current", {})
    yield tmp_path / "settings.json"


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def sink():
    return MemorySink()


@pytest.fixture()
def engine(clock, sink):
    """Aggregator on a manual clock; nothing runs unless a test calls it."""
    return TelemetryAggregator(sink=sink, clock=clock, session_id="bse_test")


@pytest.fixture()
def press(engine, clock):
    """
    Feed key presses at the current clock reading.

    press("a")                   → keydown + keyup 80ms later
    press("Backspace", hold=None) → keydown only
    """
    def _press(key, hold=80, advance=0, **data):
        clock.advance(advance)
        code = data.pop("code", f"Key{key.upper()}" if len(key) == 1 else key)
        fields = {"key": key, "code": code, **data}
        engine.ingest({"type": "keydown", "timestamp": clock(), "data": fields})
        if hold is not None:
            engine.ingest({"type": "keyup", "timestamp": clock() + hold, "data": fields})
    return _press


@pytest.fixture()
def app():
    """Create a fresh app instance per test."""
    return create_app()


@pytest_asyncio.fixture()
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac

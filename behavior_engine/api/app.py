"""
FastAPI application — local behavioral signal API.
Runs on http://127.0.0.1:8766 by default.

Per-app state (record sink, aggregator, actor) lives on app.state so that each
call to create_app() produces a fully independent instance with no shared
module-level globals. This makes test isolation straightforward.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..config import config
from ..runtime.actor import EngineActor
from ..telemetry.aggregator import TelemetryAggregator
from ..telemetry.records import SqliteRecordSink

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"bse_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Lifespan: initialises and tears down all per-app state
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    session_id = new_session_id()
    app.state.sink = SqliteRecordSink(
        config.data_dir / config.records_db,
        session_id=session_id,
        buffer_size=config.sink_buffer_size,
    )
    app.state.aggregator = TelemetryAggregator(sink=app.state.sink, session_id=session_id)
    app.state.actor = EngineActor(app.state.aggregator)

    await app.state.actor.start()
    logger.info("Behavioral signal engine ready, session %s", session_id)

    yield

    await app.state.actor.stop()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Behavioral Signal Engine",
        description="Local-first behavioral load signal from keyboard and pointer telemetry",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import aggregates, control, events, records, settings, state

    app.include_router(events.router)
    app.include_router(state.router)
    app.include_router(control.router)
    app.include_router(aggregates.router)
    app.include_router(records.router)
    app.include_router(settings.router)

    @app.get("/health")
    def health(request: Request):
        actor = getattr(request.app.state, "actor", None)
        return {
            "status": "ok",
            "version": "0.1.0",
            "session_id": actor.aggregator.session_id if actor else None,
            "actor_running": actor.running if actor else False,
        }

    return app


app = create_app()

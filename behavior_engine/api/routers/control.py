"""
/control — session control commands: tag, clear, recording switch, status,
export and sink flush.
"""

from __future__ import annotations

import asyncio
from functools import partial

from fastapi import APIRouter, Depends, Request

from ...api.schemas import RecordingIn, RecordingOut, StateVectorOut, TagIn, TagOut

router = APIRouter(prefix="/control", tags=["control"])


def _get_actor(request: Request):
    return request.app.state.actor


def _get_sink(request: Request):
    return request.app.state.sink


@router.post("/tag", response_model=TagOut)
async def tag_state(body: TagIn, actor=Depends(_get_actor)):
    """Record a manual annotation; a debounced state publish follows."""
    record = await actor.tag(body.category, body.note)
    return TagOut(category=record.category, timestamp=record.timestamp)


@router.post("/clear", response_model=StateVectorOut)
async def clear_session(actor=Depends(_get_actor)):
    """Reset counters, histories and aggregates; returns the republished vector."""
    vector = await actor.call(actor.aggregator.clear_session)
    return vector.to_dict()


@router.put("/recording", response_model=RecordingOut)
async def set_recording(body: RecordingIn, actor=Depends(_get_actor)):
    enabled = await actor.call(actor.aggregator.set_recording, body.enabled)
    return RecordingOut(is_recording=enabled)


@router.get("/status")
async def get_status(actor=Depends(_get_actor)):
    """Ring sizes, truncation counts and the recording flag. Read-only."""
    return await actor.call(actor.aggregator.status)


@router.get("/export")
async def export_snapshot(actor=Depends(_get_actor)):
    return await actor.call(actor.aggregator.export_snapshot)


@router.post("/flush")
async def flush_records(sink=Depends(_get_sink)):
    """Write every buffered record and wait for the writer to finish."""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, partial(sink.flush_buffer, wait=True))
    return {"status": "flushed", "buffered": sink.buffered}

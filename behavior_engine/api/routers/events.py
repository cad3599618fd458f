"""
/events — ingest raw interaction events from the capture layer.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...api.schemas import BatchResult, EventAccepted, EventIn
from ...telemetry.normalizer import is_known_type

router = APIRouter(prefix="/events", tags=["events"])


def _get_actor(request: Request):
    """Dependency — resolved by the app lifespan state."""
    return request.app.state.actor


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=EventAccepted)
async def ingest_event(event: EventIn, actor=Depends(_get_actor)):
    """Accept a single raw event."""
    if not is_known_type(event.type):
        raise HTTPException(status_code=422, detail=f"Unrecognised event type: {event.type!r}")

    result = await actor.ingest(event.to_payload())
    if result is None:
        return EventAccepted(status="dropped", kind="none")
    return EventAccepted(kind=result.kind)


@router.post("/batch", status_code=status.HTTP_202_ACCEPTED, response_model=BatchResult)
async def ingest_batch(events: List[EventIn], actor=Depends(_get_actor)):
    """Accept a batch of events; unknown types are skipped and not counted."""
    accepted = await actor.ingest_many([e.to_payload() for e in events])
    return BatchResult(accepted=accepted, total=len(events))

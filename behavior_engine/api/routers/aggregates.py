"""
/aggregates — read the bounded aggregate and loop rings, newest first.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Request

router = APIRouter(prefix="/aggregates", tags=["aggregates"])


def _get_actor(request: Request):
    return request.app.state.actor


def _newest(ring, limit: int) -> list:
    return [asdict(item) for item in ring.newest_first(limit)]


@router.get("/loops")
async def list_loops(
    limit: int = Query(default=50, ge=1, le=1000),
    actor=Depends(_get_actor),
):
    return await actor.call(_newest, actor.aggregator.loops, limit)


@router.get("/{window}")
async def list_aggregates(
    window: str,
    limit: int = Query(default=50, ge=1, le=1000),
    actor=Depends(_get_actor),
):
    """Aggregates for one window size: 5s, 30s or 60s."""
    rings = actor.aggregator.windows.rings()
    if window not in rings:
        raise HTTPException(status_code=404, detail=f"Unknown window: {window!r}")
    return await actor.call(_newest, rings[window], limit)

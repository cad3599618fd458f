"""
/records — query records persisted by the sink.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import RecordOut

router = APIRouter(prefix="/records", tags=["records"])


def _get_sink(request: Request):
    return request.app.state.sink


@router.get("", response_model=List[RecordOut])
def query_records(
    kind: Optional[str] = Query(default=None, description="e.g. raw_keydown | aggregate_5s | state_vector"),
    since: Optional[float] = Query(default=None, description="Epoch ms lower bound"),
    until: Optional[float] = Query(default=None, description="Epoch ms upper bound"),
    limit: int = Query(default=200, ge=1, le=1000),
    sink=Depends(_get_sink),
):
    entries = sink.query(kind=kind, since=since, until=until, limit=limit)
    return [
        RecordOut(
            id=e.id,
            timestamp=e.timestamp,
            session_id=e.session_id,
            kind=e.kind,
            payload=e.payload(),
        )
        for e in entries
    ]


@router.get("/counts", response_model=Dict[str, int])
def record_counts(sink=Depends(_get_sink)):
    return sink.counts_by_kind()

"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ── Events ─────────────────────────────────────────────────────────────────

class EventIn(BaseModel):
    type: str = Field(..., description="DOM event type, e.g. keydown | mousemove | blur")
    timestamp: Optional[float] = Field(None, description="Epoch ms; defaults to engine clock")
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "data": self.data}
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload


class EventAccepted(BaseModel):
    status: str = "accepted"
    kind: str


class BatchResult(BaseModel):
    accepted: int
    total: int


# ── State ──────────────────────────────────────────────────────────────────

class SessionCountersOut(BaseModel):
    session_start_time: float
    last_activity_time: float
    cumulative_keystrokes: int
    cumulative_corrections: int
    cumulative_clicks: int
    total_key_events: int
    total_mouse_events: int
    periods_truncated: int
    last_break_time: Optional[float] = None


class StateVectorOut(BaseModel):
    state_vector_id: str
    timestamp: float
    trigger: str
    session_id: str
    session_duration: float
    is_recording: bool
    load_score: float = Field(..., ge=0.0, le=100.0)
    wpm: float
    correction_rate: float = Field(..., ge=0.0, le=1.0)
    typing_speed_delta: float
    warnings: List[str]
    cognitive_pressure: float = Field(..., ge=0.0, le=100.0)
    previous_state_similarity: float
    state_delta_magnitude: float
    time_to_realization_ms: int
    behavioral_state: str
    counters: SessionCountersOut


# ── Control ────────────────────────────────────────────────────────────────

class TagIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=64)
    note: str = Field("", max_length=4000)


class TagOut(BaseModel):
    success: bool = True
    category: str
    timestamp: float


class RecordingIn(BaseModel):
    enabled: bool


class RecordingOut(BaseModel):
    is_recording: bool


# ── Records ────────────────────────────────────────────────────────────────

class RecordOut(BaseModel):
    id: Optional[int]
    timestamp: float
    session_id: str
    kind: str
    payload: Dict[str, Any]

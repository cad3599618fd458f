"""
Session counters — cumulative state reset only by an explicit clear.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class SessionCounters:
    session_start_time: float
    last_activity_time: float
    cumulative_keystrokes: int = 0
    cumulative_corrections: int = 0
    cumulative_clicks: int = 0
    total_key_events: int = 0
    total_mouse_events: int = 0
    periods_truncated: int = 0
    last_break_time: Optional[float] = None   # activity resumed after an idle gap

    @classmethod
    def start(cls, now: float) -> "SessionCounters":
        return cls(session_start_time=now, last_activity_time=now)

    def duration(self, now: float) -> float:
        return max(now - self.session_start_time, 0.0)

    def correction_pressure(self) -> float:
        if self.cumulative_keystrokes == 0:
            return 0.0
        return self.cumulative_corrections / self.cumulative_keystrokes

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class RealtimeMetrics:
    """Externally visible quick stats, refreshed by the 1s and 5s jobs."""
    wpm: int = 0
    correction_rate: float = 0.0
    load_score: float = 0.0
    last_update: float = 0.0


@dataclass(frozen=True)
class TagRecord:
    timestamp: float
    session_id: str
    category: str
    note_length: int
    # context snapshot at tag time
    recent_key_events: int
    recent_corrections: int
    time_since_last_activity: float

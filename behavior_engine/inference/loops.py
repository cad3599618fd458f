"""
Loop Detector — finds repeated editing around the same cursor region.

The cursor is not observed directly; its 1-D position is simulated by
replaying key events (printable +1, Backspace / ArrowLeft -1 floored at 0,
ArrowRight +1). A point is part of a loop when at least two earlier points in
the preceding window sit within a small distance of it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Sequence

from ..telemetry.events import KeyEvent
from .stats import variance

LOOP_REPLAY_LIMIT = 200        # key events replayed into positions
LOOP_SEARCH_LIMIT = 100        # most recent positions scanned
LOOP_WINDOW_MS = 30_000        # look-back window per position
LOOP_POSITION_TOLERANCE = 3    # |Δposition| < tolerance counts as "same place"
MIN_LOOP_MATCHES = 2


@dataclass(frozen=True)
class CursorPoint:
    timestamp: float
    position: int
    is_correction: bool


@dataclass(frozen=True)
class LoopRecord:
    loop_id: str
    timestamp: float
    loop_type: str
    duration: float
    iterations: int
    correction_pressure: float
    exit_success: bool
    region_stability: float


def simulate_cursor(events: Sequence[KeyEvent], limit: int = LOOP_REPLAY_LIMIT) -> List[CursorPoint]:
    position = 0
    points: List[CursorPoint] = []
    for event in list(events)[-limit:]:
        if event.is_char:
            position += 1
        elif event.is_backspace:
            position = max(0, position - 1)
        elif event.is_navigation:
            if event.key_value == "ArrowLeft":
                position = max(0, position - 1)
            elif event.key_value == "ArrowRight":
                position += 1
        points.append(CursorPoint(event.timestamp, position, event.is_correction))
    return points


def detect_loops(
    points: Sequence[CursorPoint],
    now: float,
    window_ms: float = LOOP_WINDOW_MS,
    tolerance: int = LOOP_POSITION_TOLERANCE,
    min_matches: int = MIN_LOOP_MATCHES,
    limit: int = LOOP_SEARCH_LIMIT,
) -> List[LoopRecord]:
    search = list(points)[-limit:]
    loops: List[LoopRecord] = []
    stamp = int(now)

    for current in search:
        start = current.timestamp - window_ms
        matches = [
            p for p in search
            if start <= p.timestamp < current.timestamp
            and abs(p.position - current.position) < tolerance
        ]
        if len(matches) < min_matches:
            continue
        corrections = sum(1 for p in matches if p.is_correction)
        loops.append(LoopRecord(
            loop_id=f"loop_{stamp}_{uuid.uuid4().hex[:5]}",
            timestamp=now,
            loop_type="cursor_position_loop",
            duration=current.timestamp - matches[0].timestamp,
            iterations=len(matches),
            correction_pressure=corrections / len(matches),
            exit_success=exit_success(matches),
            region_stability=region_stability(matches),
        ))
    return loops


def exit_success(matches: Sequence[CursorPoint]) -> bool:
    """True when the last three matched positions are not all identical."""
    if len(matches) < 3:
        return False
    return len({p.position for p in matches[-3:]}) > 1


def region_stability(matches: Sequence[CursorPoint]) -> float:
    if len(matches) < 2:
        return 1.0
    return max(0.0, 1.0 - variance([p.position for p in matches]) / 100.0)

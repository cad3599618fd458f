"""
Tumbling-window aggregation — the 5s typing job, the 30s pause job and the
60s session job. Each job reads the History Store at a single clock reading
and appends one immutable aggregate to its own bounded ring, or does nothing
when the window holds too little data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..telemetry.history import HistoryStore, Ring
from ..telemetry.session import SessionCounters
from .patterns import detect_bursts, detect_pauses, recovery_after_pause
from .stats import (
    clamp,
    coefficient_of_variation,
    diffs,
    histogram_entropy,
    mean,
    std,
    variance,
)

logger = logging.getLogger(__name__)

CHARS_PER_WORD = 5
MAX_LATENCY_MS = 5000          # latencies at or above this are gaps, not typing
MIN_PAUSE_WINDOW_EVENTS = 3
ACTIVE_GAP_MS = 2000           # intervals below this count as active time
CONTINUITY_SCAN_LIMIT = 1000
VARIABILITY_SCAN_LIMIT = 50
MIN_VARIABILITY_EVENTS = 10
NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6


@dataclass(frozen=True)
class TypingAggregate:
    timestamp: float
    window_size: str
    key_event_count: int
    inter_key_latency_mean: float
    inter_key_latency_std: float
    inter_key_latency_entropy: float
    typing_speed_wpm: float
    typing_speed_delta: float          # relative change vs previous aggregate
    hold_time_mean: float
    hold_time_variance: float
    backspace_rate: float              # per second of window
    delete_rate: float
    undo_rate: float
    correction_ratio: float            # corrections / printable chars, in [0, 1]
    burst_count: int
    burst_duration_mean: float
    burst_intensity: float
    burst_correction_ratio: float
    click_rate: float
    mouse_velocity_mean: float


@dataclass(frozen=True)
class PauseAggregate:
    timestamp: float
    window_size: str
    key_event_count: int
    pause_count: int
    pause_mean_duration: float
    long_pause_count: int
    micro_pause_rate: float
    speed_after_pause: float
    correction_after_pause: float
    latency_after_pause: float
    cumulative_keystrokes: int
    cumulative_corrections: int
    correction_pressure: float


@dataclass(frozen=True)
class MemoryMetrics:
    key_events_count: int
    pointer_events_count: int
    focus_events_count: int
    scroll_events_count: int
    periods_truncated: int


@dataclass(frozen=True)
class SessionAggregate:
    timestamp: float
    window_size: str
    session_start_time: float
    session_duration: float
    time_since_last_break: float
    work_continuity_index: float
    night_hours_flag: bool
    event_intensity: float             # key events held / elapsed second
    correction_intensity: float        # cumulative corrections / elapsed second
    variability_index: float
    memory_metrics: MemoryMetrics


def _label(seconds: float) -> str:
    return f"{seconds:g}s"


def is_night_hour(now_ms: float) -> bool:
    # local wall-clock hour, no timezone normalisation
    hour = datetime.fromtimestamp(now_ms / 1000.0).hour
    return hour >= NIGHT_START_HOUR or hour <= NIGHT_END_HOUR


class TumblingWindows:
    """
    Owns the three aggregate rings and computes one aggregate per job call.

    Usage:
        windows = TumblingWindows()
        agg = windows.compute_typing(now, history)     # None when the window is empty
        latest = windows.typing.last()
    """

    def __init__(
        self,
        typing_window_s: float = 5.0,
        pause_window_s: float = 30.0,
        session_window_s: float = 60.0,
        typing_capacity: int = 720,
        pause_capacity: int = 120,
        session_capacity: int = 60,
    ):
        self.typing_window_s = typing_window_s
        self.pause_window_s = pause_window_s
        self.session_window_s = session_window_s
        self.typing: Ring[TypingAggregate] = Ring(typing_capacity, name="aggregates_5s")
        self.pauses: Ring[PauseAggregate] = Ring(pause_capacity, name="aggregates_30s")
        self.sessions: Ring[SessionAggregate] = Ring(session_capacity, name="aggregates_60s")

    def rings(self) -> dict[str, Ring]:
        return {
            _label(self.typing_window_s): self.typing,
            _label(self.pause_window_s): self.pauses,
            _label(self.session_window_s): self.sessions,
        }

    def clear(self) -> None:
        for ring in self.rings().values():
            ring.clear()

    # ------------------------------------------------------------------
    # 5s: typing
    # ------------------------------------------------------------------

    def compute_typing(self, now: float, history: HistoryStore) -> Optional[TypingAggregate]:
        window_ms = self.typing_window_s * 1000.0
        keys = history.keys.since(now - window_ms)
        if not keys:
            logger.debug("Typing window empty, skipping")
            return None
        pointer = history.pointer.since(now - window_ms)

        latencies = [d for d in diffs([e.timestamp for e in keys]) if 0 < d < MAX_LATENCY_MS]
        holds = [e.hold_time for e in keys if e.hold_time is not None and e.hold_time > 0]
        chars = sum(1 for e in keys if e.is_char)
        corrections = sum(1 for e in keys if e.is_correction)

        seconds = self.typing_window_s
        wpm = (chars / CHARS_PER_WORD) / (seconds / 60.0)

        previous = self.typing.last()
        prev_wpm = previous.typing_speed_wpm if previous else 0.0
        delta = (wpm - prev_wpm) / prev_wpm if prev_wpm > 0 else 0.0

        bursts = detect_bursts(keys)
        velocities = [e.velocity.speed for e in pointer if e.velocity is not None]

        aggregate = TypingAggregate(
            timestamp=now,
            window_size=_label(seconds),
            key_event_count=len(keys),
            inter_key_latency_mean=mean(latencies),
            inter_key_latency_std=std(latencies),
            inter_key_latency_entropy=histogram_entropy(latencies),
            typing_speed_wpm=wpm,
            typing_speed_delta=delta,
            hold_time_mean=mean(holds),
            hold_time_variance=variance(holds),
            backspace_rate=sum(1 for e in keys if e.is_backspace) / seconds,
            delete_rate=sum(1 for e in keys if e.is_delete) / seconds,
            undo_rate=sum(1 for e in keys if e.is_undo) / seconds,
            correction_ratio=clamp(corrections / chars, 0.0, 1.0) if chars else 0.0,
            burst_count=bursts.count,
            burst_duration_mean=bursts.mean_duration,
            burst_intensity=bursts.intensity,
            burst_correction_ratio=bursts.correction_ratio,
            click_rate=sum(1 for e in pointer if e.event_type == "click") / seconds,
            mouse_velocity_mean=mean(velocities),
        )
        self.typing.append(aggregate)
        return aggregate

    # ------------------------------------------------------------------
    # 30s: pauses and recovery
    # ------------------------------------------------------------------

    def compute_pauses(
        self, now: float, history: HistoryStore, counters: SessionCounters
    ) -> Optional[PauseAggregate]:
        keys = history.keys.since(now - self.pause_window_s * 1000.0)
        if len(keys) < MIN_PAUSE_WINDOW_EVENTS:
            logger.debug("Pause window has %d key events, skipping", len(keys))
            return None

        pauses = detect_pauses(keys)
        recovery = recovery_after_pause(keys)
        aggregate = PauseAggregate(
            timestamp=now,
            window_size=_label(self.pause_window_s),
            key_event_count=len(keys),
            pause_count=pauses.count,
            pause_mean_duration=pauses.mean_duration,
            long_pause_count=pauses.long_count,
            micro_pause_rate=pauses.micro_rate,
            speed_after_pause=recovery.speed_after_pause,
            correction_after_pause=recovery.correction_after_pause,
            latency_after_pause=recovery.latency_after_pause,
            cumulative_keystrokes=counters.cumulative_keystrokes,
            cumulative_corrections=counters.cumulative_corrections,
            correction_pressure=counters.correction_pressure(),
        )
        self.pauses.append(aggregate)
        return aggregate

    # ------------------------------------------------------------------
    # 60s: session shape
    # ------------------------------------------------------------------

    def compute_session(
        self, now: float, history: HistoryStore, counters: SessionCounters
    ) -> SessionAggregate:
        duration = counters.duration(now)
        elapsed_s = duration / 1000.0

        active = sum(
            d for d in diffs([e.timestamp for e in history.keys.recent(CONTINUITY_SCAN_LIMIT)])
            if 0 <= d < ACTIVE_GAP_MS
        )
        continuity = clamp(active / duration, 0.0, 1.0) if duration > 0 else 0.0

        recent = history.keys.recent(VARIABILITY_SCAN_LIMIT)
        if len(recent) < MIN_VARIABILITY_EVENTS:
            variability = 0.0
        else:
            variability = coefficient_of_variation(diffs([e.timestamp for e in recent]))

        since_break = counters.last_break_time or counters.session_start_time
        sizes = history.sizes()

        aggregate = SessionAggregate(
            timestamp=now,
            window_size=_label(self.session_window_s),
            session_start_time=counters.session_start_time,
            session_duration=duration,
            time_since_last_break=max(now - since_break, 0.0),
            work_continuity_index=continuity,
            night_hours_flag=is_night_hour(now),
            event_intensity=len(history.keys) / elapsed_s if elapsed_s > 0 else 0.0,
            correction_intensity=(
                counters.cumulative_corrections / elapsed_s if elapsed_s > 0 else 0.0
            ),
            variability_index=variability,
            memory_metrics=MemoryMetrics(
                key_events_count=sizes["keys"],
                pointer_events_count=sizes["pointer"],
                focus_events_count=sizes["focus"],
                scroll_events_count=sizes["scroll"],
                periods_truncated=counters.periods_truncated,
            ),
        )
        self.sessions.append(aggregate)
        return aggregate

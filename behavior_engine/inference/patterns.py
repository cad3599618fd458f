"""
Burst and pause detectors over key event timelines.

Thresholds are module-level so they can be tuned in one place; every detector
also accepts them as keyword overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from ..telemetry.events import KeyEvent
from .stats import mean

# Bursts
BURST_GAP_MS = 200            # gap that closes a burst
MIN_BURST_LENGTH = 3          # events for a burst to count
BURST_SCAN_LIMIT = 100        # most recent events considered

# Pauses
PAUSE_GAP_MS = 1000
LONG_PAUSE_MS = 5000
MICRO_PAUSE_MIN_MS = 50
MICRO_PAUSE_MAX_MS = 200
PAUSE_SCAN_LIMIT = 50

# Recovery after a pause
RECOVERY_GAP_MS = 2000
RECOVERY_SCAN_LIMIT = 30
RECOVERY_SPEED_SPAN = 3
RECOVERY_CORRECTION_SPAN = 5


@dataclass(frozen=True)
class BurstStats:
    count: int = 0
    mean_duration: float = 0.0
    intensity: float = 0.0            # mean events per burst
    correction_ratio: float = 0.0     # corrections / all burst events


@dataclass(frozen=True)
class PauseStats:
    count: int = 0
    mean_duration: float = 0.0
    long_count: int = 0
    micro_rate: float = 0.0           # micro gaps / events considered


@dataclass(frozen=True)
class RecoveryStats:
    speed_after_pause: float = 0.0        # events / s right after a pause
    correction_after_pause: float = 0.0   # correction fraction right after a pause
    latency_after_pause: float = 0.0      # first latency after a pause, ms


def detect_bursts(
    events: Sequence[KeyEvent],
    gap_ms: float = BURST_GAP_MS,
    min_length: int = MIN_BURST_LENGTH,
    limit: int = BURST_SCAN_LIMIT,
) -> BurstStats:
    bursts: List[List[KeyEvent]] = []
    current: List[KeyEvent] = []

    for event in list(events)[-limit:]:
        if current and event.timestamp - current[-1].timestamp >= gap_ms:
            if len(current) >= min_length:
                bursts.append(current)
            current = []
        current.append(event)
    if len(current) >= min_length:
        bursts.append(current)

    if not bursts:
        return BurstStats()

    total_events = sum(len(b) for b in bursts)
    corrections = sum(1 for b in bursts for e in b if e.is_correction)
    return BurstStats(
        count=len(bursts),
        mean_duration=mean([b[-1].timestamp - b[0].timestamp for b in bursts]),
        intensity=total_events / len(bursts),
        correction_ratio=corrections / total_events,
    )


def detect_pauses(
    events: Sequence[KeyEvent],
    gap_ms: float = PAUSE_GAP_MS,
    long_ms: float = LONG_PAUSE_MS,
    micro_range: tuple = (MICRO_PAUSE_MIN_MS, MICRO_PAUSE_MAX_MS),
    limit: int = PAUSE_SCAN_LIMIT,
) -> PauseStats:
    considered = list(events)[-limit:]
    pauses: List[float] = []
    micro = 0
    lo, hi = micro_range

    for i in range(1, len(considered)):
        gap = considered[i].timestamp - considered[i - 1].timestamp
        if gap > gap_ms:
            pauses.append(gap)
        elif lo < gap < hi:
            micro += 1

    return PauseStats(
        count=len(pauses),
        mean_duration=mean(pauses),
        long_count=sum(1 for p in pauses if p > long_ms),
        micro_rate=micro / (len(considered) or 1),
    )


def recovery_after_pause(
    events: Sequence[KeyEvent],
    gap_ms: float = RECOVERY_GAP_MS,
    limit: int = RECOVERY_SCAN_LIMIT,
) -> RecoveryStats:
    """Speed, correction and latency in the stretch immediately after each pause."""
    window = list(events)[-limit:]
    n = len(window)
    speeds: List[float] = []
    corrections = 0
    correction_events = 0
    latencies: List[float] = []

    for i in range(1, n):
        if window[i].timestamp - window[i - 1].timestamp < gap_ms:
            continue

        if i + RECOVERY_SPEED_SPAN < n:
            span = window[i:i + RECOVERY_SPEED_SPAN]
            duration = span[-1].timestamp - span[0].timestamp
            speeds.append(len(span) / duration * 1000 if duration > 0 else 0.0)

        if i + RECOVERY_CORRECTION_SPAN < n:
            span = window[i:i + RECOVERY_CORRECTION_SPAN]
            corrections += sum(1 for e in span if e.is_correction)
            correction_events += len(span)

        if i + 1 < n:
            latencies.append(window[i + 1].timestamp - window[i].timestamp)

    return RecoveryStats(
        speed_after_pause=mean(speeds),
        correction_after_pause=corrections / correction_events if correction_events else 0.0,
        latency_after_pause=mean(latencies),
    )

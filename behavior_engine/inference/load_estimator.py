"""
Load Heuristic Scorer — produces a bounded load score in [0, 100] from the
latest 5s and 30s aggregates, plus categorical warning signals.

Score (each term clamped before summation, total clamped to [0, 100]):
  correction term   correction_ratio * correction_weight
  speed term        flat penalty when wpm < slow_typing_wpm
  variability term  inter_key_latency_std / latency_std_divisor, capped
  pause term        flat penalty when the 30s pause_count > pause_count_threshold

Weights and thresholds come from settings.py so they can be retuned at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Sequence

from ..settings import get_settings
from ..telemetry.events import KeyEvent
from .loops import detect_loops, simulate_cursor
from .stats import clamp, coefficient_of_variation, diffs, mean
from .windows import PauseAggregate, TypingAggregate

PRESSURE_SCAN_LIMIT = 100
MIN_PRESSURE_EVENTS = 20
PRESSURE_CORRECTIONS = 5
PRESSURE_CORRECTION_POINTS = 30.0
PRESSURE_CV_WEIGHT = 20.0
PRESSURE_CV_CAP = 40.0
PRESSURE_LOOP_POINTS = 10.0


class LoadWarning(str, Enum):
    HIGH_CORRECTION_RATE = "high_correction_rate"
    VERY_SLOW_TYPING = "very_slow_typing"
    HIGH_VARIABILITY = "high_variability"
    FREQUENT_PAUSES = "frequent_pauses"


@dataclass(frozen=True)
class LoadEstimate:
    score: float              # 0 (no load) → 100 (max load)
    correction: float         # component breakdown
    speed: float
    variability: float
    pauses: float


class LoadEstimator:
    """Stateless scorer — call `estimate` with the freshest aggregates."""

    def __init__(self, weights: Optional[Dict[str, Any]] = None):
        self._weights = weights

    @property
    def weights(self) -> Dict[str, Any]:
        return self._weights if self._weights is not None else get_settings()

    def estimate(
        self,
        typing: Optional[TypingAggregate],
        pauses: Optional[PauseAggregate],
    ) -> LoadEstimate:
        if typing is None:
            return LoadEstimate(score=0.0, correction=0.0, speed=0.0, variability=0.0, pauses=0.0)

        w = self.weights
        correction = clamp(
            typing.correction_ratio * w["correction_weight"], 0.0, w["correction_weight"]
        )
        speed = w["slow_typing_penalty"] if typing.typing_speed_wpm < w["slow_typing_wpm"] else 0.0
        variability = clamp(
            typing.inter_key_latency_std / w["latency_std_divisor"], 0.0, w["latency_std_cap"]
        )
        pause = (
            w["pause_penalty"]
            if pauses is not None and pauses.pause_count > w["pause_count_threshold"]
            else 0.0
        )
        score = clamp(correction + speed + variability + pause, 0.0, 100.0)
        return LoadEstimate(
            score=round(score, 4),
            correction=round(correction, 4),
            speed=speed,
            variability=round(variability, 4),
            pauses=pause,
        )

    def warnings(
        self,
        typing: Optional[TypingAggregate],
        pauses: Optional[PauseAggregate],
    ) -> FrozenSet[LoadWarning]:
        w = self.weights
        found = set()
        if typing is not None:
            if typing.correction_ratio > w["warn_correction_ratio"]:
                found.add(LoadWarning.HIGH_CORRECTION_RATE)
            if typing.typing_speed_wpm < w["warn_slow_wpm"]:
                found.add(LoadWarning.VERY_SLOW_TYPING)
            if typing.inter_key_latency_std > w["warn_latency_std"]:
                found.add(LoadWarning.HIGH_VARIABILITY)
        if pauses is not None and pauses.pause_count > w["warn_pause_count"]:
            found.add(LoadWarning.FREQUENT_PAUSES)
        return frozenset(found)


def cognitive_pressure(events: Sequence[KeyEvent], now: float) -> float:
    """
    Secondary pressure signal on its own 0-100 scale: correction density,
    timing irregularity and repeated-region loops over the last 100 key events.
    """
    recent = list(events)[-PRESSURE_SCAN_LIMIT:]
    if len(recent) < MIN_PRESSURE_EVENTS:
        return 0.0

    pressure = 0.0
    if sum(1 for e in recent if e.is_correction) >= PRESSURE_CORRECTIONS:
        pressure += PRESSURE_CORRECTION_POINTS

    cv = coefficient_of_variation(diffs([e.timestamp for e in recent]))
    pressure += min(cv * PRESSURE_CV_WEIGHT, PRESSURE_CV_CAP)

    loops = detect_loops(simulate_cursor(recent), now)
    pressure += len(loops) * PRESSURE_LOOP_POINTS
    return min(pressure, 100.0)


def time_to_realization(load_score: float) -> int:
    """Rough lead time (ms) before the user is likely to notice their own strain."""
    if load_score > 70:
        return 5_000
    if load_score > 40:
        return 15_000
    return 30_000


_COMPARED = ("typing_speed_wpm", "correction_ratio", "inter_key_latency_mean")


def state_similarity(current: Optional[TypingAggregate], previous: Optional[TypingAggregate]) -> float:
    if current is None or previous is None:
        return 0.0
    total = 0.0
    for name in _COMPARED:
        a, b = getattr(current, name), getattr(previous, name)
        if a and b:
            top = max(a, b)
            if top > 0:
                total += 1 - abs(a - b) / top
    return total / len(_COMPARED)


def state_delta(current: Optional[TypingAggregate], previous: Optional[TypingAggregate]) -> float:
    if current is None or previous is None:
        return 0.0
    return mean([abs(getattr(current, n) - getattr(previous, n)) for n in _COMPARED])

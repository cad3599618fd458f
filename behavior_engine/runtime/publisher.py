"""
State Vector Publisher — fans each emitted snapshot out to subscribers.

Subscribers are either plain callbacks or bounded asyncio queues (one per
WebSocket client). Delivery is at-most-once and best-effort: a full queue
drops its oldest snapshot, and a failing callback is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from ..inference.context_classifier import BehavioralState
from ..inference.load_estimator import LoadWarning

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 16


@dataclass(frozen=True)
class StateVector:
    state_vector_id: str
    timestamp: float
    trigger: str
    session_id: str
    session_duration: float
    is_recording: bool
    load_score: float
    wpm: float
    correction_rate: float
    typing_speed_delta: float
    warnings: FrozenSet[LoadWarning]
    cognitive_pressure: float
    previous_state_similarity: float
    state_delta_magnitude: float
    time_to_realization_ms: int
    behavioral_state: BehavioralState
    counters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["warnings"] = sorted(w.value for w in self.warnings)
        out["behavioral_state"] = self.behavioral_state.value
        return out


class StatePublisher:

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = queue_size
        self._queues: Set[asyncio.Queue] = set()
        self._listeners: List[Callable[[StateVector], None]] = []
        self.latest: Optional[StateVector] = None
        self.emitted = 0

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def register_listener(self, fn: Callable[[StateVector], None]) -> None:
        """Register a callback(vector) called on every emission."""
        self._listeners.append(fn)

    def remove_listener(self, fn: Callable[[StateVector], None]) -> None:
        if fn in self._listeners:
            self._listeners.remove(fn)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues) + len(self._listeners)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self, vector: StateVector) -> None:
        self.latest = vector
        self.emitted += 1

        for queue in list(self._queues):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(vector)

        for listener in list(self._listeners):
            try:
                listener(vector)
            except Exception:
                logger.warning("State listener %r failed", listener, exc_info=True)

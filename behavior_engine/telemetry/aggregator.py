"""
Telemetry Aggregator — the single owner of engine state.

Holds the History Store, session counters, aggregate rings, loop and tag rings,
and runs every job against them: ingestion, the 1s/5s/30s/60s jobs, state
vector publication and the control commands. It is a plain synchronous object;
the EngineActor serializes every call into it.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..clock import Clock, system_clock
from ..config import Config, config
from ..inference.context_classifier import ContextClassifier
from ..inference.load_estimator import (
    PRESSURE_SCAN_LIMIT,
    LoadEstimator,
    cognitive_pressure,
    state_delta,
    state_similarity,
    time_to_realization,
)
from ..inference.loops import LoopRecord, detect_loops, simulate_cursor
from ..inference.windows import (
    PauseAggregate,
    SessionAggregate,
    TumblingWindows,
    TypingAggregate,
)
from ..runtime.publisher import StatePublisher, StateVector
from .history import HistoryStore, Ring
from .normalizer import EventNormalizer, NormalizedEvent
from .records import RecordSink
from .session import RealtimeMetrics, SessionCounters, TagRecord

logger = logging.getLogger(__name__)

MIN_LOOP_EVENTS = 10


class TelemetryAggregator:
    """
    Usage:
        agg = TelemetryAggregator(sink=sink, clock=clock, session_id="bse_...")
        agg.ingest({"type": "keydown", "data": {"key": "a"}})
        agg.run_typing_window()
        vector = agg.publish("request")
    """

    def __init__(
        self,
        sink: Optional[RecordSink] = None,
        clock: Clock = system_clock,
        session_id: str = "local",
        cfg: Config = config,
        estimator: Optional[LoadEstimator] = None,
        classifier: Optional[ContextClassifier] = None,
        publisher: Optional[StatePublisher] = None,
    ):
        self._sink = sink
        self._clock = clock
        self._cfg = cfg
        self.session_id = session_id
        self._estimator = estimator or LoadEstimator()
        self._classifier = classifier or ContextClassifier()
        self.publisher = publisher or StatePublisher()

        now = clock()
        self.counters = SessionCounters.start(now)
        self.history = HistoryStore(cfg.history_capacities(), slack=cfg.trim_slack)
        self.normalizer = EventNormalizer(
            self.history,
            self.counters,
            clock,
            forward=self._save,
            keyup_match_depth=cfg.keyup_match_depth,
            break_threshold_ms=cfg.break_threshold_ms,
        )
        self.windows = TumblingWindows(
            typing_window_s=cfg.typing_window_s,
            pause_window_s=cfg.pause_window_s,
            session_window_s=cfg.session_window_s,
            typing_capacity=cfg.typing_ring_capacity,
            pause_capacity=cfg.pause_ring_capacity,
            session_capacity=cfg.session_ring_capacity,
        )
        self.loops: Ring[LoopRecord] = Ring(cfg.loop_ring_capacity, name="loops")
        self.tags: Ring[TagRecord] = Ring(cfg.tag_ring_capacity, name="tags")
        self.realtime = RealtimeMetrics(last_update=now)
        self.is_recording = True
        self.dropped_events = 0
        self.last_publish: Optional[float] = None
        self._vector_seq = 0

    # ------------------------------------------------------------------
    # Event ingestion
    # ------------------------------------------------------------------

    def ingest(self, payload: Dict[str, Any]) -> Optional[NormalizedEvent]:
        if not self.is_recording:
            self.dropped_events += 1
            logger.debug("Recording paused, dropping %r event", payload.get("type"))
            return None
        return self.normalizer.normalize(payload)

    def ingest_many(self, payloads: Iterable[Dict[str, Any]]) -> Tuple[int, bool]:
        """Ingest a batch. Returns (accepted count, whether any event wakes the publisher)."""
        accepted = 0
        wakes = False
        for payload in payloads:
            result = self.ingest(payload)
            if result is not None:
                accepted += 1
                wakes = wakes or result.wakes_publisher
        return accepted, wakes

    # ------------------------------------------------------------------
    # Scheduled jobs
    # ------------------------------------------------------------------

    def refresh_realtime(self, now: Optional[float] = None) -> RealtimeMetrics:
        """1s job: refresh the quick stats from the latest 5s aggregate."""
        now = self._clock() if now is None else now
        typing = self.windows.typing.last()
        estimate = self._estimator.estimate(typing, self.windows.pauses.last())
        self.realtime.wpm = round(typing.typing_speed_wpm) if typing else 0
        self.realtime.correction_rate = typing.correction_ratio if typing else 0.0
        self.realtime.load_score = estimate.score
        self.realtime.last_update = now
        return self.realtime

    def run_typing_window(self) -> Optional[TypingAggregate]:
        now = self._clock()
        aggregate = self.windows.compute_typing(now, self.history)
        if aggregate is None:
            return None
        self._save("aggregate_5s", asdict(aggregate))
        self.refresh_realtime(now)
        self.publish("tick_5s", now)
        return aggregate

    def run_pause_window(self) -> Optional[PauseAggregate]:
        now = self._clock()
        aggregate = self.windows.compute_pauses(now, self.history, self.counters)
        if aggregate is not None:
            self._save("aggregate_30s", asdict(aggregate))
        return aggregate

    def run_session_window(self) -> SessionAggregate:
        """60s job: aggregate → loop detect → publish → sweep, at one clock reading."""
        now = self._clock()
        aggregate = self.windows.compute_session(now, self.history, self.counters)
        self._save("aggregate_60s", asdict(aggregate))

        self.detect_loops(now)

        vector = self.publish("tick_60s", now)
        self._save("state_vector", vector.to_dict())

        trimmed = self.history.sweep(now, self._cfg.retention_ms)
        if trimmed:
            self.counters.periods_truncated += trimmed
            logger.info("Sweep trimmed %d history rings", trimmed)
        return aggregate

    def detect_loops(self, now: float) -> List[LoopRecord]:
        keys = self.history.keys.since(now - self._cfg.session_window_s * 1000.0)
        if len(keys) < MIN_LOOP_EVENTS:
            logger.debug("Only %d key events in the last minute, skipping loop scan", len(keys))
            return []
        loops = detect_loops(simulate_cursor(keys), now)
        for loop in loops:
            self.loops.append(loop)
            self._save("cognitive_loop", asdict(loop))
        return loops

    # ------------------------------------------------------------------
    # State vector
    # ------------------------------------------------------------------

    def build_state_vector(self, trigger: str, now: Optional[float] = None) -> StateVector:
        now = self._clock() if now is None else now
        latest = self.windows.typing.recent(2)
        typing = latest[-1] if latest else None
        previous = latest[0] if len(latest) == 2 else None
        pauses = self.windows.pauses.last()

        estimate = self._estimator.estimate(typing, pauses)
        similarity = state_similarity(typing, previous)
        wpm = typing.typing_speed_wpm if typing else 0.0

        self._vector_seq += 1
        return StateVector(
            state_vector_id=f"state_{int(now)}_{self._vector_seq}",
            timestamp=now,
            trigger=trigger,
            session_id=self.session_id,
            session_duration=self.counters.duration(now),
            is_recording=self.is_recording,
            load_score=estimate.score,
            wpm=round(wpm, 2),
            correction_rate=typing.correction_ratio if typing else 0.0,
            typing_speed_delta=typing.typing_speed_delta if typing else 0.0,
            warnings=self._estimator.warnings(typing, pauses),
            cognitive_pressure=cognitive_pressure(
                self.history.keys.recent(PRESSURE_SCAN_LIMIT), now
            ),
            previous_state_similarity=round(similarity, 4),
            state_delta_magnitude=round(state_delta(typing, previous), 4),
            time_to_realization_ms=time_to_realization(estimate.score),
            behavioral_state=self._classifier.classify(estimate.score, wpm, similarity),
            counters=self.counters.as_dict(),
        )

    def publish(self, trigger: str, now: Optional[float] = None) -> StateVector:
        vector = self.build_state_vector(trigger, now)
        self.publisher.emit(vector)
        self.last_publish = vector.timestamp
        return vector

    # ------------------------------------------------------------------
    # Control commands
    # ------------------------------------------------------------------

    def tag(self, category: str, note: str = "") -> TagRecord:
        now = self._clock()
        keys = self.history.keys.items()
        record = TagRecord(
            timestamp=now,
            session_id=self.session_id,
            category=category,
            note_length=len(note),
            recent_key_events=len(keys),
            recent_corrections=sum(1 for e in keys if e.is_correction),
            time_since_last_activity=max(now - self.counters.last_activity_time, 0.0),
        )
        self.tags.append(record)
        self._save("user_tag", asdict(record))
        return record

    def clear_session(self) -> StateVector:
        """Reset counters, every ring and the aggregate history, then republish."""
        now = self._clock()
        self.counters = SessionCounters.start(now)
        self.normalizer.reset(self.counters)
        self.history.clear()
        self.windows.clear()
        self.loops.clear()
        self.tags.clear()
        self.realtime = RealtimeMetrics(last_update=now)
        self.dropped_events = 0
        logger.info("Session %s cleared", self.session_id)
        return self.publish("clear", now)

    def set_recording(self, enabled: bool) -> bool:
        self.is_recording = bool(enabled)
        logger.info("Recording %s", "resumed" if self.is_recording else "paused")
        return self.is_recording

    def status(self) -> Dict[str, Any]:
        now = self._clock()
        aggregate_rings = self.windows.rings()
        truncations = dict(self.history.truncations())
        truncations.update({f"aggregates_{k}": r.truncations for k, r in aggregate_rings.items()})
        return {
            "session_id": self.session_id,
            "session_duration": self.counters.duration(now),
            "is_recording": self.is_recording,
            "event_counts": {
                **{f"{k}_events": v for k, v in self.history.sizes().items()},
                "total_key_events": self.counters.total_key_events,
                "total_mouse_events": self.counters.total_mouse_events,
            },
            "history_limits": self.history.capacities(),
            "aggregate_counts": {k: len(r) for k, r in aggregate_rings.items()},
            "loop_count": len(self.loops),
            "tag_count": len(self.tags),
            "truncations": truncations,
            "periods_truncated": self.counters.periods_truncated,
            "dropped_events": self.dropped_events,
            "last_publish": self.last_publish,
            "subscribers": self.publisher.subscriber_count,
        }

    def export_snapshot(self) -> Dict[str, Any]:
        """Full current state for serialization: counters, aggregate rings, raw histories."""
        now = self._clock()
        latest = self.publisher.latest
        return {
            "export_timestamp": now,
            "session_id": self.session_id,
            "session_summary": {
                **self.counters.as_dict(),
                "duration": self.counters.duration(now),
            },
            "realtime": asdict(self.realtime),
            "aggregates": {
                label: [asdict(a) for a in ring]
                for label, ring in self.windows.rings().items()
            },
            "loops": [asdict(loop) for loop in self.loops],
            "tags": [asdict(tag) for tag in self.tags],
            "event_history": {
                name: [asdict(r) for r in self.history.ring(name)]
                for name in HistoryStore.CATEGORIES
            },
            "latest_state": latest.to_dict() if latest else None,
        }

    # ------------------------------------------------------------------
    # Persistence boundary
    # ------------------------------------------------------------------

    def flush(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink.flush_buffer()
        except Exception:
            logger.warning("Record sink flush failed", exc_info=True)

    def shutdown(self) -> None:
        """Synchronously flush everything still buffered."""
        if self._sink is None:
            return
        close = getattr(self._sink, "close", None)
        try:
            if close is not None:
                close()
            else:
                self._sink.flush_buffer()
        except Exception:
            logger.warning("Record sink final flush failed", exc_info=True)

    def _save(self, kind: str, payload: Dict[str, Any]) -> None:
        if self._sink is None:
            return
        try:
            self._sink.save_record(kind, payload)
        except Exception:
            logger.warning("Record sink rejected %s record", kind, exc_info=True)

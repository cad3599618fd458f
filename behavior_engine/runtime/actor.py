"""
Engine Actor — the single coordination point for engine state.

Every mutation of the TelemetryAggregator goes through one asyncio inbox with
one consumer task: periodic timers post job messages, API handlers ``await
call(...)`` and get the result back through the same queue. No job ever sees
a half-applied ingestion.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..config import Config, config
from ..telemetry.aggregator import TelemetryAggregator
from ..telemetry.normalizer import NormalizedEvent
from ..telemetry.session import TagRecord
from .timers import DebounceTimer, PeriodicTimer

logger = logging.getLogger(__name__)

_STOP = object()

_Message = Tuple[Callable[..., Any], Tuple[Any, ...], Optional[asyncio.Future]]


class EngineActor:
    """
    Usage:
        actor = EngineActor(aggregator)
        await actor.start()
        await actor.ingest({"type": "keydown", "data": {"key": "a"}})
        vector = await actor.call(aggregator.publish, "request")
        await actor.stop()
    """

    def __init__(self, aggregator: TelemetryAggregator, cfg: Config = config):
        self.aggregator = aggregator
        self._inbox: "asyncio.Queue[_Message]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        agg = aggregator
        self.timers: Dict[str, PeriodicTimer] = {
            t.name: t
            for t in (
                PeriodicTimer("realtime", cfg.realtime_interval_s,
                              lambda: self.post(agg.refresh_realtime)),
                PeriodicTimer("typing", cfg.typing_window_s,
                              lambda: self.post(agg.run_typing_window)),
                PeriodicTimer("pauses", cfg.pause_window_s,
                              lambda: self.post(agg.run_pause_window)),
                PeriodicTimer("session", cfg.session_window_s,
                              lambda: self.post(agg.run_session_window)),
                PeriodicTimer("heartbeat", cfg.heartbeat_interval_s,
                              lambda: self.post(agg.publish, "heartbeat")),
                PeriodicTimer("flush", cfg.flush_interval_s,
                              lambda: self.post(agg.flush)),
            )
        }
        self.debounce = DebounceTimer(cfg.debounce_ms, lambda: self.post(agg.publish, "debounce"))

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._consumer = asyncio.create_task(self._run(), name="engine-actor")
        for timer in self.timers.values():
            timer.start()
        logger.info("Engine actor started for session %s", self.aggregator.session_id)

    async def stop(self) -> None:
        """Stop timers, drain the inbox, then flush the sink synchronously."""
        for timer in self.timers.values():
            timer.cancel()
        self.debounce.cancel()
        if self._consumer is not None:
            self._inbox.put_nowait((_STOP, (), None))
            await self._consumer
            self._consumer = None
        self._reject_pending()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.aggregator.shutdown)
        logger.info("Engine actor stopped")

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Fire-and-forget job; failures are logged by the consumer."""
        self._inbox.put_nowait((fn, args, None))

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(*args)`` on the actor and return its result (or raise its error)."""
        if not self.running:
            raise RuntimeError("Engine actor is not running")
        future = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait((fn, args, future))
        return await future

    async def ingest(self, payload: Dict[str, Any]) -> Optional[NormalizedEvent]:
        result = await self.call(self.aggregator.ingest, payload)
        if result is not None and result.wakes_publisher:
            self.debounce.trigger()
        return result

    async def ingest_many(self, payloads: Iterable[Dict[str, Any]]) -> int:
        accepted, wakes = await self.call(self.aggregator.ingest_many, list(payloads))
        if wakes:
            self.debounce.trigger()
        return accepted

    async def tag(self, category: str, note: str = "") -> TagRecord:
        record = await self.call(self.aggregator.tag, category, note)
        self.debounce.trigger()
        return record

    async def _run(self) -> None:
        while True:
            fn, args, future = await self._inbox.get()
            if fn is _STOP:
                break
            try:
                result = fn(*args)
            except Exception as exc:
                if future is None:
                    logger.exception("Engine job %s failed", _job_name(fn))
                elif not future.cancelled():
                    future.set_exception(exc)
            else:
                if future is not None and not future.cancelled():
                    future.set_result(result)

    def _reject_pending(self) -> None:
        """Fail every call queued behind the stop marker; posted jobs are dropped."""
        dropped = 0
        while not self._inbox.empty():
            _, _, future = self._inbox.get_nowait()
            if future is not None and not future.done():
                future.set_exception(RuntimeError("Engine actor stopped"))
            dropped += 1
        if dropped:
            logger.info("Engine actor stopped with %d queued jobs unprocessed", dropped)


def _job_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", repr(fn))

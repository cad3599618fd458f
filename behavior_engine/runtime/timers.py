"""
Timer primitives for the engine actor.

PeriodicTimer  — an asyncio task that invokes a callback every ``interval_s``.
DebounceTimer  — a single-slot delayed callback; triggers while a fire is
                 pending are coalesced into that one fire.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTimer:

    def __init__(self, name: str, interval_s: float, callback: Callable[[], None]):
        if interval_s <= 0:
            raise ValueError(f"{name}: interval must be positive, got {interval_s}")
        self.name = name
        self.interval_s = interval_s
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self.fired = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"timer:{self.name}"
        )

    def reschedule(self, interval_s: float) -> None:
        """Change the period; the running task is replaced, not duplicated."""
        if interval_s <= 0:
            raise ValueError(f"{self.name}: interval must be positive, got {interval_s}")
        self.interval_s = interval_s
        if self.running:
            self.start()

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.fired += 1
            try:
                self._callback()
            except Exception:
                logger.exception("Timer %s callback failed", self.name)


class DebounceTimer:

    def __init__(self, delay_ms: float, callback: Callable[[], None]):
        self.delay_s = delay_ms / 1000.0
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> bool:
        """Arm the timer. Returns False when a fire is already pending."""
        if self._handle is not None:
            return False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_s, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fired += 1
        try:
            self._callback()
        except Exception:
            logger.exception("Debounced callback failed")

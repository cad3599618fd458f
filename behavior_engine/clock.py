"""
Time sources. The engine samples one clock reading per job, in epoch milliseconds.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


def system_clock() -> float:
    return time.time() * 1000.0


class ManualClock:
    """Deterministic clock for tests and offline replays."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = float(start_ms)

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now

    def set(self, ms: float) -> None:
        self.now = float(ms)

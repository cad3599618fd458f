"""Tests for the bounded rings and the History Store."""

import random

import pytest

from behavior_engine.telemetry.events import KeyEvent, PointerEvent
from behavior_engine.telemetry.history import HistoryStore, Ring


def _caps(**kwargs):
    caps = {"keys": 50, "pointer": 30, "focus": 5, "scroll": 10}
    caps.update(kwargs)
    return caps


class TestRing:
    @pytest.mark.parametrize("seed", range(20))
    def test_visible_size_never_exceeds_capacity(self, seed):
        rng = random.Random(seed)
        capacity = rng.randint(1, 40)
        ring = Ring(capacity, slack=1.1)
        ts = 0.0
        for _ in range(rng.randint(0, 500)):
            ts += rng.random() * 100
            ring.append(KeyEvent(timestamp=ts))
            assert len(ring) <= capacity
            assert len(list(ring)) <= capacity

    def test_evicts_oldest_first(self):
        ring = Ring(3)
        for ts in range(10):
            ring.append(KeyEvent(timestamp=float(ts)))
        assert [e.timestamp for e in ring] == [7.0, 8.0, 9.0]

    def test_batched_trim_reports_truncation(self):
        ring = Ring(10, slack=1.1)
        trimmed = [ring.append(KeyEvent(timestamp=float(i))) for i in range(11)]
        # 11 <= 1.1 * 10, so nothing is cut yet
        assert not any(trimmed)
        assert ring.append(KeyEvent(timestamp=11.0)) is True
        assert ring.truncations == 1
        assert [e.timestamp for e in ring][0] == 2.0

    def test_since_returns_window_oldest_first(self):
        ring = Ring(100)
        for ts in (100.0, 200.0, 300.0, 400.0):
            ring.append(KeyEvent(timestamp=ts))
        assert [e.timestamp for e in ring.since(200.0)] == [200.0, 300.0, 400.0]

    def test_recent_and_newest_first(self):
        ring = Ring(100)
        for ts in range(5):
            ring.append(KeyEvent(timestamp=float(ts)))
        assert [e.timestamp for e in ring.recent(2)] == [3.0, 4.0]
        assert [e.timestamp for e in ring.newest_first(2)] == [4.0, 3.0]

    def test_invalid_capacity_rejected(self):
        with pytest.raises(ValueError):
            Ring(0)


class TestHistoryStore:
    def test_sweep_drops_aged_keys_and_pointer(self):
        store = HistoryStore(_caps())
        store.append("keys", KeyEvent(timestamp=1_000.0))
        store.append("keys", KeyEvent(timestamp=400_000.0))
        store.append("pointer", PointerEvent(timestamp=1_000.0))
        store.sweep(now=400_000.0, retention_ms=300_000)
        assert [e.timestamp for e in store.keys] == [400_000.0]
        assert len(store.pointer) == 0

    def test_sweep_compacts_slack(self):
        store = HistoryStore(_caps(keys=10), slack=1.1)
        for i in range(11):
            store.append("keys", KeyEvent(timestamp=float(i)))
        assert store.sweep(now=11.0, retention_ms=300_000) == 1
        assert store.truncations()["keys"] == 1

    def test_sizes_and_clear(self):
        store = HistoryStore(_caps())
        store.append("keys", KeyEvent(timestamp=1.0))
        store.append("pointer", PointerEvent(timestamp=1.0))
        assert store.sizes() == {"keys": 1, "pointer": 1, "focus": 0, "scroll": 0}
        store.clear()
        assert store.sizes() == {"keys": 0, "pointer": 0, "focus": 0, "scroll": 0}

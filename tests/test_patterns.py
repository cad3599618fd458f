"""Tests for the burst, pause and recovery detectors."""

import pytest

from behavior_engine.inference.patterns import (
    detect_bursts,
    detect_pauses,
    recovery_after_pause,
)
from behavior_engine.telemetry.events import KeyEvent


def _keys(gaps, corrections=()):
    """Key events at cumulative *gaps*; indexes in *corrections* are backspaces."""
    ts = 0.0
    events = []
    for i, gap in enumerate(gaps):
        ts += gap
        backspace = i in corrections
        events.append(KeyEvent(
            timestamp=ts,
            key_value="Backspace" if backspace else "a",
            is_char=not backspace,
            is_backspace=backspace,
        ))
    return events


class TestBursts:
    def test_single_burst_of_five_trailing_pair_ignored(self):
        events = _keys([0, 50, 50, 50, 50, 500, 50])
        stats = detect_bursts(events)
        assert stats.count == 1
        assert stats.intensity == 5
        assert stats.mean_duration == 200

    def test_no_bursts_when_slow(self):
        assert detect_bursts(_keys([0, 300, 300, 300])).count == 0

    def test_correction_ratio_over_all_burst_events(self):
        events = _keys([0, 50, 50, 50], corrections={0, 3})
        assert detect_bursts(events).correction_ratio == pytest.approx(0.5)

    def test_two_bursts(self):
        stats = detect_bursts(_keys([0, 20, 20, 400, 30, 30, 30]))
        assert stats.count == 2
        assert stats.intensity == pytest.approx(3.5)

    def test_scan_limit(self):
        events = _keys([0] + [50] * 149)
        assert detect_bursts(events).intensity == 100


class TestPauses:
    def test_classification(self):
        stats = detect_pauses(_keys([0, 1200, 8000, 120, 30]))
        assert stats.count == 2
        assert stats.long_count == 1
        assert stats.micro_rate == pytest.approx(1 / 5)

    def test_empty(self):
        stats = detect_pauses([])
        assert stats.count == 0
        assert stats.mean_duration == 0.0
        assert stats.micro_rate == 0.0


class TestRecovery:
    def test_speed_and_latency_after_pause(self):
        events = _keys([0, 100, 3000, 100, 100, 100, 100])
        stats = recovery_after_pause(events)
        # span of 3 starting at the gap event covers 200ms
        assert stats.speed_after_pause == pytest.approx(15.0)
        assert stats.latency_after_pause == pytest.approx(100.0)
        assert stats.correction_after_pause == 0.0

    def test_corrections_after_pause(self):
        gaps = [0, 100, 2500, 100, 100, 100, 100, 100]
        events = _keys(gaps, corrections={3, 4})
        assert recovery_after_pause(events).correction_after_pause == pytest.approx(2 / 5)

    def test_gap_of_exactly_two_seconds_counts(self):
        stats = recovery_after_pause(_keys([0, 100, 2000, 100, 100, 100, 100]))
        assert stats.latency_after_pause == pytest.approx(100.0)
        assert stats.speed_after_pause == pytest.approx(15.0)

    def test_gap_just_under_two_seconds_ignored(self):
        stats = recovery_after_pause(_keys([0, 100, 1999, 100, 100, 100, 100]))
        assert stats.latency_after_pause == 0.0

    def test_no_pause_no_recovery(self):
        stats = recovery_after_pause(_keys([0, 100, 100, 100]))
        assert stats.speed_after_pause == 0.0
        assert stats.latency_after_pause == 0.0

"""Tests for the 5s / 30s / 60s tumbling-window jobs."""

from datetime import datetime

import pytest

from behavior_engine.inference.windows import TumblingWindows, is_night_hour
from behavior_engine.telemetry.events import KeyEvent
from behavior_engine.telemetry.history import HistoryStore
from behavior_engine.telemetry.session import SessionCounters


def _letters(press, n, gap=100):
    for i in range(n):
        press(chr(ord("a") + i % 26), advance=gap if i else 0)


class TestTypingWindow:
    def test_empty_window_is_noop(self, engine, sink):
        assert engine.run_typing_window() is None
        assert len(engine.windows.typing) == 0
        assert "aggregate_5s" not in sink.kinds()

    def test_five_chars_give_twelve_wpm(self, engine, press, clock):
        _letters(press, 5)
        clock.advance(500)
        agg = engine.run_typing_window()
        assert agg.typing_speed_wpm == pytest.approx(12.0)
        assert agg.window_size == "5s"

    def test_constant_latency_has_zero_spread(self, engine, press, clock):
        _letters(press, 5, gap=100)
        agg = engine.run_typing_window()
        assert agg.inter_key_latency_mean == pytest.approx(100.0)
        assert agg.inter_key_latency_std == 0.0
        assert agg.inter_key_latency_entropy == 0.0

    def test_hold_times_collected(self, engine, press):
        press("a", hold=80)
        press("b", hold=120, advance=300)
        agg = engine.run_typing_window()
        assert agg.hold_time_mean == pytest.approx(100.0)
        assert agg.hold_time_variance == pytest.approx(400.0)

    def test_early_keyup_leaves_hold_times_positive(self, engine, press, clock):
        t = clock()
        engine.ingest({"type": "keydown", "timestamp": t, "data": {"key": "a", "code": "KeyA"}})
        engine.ingest({"type": "keyup", "timestamp": t - 50, "data": {"key": "a", "code": "KeyA"}})
        press("b", hold=80, advance=200)
        agg = engine.run_typing_window()
        assert agg.hold_time_mean == pytest.approx(80.0)
        assert agg.hold_time_variance == 0.0

    def test_non_positive_hold_times_ignored(self):
        windows = TumblingWindows()
        history = HistoryStore({"keys": 10, "pointer": 10, "focus": 10, "scroll": 10})
        for ts, hold in [(1_000.0, -50.0), (1_100.0, 0.0), (1_200.0, 90.0), (1_300.0, None)]:
            history.append("keys", KeyEvent(timestamp=ts, key_value="a", is_char=True, hold_time=hold))
        agg = windows.compute_typing(2_000.0, history)
        assert agg.hold_time_mean == pytest.approx(90.0)

    def test_correction_ratio_clamped(self, engine, press):
        press("a")
        for _ in range(4):
            press("Backspace", advance=150)
        agg = engine.run_typing_window()
        assert agg.correction_ratio == 1.0
        assert agg.backspace_rate == pytest.approx(4 / 5)

    def test_no_chars_means_zero_ratio(self, engine, press):
        press("Backspace")
        agg = engine.run_typing_window()
        assert agg.correction_ratio == 0.0

    def test_old_events_fall_out_of_window(self, engine, press, clock):
        press("a")
        clock.advance(6000)
        assert engine.run_typing_window() is None

    def test_speed_delta_relative_to_previous(self, engine, press, clock):
        _letters(press, 5)
        engine.run_typing_window()
        clock.advance(5000)
        _letters(press, 10, gap=50)
        agg = engine.run_typing_window()
        assert agg.typing_speed_wpm == pytest.approx(24.0)
        assert agg.typing_speed_delta == pytest.approx(1.0)

    def test_pointer_stats(self, engine, clock, press):
        press("a")
        t = clock()
        engine.ingest({"type": "mousemove", "timestamp": t, "data": {"clientX": 0, "clientY": 0}})
        engine.ingest({"type": "mousemove", "timestamp": t + 10, "data": {"clientX": 30, "clientY": 40}})
        engine.ingest({"type": "click", "timestamp": t + 20, "data": {}})
        clock.advance(20)
        agg = engine.run_typing_window()
        assert agg.mouse_velocity_mean == pytest.approx(5.0)
        assert agg.click_rate == pytest.approx(1 / 5)


class TestPauseWindow:
    def test_needs_three_key_events(self, engine, press):
        press("a")
        press("b", advance=100)
        assert engine.run_pause_window() is None

    def test_pause_statistics(self, engine, press, clock):
        press("a")
        press("b", advance=1500)
        press("c", advance=6000)
        press("d", advance=100)
        agg = engine.run_pause_window()
        assert agg.pause_count == 2
        assert agg.long_pause_count == 1
        assert agg.pause_mean_duration == pytest.approx(3750.0)
        assert agg.micro_pause_rate == pytest.approx(1 / 4)
        assert agg.cumulative_keystrokes == 4
        assert agg.correction_pressure == 0.0


class TestSessionWindow:
    def test_always_runs_even_when_idle(self, engine, sink):
        agg = engine.run_session_window()
        assert agg is not None
        assert agg.session_duration == 0.0
        assert agg.event_intensity == 0.0
        assert "aggregate_60s" in sink.kinds()

    def test_variability_zero_for_steady_rhythm(self, engine, press):
        _letters(press, 12, gap=100)
        agg = engine.run_session_window()
        assert agg.variability_index == 0.0

    def test_variability_needs_ten_events(self, engine, press):
        for gap in (0, 50, 400, 90, 700):
            press("x", advance=gap)
        assert engine.run_session_window().variability_index == 0.0

    def test_continuity_and_memory_metrics(self, engine, press, clock):
        _letters(press, 11, gap=100)          # 1000ms active
        clock.advance(1000)                   # 2000ms elapsed in total
        agg = engine.run_session_window()
        assert agg.work_continuity_index == pytest.approx(0.5)
        assert agg.memory_metrics.key_events_count == 11
        assert agg.memory_metrics.pointer_events_count == 0

    def test_time_since_last_break(self, engine, press, clock):
        start = clock()
        press("a")
        press("b", advance=6 * 60_000)
        resumed = clock()
        clock.advance(10_000)
        agg = engine.run_session_window()
        assert agg.time_since_last_break == pytest.approx(10_000)
        assert agg.session_start_time == start
        assert resumed - start > 5 * 60_000


class TestNightHours:
    @pytest.mark.parametrize("hour,expected", [(23, True), (3, True), (6, True), (7, False), (14, False)])
    def test_local_hour(self, hour, expected):
        ms = datetime(2024, 1, 10, hour, 30).timestamp() * 1000
        assert is_night_hour(ms) is expected


class TestStandaloneWindows:
    def test_rings_keyed_by_label(self):
        windows = TumblingWindows()
        assert list(windows.rings()) == ["5s", "30s", "60s"]

    def test_session_without_history(self):
        windows = TumblingWindows()
        history = HistoryStore({"keys": 10, "pointer": 10, "focus": 10, "scroll": 10})
        counters = SessionCounters.start(1_000.0)
        agg = windows.compute_session(61_000.0, history, counters)
        assert agg.session_duration == 60_000.0
        assert agg.time_since_last_break == 60_000.0
        assert agg.work_continuity_index == 0.0

"""
Typing Simulator — drives the engine with synthetic keyboard / pointer / focus
events so you can watch load scores, warnings and behavioral states change
without a real capture layer.

Usage:
    # Make sure the engine is running first:
    #   python -m behavior_engine.main
    # Then in a separate terminal:
    python scripts/simulate.py                      # default: cycle all scenarios
    python scripts/simulate.py --scenario struggle  # specific scenario
    python scripts/simulate.py --loop               # repeat forever
    python scripts/simulate.py --speed 2.0          # 2× faster
"""

from __future__ import annotations

import argparse
import json
import random
import string
import time
import urllib.error
import urllib.request
from typing import Iterator

API = "http://127.0.0.1:8766"


# ---------------------------------------------------------------------------
# Low-level HTTP helper
# ---------------------------------------------------------------------------

def _post(path: str, body: list | dict) -> bool:
    try:
        data = json.dumps(body).encode()
        req = urllib.request.Request(
            f"{API}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=3):
            return True
    except (urllib.error.URLError, OSError) as e:
        print(f"  [!] Engine unreachable: {e}")
        return False


def _get(path: str) -> dict | None:
    try:
        with urllib.request.urlopen(f"{API}{path}", timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError, ValueError):
        return None


def send_events(events: list[dict]) -> bool:
    return _post("/events/batch", events)


class _Timeline:
    """Generates event timestamps that advance with simulated typing gaps."""

    def __init__(self):
        self.now = time.time() * 1000

    def advance(self, ms: float) -> float:
        self.now = max(self.now, time.time() * 1000) + ms
        return self.now


_TIMELINE = _Timeline()


def _key(t: _Timeline, key: str, gap_ms: float, hold_ms: float = 80) -> list[dict]:
    down = t.advance(gap_ms)
    return [
        {"type": "keydown", "timestamp": down, "data": {"key": key, "code": f"Key{key.upper()}"}},
        {"type": "keyup", "timestamp": down + hold_ms, "data": {"key": key, "code": f"Key{key.upper()}"}},
    ]


def _type_word(t: _Timeline, gap: tuple[int, int]) -> list[dict]:
    events: list[dict] = []
    for ch in random.choices(string.ascii_lowercase, k=random.randint(3, 8)):
        events += _key(t, ch, random.randint(*gap))
    events += _key(t, " ", random.randint(*gap))
    return events


def _backspaces(t: _Timeline, n: int) -> list[dict]:
    events: list[dict] = []
    for _ in range(n):
        down = t.advance(random.randint(90, 160))
        events.append({"type": "keydown", "timestamp": down,
                       "data": {"key": "Backspace", "code": "Backspace"}})
        events.append({"type": "keyup", "timestamp": down + 60,
                       "data": {"key": "Backspace", "code": "Backspace"}})
    return events


def _mouse_path(t: _Timeline, steps: int) -> list[dict]:
    x, y = random.randint(0, 800), random.randint(0, 600)
    events = []
    for _ in range(steps):
        x += random.randint(-15, 15)
        y += random.randint(-15, 15)
        events.append({"type": "mousemove", "timestamp": t.advance(16),
                       "data": {"clientX": x, "clientY": y}})
    events.append({"type": "click", "timestamp": t.advance(120),
                   "data": {"clientX": x, "clientY": y, "button": 0, "detail": 1}})
    return events


# ---------------------------------------------------------------------------
# Scenario generators: each yields batches of events
# ---------------------------------------------------------------------------

def scenario_flow(speed: float = 1.0) -> Iterator[tuple[str, list[dict], float]]:
    """Fast, steady typing with almost no corrections."""
    t = _TIMELINE
    for i in range(10):
        events: list[dict] = []
        for _ in range(6):
            events += _type_word(t, (60, 110))
        yield f"Flow [{i+1}/10]: steady typing", events, 1.0 / speed


def scenario_struggle(speed: float = 1.0) -> Iterator[tuple[str, list[dict], float]]:
    """Rewriting the same phrase over and over."""
    t = _TIMELINE
    for i in range(10):
        events: list[dict] = []
        for _ in range(3):
            events += _type_word(t, (120, 260))
            events += _backspaces(t, random.randint(4, 7))
        yield f"Struggle [{i+1}/10]: type, delete, retype", events, 1.0 / speed


def scenario_distracted(speed: float = 1.0) -> Iterator[tuple[str, list[dict], float]]:
    """Slow typing broken up by long pauses and window switches."""
    t = _TIMELINE
    for i in range(8):
        events = _type_word(t, (250, 600))
        events.append({"type": "blur", "timestamp": t.advance(300), "data": {}})
        events.append({"type": "focus", "timestamp": t.advance(random.randint(2000, 7000)), "data": {}})
        events += _mouse_path(t, 20)
        yield f"Distracted [{i+1}/8]: pauses and tab switches", events, 1.5 / speed


SCENARIOS = {
    "flow": scenario_flow,
    "struggle": scenario_struggle,
    "distracted": scenario_distracted,
}

CYCLE = ["flow", "struggle", "distracted", "flow"]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_scenario(name: str, speed: float) -> None:
    gen_fn = SCENARIOS[name]
    print(f"\n{'─' * 60}")
    print(f"  SCENARIO: {name.upper()}")
    print(f"{'─' * 60}")

    for description, events, delay in gen_fn(speed):
        ok = send_events(events)
        state = _get("/state?fresh=true")
        load = state["load_score"] if state else 0.0
        label = state["behavioral_state"] if state else "unknown"
        warnings = ",".join(state["warnings"]) if state else ""
        bar = "█" * int(load / 5) + "░" * (20 - int(load / 5))

        status = "✓" if ok else "✗"
        print(f"  {status} [{bar}] {int(load):3d}  {label:<9}  {description}  {warnings}")
        time.sleep(delay)


def main() -> None:
    parser = argparse.ArgumentParser(description="Behavioral Signal Engine simulator")
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS.keys()) + ["cycle"],
        default="cycle",
        help="Which scenario to run (default: cycle through all)",
    )
    parser.add_argument("--loop", action="store_true", help="Repeat indefinitely")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (default 1.0)")
    args = parser.parse_args()

    health = _get("/health")
    if not health:
        print(f"[!] Cannot reach engine at {API}")
        print("    Start it first: python -m behavior_engine.main")
        return
    print(f"[✓] Engine connected — v{health.get('version', '?')}  session {health.get('session_id')}")
    print(f"    Speed: {args.speed}×  |  Scenario: {args.scenario}")

    sequence = CYCLE if args.scenario == "cycle" else [args.scenario]

    while True:
        for name in sequence:
            run_scenario(name, args.speed)
        if not args.loop:
            break
        print("\n[↺] Looping...\n")
        time.sleep(2.0)

    print("\n[✓] Simulation complete.")


if __name__ == "__main__":
    main()

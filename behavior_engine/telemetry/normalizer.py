"""
Event Normalizer — converts raw UI event envelopes into typed records,
derives hold time / inter-key latency / pointer velocity / blur duration,
appends them to the History Store and updates the session counters.

Expected envelope shape:
{
    "type": "keydown",
    "timestamp": 1700000000123.0,     # optional, epoch ms, defaults to the clock
    "data": { ...DOM-style event fields... }
}
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..clock import Clock
from .events import (
    NAVIGATION_KEYS,
    NONE,
    Delta,
    FocusEvent,
    KeyEvent,
    Modifiers,
    PointerEvent,
    ScrollEvent,
    Velocity,
)
from .history import HistoryStore
from .session import SessionCounters

logger = logging.getLogger(__name__)

# Raw type tag → (history category, normalized event_type)
_EVENT_MAP: Dict[str, Tuple[str, str]] = {
    "keydown": ("keys", "keydown"),
    "keyup": ("keys", "keyup"),
    "mousemove": ("pointer", "move"),
    "pointermove": ("pointer", "move"),
    "mousedown": ("pointer", "down"),
    "pointerdown": ("pointer", "down"),
    "mouseup": ("pointer", "up"),
    "pointerup": ("pointer", "up"),
    "click": ("pointer", "click"),
    "focus": ("focus", "focus_in"),
    "focusin": ("focus", "focus_in"),
    "focus_in": ("focus", "focus_in"),
    "blur": ("focus", "focus_out"),
    "focusout": ("focus", "focus_out"),
    "focus_out": ("focus", "focus_out"),
    "scroll": ("scroll", "scroll"),
    "wheel": ("scroll", "scroll"),
}

# Event types that should wake the publisher (debounced)
_PUBLISH_TRIGGERS = {"keydown", "keyup", "down", "up", "click", "focus_in", "focus_out"}


def is_known_type(raw_type: str) -> bool:
    return str(raw_type).strip().lower() in _EVENT_MAP


@dataclass
class NormalizedEvent:
    kind: str              # sink record kind, e.g. "raw_keydown"
    category: str          # history category
    record: Any
    wakes_publisher: bool


class EventNormalizer:

    def __init__(
        self,
        history: HistoryStore,
        counters: SessionCounters,
        clock: Clock,
        forward: Optional[Callable[[str, dict], None]] = None,
        keyup_match_depth: int = 50,
        break_threshold_ms: float = 300_000,
    ):
        self._history = history
        self.counters = counters
        self._clock = clock
        self._forward = forward
        self._match_depth = keyup_match_depth
        self._break_threshold = break_threshold_ms
        self._last_keyup_time: Optional[float] = None

    def reset(self, counters: SessionCounters) -> None:
        self.counters = counters
        self._last_keyup_time = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, payload: Dict[str, Any]) -> Optional[NormalizedEvent]:
        """Normalize one envelope. Returns None for unknown event types."""
        raw_type = str(payload.get("type", "")).strip().lower()
        mapped = _EVENT_MAP.get(raw_type)
        if mapped is None:
            logger.debug("Dropping event with unknown type %r", raw_type)
            return None
        category, event_type = mapped

        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}
        timestamp = _num(payload.get("timestamp"), None)
        if timestamp is None:
            timestamp = self._clock()

        if category == "keys":
            record = self._on_key(event_type, timestamp, data)
            kind = f"raw_{event_type}"
        elif category == "pointer":
            record = self._on_pointer(event_type, timestamp, data)
            kind = f"raw_pointer_{event_type}"
        elif category == "focus":
            record = self._on_focus(event_type, timestamp)
            kind = f"raw_{event_type}"
        else:
            record = self._on_scroll(timestamp, data)
            kind = "raw_scroll"

        if self._forward is not None:
            self._forward(kind, asdict(record))

        return NormalizedEvent(
            kind=kind,
            category=category,
            record=record,
            wakes_publisher=event_type in _PUBLISH_TRIGGERS,
        )

    # ------------------------------------------------------------------
    # Per-category handlers
    # ------------------------------------------------------------------

    def _on_key(self, event_type: str, ts: float, data: Dict[str, Any]) -> KeyEvent:
        key = _text(data.get("key"), "")
        mods = Modifiers(
            ctrl=bool(data.get("ctrlKey", False)),
            shift=bool(data.get("shiftKey", False)),
            alt=bool(data.get("altKey", False)),
            meta=bool(data.get("metaKey", False)),
        )
        target = _target(data)
        record = KeyEvent(
            timestamp=ts,
            event_type=event_type,
            key_code=_text(data.get("code"), key),
            key_value=key,
            is_char=len(key) == 1 and not mods.ctrl and not mods.alt,
            is_control=mods.ctrl or mods.meta,
            is_navigation=key in NAVIGATION_KEYS,
            is_backspace=key == "Backspace",
            is_delete=key == "Delete",
            is_enter=key == "Enter",
            is_undo=(mods.ctrl or mods.meta) and key == "z",
            is_repeat=bool(data.get("repeat", False)),
            modifiers=mods,
            target_tag=_text(target.get("tag"), NONE),
            target_type=_text(target.get("type"), NONE),
        )

        c = self.counters
        self._touch(ts)
        c.total_key_events += 1
        if event_type == "keydown":
            c.cumulative_keystrokes += 1
            if record.is_correction:
                c.cumulative_corrections += 1
            self._append("keys", record)
        else:
            self._match_keyup(record)
        return record

    def _match_keyup(self, keyup: KeyEvent) -> bool:
        """Annotate the newest unmatched keydown with the same code (bounded scan)."""
        for candidate in self._history.keys.newest_first(self._match_depth):
            if (
                candidate.event_type == "keydown"
                and candidate.key_code == keyup.key_code
                and candidate.hold_time is None
            ):
                hold = keyup.timestamp - candidate.timestamp
                if hold <= 0:
                    logger.debug("Keyup for %r precedes its keydown, not matched", keyup.key_code)
                    return False
                candidate.hold_time = hold
                keyup.hold_time = hold
                if self._last_keyup_time is not None:
                    keyup.inter_key_latency = keyup.timestamp - self._last_keyup_time
                self._last_keyup_time = keyup.timestamp
                return True
        return False

    def _on_pointer(self, event_type: str, ts: float, data: Dict[str, Any]) -> PointerEvent:
        x = _num(data.get("clientX"), 0.0)
        y = _num(data.get("clientY"), 0.0)
        target = _target(data)
        record = PointerEvent(
            timestamp=ts,
            event_type=event_type,
            x=x,
            y=y,
            button=_int(data.get("button")) if event_type != "move" else None,
            click_count=_int(data.get("detail")) if event_type == "click" else None,
            target_tag=_text(target.get("tag"), NONE),
            target_id=_text(target.get("id"), NONE),
            target_class=_text(target.get("className"), NONE),
        )

        if event_type == "move":
            prev = self._history.pointer.last()
            if prev is not None and prev.event_type == "move":
                dx = x - prev.x
                dy = y - prev.y
                distance = math.sqrt(dx * dx + dy * dy)
                dt = ts - prev.timestamp
                record.delta = Delta(x=dx, y=dy, distance=distance)
                # duplicate timestamps carry no velocity sample
                if dt > 0:
                    record.velocity = Velocity(x=dx / dt, y=dy / dt, speed=distance / dt)

        c = self.counters
        self._touch(ts)
        c.total_mouse_events += 1
        if event_type == "click":
            c.cumulative_clicks += 1
        self._append("pointer", record)
        return record

    def _on_focus(self, event_type: str, ts: float) -> FocusEvent:
        record = FocusEvent(timestamp=ts, event_type=event_type)
        prev = self._history.focus.last()
        if event_type == "focus_in" and prev is not None and prev.event_type == "focus_out":
            record.blur_duration = ts - prev.timestamp
        self._append("focus", record)
        return record

    def _on_scroll(self, ts: float, data: Dict[str, Any]) -> ScrollEvent:
        record = ScrollEvent(
            timestamp=ts,
            scroll_x=_num(data.get("scrollX"), 0.0),
            scroll_y=_num(data.get("scrollY"), 0.0),
            delta_x=_num(data.get("deltaX"), 0.0),
            delta_y=_num(data.get("deltaY"), 0.0),
            target_tag=_text(_target(data).get("tag"), NONE),
        )
        self._append("scroll", record)
        return record

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, category: str, record) -> None:
        if self._history.append(category, record):
            self.counters.periods_truncated += 1
            logger.info("Trimmed %s history to %d records", category,
                        self._history.ring(category).capacity)

    def _touch(self, ts: float) -> None:
        c = self.counters
        if ts - c.last_activity_time > self._break_threshold:
            c.last_break_time = ts
        c.last_activity_time = max(c.last_activity_time, ts)


# ---------------------------------------------------------------------------
# Helpers: malformed fields degrade to safe defaults
# ---------------------------------------------------------------------------

def _num(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def _int(value: Any) -> Optional[int]:
    result = _num(value, None)
    return int(result) if result is not None else None


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value)
    return text if text else default


def _target(data: Dict[str, Any]) -> Dict[str, Any]:
    target = data.get("target")
    return target if isinstance(target, dict) else {}

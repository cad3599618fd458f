"""
Typed interaction records produced by the EventNormalizer.

All timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

NONE = "none"   # sentinel for unknown target descriptors

NAVIGATION_KEYS = frozenset({
    "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight",
    "Home", "End", "PageUp", "PageDown",
})


@dataclass
class Modifiers:
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False


@dataclass
class KeyEvent:
    timestamp: float
    event_type: str = "keydown"          # "keydown" | "keyup"
    key_code: str = ""                   # physical key, e.g. "KeyA"
    key_value: str = ""                  # produced key, e.g. "a", "Backspace"
    is_char: bool = False
    is_control: bool = False
    is_navigation: bool = False
    is_backspace: bool = False
    is_delete: bool = False
    is_enter: bool = False
    is_undo: bool = False
    is_repeat: bool = False
    modifiers: Modifiers = field(default_factory=Modifiers)
    target_tag: str = NONE
    target_type: str = NONE
    hold_time: Optional[float] = None            # set on the keydown once its keyup arrives
    inter_key_latency: Optional[float] = None    # keyup only: ms since previous matched keyup

    @property
    def is_correction(self) -> bool:
        return self.is_backspace or self.is_delete


@dataclass
class Delta:
    x: float
    y: float
    distance: float


@dataclass
class Velocity:
    x: float       # px / ms
    y: float
    speed: float


@dataclass
class PointerEvent:
    timestamp: float
    event_type: str = "move"             # "move" | "down" | "up" | "click"
    x: float = 0.0
    y: float = 0.0
    button: Optional[int] = None
    click_count: Optional[int] = None
    delta: Optional[Delta] = None
    velocity: Optional[Velocity] = None
    target_tag: str = NONE
    target_id: str = NONE
    target_class: str = NONE


@dataclass
class FocusEvent:
    timestamp: float
    event_type: str = "focus_in"         # "focus_in" | "focus_out"
    blur_duration: Optional[float] = None


@dataclass
class ScrollEvent:
    timestamp: float
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    delta_x: float = 0.0
    delta_y: float = 0.0
    target_tag: str = NONE

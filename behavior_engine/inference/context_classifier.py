"""
Behavioral State Classifier — maps a load score and typing profile to a coarse
state label for consumers that only want a traffic light.

States:
  OVERLOAD  — load score above the overload threshold
  FLOW      — fast, steady typing (high wpm, consecutive windows look alike)
  NEUTRAL   — everything else
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from ..settings import get_settings


class BehavioralState(str, Enum):
    OVERLOAD = "overload"
    FLOW = "flow"
    NEUTRAL = "neutral"


class ContextClassifier:
    """Rule-based classifier; thresholds come from settings."""

    def __init__(self, thresholds: Optional[Dict[str, Any]] = None):
        self._thresholds = thresholds

    def classify(self, load_score: float, wpm: float, stability: float) -> BehavioralState:
        t = self._thresholds if self._thresholds is not None else get_settings()
        if load_score > t["overload_load_score"]:
            return BehavioralState.OVERLOAD
        if wpm > t["flow_wpm"] and stability > t["flow_stability"]:
            return BehavioralState.FLOW
        return BehavioralState.NEUTRAL

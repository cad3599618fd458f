"""
User-tunable heuristic settings — persisted to data/settings.json.

The load scorer and warning extractor read their weights and thresholds from
here, so the heuristic can be retuned at runtime without a restart.

Import get_settings() anywhere in the engine to read current values.
Import update_settings(patch) to mutate and save.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .config import config

logger = logging.getLogger(__name__)

_FILE: Path = config.data_dir / "settings.json"

DEFAULTS: dict[str, Any] = {
    # load score terms
    "correction_weight":          40.0,   # correction_ratio * weight
    "slow_typing_wpm":            20.0,   # wpm below this adds slow_typing_penalty
    "slow_typing_penalty":        20.0,
    "latency_std_divisor":        100.0,  # latency_std / divisor, capped
    "latency_std_cap":            20.0,
    "pause_count_threshold":      3,      # 30s pause_count above this adds pause_penalty
    "pause_penalty":              15.0,
    # warning thresholds
    "warn_correction_ratio":      0.3,
    "warn_slow_wpm":              10.0,
    "warn_latency_std":           500.0,
    "warn_pause_count":           5,
    # behavioral state
    "overload_load_score":        80.0,
    "flow_wpm":                   40.0,
    "flow_stability":             0.8,
}

_current: dict[str, Any] = {}


def _load() -> None:
    global _current
    _current = dict(DEFAULTS)
    if _FILE.exists():
        try:
            saved = json.loads(_FILE.read_text())
            for k, v in saved.items():
                if k in DEFAULTS:
                    # coerce to the same type as the default
                    _current[k] = type(DEFAULTS[k])(v)
        except (OSError, ValueError, TypeError):
            logger.warning("Malformed %s, using defaults", _FILE)


def get_settings() -> dict[str, Any]:
    """Return a copy of the current settings dict."""
    if not _current:
        _load()
    return dict(_current)


def update_settings(patch: dict[str, Any]) -> dict[str, Any]:
    """Apply *patch* (unknown keys ignored), persist to disk, return full settings."""
    if not _current:
        _load()
    for k, v in patch.items():
        if k in DEFAULTS:
            _current[k] = type(DEFAULTS[k])(v)
    _FILE.parent.mkdir(parents=True, exist_ok=True)
    _FILE.write_text(json.dumps(_current, indent=2))
    return dict(_current)


# Eagerly load on import
_load()

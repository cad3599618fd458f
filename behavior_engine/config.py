"""
Central configuration for the Behavioral Signal Engine.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    records_db: str = "records.db"
    sink_buffer_size: int = 100              # records per SQLite batch

    # History capacities (events)
    key_capacity: int = 10_000
    pointer_capacity: int = 5_000
    focus_capacity: int = 100
    scroll_capacity: int = 500
    trim_slack: float = 1.1                  # batched trim once size > slack * capacity

    # Aggregate / derived ring capacities
    typing_ring_capacity: int = 720          # 1 h of 5s aggregates
    pause_ring_capacity: int = 120           # 1 h of 30s aggregates
    session_ring_capacity: int = 60          # 1 h of 60s aggregates
    loop_ring_capacity: int = 200
    tag_ring_capacity: int = 100

    # Retention
    retention_ms: int = 300_000              # age sweep horizon for keys / pointer
    break_threshold_ms: int = 300_000        # idle gap that counts as a break
    keyup_match_depth: int = 50              # keydowns scanned when matching a keyup

    # Job cadence
    realtime_interval_s: float = 1.0
    typing_window_s: float = 5.0
    pause_window_s: float = 30.0
    session_window_s: float = 60.0
    heartbeat_interval_s: float = 5.0
    debounce_ms: int = 500
    flush_interval_s: float = 30.0

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (BSE_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"BSE_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.__post_init__()
        return cfg

    def history_capacities(self) -> dict[str, int]:
        return {
            "keys": self.key_capacity,
            "pointer": self.pointer_capacity,
            "focus": self.focus_capacity,
            "scroll": self.scroll_capacity,
        }


# Module-level singleton
config = Config.load()

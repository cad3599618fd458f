"""
/settings — read and update the heuristic weights and thresholds.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...settings import DEFAULTS, get_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsPatch(BaseModel):
    correction_weight:     Optional[float] = Field(None, ge=0.0,  le=100.0)
    slow_typing_wpm:       Optional[float] = Field(None, ge=0.0,  le=200.0)
    slow_typing_penalty:   Optional[float] = Field(None, ge=0.0,  le=100.0)
    latency_std_divisor:   Optional[float] = Field(None, gt=0.0,  le=10_000.0)
    latency_std_cap:       Optional[float] = Field(None, ge=0.0,  le=100.0)
    pause_count_threshold: Optional[int]   = Field(None, ge=0,    le=50)
    pause_penalty:         Optional[float] = Field(None, ge=0.0,  le=100.0)
    warn_correction_ratio: Optional[float] = Field(None, ge=0.0,  le=1.0)
    warn_slow_wpm:         Optional[float] = Field(None, ge=0.0,  le=200.0)
    warn_latency_std:      Optional[float] = Field(None, ge=0.0,  le=10_000.0)
    warn_pause_count:      Optional[int]   = Field(None, ge=0,    le=50)
    overload_load_score:   Optional[float] = Field(None, ge=0.0,  le=100.0)
    flow_wpm:              Optional[float] = Field(None, ge=0.0,  le=300.0)
    flow_stability:        Optional[float] = Field(None, ge=0.0,  le=1.0)


@router.get("")
def read_settings():
    """Return current settings with their defaults for reference."""
    current = get_settings()
    return {"settings": current, "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch):
    """Apply a partial update; unset fields are left alone. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": update_settings(data)}

"""
Small numeric helpers shared by the window jobs and detectors.

All helpers return 0.0 on empty input instead of NaN so aggregates stay
JSON-serialisable.
"""

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.var(np.asarray(values, dtype=np.float64)))


def std(values: Sequence[float]) -> float:
    return math.sqrt(variance(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    m = mean(values)
    return std(values) / m if m > 0 else 0.0


def histogram_entropy(values: Sequence[float], bucket: float = 10.0) -> float:
    """Shannon entropy (bits) of *values* binned to the nearest *bucket*."""
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=np.float64)
    # round half up, matching browser Math.round
    bins = np.floor(arr / bucket + 0.5)
    _, counts = np.unique(bins, return_counts=True)
    p = counts / counts.sum()
    return max(0.0, float(-(p * np.log2(p)).sum()))


def diffs(timestamps: Sequence[float]) -> List[float]:
    """Consecutive differences of a timestamp sequence."""
    return [timestamps[i] - timestamps[i - 1] for i in range(1, len(timestamps))]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))

"""Time-domain peak detection, RMSSD and the derived stress index."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .config import PipelineConfig


def find_peaks(x: np.ndarray, floor: float = 0.0) -> np.ndarray:
    """Indices of 5-point local maxima above ``floor``.

    A sample is a peak when it is strictly greater than its two neighbors on
    each side. The first and last two samples are never peaks.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    if n < 5:
        return np.zeros(0, dtype=np.int64)
    c = x[2 : n - 2]
    is_peak = (
        (c > x[1 : n - 3])
        & (c > x[0 : n - 4])
        & (c > x[3 : n - 1])
        & (c > x[4:n])
        & (c > floor)
    )
    return np.nonzero(is_peak)[0].astype(np.int64) + 2


def inter_beat_intervals(peaks: np.ndarray, fs: float) -> np.ndarray:
    """Gaps between consecutive peaks in milliseconds."""
    p = np.asarray(peaks, dtype=np.float64)
    if p.size < 2 or fs <= 0:
        return np.zeros(0, dtype=np.float64)
    return np.diff(p) * (1000.0 / fs)


def rmssd(
    peaks: np.ndarray,
    fs: float,
    min_ibi_ms: float = 300.0,
    max_ibi_ms: float = 1300.0,
) -> float:
    """Root mean square of successive IBI differences [ms].

    Only pairs of adjacent intervals that both fall inside
    ``[min_ibi_ms, max_ibi_ms]`` contribute; an out-of-range interval breaks
    the chain. Returns 0.0 when no such pair exists.
    """
    ibi = inter_beat_intervals(peaks, fs)
    if ibi.size < 2:
        return 0.0
    valid = (ibi >= min_ibi_ms) & (ibi <= max_ibi_ms)
    pair = valid[1:] & valid[:-1]
    if not np.any(pair):
        return 0.0
    d = (ibi[1:] - ibi[:-1])[pair]
    return float(np.sqrt(np.mean(d * d)))


def stress_index(
    bpm: float,
    rmssd_ms: float,
    bpm_weight: float = 0.4,
    hrv_weight: float = 0.6,
) -> float:
    """Heuristic 0..100 stress score from HR elevation and HRV deficit."""
    stress_bpm = float(np.clip((bpm - 50.0) * 1.5, 0.0, 100.0))
    stress_hrv = float(np.clip(100.0 - rmssd_ms, 0.0, 100.0))
    s = bpm_weight * stress_bpm + hrv_weight * stress_hrv
    return float(np.clip(s, 0.0, 100.0))


class PeakEstimator:
    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()

    def estimate(self, window: np.ndarray, fs: float) -> float:
        peaks = find_peaks(window, floor=self.cfg.peak_floor)
        return rmssd(peaks, fs, self.cfg.min_ibi_ms, self.cfg.max_ibi_ms)

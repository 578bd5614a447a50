"""Signal preprocessing for rPPG: baseline removal and smoothing."""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.signal import butter, lfilter

from .config import PipelineConfig


def remove_baseline(x: np.ndarray) -> np.ndarray:
    """Subtract the window mean (batch detrend)."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return x - float(np.mean(x))


def ema_baseline(x: np.ndarray, alpha: float) -> np.ndarray:
    """Exponential running mean of ``x`` seeded with its first sample.

    Args:
        x: 1D array.
        alpha: update weight in (0, 1]; smaller tracks slower drift.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    a = float(alpha)
    y, _ = lfilter([a], [1.0, -(1.0 - a)], x, zi=[(1.0 - a) * x[0]])
    return y


def smooth(x: np.ndarray, radius: int = 3) -> np.ndarray:
    """Centered moving average clamped at the edges.

    Each output sample averages the neighbors that exist within ``radius``;
    nothing is zero-padded, so the edges are not pulled toward zero.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    r = max(int(radius), 0)
    if n == 0 or r == 0:
        return x.copy()
    csum = np.concatenate(([0.0], np.cumsum(x)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - r)
    hi = np.minimum(n, idx + r + 1)
    return (csum[hi] - csum[lo]) / (hi - lo)


def bandpass(
    x: np.ndarray,
    fs: float,
    fmin: float = 0.7,
    fmax: float = 3.5,
    order: int = 2,
) -> np.ndarray:
    """Causal Butterworth band-pass filter (lfilter).

    Returns a copy of the input when the band cannot be represented at ``fs``.
    """
    x = np.asarray(x, dtype=np.float64)
    if fs <= 0:
        return x.copy()
    nyq = 0.5 * fs
    low = max(1e-6, fmin / nyq)
    high = min(0.999, fmax / nyq)
    if not (0 < low < high < 1):
        return x.copy()
    b, a = butter(order, [low, high], btype="band")
    return lfilter(b, a, x)


class SignalFilter:
    """Baseline removal, optional band-pass, then edge-clamped smoothing."""

    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()

    def apply(self, window: np.ndarray, fs: Optional[float] = None) -> np.ndarray:
        """Filter one analysis window.

        Windows shorter than two samples are returned unchanged.
        """
        x = np.asarray(window, dtype=np.float64)
        if x.size < 2:
            return x.copy()
        if self.cfg.baseline == "ema":
            y = x - ema_baseline(x, self.cfg.baseline_alpha)
        else:
            y = remove_baseline(x)
        if self.cfg.bandpass and fs:
            y = bandpass(
                y, fs, self.cfg.min_freq, self.cfg.max_freq, order=self.cfg.bandpass_order
            )
        return smooth(y, self.cfg.smooth_radius)

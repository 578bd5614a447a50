"""Signal quality checks for rPPG windows.

Two independent checks are used. The time-domain gate rejects windows whose
amplitude is too small to carry a pulse (a wall, a covered lens) or where the
capture side reported no face. The spectral SNR compares the dominant in-band
peak against the rest of the band and is thresholded by the session
aggregator.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .config import PipelineConfig


def signal_std(x: np.ndarray) -> float:
    """Sample standard deviation (ddof=1); 0.0 for fewer than two samples."""
    x = np.asarray(x, dtype=np.float64)
    if x.size < 2:
        return 0.0
    return float(np.std(x, ddof=1))


def spectral_snr(
    magnitude: np.ndarray,
    peak_index: int,
    lo: int,
    hi: int,
    guard_bins: int = 2,
    ceiling: float = 1000.0,
) -> float:
    """Ratio of the peak magnitude to the mean of the remaining band.

    Args:
        magnitude: magnitude spectrum (1D array).
        peak_index: index of the dominant bin.
        lo/hi: inclusive bin range of the search band.
        guard_bins: bins within this distance of the peak are not noise.
        ceiling: returned when no noise bins remain or the noise is zero.
    """
    p = np.asarray(magnitude, dtype=np.float64)
    if p.size == 0 or not (0 <= peak_index < p.size):
        return 0.0
    peak = float(p[peak_index])
    if peak <= 0.0:
        return 0.0
    idx = np.arange(max(0, lo), min(p.size - 1, hi) + 1)
    noise_idx = idx[np.abs(idx - peak_index) > int(guard_bins)]
    if noise_idx.size == 0:
        return float(ceiling)
    noise = float(np.mean(p[noise_idx]))
    if noise <= 0.0:
        return float(ceiling)
    return float(min(peak / noise, ceiling))


class QualityGate:
    """Accept or reject a filtered window before metrics are computed."""

    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()

    def accept(self, filtered: np.ndarray, face_detected: bool = True) -> bool:
        if not face_detected:
            return False
        x = np.asarray(filtered, dtype=np.float64)
        if x.size < 2:
            return False
        return signal_std(x) >= self.cfg.variance_reject_floor

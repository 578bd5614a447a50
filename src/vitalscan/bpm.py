"""Frequency-domain BPM estimation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .config import PipelineConfig
from .fft import magnitude_spectrum, next_pow2
from .quality import spectral_snr


@dataclass
class SpectrumEstimate:
    bpm: float = 0.0  # after jump rejection
    raw_bpm: float = 0.0
    peak_hz: float = 0.0
    snr: float = 0.0
    peak_index: int = -1
    freqs: np.ndarray = field(default_factory=lambda: np.zeros(0))
    magnitude: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def valid(self) -> bool:
        return self.bpm > 0.0


def _parabolic_offset(y: np.ndarray, i: int) -> float:
    """Sub-bin offset of the vertex through (i-1, i, i+1), in [-0.5, 0.5]."""
    if i <= 0 or i >= y.size - 1:
        return 0.0
    y0, y1, y2 = float(y[i - 1]), float(y[i]), float(y[i + 1])
    denom = y0 - 2.0 * y1 + y2
    if denom == 0.0:
        return 0.0
    return float(np.clip(0.5 * (y0 - y2) / denom, -0.5, 0.5))


class FrequencyAnalyzer:
    """Hamming-windowed FFT peak picking in the heart-rate band.

    Keeps the last emitted BPM to damp sudden jumps between windows; call
    :meth:`reset` at session boundaries.
    """

    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()
        self.last_bpm: float = 0.0

    def reset(self) -> None:
        self.last_bpm = 0.0

    def window_length(self, n: int, fs: float) -> int:
        if fs <= 0:
            return 0
        return int(min(n, np.floor(fs * self.cfg.analysis_window_sec)))

    def recent(self, filtered: np.ndarray, fs: float) -> np.ndarray:
        """Most recent ``analysis_window_sec`` of ``filtered``."""
        x = np.asarray(filtered, dtype=np.float64)
        L = self.window_length(x.size, fs)
        if L <= 0:
            return x[:0]
        return x[-L:]

    def analyze(self, filtered: np.ndarray, fs: float) -> SpectrumEstimate:
        """Estimate BPM from the dominant in-band spectral peak.

        Returns an empty estimate (bpm 0, snr 0) when there is not enough
        data or the rate is undefined.
        """
        x = self.recent(filtered, fs)
        L = x.size
        if L < 8:
            return SpectrumEstimate()
        w = 0.54 - 0.46 * np.cos(2.0 * np.pi * np.arange(L) / (L - 1))
        mag = magnitude_spectrum(x * w)
        nfft = next_pow2(L)
        bin_hz = fs / nfft
        freqs = np.arange(mag.size) * bin_hz
        lo = int(np.ceil(self.cfg.min_freq / bin_hz))
        hi = min(int(np.floor(self.cfg.max_freq / bin_hz)), mag.size - 1)
        if hi < lo:
            return SpectrumEstimate(freqs=freqs, magnitude=mag)
        k = lo + int(np.argmax(mag[lo : hi + 1]))
        if mag[k] <= 0.0:
            return SpectrumEstimate(freqs=freqs, magnitude=mag)
        pos = float(k)
        if self.cfg.interpolate_peak:
            pos += _parabolic_offset(mag, k)
        peak_hz = pos * bin_hz
        raw = 60.0 * peak_hz
        snr = spectral_snr(
            mag, k, lo, hi, guard_bins=self.cfg.snr_guard_bins, ceiling=self.cfg.snr_ceiling
        )
        bpm = raw
        if self.last_bpm > 0.0 and abs(raw - self.last_bpm) > self.cfg.jump_threshold_bpm:
            b = self.cfg.jump_blend
            bpm = b * self.last_bpm + (1.0 - b) * raw
        self.last_bpm = bpm
        return SpectrumEstimate(
            bpm=float(bpm),
            raw_bpm=float(raw),
            peak_hz=float(peak_hz),
            snr=float(snr),
            peak_index=k,
            freqs=freqs,
            magnitude=mag,
        )

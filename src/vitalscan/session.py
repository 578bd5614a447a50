"""Session accumulation and the final report."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import numpy as np

from .config import PipelineConfig
from .hrv import stress_index


@dataclass
class WindowEstimate:
    bpm: float = 0.0
    rmssd: float = 0.0  # ms
    snr: float = 0.0
    fs: float = 0.0
    accepted: bool = False


@dataclass
class SessionMetrics:
    bpm: List[float] = field(default_factory=list)
    rmssd: List[float] = field(default_factory=list)
    stress: List[float] = field(default_factory=list)

    def clear(self) -> None:
        self.bpm.clear()
        self.rmssd.clear()
        self.stress.clear()


@dataclass(frozen=True)
class Report:
    bpm: int
    hrv: int  # RMSSD [ms]
    stress: int  # 0..100
    respiration: int  # breaths per minute
    confidence: float  # 0..1
    windows: int  # accepted analysis windows

    @property
    def confident(self) -> bool:
        return self.confidence >= 1.0

    def to_dict(self) -> dict:
        return asdict(self)


def _median(values: List[float]) -> float:
    if not values:
        return 0.0
    return float(np.median(np.asarray(values, dtype=np.float64)))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class SessionAggregator:
    """Collect accepted window estimates and reduce them with medians."""

    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()
        self.metrics = SessionMetrics()

    def reset(self) -> None:
        self.metrics.clear()

    def accumulate(self, est: WindowEstimate) -> bool:
        """Append ``est`` if it passes the SNR and BPM-band checks.

        Returns whether the estimate was accepted.
        """
        c = self.cfg
        ok = est.snr > c.snr_accept_threshold and c.accept_min_bpm < est.bpm < c.accept_max_bpm
        est.accepted = bool(ok)
        if not ok:
            return False
        self.metrics.bpm.append(float(est.bpm))
        if est.rmssd > 0:
            self.metrics.rmssd.append(float(est.rmssd))
        self.metrics.stress.append(
            stress_index(est.bpm, est.rmssd, c.stress_bpm_weight, c.stress_hrv_weight)
        )
        return True

    def report(self) -> Report:
        m = self.metrics
        bpm = _median(m.bpm)
        hrv = _median(m.rmssd)
        stress = _median(m.stress)
        resp = bpm / self.cfg.respiration_ratio if bpm > 0 else 0.0
        n = len(m.bpm)
        return Report(
            bpm=_round_half_up(bpm),
            hrv=_round_half_up(hrv),
            stress=_round_half_up(stress),
            respiration=_round_half_up(resp),
            confidence=min(1.0, n / float(self.cfg.min_confident_windows)),
            windows=n,
        )

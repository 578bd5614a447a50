"""Capture-phase state machine driving the rPPG pipeline.

The machine is fed by two external callbacks: ``on_sample`` once per captured
frame and ``on_tick`` once per wall-clock second. Both return an
:class:`Update` describing the current phase and whatever the presentation
layer should draw. Nothing here blocks or spawns work; one instance owns one
session's buffers at a time.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from .bpm import FrequencyAnalyzer
from .config import PipelineConfig
from .hrv import PeakEstimator
from .preprocess import SignalFilter
from .quality import QualityGate
from .session import Report, SessionAggregator, SessionMetrics, WindowEstimate
from .store import SampleStore

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    CALIBRATING = "calibrating"
    MEASURING = "measuring"
    REPORT = "report"


@dataclass
class Sample:
    value: float
    timestamp: float  # seconds, monotonic
    has_face: bool = True

    @classmethod
    def from_rgb(
        cls, r: float, g: float, b: float, timestamp: float, has_face: bool = True
    ) -> "Sample":
        """Reduce a mean-RGB sample to the green-minus-red pulse signal."""
        return cls(float(g) - float(r), float(timestamp), bool(has_face))


@dataclass
class Update:
    phase: Phase
    time_left: int = 0
    estimate: Optional[WindowEstimate] = None  # set when an analysis ran
    signal: Optional[float] = None  # newest filtered value for charting
    report: Optional[Report] = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "time_left": self.time_left,
            "estimate": asdict(self.estimate) if self.estimate is not None else None,
            "signal": self.signal,
            "report": self.report.to_dict() if self.report is not None else None,
        }


class CaptureStateMachine:
    """Idle -> Calibrating -> Measuring -> Report, with reset back to Idle."""

    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()
        self.phase = Phase.IDLE
        self._new_session()

    def _new_session(self) -> None:
        c = self.cfg
        self.store = SampleStore(c.buffer_capacity)
        self.filter = SignalFilter(c)
        self.gate = QualityGate(c)
        self.analyzer = FrequencyAnalyzer(c)
        self.peaks = PeakEstimator(c)
        self.aggregator = SessionAggregator(c)
        self.report: Optional[Report] = None
        self.latest: Optional[WindowEstimate] = None
        self.time_left = c.session_duration_sec
        self._warmup_frames = 0
        self._last_analysis_t: Optional[float] = None
        self._face_hits = 0
        self._face_total = 0

    @property
    def metrics(self) -> SessionMetrics:
        return self.aggregator.metrics

    def _update(self, **kw: object) -> Update:
        return Update(self.phase, self.time_left, **kw)  # type: ignore[arg-type]

    # Lifecycle

    def start(self) -> Update:
        self._new_session()
        self.phase = Phase.CALIBRATING
        logger.info("session started: calibrating")
        return self._update()

    def reset(self) -> Update:
        self._new_session()
        if self.phase is not Phase.IDLE:
            logger.info("session reset from %s", self.phase.value)
        self.phase = Phase.IDLE
        return self._update()

    def finish(self) -> Update:
        """End the measurement early and produce the report."""
        if self.phase is Phase.MEASURING:
            self._finalize()
        return self._update(report=self.report)

    def _enter_measuring(self, t: float) -> None:
        self.phase = Phase.MEASURING
        self.time_left = self.cfg.session_duration_sec
        self._last_analysis_t = t
        self._face_hits = 0
        self._face_total = 0
        logger.info("calibration done after %d frames: measuring", self._warmup_frames)

    def _finalize(self) -> None:
        self.report = self.aggregator.report()
        self.phase = Phase.REPORT
        self.time_left = 0
        logger.info("session report: %s", self.report.to_dict())

    # Callbacks

    def on_sample(self, sample: Sample) -> Update:
        if self.phase in (Phase.IDLE, Phase.REPORT):
            return self._update()
        self.store.add(sample.value, sample.timestamp)
        signal = self._chart_value()
        self._face_total += 1
        if sample.has_face:
            self._face_hits += 1

        estimate: Optional[WindowEstimate] = None
        if self.phase is Phase.CALIBRATING:
            self._warmup_frames += 1
            if self._warmup_frames >= self.cfg.calibration_warmup_frames:
                self._enter_measuring(sample.timestamp)
        elif self._last_analysis_t is None or (
            sample.timestamp - self._last_analysis_t >= self.cfg.analysis_interval_sec
        ):
            self._last_analysis_t = sample.timestamp
            estimate = self.analyze()
        return self._update(estimate=estimate, signal=signal)

    def _chart_value(self) -> Optional[float]:
        """Newest sample of the filtered store, as the analysis sees it."""
        fs = self.store.sample_rate()
        if len(self.store) < 2 or fs <= 0:
            return None
        return float(self.filter.apply(self.store.snapshot(), fs)[-1])

    def on_tick(self) -> Update:
        if self.phase is not Phase.MEASURING:
            return self._update(report=self.report)
        self.time_left -= 1
        if self.time_left <= 0:
            self._finalize()
        return self._update(report=self.report)

    # Analysis

    def _face_ok(self) -> bool:
        total, hits = self._face_total, self._face_hits
        self._face_total = 0
        self._face_hits = 0
        if total == 0:
            return True
        return hits / total >= self.cfg.min_face_ratio

    def analyze(self) -> Optional[WindowEstimate]:
        """Run one analysis over the whole store.

        Returns None while there is not enough data; a zero estimate when the
        window fails the quality gate or has no usable spectral peak.
        """
        if len(self.store) < self.cfg.min_analysis_samples:
            return None
        fs = self.store.sample_rate()
        if fs <= 0.0:
            return None
        face_ok = self._face_ok()
        filtered = self.filter.apply(self.store.snapshot(), fs)
        if not self.gate.accept(filtered, face_detected=face_ok):
            logger.debug("window rejected by quality gate (face=%s)", face_ok)
            self.latest = WindowEstimate(fs=fs)
            return self.latest
        spec = self.analyzer.analyze(filtered, fs)
        if not spec.valid:
            self.latest = WindowEstimate(fs=fs)
            return self.latest
        hrv = self.peaks.estimate(self.analyzer.recent(filtered, fs), fs)
        est = WindowEstimate(bpm=spec.bpm, rmssd=hrv, snr=spec.snr, fs=fs)
        if not self.aggregator.accumulate(est):
            logger.debug("window not accumulated: bpm=%.1f snr=%.2f", est.bpm, est.snr)
        self.latest = est
        return est

    def state(self) -> dict:
        """Plain-dict view for polling clients."""
        return {
            "phase": self.phase.value,
            "time_left": self.time_left,
            "samples": len(self.store),
            "accepted": len(self.metrics.bpm),
            "latest": asdict(self.latest) if self.latest is not None else None,
            "report": self.report.to_dict() if self.report is not None else None,
        }

"""Pipeline configuration.

All empirical thresholds live here so variants can be tuned without touching
the estimators. Units: seconds, Hz, BPM, milliseconds (for HRV), and raw
``g - r`` intensity for the variance floor.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace


@dataclass
class PipelineConfig:
    # Buffering
    buffer_capacity: int = 512
    min_analysis_samples: int = 60

    # Heart-rate search band (BPM)
    min_bpm: float = 40.0
    max_bpm: float = 200.0

    # Phases
    session_duration_sec: int = 30
    calibration_warmup_frames: int = 120  # ~4 s at 30 fps
    analysis_interval_sec: float = 0.5

    # Filter
    baseline: str = "mean"  # mean | ema
    baseline_alpha: float = 0.05  # EMA weight for the "ema" baseline
    smooth_radius: int = 3
    bandpass: bool = False
    bandpass_order: int = 2

    # Frequency analysis
    analysis_window_sec: float = 6.0
    interpolate_peak: bool = True
    jump_threshold_bpm: float = 20.0
    jump_blend: float = 0.8  # weight of the previous estimate on a jump
    snr_guard_bins: int = 2
    snr_ceiling: float = 1000.0

    # Quality gate
    variance_reject_floor: float = 0.3
    min_face_ratio: float = 0.5

    # HRV
    peak_floor: float = 0.0
    min_ibi_ms: float = 300.0
    max_ibi_ms: float = 1300.0

    # Session acceptance and report
    snr_accept_threshold: float = 1.3
    accept_min_bpm: float = 45.0
    accept_max_bpm: float = 180.0
    stress_bpm_weight: float = 0.4
    stress_hrv_weight: float = 0.6
    respiration_ratio: float = 4.0
    min_confident_windows: int = 10

    def __post_init__(self) -> None:
        if self.buffer_capacity < 2:
            raise ValueError("buffer_capacity must be >= 2")
        if self.min_analysis_samples > self.buffer_capacity:
            raise ValueError("min_analysis_samples must not exceed buffer_capacity")
        if not (0.0 < self.min_bpm < self.max_bpm):
            raise ValueError("require 0 < min_bpm < max_bpm")
        if self.baseline not in ("mean", "ema"):
            raise ValueError("baseline must be 'mean' or 'ema'")
        if not (0.0 < self.baseline_alpha <= 1.0):
            raise ValueError("baseline_alpha must be in (0, 1]")
        if self.smooth_radius < 0:
            raise ValueError("smooth_radius must be >= 0")
        if not (0.0 <= self.jump_blend <= 1.0):
            raise ValueError("jump_blend must be in [0, 1]")
        if self.jump_threshold_bpm < 0:
            raise ValueError("jump_threshold_bpm must be >= 0")
        if self.snr_guard_bins < 0:
            raise ValueError("snr_guard_bins must be >= 0")
        if self.session_duration_sec < 1:
            raise ValueError("session_duration_sec must be >= 1")
        if self.analysis_interval_sec <= 0 or self.analysis_window_sec <= 0:
            raise ValueError("analysis interval/window must be positive")
        if self.respiration_ratio <= 0:
            raise ValueError("respiration_ratio must be positive")
        if self.min_confident_windows < 1:
            raise ValueError("min_confident_windows must be >= 1")

    @property
    def min_freq(self) -> float:
        return self.min_bpm / 60.0

    @property
    def max_freq(self) -> float:
        return self.max_bpm / 60.0

    def updated(self, **changes: object) -> "PipelineConfig":
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)  # type: ignore[arg-type]

    def to_dict(self) -> dict:
        return asdict(self)

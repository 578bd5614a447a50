"""vitalscan: rPPG heart-rate, HRV and stress estimation from skin color samples."""

__all__ = [
    "config",
    "store",
    "preprocess",
    "fft",
    "bpm",
    "hrv",
    "quality",
    "session",
    "pipeline",
    "synth",
    "recorder",
    "service",
    "replay",
]

__version__ = "0.1.0"

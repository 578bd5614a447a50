"""Synthetic rPPG sessions for tests, demos and replay."""

from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from .pipeline import Sample


def synthetic_rgb(
    bpm: float = 72.0,
    duration: float = 40.0,
    fs: float = 30.0,
    amplitude: float = 1.0,
    noise: float = 0.1,
    drift: float = 0.0,
    base: float = 120.0,
    seed: Optional[int] = 0,
) -> np.ndarray:
    """Return an (N, 4) array of ``t, r, g, b`` rows.

    The pulse rides on the green channel so that ``g - r`` carries a sine at
    ``bpm / 60`` Hz plus Gaussian noise and an optional linear drift
    [units per second] on all channels.
    """
    rng = np.random.RandomState(seed)
    t = np.arange(0.0, duration, 1.0 / fs)
    pulse = amplitude * np.sin(2.0 * np.pi * (bpm / 60.0) * t)
    wander = drift * t
    r = base + wander + noise * rng.randn(t.size)
    g = base + wander + pulse + noise * rng.randn(t.size)
    b = base + wander + noise * rng.randn(t.size)
    return np.column_stack([t, r, g, b])


def iter_samples(rows: np.ndarray, has_face: bool = True) -> Iterator[Sample]:
    for t, r, g, b in np.asarray(rows, dtype=np.float64):
        yield Sample.from_rgb(r, g, b, t, has_face=has_face)

from __future__ import annotations

import numpy as np

from vitalscan.config import PipelineConfig
from vitalscan.preprocess import (
    SignalFilter,
    bandpass,
    ema_baseline,
    remove_baseline,
    smooth,
)


def test_filter_preserves_length() -> None:
    rng = np.random.RandomState(0)
    filt = SignalFilter()
    for n in range(2, 60):
        x = rng.randn(n)
        assert filt.apply(x).shape == (n,)


def test_filter_short_input_unchanged() -> None:
    filt = SignalFilter()
    assert filt.apply(np.zeros(0)).size == 0
    y = filt.apply(np.array([5.0]))
    assert y.tolist() == [5.0]


def test_baseline_removal_on_constant() -> None:
    x = np.full(50, 123.0)
    assert np.allclose(remove_baseline(x), 0.0)
    assert np.allclose(ema_baseline(x, 0.1), 123.0)
    ema = SignalFilter(PipelineConfig(baseline="ema"))
    assert np.allclose(ema.apply(x), 0.0)


def test_smooth_clamps_edges() -> None:
    x = np.array([0.0, 0.0, 0.0, 0.0, 10.0])
    y = smooth(x, radius=1)
    assert np.isclose(y[-1], 5.0)  # (0 + 10) / 2, no zero padding
    assert np.isclose(y[-2], 10.0 / 3.0)
    assert np.isclose(y[0], 0.0)


def test_smooth_reduces_noise() -> None:
    x = np.random.RandomState(3).randn(500)
    assert np.std(smooth(x, radius=3)) < 0.6 * np.std(x)


def test_bandpass_preserves_inband_and_attenuates_outband() -> None:
    fs = 30.0
    t = np.arange(0, 10.0, 1 / fs)
    x = np.sin(2 * np.pi * 1.2 * t) + 0.3 * np.sin(2 * np.pi * 0.2 * t)
    y = bandpass(x, fs=fs, fmin=0.7, fmax=4.0, order=3)
    corr = np.corrcoef(y, np.sin(2 * np.pi * 1.2 * t))[0, 1]
    assert corr > 0.7


def test_bandpass_passthrough_when_band_invalid() -> None:
    x = np.arange(10, dtype=float)
    assert np.array_equal(bandpass(x, fs=0.0), x)
    assert np.array_equal(bandpass(x, fs=1.0, fmin=0.7, fmax=3.5), x)

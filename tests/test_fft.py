from __future__ import annotations

import numpy as np
import pytest

from vitalscan.fft import fft_radix2, fft_recursive, magnitude_spectrum, next_pow2


def test_next_pow2() -> None:
    assert next_pow2(1) == 1
    assert next_pow2(2) == 2
    assert next_pow2(180) == 256
    assert next_pow2(256) == 256


def test_fft_variants_match_numpy() -> None:
    x = np.random.RandomState(0).randn(64)
    ref = np.fft.fft(x)
    assert np.allclose(fft_radix2(x), ref)
    assert np.allclose(fft_recursive(x), ref)


def test_fft_rejects_non_power_of_two() -> None:
    with pytest.raises(ValueError):
        fft_radix2(np.zeros(12))
    with pytest.raises(ValueError):
        fft_recursive(np.zeros(12))


def test_magnitude_spectrum_zero_pads() -> None:
    fs = 30.0
    n = 180
    t = np.arange(n) / fs
    mag = magnitude_spectrum(np.sin(2 * np.pi * 1.5 * t))
    assert mag.shape == (128,)
    assert np.all(mag >= 0.0)
    bin_hz = fs / 256
    assert abs(int(np.argmax(mag)) * bin_hz - 1.5) <= bin_hz

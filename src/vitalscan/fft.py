"""Radix-2 FFT used by the frequency analyzer.

``fft_radix2`` is the iterative in-place Cooley-Tukey transform with the
butterflies of each stage vectorized in numpy. ``fft_recursive`` computes the
same transform by even/odd splitting and is kept as a reference.
"""

from __future__ import annotations

import numpy as np


def next_pow2(n: int) -> int:
    n = int(n)
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def _bit_reverse_indices(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.int64)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)
    return rev


def fft_radix2(x: np.ndarray) -> np.ndarray:
    """Iterative radix-2 DFT of ``x`` (length must be a power of two)."""
    a = np.asarray(x, dtype=np.complex128)
    n = a.size
    if n == 0:
        return a.copy()
    if n & (n - 1):
        raise ValueError("FFT length must be a power of two")
    a = a[_bit_reverse_indices(n)]
    size = 2
    while size <= n:
        half = size // 2
        twiddle = np.exp(-2j * np.pi * np.arange(half) / size)
        blocks = a.reshape(-1, size)
        even = blocks[:, :half].copy()
        odd = blocks[:, half:] * twiddle
        blocks[:, :half] = even + odd
        blocks[:, half:] = even - odd
        size *= 2
    return a


def fft_recursive(x: np.ndarray) -> np.ndarray:
    """Recursive radix-2 DFT; same result as :func:`fft_radix2`."""
    a = np.asarray(x, dtype=np.complex128)
    n = a.size
    if n <= 1:
        return a.copy()
    if n & (n - 1):
        raise ValueError("FFT length must be a power of two")
    even = fft_recursive(a[0::2])
    odd = fft_recursive(a[1::2])
    tw = np.exp(-2j * np.pi * np.arange(n // 2) / n) * odd
    return np.concatenate([even + tw, even - tw])


def magnitude_spectrum(x: np.ndarray) -> np.ndarray:
    """Zero-pad ``x`` to the next power of two and return |X| for bins [0, nfft/2).

    The bin width of the result is ``fs / next_pow2(len(x))``.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)
    nfft = next_pow2(x.size)
    padded = np.zeros(nfft, dtype=np.float64)
    padded[: x.size] = x
    X = fft_radix2(padded)
    return np.abs(X[: max(1, nfft // 2)])

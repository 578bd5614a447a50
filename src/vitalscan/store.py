"""Bounded sample buffer with paired timestamps."""

from __future__ import annotations

from collections import deque
from typing import Deque

import numpy as np


class SampleStore:
    """FIFO buffer of (value, timestamp) pairs capped at ``capacity``.

    Values and timestamps are kept in two deques with the same ``maxlen`` so
    eviction always drops the oldest pair together.
    """

    def __init__(self, capacity: int = 512) -> None:
        self.capacity = int(capacity)
        self._values: Deque[float] = deque(maxlen=self.capacity)
        self._times: Deque[float] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._values)

    def add(self, value: float, timestamp: float) -> None:
        self._values.append(float(value))
        self._times.append(float(timestamp))

    def snapshot(self) -> np.ndarray:
        return np.array(self._values, dtype=np.float64)

    def timestamps(self) -> np.ndarray:
        return np.array(self._times, dtype=np.float64)

    def clear(self) -> None:
        self._values.clear()
        self._times.clear()

    def duration(self) -> float:
        if len(self._times) < 2:
            return 0.0
        return float(self._times[-1] - self._times[0])

    def sample_rate(self) -> float:
        """Effective rate [Hz] from elapsed time across the buffer.

        Returns 0.0 when the elapsed time is zero or negative.
        """
        dur = self.duration()
        if dur <= 0.0:
            return 0.0
        return (len(self._times) - 1) / dur
